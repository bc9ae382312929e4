"""Assessment lifecycle: creating versions and choosing the active one.

Operations:
    create_blank()      new active Self-Assessment with no answers
    create_from_copy()  new active Self-Assessment copied from another version
    create_moderation() new inactive Moderation copied from a source version
    set_active()        make a version the unit's active one for its pillar

At most one Self-Assessment per (unit, pillar) is active. Every activation
goes through the repository's exclusive swap; a lost race surfaces as
ConflictError and is retried here a bounded number of times.

All database access goes through repository interfaces. No SQLAlchemy or
FastAPI imports belong here.
"""

import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from mat_assessment_engine.core.catalog import PillarRegistry
from mat_assessment_engine.core.enums import DEPARTMENT_LEVEL, ORG_LEVEL_NAMES, AssessmentType
from mat_assessment_engine.core.interfaces import (
    IAnswerRepository,
    IAssessmentRepository,
    ICatalogRepository,
    IOrgRepository,
    IPeriodRepository,
)
from mat_assessment_engine.core.scoring import compute_scores
from mat_assessment_engine.errors import (
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LifecycleService:
    """Creates assessment versions and maintains the active-version invariant."""

    def __init__(
        self,
        assessment_repository: IAssessmentRepository,
        answer_repository: IAnswerRepository,
        catalog_repository: ICatalogRepository,
        org_repository: IOrgRepository,
        period_repository: IPeriodRepository,
        registry: PillarRegistry,
        label_max_length: int = 200,
        activation_max_attempts: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialise the service with repository dependencies.

        Args:
            assessment_repository: Assessment persistence.
            answer_repository: Answer persistence (used for copies).
            catalog_repository: Catalog access and pillar enablement.
            org_repository: Org hierarchy read access.
            period_repository: Assessment period read access.
            registry: Cache of loaded pillar trees.
            label_max_length: Maximum label length after stripping.
            activation_max_attempts: Attempts for the exclusive activation swap.
            clock: Returns the current UTC time.
        """
        self._assessments = assessment_repository
        self._answers = answer_repository
        self._catalog = catalog_repository
        self._org = org_repository
        self._periods = period_repository
        self._registry = registry
        self._label_max_length = label_max_length
        self._activation_max_attempts = max(1, activation_max_attempts)
        self._clock = clock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def create_blank(
        self,
        org_unit_id: str,
        pillar_id: str,
        label: str | None,
        actor: str,
        period_id: str | None = None,
    ) -> Any:
        """Start a new, empty Self-Assessment and make it the active one.

        Args:
            org_unit_id: Department the assessment belongs to.
            pillar_id: Assessed pillar.
            label: Display label. None or blank falls back to
                "<period name> Self-Assessment".
            actor: User creating the assessment.
            period_id: Optional explicit period; must be an Open period
                covering today and the unit.

        Returns:
            The new, active Assessment.

        Raises:
            ValidationError: Over-long label, disabled pillar, a unit that is not a
                childless department, or no covering Open period.
            NotFoundError: Unknown unit or pillar.
            ConflictError: If activation kept losing concurrent races.
        """
        clean_label = self._validate_label(label) if label and label.strip() else None
        await self._ensure_pillar_enabled(pillar_id)
        await self._ensure_department(org_unit_id)
        period = await self._covering_period(org_unit_id, requested_period_id=period_id)
        if period is None:
            raise ValidationError(
                message=(
                    f"No Open assessment period covers org unit {org_unit_id!r} today."
                    if period_id is None
                    else f"Period {period_id!r} is not an Open period covering org unit "
                    f"{org_unit_id!r} today."
                ),
                error_code=ErrorCode.NO_OPEN_PERIOD,
                context={"org_unit_id": org_unit_id, "period_id": period_id},
            )
        if clean_label is None:
            default_label = f"{period.name} {AssessmentType.SELF_ASSESSMENT.value}"
            clean_label = default_label[: self._label_max_length].strip()

        pillar = await self._registry.get(pillar_id, self._catalog.load_full_pillar)
        zero = compute_scores({}, pillar)
        now = self._clock()

        assessment = await self._assessments.create(
            org_unit_id=org_unit_id,
            pillar_id=pillar_id,
            period_id=period.id,
            assessment_type=AssessmentType.SELF_ASSESSMENT.value,
            label=clean_label,
            is_active=False,
            overall_score=zero.overall,
            scores_by_stage=dict(zero.per_stage),
            scores_by_theme=dict(zero.per_theme),
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        activated = await self._activate(assessment.id, actor)

        logger.info(
            "Blank assessment created",
            assessment_id=str(activated.id),
            org_unit_id=org_unit_id,
            pillar_id=pillar_id,
            period_id=period.id,
            actor=actor,
        )
        return activated

    async def create_from_copy(
        self,
        source_id: uuid.UUID,
        actor: str,
        label: str | None = None,
    ) -> Any:
        """Start a new active Self-Assessment pre-filled from another version.

        Answers, evidence references and denormalised scores are copied
        verbatim. The period is the Open period covering the unit today, or
        the source's period when none is open.

        Args:
            source_id: Version to copy.
            actor: User creating the copy.
            label: Display label; defaults to "<source label> (Copy)".

        Returns:
            The new, active Assessment.

        Raises:
            NotFoundError: If the source does not exist.
            ValidationError: Bad label or disabled pillar.
            ConflictError: If activation kept losing concurrent races.
        """
        source = await self._require(source_id)
        clean_label = self._validate_label(label if label is not None else f"{source.label} (Copy)")
        await self._ensure_pillar_enabled(source.pillar_id)

        period = await self._covering_period(source.org_unit_id)
        period_id = period.id if period is not None else source.period_id

        copy = await self._create_copy(
            source,
            assessment_type=AssessmentType.SELF_ASSESSMENT,
            label=clean_label,
            period_id=period_id,
            parent_assessment_id=None,
            actor=actor,
        )
        activated = await self._activate(copy.id, actor)

        logger.info(
            "Assessment copied",
            assessment_id=str(activated.id),
            source_assessment_id=str(source_id),
            org_unit_id=source.org_unit_id,
            pillar_id=source.pillar_id,
            actor=actor,
        )
        return activated

    async def create_moderation(
        self,
        source_id: uuid.UUID,
        actor: str,
        label: str | None = None,
    ) -> Any:
        """Create a Moderation of a Self-Assessment or Baseline.

        The moderation starts inactive, points at its source and copies its
        answers. No other version's ``is_active`` flag changes.

        Args:
            source_id: Version being moderated.
            actor: Moderator.
            label: Display label; defaults to "<source label> (Mod)".

        Returns:
            The new Moderation.

        Raises:
            NotFoundError: If the source does not exist.
            ValidationError: If the source is itself a Moderation, or on a bad
                label or disabled pillar.
        """
        source = await self._require(source_id)
        if source.assessment_type == AssessmentType.MODERATION.value:
            raise ValidationError(
                message="A Moderation cannot be moderated again.",
                error_code=ErrorCode.INVALID_OPERATION,
                context={"assessment_id": str(source_id)},
            )
        clean_label = self._validate_label(label if label is not None else f"{source.label} (Mod)")
        await self._ensure_pillar_enabled(source.pillar_id)

        moderation = await self._create_copy(
            source,
            assessment_type=AssessmentType.MODERATION,
            label=clean_label,
            period_id=source.period_id,
            parent_assessment_id=source.id,
            actor=actor,
        )

        logger.info(
            "Moderation created",
            assessment_id=str(moderation.id),
            source_assessment_id=str(source_id),
            org_unit_id=source.org_unit_id,
            pillar_id=source.pillar_id,
            actor=actor,
        )
        return moderation

    async def set_active(self, assessment_id: uuid.UUID, actor: str) -> Any:
        """Make an assessment the active version of its (unit, pillar).

        The currently active Self-Assessment is deactivated; the target keeps
        its type.

        Raises:
            NotFoundError: If the assessment does not exist.
            ConflictError: If activation kept losing concurrent races.
        """
        target = await self._require(assessment_id)
        activated = await self._activate(target.id, actor)

        logger.info(
            "Assessment activated",
            assessment_id=str(assessment_id),
            org_unit_id=target.org_unit_id,
            pillar_id=target.pillar_id,
            assessment_type=target.assessment_type,
            actor=actor,
        )
        return activated

    async def list_versions(self, org_unit_id: str, pillar_id: str | None = None) -> list[Any]:
        """List a unit's assessment versions, active first then newest."""
        return await self._assessments.list_for_unit(org_unit_id, pillar_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require(self, assessment_id: uuid.UUID) -> Any:
        assessment = await self._assessments.get_by_id(assessment_id)
        if assessment is None:
            raise NotFoundError(
                message=f"Assessment {assessment_id} not found.",
                context={"assessment_id": str(assessment_id)},
            )
        return assessment

    def _validate_label(self, label: str | None) -> str:
        clean = (label or "").strip()
        if not clean or len(clean) > self._label_max_length:
            raise ValidationError(
                message=f"Label must be between 1 and {self._label_max_length} characters.",
                error_code=ErrorCode.INVALID_LABEL,
                context={"label_length": len(clean), "max_length": self._label_max_length},
            )
        return clean

    async def _ensure_pillar_enabled(self, pillar_id: str) -> None:
        if not await self._catalog.is_pillar_enabled(pillar_id):
            raise ValidationError(
                message=f"Pillar {pillar_id!r} is not enabled for the organisation.",
                error_code=ErrorCode.PILLAR_DISABLED,
                context={"pillar_id": pillar_id},
            )

    async def _ensure_department(self, org_unit_id: str) -> None:
        unit = await self._org.get_unit(org_unit_id)
        if unit is None:
            raise NotFoundError(
                message=f"Org unit {org_unit_id!r} not found.",
                context={"org_unit_id": org_unit_id},
            )
        if unit.level != DEPARTMENT_LEVEL:
            level_name = ORG_LEVEL_NAMES.get(unit.level, f"level {unit.level}")
            raise ValidationError(
                message=f"Org unit {org_unit_id!r} is a {level_name}; only departments hold assessments.",
                error_code=ErrorCode.INVALID_OPERATION,
                context={"org_unit_id": org_unit_id, "level": unit.level},
            )
        if await self._org.has_children(org_unit_id):
            raise ValidationError(
                message=f"Org unit {org_unit_id!r} has child units; only departments hold assessments.",
                error_code=ErrorCode.INVALID_OPERATION,
                context={"org_unit_id": org_unit_id, "level": unit.level},
            )

    async def _covering_period(
        self,
        org_unit_id: str,
        requested_period_id: str | None = None,
    ) -> Any | None:
        """Return an Open period covering today and the unit, or None.

        A period without target covers every unit; a targeted period covers
        its target and all units below it. With ``requested_period_id`` only
        that period is considered.
        """
        today = self._clock().date()
        ancestors = set(await self._org.ancestor_ids(org_unit_id))
        for period in await self._periods.list_open_on(today):
            if requested_period_id is not None and period.id != requested_period_id:
                continue
            if not period.target_id or period.target_id in ancestors:
                return period
        return None

    async def _create_copy(
        self,
        source: Any,
        assessment_type: AssessmentType,
        label: str,
        period_id: str | None,
        parent_assessment_id: uuid.UUID | None,
        actor: str,
    ) -> Any:
        now = self._clock()
        copy = await self._assessments.create(
            org_unit_id=source.org_unit_id,
            pillar_id=source.pillar_id,
            period_id=period_id,
            assessment_type=assessment_type.value,
            label=label,
            is_active=False,
            overall_score=source.overall_score,
            scores_by_stage=dict(source.scores_by_stage or {}),
            scores_by_theme=dict(source.scores_by_theme or {}),
            parent_assessment_id=parent_assessment_id,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )
        await self._answers.copy_answers(source.id, copy.id)
        return copy

    async def _activate(self, assessment_id: uuid.UUID, actor: str) -> Any:
        for attempt in range(1, self._activation_max_attempts):
            try:
                return await self._assessments.activate_exclusive(
                    assessment_id, actor, self._clock()
                )
            except ConflictError:
                logger.warning(
                    "Retrying assessment activation",
                    assessment_id=str(assessment_id),
                    attempt=attempt,
                    max_attempts=self._activation_max_attempts,
                )
        return await self._assessments.activate_exclusive(assessment_id, actor, self._clock())
