"""Answer editing with live stage gating and atomic score updates.

Every write follows the same path:
    1. the assessment must be editable (active, or a Moderation)
    2. the question's stage must be unlocked by the current answers
    3. the partial update is merged into the stored answer and the
       guideline-qualification invariant is applied
    4. the answer is upserted and all scores are recomputed and stored on the
       assessment in the same transaction
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from mat_assessment_engine.core.catalog import FullPillar, PillarRegistry
from mat_assessment_engine.core.enums import AssessmentType
from mat_assessment_engine.core.gating import (
    STAGE_UNLOCK_THRESHOLD,
    StageGate,
    ensure_stage_editable,
    stage_gates,
)
from mat_assessment_engine.core.interfaces import (
    IAnswerRepository,
    IAssessmentRepository,
    ICatalogRepository,
)
from mat_assessment_engine.core.scoring import ScoreSet, compute_scores, normalise_qualification
from mat_assessment_engine.errors import ErrorCode, NotFoundError, PolicyError

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _merged(value: Any, existing: Any | None, attribute: str, default: Any) -> Any:
    """Return the updated value, else the stored one, else the default."""
    if value is not None:
        return value
    stored = getattr(existing, attribute, None) if existing is not None else None
    return default if stored is None else stored


@dataclass
class AnswerUpdate:
    """Partial answer update; None means "leave unchanged".

    Attributes:
        checked_guidelines: Full replacement of the ticked guidelines.
        is_qualified: Requested qualification flag.
        comments: Free-text comment.
        evidence: Full replacement of the evidence references.
    """

    checked_guidelines: list[str] | None = None
    is_qualified: bool | None = None
    comments: str | None = None
    evidence: list[dict[str, Any]] | None = None


@dataclass
class AssessmentView:
    """An assessment with its live scores, stage gates and answers."""

    assessment: Any
    pillar: FullPillar
    scores: ScoreSet
    gates: list[StageGate]
    answers: list[Any] = field(default_factory=list)
    editable: bool = False


@dataclass
class SavedAnswer:
    """Result of an answer write."""

    answer: Any
    scores: ScoreSet
    gates: list[StageGate]


class AnswerService:
    """Applies answer edits under the stage gate and keeps scores in sync."""

    def __init__(
        self,
        assessment_repository: IAssessmentRepository,
        answer_repository: IAnswerRepository,
        catalog_repository: ICatalogRepository,
        registry: PillarRegistry,
        stage_unlock_threshold: float = STAGE_UNLOCK_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialise the service with repository dependencies.

        Args:
            assessment_repository: Assessment persistence.
            answer_repository: Answer persistence.
            catalog_repository: Loader for pillar trees.
            registry: Cache of loaded pillar trees.
            stage_unlock_threshold: Score the previous stage needs to unlock the next.
            clock: Returns the current UTC time.
        """
        self._assessments = assessment_repository
        self._answers = answer_repository
        self._catalog = catalog_repository
        self._registry = registry
        self._threshold = stage_unlock_threshold
        self._clock = clock

    async def save_answer(
        self,
        assessment_id: uuid.UUID,
        question_id: str,
        update: AnswerUpdate,
        actor: str,
    ) -> SavedAnswer:
        """Merge a partial update into an answer and rescore the assessment.

        Args:
            assessment_id: Assessment being edited.
            question_id: Answered question.
            update: Fields to change.
            actor: User making the edit.

        Returns:
            SavedAnswer with the stored answer, new scores and new stage gates.

        Raises:
            NotFoundError: Unknown assessment, or question outside its pillar.
            PolicyError: Assessment is read-only, or the stage is locked.
            ValidationError: Guideline-qualification invariant violated.
        """
        assessment = await self._require(assessment_id)
        self._ensure_editable(assessment)

        pillar = await self._registry.get(assessment.pillar_id, self._catalog.load_full_pillar)
        stage_index, stage, theme, question = pillar.locate_question(question_id)

        answers = {a.question_id: a for a in await self._answers.list_for_assessment(assessment_id)}
        live = compute_scores(answers, pillar)
        ensure_stage_editable(pillar, stage_index, live.per_stage, self._threshold)

        existing = answers.get(question_id)
        checked, qualified = normalise_qualification(
            question,
            list(_merged(update.checked_guidelines, existing, "checked_guidelines", [])),
            bool(_merged(update.is_qualified, existing, "is_qualified", False)),
            qualification_requested=update.is_qualified is True,
        )
        comments = _merged(update.comments, existing, "comments", None)
        evidence = [dict(item) for item in _merged(update.evidence, existing, "evidence", [])]

        now = self._clock()
        answer = await self._answers.upsert(
            assessment_id=assessment_id,
            question_id=question_id,
            stage_id=stage.id,
            theme_id=theme.id,
            checked_guidelines=checked,
            is_qualified=qualified,
            comments=comments,
            evidence=evidence,
            actor=actor,
            at=now,
        )
        answers[question_id] = answer

        scores = compute_scores(answers, pillar)
        await self._assessments.update_scores(assessment_id, scores, actor, now)

        logger.info(
            "Answer saved",
            assessment_id=str(assessment_id),
            question_id=question_id,
            stage_id=stage.id,
            is_qualified=qualified,
            overall_score=scores.overall,
            actor=actor,
        )
        return SavedAnswer(
            answer=answer,
            scores=scores,
            gates=stage_gates(pillar, scores.per_stage, self._threshold),
        )

    async def get_assessment_view(self, assessment_id: uuid.UUID) -> AssessmentView:
        """Load an assessment with scores and gates derived from its current answers.

        Raises:
            NotFoundError: If the assessment does not exist.
        """
        assessment = await self._require(assessment_id)
        pillar = await self._registry.get(assessment.pillar_id, self._catalog.load_full_pillar)
        answers = await self._answers.list_for_assessment(assessment_id)
        scores = compute_scores({a.question_id: a for a in answers}, pillar)

        return AssessmentView(
            assessment=assessment,
            pillar=pillar,
            scores=scores,
            gates=stage_gates(pillar, scores.per_stage, self._threshold),
            answers=answers,
            editable=self._is_editable(assessment),
        )

    async def rescore(self, assessment_id: uuid.UUID, actor: str) -> ScoreSet:
        """Recompute and store the denormalised scores from the stored answers.

        Raises:
            NotFoundError: If the assessment does not exist.
            PolicyError: If the assessment is neither active nor a Moderation.
        """
        assessment = await self._require(assessment_id)
        self._ensure_editable(assessment)
        previous_score = assessment.overall_score
        pillar = await self._registry.get(assessment.pillar_id, self._catalog.load_full_pillar)
        answers = await self._answers.list_for_assessment(assessment_id)
        scores = compute_scores({a.question_id: a for a in answers}, pillar)
        await self._assessments.update_scores(assessment_id, scores, actor, self._clock())

        logger.info(
            "Assessment rescored",
            assessment_id=str(assessment_id),
            previous_score=previous_score,
            overall_score=scores.overall,
        )
        return scores

    async def _require(self, assessment_id: uuid.UUID) -> Any:
        assessment = await self._assessments.get_by_id(assessment_id)
        if assessment is None:
            raise NotFoundError(
                message=f"Assessment {assessment_id} not found.",
                context={"assessment_id": str(assessment_id)},
            )
        return assessment

    def _ensure_editable(self, assessment: Any) -> None:
        if self._is_editable(assessment):
            return
        raise PolicyError(
            message=(
                f"Assessment {assessment.id} is neither active nor a Moderation "
                "and cannot be edited."
            ),
            error_code=ErrorCode.ASSESSMENT_READ_ONLY,
            context={
                "assessment_id": str(assessment.id),
                "assessment_type": assessment.assessment_type,
                "is_active": assessment.is_active,
            },
        )

    @staticmethod
    def _is_editable(assessment: Any) -> bool:
        return bool(assessment.is_active) or (
            assessment.assessment_type == AssessmentType.MODERATION.value
        )
