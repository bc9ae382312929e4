"""Repositories for assessments and their answers.

Implements IAssessmentRepository and IAnswerRepository using SQLAlchemy 2.0
async ORM. All operations run inside the caller's session; nothing here
commits. The request-scoped session commits once the whole operation
succeeded.
"""

import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mat_assessment_engine.core.enums import AssessmentType
from mat_assessment_engine.core.models import Answer, Assessment
from mat_assessment_engine.core.scoring import ScoreSet
from mat_assessment_engine.errors import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)


class AssessmentRepository:
    """Persistence for Assessment versions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def get_by_id(self, assessment_id: uuid.UUID) -> Assessment | None:
        return await self._session.get(Assessment, assessment_id)

    async def _require(self, assessment_id: uuid.UUID) -> Assessment:
        record = await self.get_by_id(assessment_id)
        if record is None:
            raise NotFoundError(
                message=f"Assessment {assessment_id} not found.",
                context={"assessment_id": str(assessment_id)},
            )
        return record

    async def list_for_unit(
        self,
        org_unit_id: str,
        pillar_id: str | None = None,
    ) -> list[Assessment]:
        """List the assessment versions of a unit.

        Args:
            org_unit_id: Department id.
            pillar_id: Optional pillar filter.

        Returns:
            Assessments ordered active first, then newest first.
        """
        query = select(Assessment).where(Assessment.org_unit_id == org_unit_id)
        if pillar_id is not None:
            query = query.where(Assessment.pillar_id == pillar_id)
        query = query.order_by(Assessment.is_active.desc(), Assessment.created_at.desc())

        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def list_all(self) -> list[Assessment]:
        result = await self._session.execute(
            select(Assessment).order_by(Assessment.org_unit_id, Assessment.pillar_id)
        )
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> Assessment:
        """Persist a new assessment.

        Args:
            **fields: Column values. ``is_active`` defaults to False; use
                ``activate_exclusive`` to make a Self-Assessment active.

        Returns:
            The flushed Assessment.
        """
        record = Assessment(**fields)
        self._session.add(record)
        await self._session.flush()

        logger.debug(
            "Assessment persisted",
            assessment_id=str(record.id),
            org_unit_id=record.org_unit_id,
            pillar_id=record.pillar_id,
            assessment_type=record.assessment_type,
        )
        return record

    async def activate_exclusive(
        self,
        assessment_id: uuid.UUID,
        actor: str,
        at: datetime,
    ) -> Assessment:
        """Swap the active Self-Assessment of a (unit, pillar) to this assessment.

        Both updates run in one SAVEPOINT. The partial unique index on active
        Self-Assessments rejects a concurrent swap; the savepoint is then
        rolled back and the outer transaction stays usable.

        Args:
            assessment_id: Assessment to activate.
            actor: User performing the change.
            at: Change timestamp.

        Returns:
            The refreshed, now active, Assessment.

        Raises:
            NotFoundError: If the assessment does not exist.
            ConflictError: If the swap lost a race with another writer.
        """
        target = await self._require(assessment_id)
        org_unit_id, pillar_id = target.org_unit_id, target.pillar_id

        try:
            async with self._session.begin_nested():
                await self._session.execute(
                    update(Assessment)
                    .where(
                        Assessment.org_unit_id == org_unit_id,
                        Assessment.pillar_id == pillar_id,
                        Assessment.assessment_type == AssessmentType.SELF_ASSESSMENT.value,
                        Assessment.is_active.is_(True),
                        Assessment.id != assessment_id,
                    )
                    .values(is_active=False, updated_at=at, updated_by=actor)
                    .execution_options(synchronize_session="fetch")
                )
                await self._session.execute(
                    update(Assessment)
                    .where(Assessment.id == assessment_id)
                    .values(is_active=True, updated_at=at, updated_by=actor)
                    .execution_options(synchronize_session="fetch")
                )
        except IntegrityError as exc:
            logger.warning(
                "Activation lost a concurrent race",
                assessment_id=str(assessment_id),
                org_unit_id=org_unit_id,
                pillar_id=pillar_id,
            )
            raise ConflictError(
                message=(
                    f"Another assessment was activated concurrently for unit "
                    f"{org_unit_id!r}, pillar {pillar_id!r}."
                ),
                context={
                    "assessment_id": str(assessment_id),
                    "org_unit_id": org_unit_id,
                    "pillar_id": pillar_id,
                },
            ) from exc

        await self._session.refresh(target)
        return target

    async def update_scores(
        self,
        assessment_id: uuid.UUID,
        scores: ScoreSet,
        actor: str,
        at: datetime,
    ) -> Assessment:
        """Overwrite the denormalised score fields of an assessment."""
        record = await self._require(assessment_id)
        record.overall_score = scores.overall
        record.scores_by_stage = dict(scores.per_stage)
        record.scores_by_theme = dict(scores.per_theme)
        record.updated_at = at
        record.updated_by = actor
        await self._session.flush()
        return record


class AnswerRepository:
    """Persistence for answers, one row per (assessment, question)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def _get(self, assessment_id: uuid.UUID, question_id: str) -> Answer | None:
        result = await self._session.execute(
            select(Answer).where(
                Answer.assessment_id == assessment_id,
                Answer.question_id == question_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_assessment(self, assessment_id: uuid.UUID) -> list[Answer]:
        result = await self._session.execute(
            select(Answer)
            .where(Answer.assessment_id == assessment_id)
            .order_by(Answer.question_id)
        )
        return list(result.scalars().all())

    async def upsert(
        self,
        assessment_id: uuid.UUID,
        question_id: str,
        stage_id: str,
        theme_id: str,
        checked_guidelines: list[str],
        is_qualified: bool,
        comments: str | None,
        evidence: list[dict[str, Any]],
        actor: str,
        at: datetime,
    ) -> Answer:
        """Insert or overwrite the answer for (assessment, question).

        Concurrent writers to the same question resolve last-write-wins: a
        losing insert falls back to updating the row the winner created.

        Returns:
            The persisted Answer.
        """
        values: dict[str, Any] = {
            "stage_id": stage_id,
            "theme_id": theme_id,
            "checked_guidelines": list(checked_guidelines),
            "is_qualified": is_qualified,
            "comments": comments,
            "evidence": list(evidence),
            "updated_at": at,
            "updated_by": actor,
        }

        record = await self._get(assessment_id, question_id)
        if record is None:
            record = Answer(assessment_id=assessment_id, question_id=question_id, **values)
            try:
                async with self._session.begin_nested():
                    self._session.add(record)
                    await self._session.flush()
                return record
            except IntegrityError:
                logger.debug(
                    "Concurrent answer insert, overwriting",
                    assessment_id=str(assessment_id),
                    question_id=question_id,
                )
                record = await self._get(assessment_id, question_id)
                if record is None:
                    raise

        for key, value in values.items():
            setattr(record, key, value)
        await self._session.flush()
        return record

    async def copy_answers(
        self,
        source_assessment_id: uuid.UUID,
        target_assessment_id: uuid.UUID,
    ) -> int:
        """Copy every answer of one assessment to another, evidence included.

        Returns:
            Number of answers copied.
        """
        source_answers = await self.list_for_assessment(source_assessment_id)
        for answer in source_answers:
            self._session.add(
                Answer(
                    assessment_id=target_assessment_id,
                    question_id=answer.question_id,
                    stage_id=answer.stage_id,
                    theme_id=answer.theme_id,
                    checked_guidelines=list(answer.checked_guidelines or []),
                    is_qualified=answer.is_qualified,
                    comments=answer.comments,
                    evidence=[dict(item) for item in (answer.evidence or [])],
                    updated_at=answer.updated_at,
                    updated_by=answer.updated_by,
                )
            )
        await self._session.flush()

        logger.debug(
            "Answers copied",
            source_assessment_id=str(source_assessment_id),
            target_assessment_id=str(target_assessment_id),
            answer_count=len(source_answers),
        )
        return len(source_answers)
