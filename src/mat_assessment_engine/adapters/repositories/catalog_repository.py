"""Repository for the questionnaire catalog and org pillar configuration."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mat_assessment_engine.core.catalog import FullPillar, load_pillar_definition
from mat_assessment_engine.core.models import (
    OrgPillarConfig,
    Pillar,
    Question,
    Stage,
    Theme,
)

logger = structlog.get_logger(__name__)

_FULL_TREE = selectinload(Pillar.stages).selectinload(Stage.themes).selectinload(Theme.questions)


def _as_definition(pillar: Pillar) -> dict[str, Any]:
    return {
        "id": pillar.id,
        "code": pillar.code,
        "name": pillar.name,
        "description": pillar.description,
        "stages": [
            {
                "id": stage.id,
                "code": stage.code,
                "name": stage.name,
                "themes": [
                    {
                        "id": theme.id,
                        "code": theme.code,
                        "name": theme.name,
                        "questions": [
                            {
                                "id": question.id,
                                "code": question.code,
                                "text": question.text,
                                "audit_guidelines": list(question.audit_guidelines or []),
                            }
                            for question in theme.questions
                        ],
                    }
                    for theme in stage.themes
                ],
            }
            for stage in pillar.stages
        ],
    }


class CatalogRepository:
    """Read and seed access to Pillar -> Stage -> Theme -> Question."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def load_full_pillar(self, pillar_id: str) -> FullPillar | None:
        """Load a pillar tree in three batched queries.

        Args:
            pillar_id: Pillar identifier.

        Returns:
            The immutable FullPillar, or None if the pillar does not exist.
        """
        result = await self._session.execute(
            select(Pillar).where(Pillar.id == pillar_id).options(_FULL_TREE)
        )
        pillar = result.scalar_one_or_none()
        if pillar is None:
            return None
        return load_pillar_definition(_as_definition(pillar))

    async def list_enabled_pillars(self) -> list[Pillar]:
        result = await self._session.execute(
            select(Pillar)
            .join(OrgPillarConfig, OrgPillarConfig.pillar_id == Pillar.id)
            .where(OrgPillarConfig.enabled.is_(True))
            .order_by(Pillar.code)
        )
        return list(result.scalars().all())

    async def is_pillar_enabled(self, pillar_id: str) -> bool:
        result = await self._session.execute(
            select(OrgPillarConfig.enabled).where(OrgPillarConfig.pillar_id == pillar_id)
        )
        return bool(result.scalar_one_or_none())

    async def seed_pillar(self, pillar: FullPillar, enabled: bool = True) -> None:
        """Insert or replace a pillar definition and switch it on or off.

        An existing pillar with the same id is deleted together with its
        stages, themes and questions before the new tree is written.

        Args:
            pillar: Catalog tree to persist.
            enabled: Whether the organisation has the pillar switched on.
        """
        existing = await self._session.execute(
            select(Pillar).where(Pillar.id == pillar.id).options(_FULL_TREE)
        )
        previous = existing.scalar_one_or_none()
        if previous is not None:
            await self._session.delete(previous)
            await self._session.flush()

        self._session.add(
            Pillar(
                id=pillar.id,
                code=pillar.code,
                name=pillar.name,
                description=pillar.description,
                stages=[
                    Stage(
                        id=stage.id,
                        code=stage.code,
                        name=stage.name,
                        themes=[
                            Theme(
                                id=theme.id,
                                code=theme.code,
                                name=theme.name,
                                questions=[
                                    Question(
                                        id=question.id,
                                        code=question.code,
                                        text=question.text,
                                        audit_guidelines=list(question.audit_guidelines),
                                    )
                                    for question in theme.questions
                                ],
                            )
                            for theme in stage.themes
                        ],
                    )
                    for stage in pillar.stages
                ],
            )
        )
        await self._session.merge(OrgPillarConfig(pillar_id=pillar.id, enabled=enabled))
        await self._session.flush()

        logger.info(
            "Pillar seeded",
            pillar_id=pillar.id,
            pillar_code=pillar.code,
            stage_count=len(pillar.stages),
            enabled=enabled,
        )

    async def set_pillar_enabled(self, pillar_id: str, enabled: bool) -> bool:
        """Switch an existing pillar on or off for the organisation.

        Returns:
            False if no pillar with this id exists; nothing is written then.
        """
        pillar = await self._session.get(Pillar, pillar_id)
        if pillar is None:
            return False
        await self._session.merge(OrgPillarConfig(pillar_id=pillar_id, enabled=enabled))
        await self._session.flush()
        return True
