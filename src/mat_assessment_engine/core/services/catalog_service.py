"""Catalog access: enabled pillars, full pillar trees, seeding and enablement."""

from collections.abc import Mapping
from typing import Any

import structlog

from mat_assessment_engine.core.catalog import FullPillar, PillarRegistry, load_pillar_definition
from mat_assessment_engine.core.interfaces import ICatalogRepository
from mat_assessment_engine.errors import NotFoundError

logger = structlog.get_logger(__name__)


class CatalogService:
    """Reads the questionnaire catalog through the pillar cache."""

    def __init__(self, catalog_repository: ICatalogRepository, registry: PillarRegistry) -> None:
        self._catalog = catalog_repository
        self._registry = registry

    async def list_enabled_pillars(self) -> list[Any]:
        return await self._catalog.list_enabled_pillars()

    async def get_pillar(self, pillar_id: str) -> FullPillar:
        """Return the full tree of a pillar.

        Raises:
            NotFoundError: If the pillar does not exist.
        """
        return await self._registry.get(pillar_id, self._catalog.load_full_pillar)

    async def seed_pillar(self, definition: Mapping[str, Any], enabled: bool = True) -> FullPillar:
        """Validate and store a pillar definition, replacing any previous version.

        Args:
            definition: Nested pillar definition (see ``load_pillar_definition``).
            enabled: Whether the organisation has the pillar switched on.

        Returns:
            The stored FullPillar.

        Raises:
            ValidationError: If the definition is malformed.
        """
        pillar = load_pillar_definition(definition)
        await self._catalog.seed_pillar(pillar, enabled=enabled)
        self._registry.invalidate(pillar.id)

        logger.info("Catalog pillar replaced", pillar_id=pillar.id, enabled=enabled)
        return pillar

    async def set_pillar_enabled(self, pillar_id: str, enabled: bool) -> None:
        """Switch a pillar on or off for the organisation.

        Disabling hides the pillar from listings and blocks new assessments;
        existing assessments and their scores are left untouched.

        Raises:
            NotFoundError: If the pillar does not exist.
        """
        if not await self._catalog.set_pillar_enabled(pillar_id, enabled):
            raise NotFoundError(
                message=f"Pillar {pillar_id!r} not found.",
                context={"pillar_id": pillar_id},
            )
        logger.info("Catalog pillar enablement changed", pillar_id=pillar_id, enabled=enabled)
