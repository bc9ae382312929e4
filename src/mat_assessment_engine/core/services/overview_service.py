"""Enterprise overview: the org tree annotated with rolled-up pillar scores.

The overview is a read-only point-in-time snapshot. It is rebuilt from the
stored assessments on every request and never blocks answer editing.
"""

from collections.abc import Iterable

import structlog

from mat_assessment_engine.core.aggregation import (
    OverviewResult,
    build_org_tree,
    build_overview,
)
from mat_assessment_engine.core.interfaces import (
    IAssessmentRepository,
    ICatalogRepository,
    IOrgRepository,
)

logger = structlog.get_logger(__name__)


class OverviewService:
    """Builds the bottom-up roll-up across the organisation hierarchy."""

    def __init__(
        self,
        org_repository: IOrgRepository,
        assessment_repository: IAssessmentRepository,
        catalog_repository: ICatalogRepository,
        root_name: str = "Organisation",
    ) -> None:
        """Initialise the service with repository dependencies.

        Args:
            org_repository: Org hierarchy read access.
            assessment_repository: Assessment read access.
            catalog_repository: Source of the enabled pillar set.
            root_name: Display name of the implicit organisation root.
        """
        self._org = org_repository
        self._assessments = assessment_repository
        self._catalog = catalog_repository
        self._root_name = root_name

    async def build(self, pillar_ids: Iterable[str] | None = None) -> OverviewResult:
        """Roll scores up from departments to the organisation.

        Args:
            pillar_ids: Pillars to include. Defaults to every enabled pillar;
                pillars that are not enabled are ignored.

        Returns:
            OverviewResult with the annotated tree and the diagnostics of both
            tree construction and roll-up.
        """
        enabled = [pillar.id for pillar in await self._catalog.list_enabled_pillars()]
        if pillar_ids is not None:
            requested = set(pillar_ids)
            enabled = [pillar_id for pillar_id in enabled if pillar_id in requested]

        root, tree_diagnostics = build_org_tree(
            await self._org.list_units(), root_name=self._root_name
        )
        result = build_overview(root, await self._assessments.list_all(), enabled)
        result.diagnostics = tree_diagnostics + result.diagnostics

        logger.info(
            "Overview built",
            pillar_count=len(enabled),
            overall_score=result.root.overall,
            diagnostic_count=len(result.diagnostics),
        )
        return result
