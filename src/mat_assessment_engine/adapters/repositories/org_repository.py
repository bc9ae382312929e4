"""Repositories for the org hierarchy and assessment periods (read side)."""

from datetime import date

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from mat_assessment_engine.core.enums import PeriodStatus
from mat_assessment_engine.core.models import AssessmentPeriod, OrgUnit


class OrgRepository:
    """Read access to org units."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def get_unit(self, org_unit_id: str) -> OrgUnit | None:
        return await self._session.get(OrgUnit, org_unit_id)

    async def list_units(self) -> list[OrgUnit]:
        result = await self._session.execute(
            select(OrgUnit).order_by(OrgUnit.level, OrgUnit.name, OrgUnit.id)
        )
        return list(result.scalars().all())

    async def has_children(self, org_unit_id: str) -> bool:
        result = await self._session.execute(
            select(exists().where(OrgUnit.parent_id == org_unit_id))
        )
        return bool(result.scalar())

    async def ancestor_ids(self, org_unit_id: str) -> list[str]:
        """Walk the parent chain of a unit.

        Args:
            org_unit_id: Starting unit.

        Returns:
            The unit id followed by each ancestor id up to the topmost known
            unit. Stops at a missing parent or a cycle.
        """
        chain: list[str] = []
        current_id: str | None = org_unit_id
        while current_id is not None and current_id not in chain:
            unit = await self.get_unit(current_id)
            if unit is None:
                break
            chain.append(unit.id)
            current_id = unit.parent_id
        return chain


class PeriodRepository:
    """Read access to assessment periods."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def list_open_on(self, on: date) -> list[AssessmentPeriod]:
        """List Open periods whose inclusive date window contains ``on``, newest first."""
        result = await self._session.execute(
            select(AssessmentPeriod)
            .where(
                AssessmentPeriod.status == PeriodStatus.OPEN.value,
                AssessmentPeriod.start_date <= on,
                AssessmentPeriod.end_date >= on,
            )
            .order_by(AssessmentPeriod.start_date.desc(), AssessmentPeriod.id)
        )
        return list(result.scalars().all())
