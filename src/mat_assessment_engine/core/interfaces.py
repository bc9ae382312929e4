"""Abstract interfaces (Protocol classes) for the maturity assessment engine.

All services depend on these interfaces, not concrete implementations.
This enables dependency injection and makes services independently testable.
Concrete SQLAlchemy implementations live in ``adapters/repositories/``.
"""

import uuid
from datetime import date, datetime
from typing import Any, Protocol, runtime_checkable

from mat_assessment_engine.core.catalog import FullPillar
from mat_assessment_engine.core.scoring import ScoreSet


@runtime_checkable
class ICatalogRepository(Protocol):
    """Read (and seed) access to the questionnaire catalog."""

    async def load_full_pillar(self, pillar_id: str) -> FullPillar | None:
        """Load a pillar with its complete stage/theme/question tree."""
        ...

    async def list_enabled_pillars(self) -> list[Any]:
        """List the pillars the organisation has switched on, ordered by code."""
        ...

    async def is_pillar_enabled(self, pillar_id: str) -> bool:
        """Return True if the pillar exists and is switched on."""
        ...

    async def seed_pillar(self, pillar: FullPillar, enabled: bool = True) -> None:
        """Insert or replace a pillar definition and its enablement."""
        ...

    async def set_pillar_enabled(self, pillar_id: str, enabled: bool) -> bool:
        """Switch a pillar on or off; return False if the pillar does not exist."""
        ...


@runtime_checkable
class IOrgRepository(Protocol):
    """Read access to the organisation hierarchy."""

    async def get_unit(self, org_unit_id: str) -> Any | None:
        """Retrieve one org unit."""
        ...

    async def list_units(self) -> list[Any]:
        """List every org unit."""
        ...

    async def has_children(self, org_unit_id: str) -> bool:
        """Return True if any unit names this one as parent."""
        ...

    async def ancestor_ids(self, org_unit_id: str) -> list[str]:
        """Return the unit id followed by its ancestors up to the root."""
        ...


@runtime_checkable
class IPeriodRepository(Protocol):
    """Read access to assessment periods."""

    async def list_open_on(self, on: date) -> list[Any]:
        """List Open periods whose date window contains ``on``."""
        ...


@runtime_checkable
class IAssessmentRepository(Protocol):
    """Repository interface for Assessment persistence."""

    async def get_by_id(self, assessment_id: uuid.UUID) -> Any | None:
        """Retrieve an assessment by id."""
        ...

    async def list_for_unit(
        self,
        org_unit_id: str,
        pillar_id: str | None = None,
    ) -> list[Any]:
        """List assessment versions of a unit, active first then newest."""
        ...

    async def list_all(self) -> list[Any]:
        """List every assessment (overview snapshot)."""
        ...

    async def create(self, **fields: Any) -> Any:
        """Create an assessment record; it starts inactive unless told otherwise."""
        ...

    async def activate_exclusive(
        self,
        assessment_id: uuid.UUID,
        actor: str,
        at: datetime,
    ) -> Any:
        """Deactivate the unit's other active Self-Assessments and activate this one.

        Raises:
            ConflictError: If a concurrent writer activated another version.
        """
        ...

    async def update_scores(
        self,
        assessment_id: uuid.UUID,
        scores: ScoreSet,
        actor: str,
        at: datetime,
    ) -> Any:
        """Persist denormalised score fields."""
        ...


@runtime_checkable
class IAnswerRepository(Protocol):
    """Repository interface for Answer persistence."""

    async def list_for_assessment(self, assessment_id: uuid.UUID) -> list[Any]:
        """List every answer of an assessment."""
        ...

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
    ) -> Any:
        """Insert or overwrite the answer for (assessment, question)."""
        ...

    async def copy_answers(
        self,
        source_assessment_id: uuid.UUID,
        target_assessment_id: uuid.UUID,
    ) -> int:
        """Copy every answer verbatim to another assessment; return the count."""
        ...
