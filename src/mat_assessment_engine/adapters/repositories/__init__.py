"""SQLAlchemy repositories implementing the interfaces in core/interfaces.py."""

from mat_assessment_engine.adapters.repositories.assessment_repository import (
    AnswerRepository,
    AssessmentRepository,
)
from mat_assessment_engine.adapters.repositories.catalog_repository import CatalogRepository
from mat_assessment_engine.adapters.repositories.org_repository import (
    OrgRepository,
    PeriodRepository,
)

__all__ = [
    "AnswerRepository",
    "AssessmentRepository",
    "CatalogRepository",
    "OrgRepository",
    "PeriodRepository",
]
