"""Application services for the maturity assessment engine."""

from mat_assessment_engine.core.services.answer_service import (
    AnswerService,
    AnswerUpdate,
    AssessmentView,
    SavedAnswer,
)
from mat_assessment_engine.core.services.catalog_service import CatalogService
from mat_assessment_engine.core.services.lifecycle_service import LifecycleService
from mat_assessment_engine.core.services.overview_service import OverviewService

__all__ = [
    "AnswerService",
    "AnswerUpdate",
    "AssessmentView",
    "CatalogService",
    "LifecycleService",
    "OverviewService",
    "SavedAnswer",
]
