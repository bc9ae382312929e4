"""FastAPI router for the maturity assessment engine.

All routes are thin: they parse inputs, build services from the request
session, delegate, and serialise responses. No business logic lives here;
engine errors are translated to HTTP responses by the handlers in main.py.

API prefix: /api/v1/maturity
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mat_assessment_engine.adapters.repositories import (
    AnswerRepository,
    AssessmentRepository,
    CatalogRepository,
    OrgRepository,
    PeriodRepository,
)
from mat_assessment_engine.api.dependencies import (
    UserContext,
    get_current_user,
    get_pillar_registry,
)
from mat_assessment_engine.api.schemas import (
    AnswerSchema,
    AnswerUpdateRequest,
    AssessmentDetailResponse,
    AssessmentListResponse,
    AssessmentSchema,
    CreateAssessmentRequest,
    DeriveAssessmentRequest,
    OverviewResponse,
    PillarEnablementRequest,
    PillarEnablementResponse,
    PillarSummarySchema,
    PillarTreeSchema,
    SaveAnswerResponse,
    ScoresSchema,
    SeedPillarRequest,
    StageGateSchema,
)
from mat_assessment_engine.core.catalog import PillarRegistry
from mat_assessment_engine.core.services import (
    AnswerService,
    AnswerUpdate,
    CatalogService,
    LifecycleService,
    OverviewService,
)
from mat_assessment_engine.database import get_db_session
from mat_assessment_engine.settings import Settings, get_settings

router = APIRouter(prefix="/maturity", tags=["Maturity Assessment"])


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


def get_catalog_service(
    session: AsyncSession = Depends(get_db_session),
    registry: PillarRegistry = Depends(get_pillar_registry),
) -> CatalogService:
    """Build CatalogService with injected dependencies."""
    return CatalogService(catalog_repository=CatalogRepository(session), registry=registry)


def get_lifecycle_service(
    session: AsyncSession = Depends(get_db_session),
    registry: PillarRegistry = Depends(get_pillar_registry),
    settings: Settings = Depends(get_settings),
) -> LifecycleService:
    """Build LifecycleService with injected dependencies."""
    return LifecycleService(
        assessment_repository=AssessmentRepository(session),
        answer_repository=AnswerRepository(session),
        catalog_repository=CatalogRepository(session),
        org_repository=OrgRepository(session),
        period_repository=PeriodRepository(session),
        registry=registry,
        label_max_length=settings.label_max_length,
        activation_max_attempts=settings.activation_max_attempts,
    )


def get_answer_service(
    session: AsyncSession = Depends(get_db_session),
    registry: PillarRegistry = Depends(get_pillar_registry),
    settings: Settings = Depends(get_settings),
) -> AnswerService:
    """Build AnswerService with injected dependencies."""
    return AnswerService(
        assessment_repository=AssessmentRepository(session),
        answer_repository=AnswerRepository(session),
        catalog_repository=CatalogRepository(session),
        registry=registry,
        stage_unlock_threshold=settings.stage_unlock_threshold,
    )


def get_overview_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> OverviewService:
    """Build OverviewService with injected dependencies."""
    return OverviewService(
        org_repository=OrgRepository(session),
        assessment_repository=AssessmentRepository(session),
        catalog_repository=CatalogRepository(session),
        root_name=settings.overview_root_name,
    )


# ---------------------------------------------------------------------------
# Catalog endpoints
# ---------------------------------------------------------------------------


@router.get("/pillars", response_model=list[PillarSummarySchema])
async def list_pillars(
    service: CatalogService = Depends(get_catalog_service),
) -> list[PillarSummarySchema]:
    """List the pillars the organisation has switched on."""
    pillars = await service.list_enabled_pillars()
    return [PillarSummarySchema.model_validate(p, from_attributes=True) for p in pillars]


@router.get("/pillars/{pillar_id}", response_model=PillarTreeSchema)
async def get_pillar(
    pillar_id: str,
    service: CatalogService = Depends(get_catalog_service),
) -> PillarTreeSchema:
    """Return a pillar with its stages, themes, questions and guidelines."""
    pillar = await service.get_pillar(pillar_id)
    return PillarTreeSchema.model_validate(pillar, from_attributes=True)


@router.post("/pillars", response_model=PillarTreeSchema, status_code=status.HTTP_201_CREATED)
async def seed_pillar(
    body: SeedPillarRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: CatalogService = Depends(get_catalog_service),
) -> PillarTreeSchema:
    """Insert or replace a pillar definition; existing assessments keep their answers."""
    pillar = await service.seed_pillar(body.definition, enabled=body.enabled)
    return PillarTreeSchema.model_validate(pillar, from_attributes=True)


@router.put("/pillars/{pillar_id}/enabled", response_model=PillarEnablementResponse)
async def set_pillar_enabled(
    pillar_id: str,
    body: PillarEnablementRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: CatalogService = Depends(get_catalog_service),
) -> PillarEnablementResponse:
    """Switch a pillar on or off for the organisation."""
    await service.set_pillar_enabled(pillar_id, body.enabled)
    return PillarEnablementResponse(pillar_id=pillar_id, enabled=body.enabled)


# ---------------------------------------------------------------------------
# Assessment lifecycle endpoints
# ---------------------------------------------------------------------------


@router.get("/assessments", response_model=AssessmentListResponse)
async def list_assessments(
    org_unit_id: Annotated[str, Query(min_length=1)],
    pillar_id: Annotated[str | None, Query()] = None,
    service: LifecycleService = Depends(get_lifecycle_service),
) -> AssessmentListResponse:
    """List a department's assessment versions, active first then newest."""
    assessments = await service.list_versions(org_unit_id, pillar_id)
    return AssessmentListResponse(
        items=[AssessmentSchema.model_validate(a, from_attributes=True) for a in assessments],
        total=len(assessments),
    )


@router.post("/assessments", response_model=AssessmentSchema, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    body: CreateAssessmentRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: LifecycleService = Depends(get_lifecycle_service),
) -> AssessmentSchema:
    """Start a blank Self-Assessment; it becomes the unit's active version."""
    assessment = await service.create_blank(
        org_unit_id=body.org_unit_id,
        pillar_id=body.pillar_id,
        label=body.label,
        actor=user.actor,
        period_id=body.period_id,
    )
    return AssessmentSchema.model_validate(assessment, from_attributes=True)


@router.post(
    "/assessments/{assessment_id}/copy",
    response_model=AssessmentSchema,
    status_code=status.HTTP_201_CREATED,
)
async def copy_assessment(
    assessment_id: uuid.UUID,
    body: DeriveAssessmentRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: LifecycleService = Depends(get_lifecycle_service),
) -> AssessmentSchema:
    """Start a new active Self-Assessment pre-filled from an existing version."""
    assessment = await service.create_from_copy(assessment_id, actor=user.actor, label=body.label)
    return AssessmentSchema.model_validate(assessment, from_attributes=True)


@router.post(
    "/assessments/{assessment_id}/moderation",
    response_model=AssessmentSchema,
    status_code=status.HTTP_201_CREATED,
)
async def moderate_assessment(
    assessment_id: uuid.UUID,
    body: DeriveAssessmentRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: LifecycleService = Depends(get_lifecycle_service),
) -> AssessmentSchema:
    """Create an inactive Moderation of an existing version."""
    assessment = await service.create_moderation(assessment_id, actor=user.actor, label=body.label)
    return AssessmentSchema.model_validate(assessment, from_attributes=True)


@router.post("/assessments/{assessment_id}/activate", response_model=AssessmentSchema)
async def activate_assessment(
    assessment_id: uuid.UUID,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: LifecycleService = Depends(get_lifecycle_service),
) -> AssessmentSchema:
    """Make this version the active one for its unit and pillar."""
    assessment = await service.set_active(assessment_id, actor=user.actor)
    return AssessmentSchema.model_validate(assessment, from_attributes=True)


# ---------------------------------------------------------------------------
# Answer endpoints
# ---------------------------------------------------------------------------


@router.get("/assessments/{assessment_id}", response_model=AssessmentDetailResponse)
async def get_assessment(
    assessment_id: uuid.UUID,
    service: AnswerService = Depends(get_answer_service),
) -> AssessmentDetailResponse:
    """Return an assessment with live scores, stage gates and answers."""
    view = await service.get_assessment_view(assessment_id)
    return AssessmentDetailResponse(
        assessment=AssessmentSchema.model_validate(view.assessment, from_attributes=True),
        editable=view.editable,
        scores=ScoresSchema.model_validate(view.scores, from_attributes=True),
        stages=[StageGateSchema.model_validate(g, from_attributes=True) for g in view.gates],
        answers=[AnswerSchema.model_validate(a, from_attributes=True) for a in view.answers],
    )


@router.put(
    "/assessments/{assessment_id}/answers/{question_id}",
    response_model=SaveAnswerResponse,
)
async def save_answer(
    assessment_id: uuid.UUID,
    question_id: str,
    body: AnswerUpdateRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: AnswerService = Depends(get_answer_service),
) -> SaveAnswerResponse:
    """Apply a partial answer update and return the recomputed scores."""
    update = AnswerUpdate(
        checked_guidelines=body.checked_guidelines,
        is_qualified=body.is_qualified,
        comments=body.comments,
        evidence=(
            [item.model_dump(mode="json", exclude_none=True) for item in body.evidence]
            if body.evidence is not None
            else None
        ),
    )
    saved = await service.save_answer(assessment_id, question_id, update, actor=user.actor)
    return SaveAnswerResponse(
        answer=AnswerSchema.model_validate(saved.answer, from_attributes=True),
        scores=ScoresSchema.model_validate(saved.scores, from_attributes=True),
        stages=[StageGateSchema.model_validate(g, from_attributes=True) for g in saved.gates],
    )


@router.post("/assessments/{assessment_id}/rescore", response_model=ScoresSchema)
async def rescore_assessment(
    assessment_id: uuid.UUID,
    user: Annotated[UserContext, Depends(get_current_user)],
    service: AnswerService = Depends(get_answer_service),
) -> ScoresSchema:
    """Recompute the stored scores of an assessment from its answers."""
    scores = await service.rescore(assessment_id, actor=user.actor)
    return ScoresSchema.model_validate(scores, from_attributes=True)


# ---------------------------------------------------------------------------
# Overview and health
# ---------------------------------------------------------------------------


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    pillar_id: Annotated[list[str] | None, Query()] = None,
    service: OverviewService = Depends(get_overview_service),
) -> OverviewResponse:
    """Return the org tree with scores rolled up from departments to the root."""
    result = await service.build(pillar_ids=pillar_id)
    return OverviewResponse.model_validate(result, from_attributes=True)


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}
