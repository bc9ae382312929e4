"""Pydantic request/response schemas for the maturity assessment API.

All API inputs and outputs are strictly typed Pydantic v2 models.
No raw dicts are returned from any endpoint.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class PillarSummarySchema(BaseModel):
    """An enabled pillar without its question tree."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    description: str = ""


class QuestionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    text: str
    audit_guidelines: list[str]


class ThemeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    questions: list[QuestionSchema]


class StageSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    themes: list[ThemeSchema]


class PillarTreeSchema(BaseModel):
    """A pillar with its complete stage/theme/question tree, stages in gating order."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    description: str
    stages: list[StageSchema]


class SeedPillarRequest(BaseModel):
    """Request body to insert or replace a catalog pillar.

    Attributes:
        definition: Nested pillar -> stages -> themes -> questions tree.
        enabled: Whether the organisation has the pillar switched on.
    """

    definition: dict[str, Any]
    enabled: bool = True


class PillarEnablementRequest(BaseModel):
    enabled: bool


class PillarEnablementResponse(BaseModel):
    pillar_id: str
    enabled: bool


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------


class CreateAssessmentRequest(BaseModel):
    """Request body to start a blank Self-Assessment.

    Attributes:
        org_unit_id: Department being assessed.
        pillar_id: Assessed pillar.
        label: Display label, at most 200 characters after trimming. Omitted or
            blank labels default to "<period name> Self-Assessment".
        period_id: Optional explicit Open period.
    """

    org_unit_id: str = Field(..., min_length=1, max_length=100)
    pillar_id: str = Field(..., min_length=1, max_length=100)
    label: str | None = None
    period_id: str | None = None


class DeriveAssessmentRequest(BaseModel):
    """Request body for copy and moderation; the label defaults from the source."""

    label: str | None = None


class AssessmentSchema(BaseModel):
    """One assessment version with its stored (denormalised) scores."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    org_unit_id: str
    pillar_id: str
    period_id: str | None
    assessment_type: str
    label: str
    is_active: bool
    overall_score: float
    scores_by_stage: dict[str, float]
    scores_by_theme: dict[str, float]
    parent_assessment_id: uuid.UUID | None
    created_at: datetime
    created_by: str | None
    updated_at: datetime
    updated_by: str | None


class AssessmentListResponse(BaseModel):
    items: list[AssessmentSchema]
    total: int


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class EvidenceItemSchema(BaseModel):
    """Reference to an evidence file stored outside this service."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    comment: str | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime | None = None
    storage_path: str | None = None


class AnswerUpdateRequest(BaseModel):
    """Partial answer update; omitted fields keep their stored value.

    Attributes:
        checked_guidelines: Ticked audit guidelines (replaces the stored set).
        is_qualified: Qualification flag; only accepted with all guidelines ticked.
        comments: Free-text comment.
        evidence: Evidence references (replaces the stored list).
    """

    checked_guidelines: list[str] | None = None
    is_qualified: bool | None = None
    comments: str | None = None
    evidence: list[EvidenceItemSchema] | None = None

    @field_validator("checked_guidelines")
    @classmethod
    def deduplicate_guidelines(cls, value: list[str] | None) -> list[str] | None:
        """Drop repeated guideline entries while keeping first-seen order."""
        if value is None:
            return None
        return list(dict.fromkeys(value))


class AnswerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    stage_id: str
    theme_id: str
    checked_guidelines: list[str]
    is_qualified: bool
    comments: str | None
    evidence: list[dict[str, Any]]
    updated_at: datetime
    updated_by: str | None


class StageGateSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage_id: str
    stage_code: str
    stage_name: str
    score: float
    editable: bool


class ScoresSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    overall: float
    per_stage: dict[str, float]
    per_theme: dict[str, float]


class AssessmentDetailResponse(BaseModel):
    """An assessment with live scores, stage gates and its answers."""

    assessment: AssessmentSchema
    editable: bool
    scores: ScoresSchema
    stages: list[StageGateSchema]
    answers: list[AnswerSchema]


class SaveAnswerResponse(BaseModel):
    answer: AnswerSchema
    scores: ScoresSchema
    stages: list[StageGateSchema]


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------


class PillarScoreSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    score: float
    stages: dict[str, float]


class OverviewNodeSchema(BaseModel):
    """An org node with rolled-up scores; children nest recursively."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    level: int
    overall: float
    scores: dict[str, PillarScoreSchema]
    selected_assessments: dict[str, uuid.UUID]
    children: list["OverviewNodeSchema"]


class DiagnosticSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    message: str
    org_unit_id: str | None = None
    assessment_id: uuid.UUID | None = None


class OverviewResponse(BaseModel):
    root: OverviewNodeSchema
    diagnostics: list[DiagnosticSchema]


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
