"""SQLAlchemy ORM models for the maturity assessment engine.

All tables use the `mat_` prefix. Catalog and org identifiers are strings
owned by upstream systems; assessment and answer ids are UUIDs generated here.

Domain model:
  Pillar / Stage / Theme / Question  questionnaire catalog (read-mostly)
  OrgPillarConfig                    pillars switched on for the organisation
  AssessmentPeriod                   window during which assessments may be created
  OrgUnit                            read shape of the org hierarchy
  Assessment                         one version of a (unit, pillar) assessment
  Answer                             one response per (assessment, question)
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mat_assessment_engine.core.enums import AssessmentType, PeriodStatus
from mat_assessment_engine.database import Base

JsonType = JSON().with_variant(JSONB(), "postgresql")

# Partial index predicate shared with the initial migration.
ACTIVE_SELF_ASSESSMENT_PREDICATE = (
    f"is_active AND assessment_type = '{AssessmentType.SELF_ASSESSMENT.value}'"
)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Pillar(Base):
    """Catalog root: a maturity dimension such as Supply Chain or Teamwork.

    Table: mat_pillars
    """

    __tablename__ = "mat_pillars"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    code: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True, comment="Stable pillar code"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    stages: Mapped[list["Stage"]] = relationship(
        "Stage",
        back_populates="pillar",
        order_by="Stage.code",
        cascade="all, delete-orphan",
    )


class Stage(Base):
    """Ordered maturity level within a pillar; order by code drives gating.

    Table: mat_stages
    """

    __tablename__ = "mat_stages"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    pillar_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("mat_pillars.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    pillar: Mapped["Pillar"] = relationship("Pillar", back_populates="stages")
    themes: Mapped[list["Theme"]] = relationship(
        "Theme",
        back_populates="stage",
        order_by="Theme.code",
        cascade="all, delete-orphan",
    )


class Theme(Base):
    """Group of questions within a stage.

    Table: mat_themes
    """

    __tablename__ = "mat_themes"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    stage_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("mat_stages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    stage: Mapped["Stage"] = relationship("Stage", back_populates="themes")
    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="theme",
        order_by="Question.code",
        cascade="all, delete-orphan",
    )


class Question(Base):
    """A single audit item with its ordered guideline checklist.

    Table: mat_questions
    """

    __tablename__ = "mat_questions"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    theme_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("mat_themes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    audit_guidelines: Mapped[list] = mapped_column(
        JsonType,
        nullable=False,
        default=list,
        comment="Ordered list of guideline strings; all must be checked to qualify",
    )

    theme: Mapped["Theme"] = relationship("Theme", back_populates="questions")


class OrgPillarConfig(Base):
    """Whether the organisation has switched a catalog pillar on.

    Table: mat_org_pillars
    """

    __tablename__ = "mat_org_pillars"

    pillar_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("mat_pillars.id", ondelete="CASCADE"),
        primary_key=True,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ---------------------------------------------------------------------------
# Periods and org hierarchy
# ---------------------------------------------------------------------------


class AssessmentPeriod(Base):
    """Date window in which new assessments may be started.

    A period without target applies to the whole organisation; otherwise it
    covers the target unit and everything below it.

    Table: mat_periods
    """

    __tablename__ = "mat_periods"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.OPEN.value,
        index=True,
        comment="Open | Closed",
    )
    target_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)


class OrgUnit(Base):
    """Node of the organisation hierarchy (Entity, Site, Department).

    parent_id carries no foreign key; the hierarchy is owned by another
    module and may reference units not yet synchronised.

    Table: mat_org_units
    """

    __tablename__ = "mat_org_units"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="1=Organisation 2=Entity 3=Site 4=Department"
    )
    parent_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    parent_path: Mapped[str | None] = mapped_column(
        String(1000), nullable=True, comment="Slash-separated ancestor ids"
    )


# ---------------------------------------------------------------------------
# Assessments and answers
# ---------------------------------------------------------------------------


class Assessment(Base):
    """One version of a department's assessment for one pillar.

    Score fields are denormalised from the answers and rewritten in the same
    transaction as every answer change.

    Table: mat_assessments
    """

    __tablename__ = "mat_assessments"
    __table_args__ = (
        Index(
            "uq_mat_assessments_active_self_assessment",
            "org_unit_id",
            "pillar_id",
            unique=True,
            postgresql_where=text(ACTIVE_SELF_ASSESSMENT_PREDICATE),
            sqlite_where=text(ACTIVE_SELF_ASSESSMENT_PREDICATE),
        ),
        Index("ix_mat_assessments_unit_pillar", "org_unit_id", "pillar_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_unit_id: Mapped[str] = mapped_column(String(100), nullable=False)
    pillar_id: Mapped[str] = mapped_column(String(100), nullable=False)
    period_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assessment_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=AssessmentType.SELF_ASSESSMENT.value,
        comment="Self-Assessment | Moderation | Baseline",
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    overall_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    scores_by_stage: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
    scores_by_theme: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
    parent_assessment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("mat_assessments.id"),
        nullable=True,
        comment="Source assessment of a moderation",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Answer(Base):
    """Response to one question within one assessment.

    Table: mat_answers
    """

    __tablename__ = "mat_answers"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id",
            "question_id",
            name="uq_mat_answers_assessment_question",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mat_assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[str] = mapped_column(String(100), nullable=False)
    stage_id: Mapped[str] = mapped_column(String(100), nullable=False)
    theme_id: Mapped[str] = mapped_column(String(100), nullable=False)
    checked_guidelines: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    is_qualified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence: Mapped[list] = mapped_column(
        JsonType,
        nullable=False,
        default=list,
        comment="Evidence references: [{name, url, comment, uploaded_by, uploaded_at, storage_path}]",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
