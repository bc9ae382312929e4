"""mat: initial schema: catalog, org units, periods, assessments, answers.

Revision ID: mat_001_initial
Revises:
Create Date: 2026-01-01 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "mat_001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
_ACTIVE_SELF_ASSESSMENT = "is_active AND assessment_type = 'Self-Assessment'"


def upgrade() -> None:
    """Create all mat_ tables and the active Self-Assessment partial index."""
    # Catalog
    op.create_table(
        "mat_pillars",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
    )
    op.create_table(
        "mat_stages",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column(
            "pillar_id",
            sa.String(100),
            sa.ForeignKey("mat_pillars.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_mat_stages_pillar_id", "mat_stages", ["pillar_id"])
    op.create_table(
        "mat_themes",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column(
            "stage_id",
            sa.String(100),
            sa.ForeignKey("mat_stages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_mat_themes_stage_id", "mat_themes", ["stage_id"])
    op.create_table(
        "mat_questions",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column(
            "theme_id",
            sa.String(100),
            sa.ForeignKey("mat_themes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("audit_guidelines", _JSON, nullable=False),
    )
    op.create_index("ix_mat_questions_theme_id", "mat_questions", ["theme_id"])
    op.create_table(
        "mat_org_pillars",
        sa.Column(
            "pillar_id",
            sa.String(100),
            sa.ForeignKey("mat_pillars.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    # Periods and org hierarchy
    op.create_table(
        "mat_periods",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="Open"),
        sa.Column("target_level", sa.Integer, nullable=True),
        sa.Column("target_id", sa.String(100), nullable=True),
    )
    op.create_index("ix_mat_periods_status", "mat_periods", ["status"])
    op.create_table(
        "mat_org_units",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("level", sa.Integer, nullable=False),
        sa.Column("parent_id", sa.String(100), nullable=True),
        sa.Column("parent_path", sa.String(1000), nullable=True),
    )
    op.create_index("ix_mat_org_units_parent_id", "mat_org_units", ["parent_id"])

    # Assessments
    op.create_table(
        "mat_assessments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("org_unit_id", sa.String(100), nullable=False),
        sa.Column("pillar_id", sa.String(100), nullable=False),
        sa.Column("period_id", sa.String(100), nullable=True),
        sa.Column("assessment_type", sa.String(32), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("overall_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("scores_by_stage", _JSON, nullable=False),
        sa.Column("scores_by_theme", _JSON, nullable=False),
        sa.Column(
            "parent_assessment_id",
            sa.Uuid,
            sa.ForeignKey("mat_assessments.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(255), nullable=True),
    )
    op.create_index(
        "ix_mat_assessments_unit_pillar", "mat_assessments", ["org_unit_id", "pillar_id"]
    )
    op.create_index(
        "uq_mat_assessments_active_self_assessment",
        "mat_assessments",
        ["org_unit_id", "pillar_id"],
        unique=True,
        postgresql_where=sa.text(_ACTIVE_SELF_ASSESSMENT),
        sqlite_where=sa.text(_ACTIVE_SELF_ASSESSMENT),
    )

    op.create_table(
        "mat_answers",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "assessment_id",
            sa.Uuid,
            sa.ForeignKey("mat_assessments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_id", sa.String(100), nullable=False),
        sa.Column("stage_id", sa.String(100), nullable=False),
        sa.Column("theme_id", sa.String(100), nullable=False),
        sa.Column("checked_guidelines", _JSON, nullable=False),
        sa.Column("is_qualified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("comments", sa.Text, nullable=True),
        sa.Column("evidence", _JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.UniqueConstraint(
            "assessment_id", "question_id", name="uq_mat_answers_assessment_question"
        ),
    )
    op.create_index("ix_mat_answers_assessment_id", "mat_answers", ["assessment_id"])


def downgrade() -> None:
    """Drop all mat_ tables."""
    for table in [
        "mat_answers",
        "mat_assessments",
        "mat_org_units",
        "mat_periods",
        "mat_org_pillars",
        "mat_questions",
        "mat_themes",
        "mat_stages",
        "mat_pillars",
    ]:
        op.drop_table(table)
