"""Maturity scoring on the 0-5 scale.

Scores are derived from qualified questions only:

    theme   = qualified questions / questions in theme * 5   (0 for an empty theme)
    stage   = mean of the stage's theme scores               (0 for no themes)
    overall = mean of the pillar's stage scores              (0 for no stages)

No rounding is applied at any level; presentation rounds. The functions here
are pure and independent of the database layer so that they can be
unit-tested without any infrastructure.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from mat_assessment_engine.core.catalog import FullPillar, Question
from mat_assessment_engine.errors import ErrorCode, ValidationError

MAX_SCORE: float = 5.0


class QualifiedAnswer(Protocol):
    """Anything exposing ``is_qualified`` (ORM Answer rows, AnswerState)."""

    is_qualified: bool


@dataclass(frozen=True)
class ScoreSet:
    """Scores computed for one assessment.

    Attributes:
        overall: Pillar score, mean of stage scores.
        per_stage: Stage id -> stage score.
        per_theme: Theme id -> theme score.
    """

    overall: float = 0.0
    per_stage: dict[str, float] = field(default_factory=dict)
    per_theme: dict[str, float] = field(default_factory=dict)


def compute_scores(
    answers: Mapping[str, QualifiedAnswer],
    pillar: FullPillar,
) -> ScoreSet:
    """Compute theme, stage and overall scores for an answer set.

    Answers for questions outside the pillar are ignored; questions without
    an answer count as not qualified.

    Args:
        answers: Question id -> answer.
        pillar: Full catalog tree of the assessed pillar.

    Returns:
        ScoreSet with every stage and theme of the pillar present.
    """
    per_theme: dict[str, float] = {}
    per_stage: dict[str, float] = {}

    for stage in pillar.stages:
        theme_scores: list[float] = []
        for theme in stage.themes:
            total = len(theme.questions)
            qualified = sum(
                1
                for question in theme.questions
                if (answer := answers.get(question.id)) is not None and answer.is_qualified
            )
            theme_score = (qualified / total) * MAX_SCORE if total > 0 else 0.0
            per_theme[theme.id] = theme_score
            theme_scores.append(theme_score)

        per_stage[stage.id] = sum(theme_scores) / len(theme_scores) if theme_scores else 0.0

    stage_scores = list(per_stage.values())
    overall = sum(stage_scores) / len(stage_scores) if stage_scores else 0.0

    return ScoreSet(overall=overall, per_stage=per_stage, per_theme=per_theme)


def guidelines_complete(question: Question, checked: Iterable[str]) -> bool:
    """Return True when every audit guideline of the question is ticked."""
    return set(question.audit_guidelines) == set(checked)


def normalise_qualification(
    question: Question,
    checked_guidelines: list[str],
    is_qualified: bool,
    qualification_requested: bool,
) -> tuple[list[str], bool]:
    """Apply the guideline-qualification invariant to a merged answer.

    Checked guidelines are de-duplicated and kept in catalog order. A question
    may only be qualified when all of its guidelines are ticked. An explicit
    request to qualify an incomplete answer is rejected; a guideline change
    that leaves a qualified answer incomplete silently drops the
    qualification.

    Args:
        question: Catalog question being answered.
        checked_guidelines: Guidelines ticked after the update is merged.
        is_qualified: Qualification flag after the update is merged.
        qualification_requested: True when the caller explicitly set
            ``is_qualified=True`` in this update.

    Returns:
        Tuple of (checked guidelines in catalog order, qualification flag).

    Raises:
        ValidationError: On an unknown guideline, or when qualification is
            requested for an incomplete checklist.
    """
    known = set(question.audit_guidelines)
    unknown = sorted(set(checked_guidelines) - known)
    if unknown:
        raise ValidationError(
            message=f"Unknown audit guidelines for question {question.id!r}.",
            error_code=ErrorCode.GUIDELINE_INVARIANT,
            context={"question_id": question.id, "unknown_guidelines": unknown},
        )

    checked = set(checked_guidelines)
    ordered = [g for g in question.audit_guidelines if g in checked]
    complete = guidelines_complete(question, ordered)

    if is_qualified and not complete:
        if qualification_requested:
            raise ValidationError(
                message=(
                    f"Question {question.id!r} can only be qualified once all "
                    f"{len(question.audit_guidelines)} audit guidelines are checked."
                ),
                error_code=ErrorCode.GUIDELINE_INVARIANT,
                context={
                    "question_id": question.id,
                    "checked": len(ordered),
                    "required": len(question.audit_guidelines),
                },
            )
        is_qualified = False

    return ordered, is_qualified
