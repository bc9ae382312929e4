"""Choice of the authoritative assessment per pillar for a department.

A department may hold several versions of an assessment for the same
pillar. Reporting uses exactly one of them:

1. Only Moderations (active or not) and active non-moderation versions are
   candidates. Inactive Self-Assessments and Baselines never report.
2. A Moderation beats any non-moderation version. Self-Assessments and
   Baselines rank equally.
3. Among candidates of equal priority the newest ``created_at`` wins.

The rule is a sort key, so it can be tested without any tree walking.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol, TypeVar

from mat_assessment_engine.core.enums import AssessmentType

_TYPE_PRIORITY: dict[str, int] = {
    AssessmentType.MODERATION.value: 1,
    AssessmentType.SELF_ASSESSMENT.value: 0,
    AssessmentType.BASELINE.value: 0,
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SelectableAssessment(Protocol):
    assessment_type: str
    is_active: bool
    created_at: datetime | None


_A = TypeVar("_A", bound=SelectableAssessment)


def _type_value(assessment: SelectableAssessment) -> str:
    value = assessment.assessment_type
    return value.value if isinstance(value, AssessmentType) else str(value)


def _as_aware(moment: datetime | None) -> datetime:
    if moment is None:
        return _EPOCH
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_reporting_candidate(assessment: SelectableAssessment) -> bool:
    """Return True if the assessment may represent its department in reports."""
    return assessment.is_active or _type_value(assessment) == AssessmentType.MODERATION.value


def authority_key(assessment: SelectableAssessment) -> tuple[int, datetime]:
    """Sort key ordering assessments from least to most authoritative."""
    return (
        _TYPE_PRIORITY.get(_type_value(assessment), -1),
        _as_aware(assessment.created_at),
    )


def select_authoritative(candidates: Iterable[_A]) -> _A | None:
    """Pick the reporting assessment among the versions of one pillar.

    Args:
        candidates: All assessments of one department for one pillar.

    Returns:
        The authoritative assessment, or None if no version qualifies.
    """
    eligible = [a for a in candidates if is_reporting_candidate(a)]
    if not eligible:
        return None
    return max(eligible, key=authority_key)
