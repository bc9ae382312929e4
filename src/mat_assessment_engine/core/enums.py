"""Enumerations shared by the ORM models, services and API schemas."""

from enum import Enum


class AssessmentType(str, Enum):
    SELF_ASSESSMENT = "Self-Assessment"
    MODERATION = "Moderation"
    BASELINE = "Baseline"


class PeriodStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"


# Org hierarchy levels. Level 1 is the organisation itself (implicit root);
# only departments hold assessments.
ORG_LEVEL_NAMES: dict[int, str] = {
    1: "Organisation",
    2: "Entity",
    3: "Site",
    4: "Department",
}
DEPARTMENT_LEVEL: int = 4
