"""Unit tests for maturity scoring and the guideline-qualification invariant.

Tests cover:
- theme / stage / overall formulas on the 0-5 scale
- empty themes, stages and pillars score 0
- answers outside the pillar are ignored
- normalise_qualification ordering, rejection and silent downgrade
"""

from dataclasses import dataclass

import pytest

from mat_assessment_engine.core.catalog import FullPillar, Question, load_pillar_definition
from mat_assessment_engine.core.scoring import (
    MAX_SCORE,
    compute_scores,
    guidelines_complete,
    normalise_qualification,
)
from mat_assessment_engine.errors import ErrorCode, ValidationError


@dataclass
class _Answer:
    is_qualified: bool


def _answers(**flags: bool) -> dict[str, _Answer]:
    return {qid.replace("_", "."): _Answer(is_qualified=flag) for qid, flag in flags.items()}


# ---------------------------------------------------------------------------
# compute_scores
# ---------------------------------------------------------------------------


class TestComputeScores:
    def test_no_answers_scores_zero(self, pillar: FullPillar) -> None:
        scores = compute_scores({}, pillar)

        assert scores.overall == 0.0
        assert scores.per_stage == {"S1": 0.0, "S2": 0.0}
        assert scores.per_theme == {"S1.T1": 0.0, "S2.T1": 0.0}

    def test_all_qualified_scores_exactly_five(self, pillar: FullPillar) -> None:
        answers = {q.id: _Answer(is_qualified=True) for q in pillar.iter_questions()}

        scores = compute_scores(answers, pillar)

        assert scores.overall == MAX_SCORE
        assert all(value == MAX_SCORE for value in scores.per_stage.values())

    def test_half_qualified_theme_scores_two_and_a_half(self, pillar: FullPillar) -> None:
        """One of two questions qualified in the only theme of stage S1."""
        scores = compute_scores(_answers(S1_T1_Q1=True, S1_T1_Q2=False), pillar)

        assert scores.per_theme["S1.T1"] == 2.5
        assert scores.per_stage["S1"] == 2.5
        assert scores.per_stage["S2"] == 0.0
        assert scores.overall == 1.25

    def test_unqualified_answers_count_as_missing(self, pillar: FullPillar) -> None:
        scores = compute_scores(_answers(S1_T1_Q1=False, S1_T1_Q2=False, S2_T1_Q1=False), pillar)

        assert scores.overall == 0.0

    def test_answers_outside_pillar_ignored(self, pillar: FullPillar) -> None:
        answers = _answers(S1_T1_Q1=True)
        answers["OTHER.Q9"] = _Answer(is_qualified=True)

        scores = compute_scores(answers, pillar)

        assert "OTHER.Q9" not in scores.per_theme
        assert scores.per_stage["S1"] == 2.5

    def test_no_rounding_applied(self) -> None:
        pillar = load_pillar_definition(
            {
                "code": "P",
                "stages": [
                    {
                        "code": "S1",
                        "themes": [
                            {
                                "code": "T1",
                                "questions": [
                                    {"code": f"Q{i}", "text": "q", "audit_guidelines": ["g"]}
                                    for i in range(3)
                                ],
                            }
                        ],
                    }
                ],
            }
        )

        scores = compute_scores({"Q0": _Answer(is_qualified=True)}, pillar)

        assert scores.per_theme["T1"] == pytest.approx(5 / 3)
        assert scores.per_theme["T1"] != round(5 / 3, 2)

    def test_empty_theme_scores_zero_and_still_counts_in_stage_mean(self) -> None:
        pillar = load_pillar_definition(
            {
                "code": "P",
                "stages": [
                    {
                        "code": "S1",
                        "themes": [
                            {"code": "T1", "questions": [{"code": "Q1", "text": "q"}]},
                            {"code": "T2", "questions": []},
                        ],
                    }
                ],
            }
        )

        scores = compute_scores({"Q1": _Answer(is_qualified=True)}, pillar)

        assert scores.per_theme == {"T1": 5.0, "T2": 0.0}
        assert scores.per_stage["S1"] == 2.5

    def test_stage_without_themes_and_empty_pillar(self) -> None:
        no_themes = load_pillar_definition({"code": "P", "stages": [{"code": "S1"}]})
        empty = load_pillar_definition({"code": "E"})

        assert compute_scores({}, no_themes).per_stage == {"S1": 0.0}
        assert compute_scores({}, empty).overall == 0.0

    def test_pure_and_repeatable(self, pillar: FullPillar) -> None:
        answers = _answers(S1_T1_Q1=True, S2_T1_Q1=True)

        assert compute_scores(answers, pillar) == compute_scores(answers, pillar)


# ---------------------------------------------------------------------------
# Guideline qualification
# ---------------------------------------------------------------------------


@pytest.fixture()
def question() -> Question:
    return Question(
        id="Q1",
        code="Q1",
        text="Is there a documented demand plan?",
        audit_guidelines=("Documented", "Reviewed quarterly", "Signed off"),
    )


class TestNormaliseQualification:
    def test_complete_checklist_may_qualify(self, question: Question) -> None:
        checked, qualified = normalise_qualification(
            question,
            ["Signed off", "Documented", "Reviewed quarterly"],
            is_qualified=True,
            qualification_requested=True,
        )

        assert qualified is True
        assert checked == ["Documented", "Reviewed quarterly", "Signed off"]

    def test_duplicates_collapsed(self, question: Question) -> None:
        checked, _ = normalise_qualification(
            question, ["Documented", "Documented"], is_qualified=False, qualification_requested=False
        )

        assert checked == ["Documented"]

    def test_explicit_qualify_with_incomplete_checklist_rejected(self, question: Question) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalise_qualification(
                question, ["Documented"], is_qualified=True, qualification_requested=True
            )

        assert exc_info.value.error_code == ErrorCode.GUIDELINE_INVARIANT
        assert exc_info.value.context["checked"] == 1
        assert exc_info.value.context["required"] == 3

    def test_incomplete_checklist_drops_stored_qualification(self, question: Question) -> None:
        checked, qualified = normalise_qualification(
            question, ["Documented"], is_qualified=True, qualification_requested=False
        )

        assert qualified is False
        assert checked == ["Documented"]

    def test_unknown_guideline_rejected(self, question: Question) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalise_qualification(
                question, ["Documented", "Made up"], is_qualified=False, qualification_requested=False
            )

        assert exc_info.value.context["unknown_guidelines"] == ["Made up"]

    def test_question_without_guidelines_is_always_complete(self) -> None:
        bare = Question(id="Q2", code="Q2", text="Free question")

        assert guidelines_complete(bare, []) is True
        assert normalise_qualification(bare, [], True, True) == ([], True)
