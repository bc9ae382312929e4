"""Unit tests for progressive stage unlocking."""

import pytest

from mat_assessment_engine.core.catalog import FullPillar
from mat_assessment_engine.core.gating import (
    STAGE_UNLOCK_THRESHOLD,
    ensure_stage_editable,
    is_stage_editable,
    stage_gates,
)
from mat_assessment_engine.errors import ErrorCode, PolicyError

_STAGES = ["S1", "S2", "S3"]


class TestIsStageEditable:
    @pytest.mark.parametrize("scores", [{}, {"S1": 0.0}, {"S1": 5.0, "S2": 0.0}])
    def test_first_stage_always_editable(self, scores: dict[str, float]) -> None:
        assert is_stage_editable(0, scores, _STAGES) is True

    def test_threshold_is_inclusive(self) -> None:
        assert is_stage_editable(1, {"S1": STAGE_UNLOCK_THRESHOLD}, _STAGES) is True
        assert is_stage_editable(1, {"S1": 3.999}, _STAGES) is False

    def test_only_the_previous_stage_matters(self) -> None:
        scores = {"S1": 0.0, "S2": 4.5}

        assert is_stage_editable(2, scores, _STAGES) is True
        assert is_stage_editable(1, scores, _STAGES) is False

    def test_missing_score_counts_as_zero(self) -> None:
        assert is_stage_editable(1, {}, _STAGES) is False

    def test_custom_threshold(self) -> None:
        assert is_stage_editable(1, {"S1": 3.0}, _STAGES, threshold=3.0) is True


class TestStageGates:
    def test_gates_follow_live_scores(self, pillar: FullPillar) -> None:
        gates = stage_gates(pillar, {"S1": 2.5, "S2": 0.0})

        assert [(g.stage_id, g.editable) for g in gates] == [("S1", True), ("S2", False)]
        assert gates[0].score == 2.5

    def test_completed_first_stage_unlocks_second(self, pillar: FullPillar) -> None:
        gates = stage_gates(pillar, {"S1": 5.0})

        assert all(g.editable for g in gates)


class TestEnsureStageEditable:
    def test_locked_stage_names_blocking_stage(self, pillar: FullPillar) -> None:
        with pytest.raises(PolicyError) as exc_info:
            ensure_stage_editable(pillar, 1, {"S1": 2.5})

        error = exc_info.value
        assert error.error_code == ErrorCode.STAGE_LOCKED
        assert error.context["stage_id"] == "S2"
        assert error.context["blocking_stage_id"] == "S1"
        assert error.context["blocking_stage_score"] == 2.5
        assert error.context["threshold"] == STAGE_UNLOCK_THRESHOLD
        assert "S2" in error.message

    def test_unlocked_stage_passes(self, pillar: FullPillar) -> None:
        ensure_stage_editable(pillar, 1, {"S1": 4.0})
        ensure_stage_editable(pillar, 0, {})
