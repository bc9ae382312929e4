"""Progressive stage unlock.

Stage 0 is always editable. Any later stage becomes editable once the stage
before it scores at least the unlock threshold (4.0, i.e. 80% of the 0-5
scale). Locked stages stay viewable; only answer mutations are refused.

Gates are derived from live stage scores on every call. Nothing is cached,
because a single edit can unlock or re-lock the following stage.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from mat_assessment_engine.core.catalog import FullPillar
from mat_assessment_engine.errors import ErrorCode, PolicyError

STAGE_UNLOCK_THRESHOLD: float = 4.0


def is_stage_editable(
    stage_index: int,
    per_stage_scores: Mapping[str, float],
    stages_in_order: Sequence[str],
    threshold: float = STAGE_UNLOCK_THRESHOLD,
) -> bool:
    """Return whether answers in the given stage may be changed.

    Args:
        stage_index: Zero-based position of the stage in gating order.
        per_stage_scores: Stage id -> current stage score. Missing ids score 0.
        stages_in_order: Stage ids in gating order.
        threshold: Minimum score of the previous stage.

    Returns:
        True if the stage is unlocked.
    """
    if stage_index <= 0:
        return True
    previous_stage_id = stages_in_order[stage_index - 1]
    return per_stage_scores.get(previous_stage_id, 0.0) >= threshold


@dataclass(frozen=True)
class StageGate:
    stage_id: str
    stage_code: str
    stage_name: str
    score: float
    editable: bool


def stage_gates(
    pillar: FullPillar,
    per_stage_scores: Mapping[str, float],
    threshold: float = STAGE_UNLOCK_THRESHOLD,
) -> list[StageGate]:
    """Evaluate the gate of every stage of a pillar."""
    stage_ids = pillar.stage_ids
    return [
        StageGate(
            stage_id=stage.id,
            stage_code=stage.code,
            stage_name=stage.name,
            score=per_stage_scores.get(stage.id, 0.0),
            editable=is_stage_editable(index, per_stage_scores, stage_ids, threshold),
        )
        for index, stage in enumerate(pillar.stages)
    ]


def ensure_stage_editable(
    pillar: FullPillar,
    stage_index: int,
    per_stage_scores: Mapping[str, float],
    threshold: float = STAGE_UNLOCK_THRESHOLD,
) -> None:
    """Raise PolicyError if the stage at ``stage_index`` is locked.

    The error context names the locked stage, the blocking previous stage,
    its current score and the threshold, so the caller knows what to fix.
    """
    stage_ids = pillar.stage_ids
    if is_stage_editable(stage_index, per_stage_scores, stage_ids, threshold):
        return

    stage = pillar.stages[stage_index]
    previous = pillar.stages[stage_index - 1]
    previous_score = per_stage_scores.get(previous.id, 0.0)
    raise PolicyError(
        message=(
            f"Stage {stage.code} ({stage.name}) is locked: previous stage "
            f"{previous.code} scores {previous_score:.2f}, at least {threshold:.1f} is required."
        ),
        error_code=ErrorCode.STAGE_LOCKED,
        context={
            "stage_id": stage.id,
            "stage_code": stage.code,
            "blocking_stage_id": previous.id,
            "blocking_stage_score": previous_score,
            "threshold": threshold,
        },
    )
