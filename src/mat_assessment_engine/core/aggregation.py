"""Bottom-up roll-up of maturity scores across the organisation hierarchy.

The org tree is a uniform recursive node; the roll-up is a single post-order
traversal:

- Leaf (department): for every pillar, the authoritative assessment (see
  ``core/selection.py``) supplies the pillar score and its stage scores.
  Pillars without a qualifying assessment are absent, not zero.
- Ancestor: per pillar, the mean over the children exposing that pillar; per
  stage id, the mean over the children exposing that stage.
- Every node: overall = mean of the node's own pillar scores.

Denominators always count contributing children only. Assessments pointing
at an unknown unit or at a unit that has children are skipped and reported as
diagnostics; a partial overview is returned rather than none.
"""

import uuid
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import structlog

from mat_assessment_engine.core.selection import select_authoritative

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Input shapes
# ---------------------------------------------------------------------------


class OrgUnitRecord(Protocol):
    id: str
    name: str
    level: int
    parent_id: str | None


class ScoredAssessment(Protocol):
    id: uuid.UUID
    org_unit_id: str
    pillar_id: str
    assessment_type: str
    is_active: bool
    created_at: datetime | None
    overall_score: float | None
    scores_by_stage: Mapping[str, float] | None


@dataclass
class OrgNode:
    """A node of the organisation tree."""

    id: str
    name: str
    level: int
    children: list["OrgNode"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self) -> Iterable["OrgNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


# ---------------------------------------------------------------------------
# Output shapes
# ---------------------------------------------------------------------------


@dataclass
class PillarScore:
    score: float
    stages: dict[str, float] = field(default_factory=dict)


@dataclass
class OverviewNode:
    """An org node annotated with rolled-up scores.

    Attributes:
        overall: Mean of the pillar scores present at this node (0.0 if none).
        scores: Pillar id -> pillar score with per-stage scores.
        selected_assessments: Leaf only; pillar id -> id of the reporting assessment.
    """

    id: str
    name: str
    level: int
    overall: float = 0.0
    scores: dict[str, PillarScore] = field(default_factory=dict)
    children: list["OverviewNode"] = field(default_factory=list)
    selected_assessments: dict[str, uuid.UUID] = field(default_factory=dict)


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    org_unit_id: str | None = None
    assessment_id: uuid.UUID | None = None


@dataclass
class OverviewResult:
    root: OverviewNode
    diagnostics: list[Diagnostic] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tree construction
# ---------------------------------------------------------------------------


def build_org_tree(
    units: Iterable[OrgUnitRecord],
    root_name: str = "Organisation",
) -> tuple[OrgNode, list[Diagnostic]]:
    """Link flat org-unit records into a tree.

    A single parentless unit becomes the root. Otherwise an implicit root is
    created above all parentless units. Units whose parent cannot be reached
    are left out and reported.

    Args:
        units: Org units with parent linkage.
        root_name: Display name of the implicit root.

    Returns:
        Tuple of (root node, diagnostics). Children are sorted by name, then id.
    """
    records = list(units)
    nodes: dict[str, OrgNode] = {
        unit.id: OrgNode(id=unit.id, name=unit.name, level=unit.level) for unit in records
    }
    children_of: dict[str | None, list[OrgNode]] = defaultdict(list)
    for unit in records:
        children_of[unit.parent_id].append(nodes[unit.id])

    top_level = children_of.get(None, [])
    if len(top_level) == 1:
        root = top_level[0]
    else:
        root_level = min((node.level for node in top_level), default=2) - 1
        root = OrgNode(id="", name=root_name, level=root_level)
        children_of[""] = children_of.get("", []) + top_level

    reached: set[str] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        reached.add(node.id)
        node.children = sorted(
            children_of.get(node.id, []), key=lambda child: (child.name, child.id)
        )
        stack.extend(node.children)

    diagnostics = [
        Diagnostic(
            kind="unreachable_unit",
            message=f"Org unit {unit.id!r} references missing parent {unit.parent_id!r}.",
            org_unit_id=unit.id,
        )
        for unit in records
        if unit.id not in reached
    ]
    for diagnostic in diagnostics:
        logger.warning("Org unit skipped", reason=diagnostic.kind, org_unit_id=diagnostic.org_unit_id)

    return root, diagnostics


# ---------------------------------------------------------------------------
# Roll-up
# ---------------------------------------------------------------------------


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _leaf(node: OrgNode, assessments: list[Any]) -> OverviewNode:
    by_pillar: dict[str, list[Any]] = defaultdict(list)
    for assessment in assessments:
        by_pillar[assessment.pillar_id].append(assessment)

    result = OverviewNode(id=node.id, name=node.name, level=node.level)
    for pillar_id in sorted(by_pillar):
        selected = select_authoritative(by_pillar[pillar_id])
        if selected is None:
            continue
        result.scores[pillar_id] = PillarScore(
            score=float(selected.overall_score or 0.0),
            stages={k: float(v) for k, v in (selected.scores_by_stage or {}).items()},
        )
        result.selected_assessments[pillar_id] = selected.id

    result.overall = _mean([p.score for p in result.scores.values()])
    return result


def _combine(node: OrgNode, children: list[OverviewNode]) -> OverviewNode:
    pillar_values: dict[str, list[float]] = defaultdict(list)
    stage_values: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))

    for child in children:
        for pillar_id, pillar_score in child.scores.items():
            pillar_values[pillar_id].append(pillar_score.score)
            for stage_id, stage_score in pillar_score.stages.items():
                stage_values[pillar_id][stage_id].append(stage_score)

    result = OverviewNode(id=node.id, name=node.name, level=node.level, children=children)
    for pillar_id in sorted(pillar_values):
        result.scores[pillar_id] = PillarScore(
            score=_mean(pillar_values[pillar_id]),
            stages={
                stage_id: _mean(values)
                for stage_id, values in stage_values[pillar_id].items()
            },
        )

    result.overall = _mean([p.score for p in result.scores.values()])
    return result


def build_overview(
    root: OrgNode,
    assessments: Iterable[ScoredAssessment],
    pillar_ids: Iterable[str] | None = None,
) -> OverviewResult:
    """Annotate the org tree with rolled-up scores.

    Args:
        root: Root of the org tree (see ``build_org_tree``).
        assessments: All assessment summaries, any unit, any pillar.
        pillar_ids: Pillars to report on; assessments of other pillars are
            ignored. None reports every pillar found.

    Returns:
        OverviewResult with the annotated tree and non-fatal diagnostics.
    """
    wanted = set(pillar_ids) if pillar_ids is not None else None
    units = {node.id: node for node in root.walk()}
    grouped: dict[str, list[ScoredAssessment]] = defaultdict(list)
    diagnostics: list[Diagnostic] = []

    for assessment in assessments:
        if wanted is not None and assessment.pillar_id not in wanted:
            continue
        unit = units.get(assessment.org_unit_id)
        if unit is None:
            diagnostics.append(
                Diagnostic(
                    kind="orphaned_assessment",
                    message=f"Assessment references unknown org unit {assessment.org_unit_id!r}.",
                    org_unit_id=assessment.org_unit_id,
                    assessment_id=assessment.id,
                )
            )
            continue
        if not unit.is_leaf:
            diagnostics.append(
                Diagnostic(
                    kind="non_leaf_assessment",
                    message=f"Assessment attached to org unit {unit.id!r} which has child units.",
                    org_unit_id=unit.id,
                    assessment_id=assessment.id,
                )
            )
            continue
        grouped[unit.id].append(assessment)

    for diagnostic in diagnostics:
        logger.warning(
            "Assessment skipped during roll-up",
            reason=diagnostic.kind,
            assessment_id=str(diagnostic.assessment_id),
            org_unit_id=diagnostic.org_unit_id,
        )

    def roll_up(node: OrgNode) -> OverviewNode:
        if node.is_leaf:
            return _leaf(node, grouped.get(node.id, []))
        return _combine(node, [roll_up(child) for child in node.children])

    return OverviewResult(root=roll_up(root), diagnostics=diagnostics)
