"""Questionnaire catalog: Pillar -> Stage -> Theme -> Question -> guidelines.

The catalog is read-mostly, globally owned reference data. A full pillar tree
is small enough to load in one go; once loaded it is treated as immutable
input to scoring and gating and cached in a PillarRegistry.

Children are always ordered by ``code``. Stage order is significant: a stage
is only editable once the stage before it has been completed to the unlock
threshold (see ``core/gating.py``).
"""

from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from mat_assessment_engine.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Question:
    """A single audit item.

    Attributes:
        id: Question identifier, unique within the catalog.
        code: Sort key within the theme (e.g. 'SC.1.1.3').
        text: Question text shown to assessors.
        audit_guidelines: Ordered checklist; all must be ticked to qualify.
    """

    id: str
    code: str
    text: str
    audit_guidelines: tuple[str, ...] = ()


@dataclass(frozen=True)
class Theme:
    """A group of related questions within a stage."""

    id: str
    code: str
    name: str
    questions: tuple[Question, ...] = ()


@dataclass(frozen=True)
class Stage:
    """An ordered maturity level within a pillar."""

    id: str
    code: str
    name: str
    themes: tuple[Theme, ...] = ()

    @property
    def total_questions(self) -> int:
        return sum(len(theme.questions) for theme in self.themes)


@dataclass(frozen=True)
class FullPillar:
    """A pillar with its complete stage/theme/question tree.

    Attributes:
        id: Pillar identifier.
        code: Pillar code (e.g. 'SUPPLY_CHAIN_MATURITY').
        name: Display name.
        description: Free-text description.
        stages: Stages in gating order.
    """

    id: str
    code: str
    name: str
    description: str = ""
    stages: tuple[Stage, ...] = ()
    _question_index: dict[str, tuple[int, Stage, Theme, Question]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for stage_index, stage in enumerate(self.stages):
            for theme in stage.themes:
                for question in theme.questions:
                    self._question_index[question.id] = (stage_index, stage, theme, question)

    @property
    def stage_ids(self) -> list[str]:
        return [stage.id for stage in self.stages]

    def iter_questions(self) -> Iterator[Question]:
        for stage in self.stages:
            for theme in stage.themes:
                yield from theme.questions

    def locate_question(self, question_id: str) -> tuple[int, Stage, Theme, Question]:
        """Find a question and its position in the tree.

        Args:
            question_id: Question identifier.

        Returns:
            Tuple of (stage_index, stage, theme, question).

        Raises:
            NotFoundError: If the question does not belong to this pillar.
        """
        try:
            return self._question_index[question_id]
        except KeyError:
            raise NotFoundError(
                message=f"Question {question_id!r} does not belong to pillar {self.id!r}.",
                context={"pillar_id": self.id, "question_id": question_id},
            ) from None


def _sorted_by_code(items: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return sorted(items, key=lambda item: str(item.get("code", "")))


def _require(mapping: Mapping[str, Any], key: str, where: str) -> str:
    value = mapping.get(key)
    if value is None or str(value).strip() == "":
        raise ValidationError(
            message=f"Catalog definition is missing '{key}' in {where}.",
            context={"field": key, "where": where},
        )
    return str(value)


def load_pillar_definition(definition: Mapping[str, Any]) -> FullPillar:
    """Build a FullPillar from a nested catalog definition.

    The definition mirrors the seed documents used by the catalog admin::

        {"code": "TEAMWORK_MATURITY", "name": "...", "description": "...",
         "stages": [{"code": "S1", "name": "...",
                     "themes": [{"code": "S1.T1", "name": "...",
                                 "questions": [{"code": "S1.T1.Q1", "text": "...",
                                                "audit_guidelines": ["..."]}]}]}]}

    ``id`` defaults to ``code`` at every level. Children are sorted by code.

    Args:
        definition: Nested mapping as above.

    Returns:
        The immutable FullPillar.

    Raises:
        ValidationError: If a required key is missing or a question id repeats.
    """
    pillar_code = _require(definition, "code", "pillar")
    seen_questions: set[str] = set()
    stages: list[Stage] = []

    for stage_def in _sorted_by_code(definition.get("stages", [])):
        stage_code = _require(stage_def, "code", f"pillar {pillar_code}")
        themes: list[Theme] = []
        for theme_def in _sorted_by_code(stage_def.get("themes", [])):
            theme_code = _require(theme_def, "code", f"stage {stage_code}")
            questions: list[Question] = []
            for question_def in _sorted_by_code(theme_def.get("questions", [])):
                question_code = _require(question_def, "code", f"theme {theme_code}")
                question_id = str(question_def.get("id") or question_code)
                if question_id in seen_questions:
                    raise ValidationError(
                        message=f"Duplicate question id {question_id!r} in pillar {pillar_code}.",
                        context={"pillar_code": pillar_code, "question_id": question_id},
                    )
                seen_questions.add(question_id)
                questions.append(
                    Question(
                        id=question_id,
                        code=question_code,
                        text=_require(question_def, "text", f"question {question_code}"),
                        audit_guidelines=tuple(
                            str(g) for g in question_def.get("audit_guidelines", [])
                        ),
                    )
                )
            themes.append(
                Theme(
                    id=str(theme_def.get("id") or theme_code),
                    code=theme_code,
                    name=str(theme_def.get("name", theme_code)),
                    questions=tuple(questions),
                )
            )
        stages.append(
            Stage(
                id=str(stage_def.get("id") or stage_code),
                code=stage_code,
                name=str(stage_def.get("name", stage_code)),
                themes=tuple(themes),
            )
        )

    return FullPillar(
        id=str(definition.get("id") or pillar_code),
        code=pillar_code,
        name=str(definition.get("name", pillar_code)),
        description=str(definition.get("description", "")),
        stages=tuple(stages),
    )


PillarLoader = Callable[[str], Awaitable[FullPillar | None]]


class PillarRegistry:
    """Process-wide cache of loaded pillar trees, keyed by pillar id.

    Pillars are resolved through the registry rather than dispatched on code
    strings. A pillar is loaded at most once and then reused; ``invalidate``
    drops a cached tree after the catalog is re-seeded.
    """

    def __init__(self) -> None:
        self._pillars: dict[str, FullPillar] = {}

    def register(self, pillar: FullPillar) -> None:
        self._pillars[pillar.id] = pillar

    def invalidate(self, pillar_id: str | None = None) -> None:
        if pillar_id is None:
            self._pillars.clear()
        else:
            self._pillars.pop(pillar_id, None)

    def __contains__(self, pillar_id: object) -> bool:
        return pillar_id in self._pillars

    async def get(self, pillar_id: str, loader: PillarLoader) -> FullPillar:
        """Return the cached pillar, loading it on first use.

        Args:
            pillar_id: Pillar identifier.
            loader: Coroutine function fetching the full tree from the store.

        Returns:
            The FullPillar.

        Raises:
            NotFoundError: If the loader finds no such pillar.
        """
        cached = self._pillars.get(pillar_id)
        if cached is not None:
            return cached

        pillar = await loader(pillar_id)
        if pillar is None:
            raise NotFoundError(
                message=f"Pillar {pillar_id!r} not found.",
                context={"pillar_id": pillar_id},
            )

        self._pillars[pillar_id] = pillar
        logger.debug(
            "Pillar catalog loaded",
            pillar_id=pillar_id,
            stage_count=len(pillar.stages),
            question_count=sum(stage.total_questions for stage in pillar.stages),
        )
        return pillar
