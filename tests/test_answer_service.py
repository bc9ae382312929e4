"""Unit tests for AnswerService: editability, stage gating and rescoring."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mat_assessment_engine.core.catalog import FullPillar, PillarRegistry
from mat_assessment_engine.core.enums import AssessmentType
from mat_assessment_engine.core.services import AnswerService, AnswerUpdate
from mat_assessment_engine.errors import (
    ErrorCode,
    NotFoundError,
    PolicyError,
    ValidationError,
)

_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def _assessment(**overrides: Any) -> SimpleNamespace:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "org_unit_id": "dept-a",
        "pillar_id": "SUPPLY_CHAIN",
        "assessment_type": AssessmentType.SELF_ASSESSMENT.value,
        "is_active": True,
        "overall_score": 0.0,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _answer(question_id: str, checked: list[str], qualified: bool, **extra: Any) -> SimpleNamespace:
    return SimpleNamespace(
        question_id=question_id,
        checked_guidelines=checked,
        is_qualified=qualified,
        comments=extra.get("comments"),
        evidence=extra.get("evidence", []),
    )


def _stored(**fields: Any) -> SimpleNamespace:
    return SimpleNamespace(**fields)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def assessment() -> SimpleNamespace:
    return _assessment()


@pytest.fixture()
def mock_assessment_repo(assessment: SimpleNamespace) -> AsyncMock:
    repo = AsyncMock()
    repo.get_by_id.return_value = assessment
    return repo


@pytest.fixture()
def mock_answer_repo() -> AsyncMock:
    repo = AsyncMock()
    repo.list_for_assessment.return_value = []
    repo.upsert.side_effect = _stored
    return repo


@pytest.fixture()
def answer_service(
    mock_assessment_repo: AsyncMock,
    mock_answer_repo: AsyncMock,
    pillar: FullPillar,
) -> AnswerService:
    registry = PillarRegistry()
    registry.register(pillar)
    return AnswerService(
        assessment_repository=mock_assessment_repo,
        answer_repository=mock_answer_repo,
        catalog_repository=AsyncMock(),
        registry=registry,
        clock=lambda: _NOW,
    )


# ---------------------------------------------------------------------------
# Stage gating
# ---------------------------------------------------------------------------


class TestStageGating:
    @pytest.mark.asyncio()
    async def test_first_stage_always_editable(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        result = await answer_service.save_answer(
            assessment.id,
            "S1.T1.Q2",
            AnswerUpdate(checked_guidelines=["Owner named"], is_qualified=True),
            actor="ana",
        )

        assert result.answer.is_qualified is True
        assert result.scores.per_stage["S1"] == 2.5
        assert [gate.editable for gate in result.gates] == [True, False]
        mock_assessment_repo.update_scores.assert_awaited_once_with(
            assessment.id, result.scores, "ana", _NOW
        )

    @pytest.mark.asyncio()
    async def test_locked_stage_refused_with_blocking_score(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
    ) -> None:
        mock_answer_repo.list_for_assessment.return_value = [
            _answer("S1.T1.Q1", ["Documented", "Reviewed quarterly"], True),
        ]

        with pytest.raises(PolicyError) as exc_info:
            await answer_service.save_answer(
                assessment.id,
                "S2.T1.Q1",
                AnswerUpdate(comments="Dashboard in pilot"),
                actor="ana",
            )

        assert exc_info.value.error_code == ErrorCode.STAGE_LOCKED
        assert exc_info.value.context["stage_id"] == "S2"
        assert exc_info.value.context["blocking_stage_id"] == "S1"
        assert exc_info.value.context["blocking_stage_score"] == 2.5
        mock_answer_repo.upsert.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_completing_previous_stage_unlocks_next(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        mock_answer_repo.list_for_assessment.return_value = [
            _answer("S1.T1.Q1", ["Documented", "Reviewed quarterly"], True),
        ]

        result = await answer_service.save_answer(
            assessment.id,
            "S1.T1.Q2",
            AnswerUpdate(checked_guidelines=["Owner named"], is_qualified=True),
            actor="ana",
        )

        assert result.scores.per_stage == {"S1": 5.0, "S2": 0.0}
        assert result.scores.overall == 2.5
        assert [gate.editable for gate in result.gates] == [True, True]
        stored_scores = mock_assessment_repo.update_scores.await_args.args[1]
        assert stored_scores.overall == 2.5


# ---------------------------------------------------------------------------
# Guideline qualification
# ---------------------------------------------------------------------------


class TestQualification:
    @pytest.mark.asyncio()
    async def test_qualify_with_incomplete_checklist_rejected(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await answer_service.save_answer(
                assessment.id,
                "S1.T1.Q1",
                AnswerUpdate(checked_guidelines=["Documented"], is_qualified=True),
                actor="ana",
            )

        assert exc_info.value.error_code == ErrorCode.GUIDELINE_INVARIANT
        mock_answer_repo.upsert.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_unticking_a_guideline_drops_qualification(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
    ) -> None:
        mock_answer_repo.list_for_assessment.return_value = [
            _answer("S1.T1.Q1", ["Documented", "Reviewed quarterly"], True),
        ]

        result = await answer_service.save_answer(
            assessment.id,
            "S1.T1.Q1",
            AnswerUpdate(checked_guidelines=["Reviewed quarterly"]),
            actor="ana",
        )

        assert result.answer.is_qualified is False
        assert result.answer.checked_guidelines == ["Reviewed quarterly"]
        assert result.scores.overall == 0.0

    @pytest.mark.asyncio()
    async def test_unknown_guideline_rejected(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await answer_service.save_answer(
                assessment.id,
                "S1.T1.Q2",
                AnswerUpdate(checked_guidelines=["Owner named", "Budget approved"]),
                actor="ana",
            )

        assert exc_info.value.context["unknown_guidelines"] == ["Budget approved"]


# ---------------------------------------------------------------------------
# Editability and partial updates
# ---------------------------------------------------------------------------


class TestEditability:
    @pytest.mark.asyncio()
    async def test_inactive_self_assessment_is_read_only(
        self,
        answer_service: AnswerService,
        mock_assessment_repo: AsyncMock,
        mock_answer_repo: AsyncMock,
    ) -> None:
        mock_assessment_repo.get_by_id.return_value = _assessment(is_active=False)

        with pytest.raises(PolicyError) as exc_info:
            await answer_service.save_answer(
                uuid.uuid4(), "S1.T1.Q2", AnswerUpdate(comments="late"), actor="ana"
            )

        assert exc_info.value.error_code == ErrorCode.ASSESSMENT_READ_ONLY
        mock_answer_repo.upsert.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_inactive_moderation_is_editable(
        self,
        answer_service: AnswerService,
        mock_assessment_repo: AsyncMock,
        mock_answer_repo: AsyncMock,
    ) -> None:
        moderation = _assessment(
            is_active=False, assessment_type=AssessmentType.MODERATION.value
        )
        mock_assessment_repo.get_by_id.return_value = moderation

        await answer_service.save_answer(
            moderation.id, "S1.T1.Q2", AnswerUpdate(comments="checked on site"), actor="mo"
        )

        mock_answer_repo.upsert.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_partial_update_keeps_stored_fields(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
    ) -> None:
        evidence = [{"document_id": "doc-7", "name": "plan.pdf"}]
        mock_answer_repo.list_for_assessment.return_value = [
            _answer(
                "S1.T1.Q1",
                ["Documented", "Reviewed quarterly"],
                True,
                comments="first pass",
                evidence=evidence,
            ),
        ]

        await answer_service.save_answer(
            assessment.id, "S1.T1.Q1", AnswerUpdate(comments="second pass"), actor="ana"
        )

        written = mock_answer_repo.upsert.await_args.kwargs
        assert written["comments"] == "second pass"
        assert written["checked_guidelines"] == ["Documented", "Reviewed quarterly"]
        assert written["is_qualified"] is True
        assert written["evidence"] == evidence
        assert written["stage_id"] == "S1"
        assert written["theme_id"] == "S1.T1"

    @pytest.mark.asyncio()
    async def test_question_outside_pillar_not_found(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
    ) -> None:
        with pytest.raises(NotFoundError):
            await answer_service.save_answer(
                assessment.id, "HR.T1.Q1", AnswerUpdate(comments="x"), actor="ana"
            )

    @pytest.mark.asyncio()
    async def test_unknown_assessment_not_found(
        self,
        answer_service: AnswerService,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        mock_assessment_repo.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await answer_service.save_answer(
                uuid.uuid4(), "S1.T1.Q1", AnswerUpdate(comments="x"), actor="ana"
            )


# ---------------------------------------------------------------------------
# Views and rescoring
# ---------------------------------------------------------------------------


class TestViewAndRescore:
    @pytest.mark.asyncio()
    async def test_view_reflects_live_answers(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
    ) -> None:
        mock_answer_repo.list_for_assessment.return_value = [
            _answer("S1.T1.Q1", ["Documented", "Reviewed quarterly"], True),
            _answer("S1.T1.Q2", ["Owner named"], True),
        ]

        view = await answer_service.get_assessment_view(assessment.id)

        assert view.editable is True
        assert view.scores.overall == 2.5
        assert [gate.stage_id for gate in view.gates] == ["S1", "S2"]
        assert view.gates[1].editable is True
        assert len(view.answers) == 2

    @pytest.mark.asyncio()
    async def test_rescore_stores_recomputed_scores(
        self,
        answer_service: AnswerService,
        assessment: SimpleNamespace,
        mock_answer_repo: AsyncMock,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        assessment.overall_score = 4.0
        mock_answer_repo.list_for_assessment.return_value = [
            _answer("S1.T1.Q2", ["Owner named"], True),
        ]

        scores = await answer_service.rescore(assessment.id, actor="admin")

        assert scores.overall == 1.25
        mock_assessment_repo.update_scores.assert_awaited_once_with(
            assessment.id, scores, "admin", _NOW
        )

    @pytest.mark.asyncio()
    async def test_rescore_refused_for_inactive_self_assessment(
        self,
        answer_service: AnswerService,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        superseded = _assessment(is_active=False, overall_score=3.75)
        mock_assessment_repo.get_by_id.return_value = superseded

        with pytest.raises(PolicyError) as exc_info:
            await answer_service.rescore(superseded.id, actor="mallory")

        assert exc_info.value.error_code == ErrorCode.ASSESSMENT_READ_ONLY
        mock_assessment_repo.update_scores.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_rescore_allowed_for_inactive_moderation(
        self,
        answer_service: AnswerService,
        mock_assessment_repo: AsyncMock,
    ) -> None:
        moderation = _assessment(
            is_active=False, assessment_type=AssessmentType.MODERATION.value
        )
        mock_assessment_repo.get_by_id.return_value = moderation

        scores = await answer_service.rescore(moderation.id, actor="mo")

        assert scores.overall == 0.0
        mock_assessment_repo.update_scores.assert_awaited_once()
