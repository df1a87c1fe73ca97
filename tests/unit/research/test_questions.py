"""Unit tests for research question generation."""

import json

import pytest

from src.core.retry import RetryConfig
from src.prompts import PromptService
from tests.fakes.fake_clients import FakeModelClient


_IDEA = "A habit tracker for remote teams"


def _questions_payload(*questions: dict) -> str:
    return json.dumps({"questions": list(questions)})


class TestNormalizeQuestion:
    """Tests for coercing model output into ResearchQuestion."""

    def test_clamps_and_filters(self) -> None:
        from src.research.models import Domain
        from src.research.questions import normalize_question

        question = normalize_question(
            {
                "id": "x1",
                "question": "How should data sync?",
                "domain": "design",
                "priority": 15,
                "requiredExpertise": ["steve", "ghost"],
            },
            0,
        )

        assert question.id == "x1"
        assert question.domain is Domain.DESIGN
        assert question.priority == 10
        assert question.required_expertise == ["steve"]

    def test_defaults_for_missing_fields(self) -> None:
        from src.research.models import Domain
        from src.research.questions import normalize_question

        question = normalize_question({"domain": "astrology", "requiredExpertise": "elon"}, 2)

        assert question.id == "q3"
        assert question.domain is Domain.TECHNICAL
        assert question.priority == 5
        assert question.required_expertise == []


class TestFallbackQuestions:
    """Tests for the static fallback set."""

    def test_seven_questions_mentioning_idea(self) -> None:
        from src.research.questions import fallback_questions

        questions = fallback_questions(_IDEA)

        assert [q.id for q in questions] == [f"q{i}" for i in range(1, 8)]
        assert all(_IDEA in q.question for q in questions)
        assert questions[0].priority == 10
        assert questions[3].required_expertise == ["amal"]


class TestGenerateQuestions:
    """Tests for model-backed generation with fallback."""

    @pytest.mark.asyncio
    async def test_parses_model_output(self, prompt_service: PromptService) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[
            _questions_payload(
                {"id": "q1", "question": "Which stack?", "domain": "technical", "priority": 9},
                {"id": "q2", "question": "Which flows?", "domain": "design", "priority": 7},
            )
        ])

        questions = await generate_questions(_IDEA, client, prompt_service)

        call = client.call_history[0]
        assert [q.question for q in questions] == ["Which stack?", "Which flows?"]
        assert call["model"] == "gpt-5.2"
        assert call["json_mode"] is True
        assert _IDEA in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_accepts_fenced_output(self, prompt_service: PromptService) -> None:
        from src.research.questions import generate_questions

        body = _questions_payload({"id": "q1", "question": "Fenced?", "domain": "legal"})
        client = FakeModelClient(responses=[f"Sure!\n```json\n{body}\n```"])

        questions = await generate_questions(_IDEA, client, prompt_service)

        assert questions[0].question == "Fenced?"

    @pytest.mark.asyncio
    async def test_truncates_to_count(self, prompt_service: PromptService) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[
            _questions_payload(*({"question": f"Q{i}?"} for i in range(10)))
        ])

        questions = await generate_questions(_IDEA, client, prompt_service, count=4)

        assert len(questions) == 4

    @pytest.mark.asyncio
    async def test_repeated_ids_are_renumbered(self, prompt_service: PromptService) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[_questions_payload(
            {"id": "dup", "question": "First?"},
            {"id": "dup", "question": "Second?"},
            {"id": "q2", "question": "Third?"},
        )])

        questions = await generate_questions(_IDEA, client, prompt_service, count=3)

        ids = [q.id for q in questions]
        assert ids[0] == "dup"
        assert ids[2] == "q2"
        assert len(set(ids)) == 3
        assert [q.question for q in questions] == ["First?", "Second?", "Third?"]

    @pytest.mark.asyncio
    async def test_model_failure_uses_fallback(
        self, prompt_service: PromptService, fast_retry: RetryConfig
    ) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[RuntimeError("down"), RuntimeError("still down")])

        questions = await generate_questions(_IDEA, client, prompt_service, retry=fast_retry)

        assert len(questions) == 7
        assert len(client.call_history) == 2
        assert _IDEA in questions[0].question

    @pytest.mark.asyncio
    async def test_fallback_respects_count(
        self, prompt_service: PromptService, fast_retry: RetryConfig
    ) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[RuntimeError("down")] * 2)

        questions = await generate_questions(
            _IDEA, client, prompt_service, count=4, retry=fast_retry
        )

        assert [q.id for q in questions] == ["q1", "q2", "q3", "q4"]

    @pytest.mark.asyncio
    async def test_empty_list_uses_fallback(self, prompt_service: PromptService) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=['{"questions": []}'])

        questions = await generate_questions(_IDEA, client, prompt_service)

        assert len(questions) == 7

    @pytest.mark.asyncio
    async def test_retry_then_success(
        self, prompt_service: PromptService, fast_retry: RetryConfig
    ) -> None:
        from src.research.questions import generate_questions

        client = FakeModelClient(responses=[
            RuntimeError("blip"),
            _questions_payload({"question": "After retry?"}),
        ])

        questions = await generate_questions(_IDEA, client, prompt_service, retry=fast_retry)

        assert [q.question for q in questions] == ["After retry?"]
