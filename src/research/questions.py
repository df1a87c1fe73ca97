"""Research question generation.

Turns a product idea into prioritized, domain-tagged research questions.
Any failure (model error, undecodable output, empty list) falls back to a
fixed set of seven generic questions so the pipeline can always proceed.
"""

from __future__ import annotations

import logging
from typing import Any

from src.clients.model_client import ModelClientProtocol, messages_for
from src.core.json_extract import clamp, decode_model_json
from src.core.retry import RetryConfig, retry_with_backoff
from src.prompts.service import PromptService
from src.research.models import KNOWN_EXPERTS, Domain, ResearchQuestion


logger = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 7
QUESTION_MODEL = "gpt-5.2"

_FALLBACK_QUESTIONS: tuple[tuple[str, str, Domain, int, tuple[str, ...]], ...] = (
    ("q1", "What are the core technical requirements and architecture for: {idea}?",
     Domain.TECHNICAL, 10, ("elon", "jony")),
    ("q2", "What are the key UX/design considerations and user workflows for: {idea}?",
     Domain.DESIGN, 9, ("steve", "jony", "zaha")),
    ("q3", "Who are the main competitors and what is the competitive landscape for: {idea}?",
     Domain.MARKET, 8, ("bartlett", "oprah")),
    ("q4", "What legal, compliance, and data privacy issues should be considered for: {idea}?",
     Domain.LEGAL, 7, ("amal",)),
    ("q5", "What are the scalability challenges and infrastructure requirements for: {idea}?",
     Domain.TECHNICAL, 8, ("elon",)),
    ("q6", "What is the go-to-market strategy and growth roadmap for: {idea}?",
     Domain.GROWTH, 7, ("bartlett", "oprah")),
    ("q7", "What are the estimated costs, timeline, and resource requirements for building: {idea}?",
     Domain.MARKET, 6, ("elon", "bartlett")),
)


def fallback_questions(user_input: str) -> list[ResearchQuestion]:
    """The static question set used when generation fails."""
    return [
        ResearchQuestion(
            id=qid,
            question=text.format(idea=user_input),
            domain=domain,
            priority=priority,
            required_expertise=list(experts),
        )
        for qid, text, domain, priority, experts in _FALLBACK_QUESTIONS
    ]


def normalize_question(raw: dict[str, Any], index: int) -> ResearchQuestion:
    """Coerce one model-produced question into a valid ResearchQuestion."""
    domain_value = raw.get("domain")
    try:
        domain = Domain(domain_value)
    except ValueError:
        domain = Domain.TECHNICAL

    expertise = raw.get("requiredExpertise") or raw.get("required_expertise") or []
    if not isinstance(expertise, list):
        expertise = []

    return ResearchQuestion(
        id=str(raw.get("id") or f"q{index + 1}"),
        question=str(raw.get("question") or "No question provided"),
        domain=domain,
        priority=int(clamp(raw.get("priority"), 1, 10, 5)),
        required_expertise=[e for e in expertise if e in KNOWN_EXPERTS],
    )


def _with_unique_ids(questions: list[ResearchQuestion]) -> list[ResearchQuestion]:
    """Renumber questions whose id repeats an earlier one as ``q<position>``."""
    seen: set[str] = set()
    unique: list[ResearchQuestion] = []
    for index, question in enumerate(questions):
        if question.id in seen:
            new_id = f"q{index + 1}"
            suffix = 1
            while new_id in seen or any(q.id == new_id for q in questions[index + 1:]):
                suffix += 1
                new_id = f"q{index + 1}_{suffix}"
            question = question.model_copy(update={"id": new_id})
        seen.add(question.id)
        unique.append(question)
    return unique


async def generate_questions(
    user_input: str,
    client: ModelClientProtocol,
    prompts: PromptService,
    *,
    count: int = DEFAULT_QUESTION_COUNT,
    model: str = QUESTION_MODEL,
    retry: RetryConfig | None = None,
) -> list[ResearchQuestion]:
    """Generate ``count`` research questions for a product idea.

    Never raises for model failures; returns ``fallback_questions`` instead.
    """
    system_prompt = prompts.render("question_generation_system", {"count": count})
    user_prompt = prompts.render(
        "question_generation", {"user_input": user_input, "count": count}
    )

    try:
        response = await retry_with_backoff(
            lambda: client.call(
                model,
                messages_for(system_prompt, user_prompt),
                temperature=0.7,
                max_tokens=2000,
                json_mode=True,
            ),
            retry,
            on_retry=lambda e, n: logger.info("Question generation retry %d: %s", n, e),
        )
    except Exception as e:
        logger.error("Question generation failed, using fallback questions: %s", e)
        return fallback_questions(user_input)[:count]

    decoded = decode_model_json(response.content, ("questions",))
    raw_questions = decoded.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        logger.warning("Question generation returned no questions, using fallback")
        return fallback_questions(user_input)[:count]

    questions = [
        normalize_question(raw, index)
        for index, raw in enumerate(raw_questions)
        if isinstance(raw, dict)
    ]
    if not questions:
        return fallback_questions(user_input)[:count]
    questions = _with_unique_ids(questions)

    logger.info("Generated %d research questions using %s", len(questions), response.model)
    return questions[:count]
