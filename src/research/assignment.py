"""Expert assignment and workload balancing.

Each question goes to the best-scoring enabled expert (two experts for
priority >= 8). Score:

    2 * domain_expertise + 15 * (expert explicitly required) + priority / 2

Ties keep config order, so assignment is deterministic.

Rebalancing is a single pass: it moves low-priority questions off experts
holding more than 2x the mean but does not iterate to convergence, so the
result is only "roughly balanced".
"""

from __future__ import annotations

import logging

from src.research.models import AgentConfig, ExpertAssignment, ExpertId, ResearchQuestion


logger = logging.getLogger(__name__)

DOMAIN_EXPERTISE: dict[str, dict[ExpertId, int]] = {
    "technical": {"elon": 10, "jony": 8, "steve": 6, "amal": 3},
    "design": {"steve": 10, "jony": 10, "zaha": 9, "oprah": 5},
    "market": {"bartlett": 10, "oprah": 8, "steve": 6},
    "legal": {"amal": 10, "elon": 3},
    "growth": {"bartlett": 10, "oprah": 8, "steve": 6},
    "security": {"amal": 8, "elon": 7},
}

EXPERT_MODEL_MAP: dict[ExpertId, str] = {
    "elon": "gpt-5.2-codex",
    "steve": "claude-opus-4.5",
    "jony": "claude-opus-4.5",
    "zaha": "claude-opus-4.5",
    "bartlett": "gemini-3-flash",
    "oprah": "gemini-3-flash",
    "amal": "gpt-5.2",
}

DEFAULT_EXPERT_MODEL = "deepseek-v3"

HIGH_PRIORITY_THRESHOLD = 8
REBALANCE_MAX_PRIORITY = 7
MIN_REBALANCE_EXPERTISE = 5


def domain_score(domain: str, expert_id: ExpertId) -> int:
    return DOMAIN_EXPERTISE.get(domain, {}).get(expert_id, 0)


def model_for_expert(expert_id: ExpertId) -> str:
    return EXPERT_MODEL_MAP.get(expert_id, DEFAULT_EXPERT_MODEL)


def expert_score(question: ResearchQuestion, expert_id: ExpertId) -> float:
    score = 2 * domain_score(question.domain.value, expert_id)
    if expert_id in question.required_expertise:
        score += 15
    return score + question.priority / 2


def assign_questions_to_experts(
    questions: list[ResearchQuestion],
    configs: list[AgentConfig],
) -> list[ExpertAssignment]:
    """Route every question to its best-matched enabled expert(s).

    Returns:
        Assignments in config order, excluding experts with no questions
    """
    assignments: dict[ExpertId, ExpertAssignment] = {}
    for config in configs:
        if not config.enabled or config.resolved_id in assignments:
            continue
        assignments[config.resolved_id] = ExpertAssignment(
            expert_id=config.resolved_id,
            expert_name=config.agent,
            questions=[],
            model=model_for_expert(config.resolved_id),
        )

    if not assignments:
        logger.warning("No enabled experts; %d questions unassigned", len(questions))
        return []

    expert_ids = list(assignments)
    for question in questions:
        # sorted() is stable, so equal scores keep config order
        ranked = sorted(expert_ids, key=lambda eid: expert_score(question, eid), reverse=True)
        take = 2 if question.priority >= HIGH_PRIORITY_THRESHOLD else 1
        for expert_id in ranked[:take]:
            assignments[expert_id].questions.append(question)

    result = [a for a in assignments.values() if a.questions]
    logger.info("Assigned %d questions to %d experts", len(questions), len(result))
    for assignment in result:
        logger.debug(
            "  %s: %d questions (model: %s)",
            assignment.expert_name,
            len(assignment.questions),
            assignment.model,
        )
    return result


def balance_workload(
    assignments: list[ExpertAssignment],
    *,
    min_expertise: int = MIN_REBALANCE_EXPERTISE,
) -> list[ExpertAssignment]:
    """Move low-priority questions away from overloaded experts (one pass).

    Questions are moved, never copied. Only experts holding more than twice
    the mean trigger rebalancing.
    """
    if not assignments:
        return assignments

    counts = [len(a.questions) for a in assignments]
    average = sum(counts) / len(counts)
    if max(counts) <= 2 * average:
        return assignments

    logger.warning("Workload imbalance detected. Max: %d, Avg: %.1f", max(counts), average)

    by_load = sorted(assignments, key=lambda a: len(a.questions), reverse=True)
    overloaded = [a for a in by_load if len(a.questions) > 1.5 * average]
    underloaded = [a for a in by_load if len(a.questions) < average]

    moved = 0
    for source in overloaded:
        low_priority = sorted(
            (q for q in source.questions if q.priority < REBALANCE_MAX_PRIORITY),
            key=lambda q: q.priority,
        )
        for question in low_priority[: len(low_priority) // 2]:
            target = next(
                (
                    a for a in underloaded
                    if domain_score(question.domain.value, a.expert_id) > min_expertise
                    and all(q is not question for q in a.questions)
                ),
                None,
            )
            if target is None:
                continue
            source.questions = [q for q in source.questions if q is not question]
            target.questions.append(question)
            moved += 1

    logger.info("Workload rebalanced: %d questions moved", moved)
    return [a for a in assignments if a.questions]
