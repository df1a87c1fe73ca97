"""Unit tests for expert assignment and workload balancing."""

from src.research.models import AgentConfig, Domain, ExpertAssignment, ResearchQuestion


def _question(qid: str, domain: Domain, priority: int = 5) -> ResearchQuestion:
    return ResearchQuestion(id=qid, question=f"Question {qid}?", domain=domain, priority=priority)


def _assignment(expert_id: str, questions: list[ResearchQuestion]) -> ExpertAssignment:
    return ExpertAssignment(
        expert_id=expert_id,
        expert_name=expert_id.title(),
        questions=questions,
        model="deepseek-v3",
    )


class TestExpertScore:
    """Tests for the scoring formula."""

    def test_required_expert_bonus(self) -> None:
        from src.research.assignment import expert_score

        question = ResearchQuestion(
            id="q1", question="?", domain=Domain.TECHNICAL, priority=8, required_expertise=["amal"]
        )

        assert expert_score(question, "amal") == 2 * 3 + 15 + 4
        assert expert_score(question, "elon") == 2 * 10 + 4

    def test_model_map(self) -> None:
        from src.research.assignment import model_for_expert

        assert model_for_expert("elon") == "gpt-5.2-codex"
        assert model_for_expert("guest") == "deepseek-v3"


class TestAssignQuestions:
    """Tests for routing questions to experts."""

    def test_assigns_best_experts(
        self,
        sample_questions: list[ResearchQuestion],
        agent_configs: list[AgentConfig],
    ) -> None:
        from src.research.assignment import assign_questions_to_experts

        assignments = assign_questions_to_experts(sample_questions, agent_configs)

        by_expert = {a.expert_id: [q.id for q in a.questions] for a in assignments}
        assert [a.expert_id for a in assignments] == ["elon", "steve", "jony", "bartlett"]
        assert by_expert == {"elon": ["q1"], "steve": ["q2"], "jony": ["q1"], "bartlett": ["q3"]}
        assert assignments[0].model == "gpt-5.2-codex"

    def test_high_priority_gets_two_experts(
        self,
        sample_questions: list[ResearchQuestion],
        agent_configs: list[AgentConfig],
    ) -> None:
        from src.research.assignment import assign_questions_to_experts

        assignments = assign_questions_to_experts(sample_questions, agent_configs)

        holders = [a.expert_id for a in assignments if any(q.id == "q1" for q in a.questions)]
        assert len(holders) == 2

    def test_ties_keep_config_order(self) -> None:
        from src.research.assignment import assign_questions_to_experts

        configs = [
            AgentConfig(id="oprah", agent="Oprah", system_prompt="p"),
            AgentConfig(id="zaha", agent="Zaha", system_prompt="p"),
        ]

        assignments = assign_questions_to_experts([_question("q1", Domain.LEGAL)], configs)

        assert [a.expert_id for a in assignments] == ["oprah"]

    def test_disabled_experts_skipped(self, sample_questions: list[ResearchQuestion]) -> None:
        from src.research.assignment import assign_questions_to_experts

        configs = [
            AgentConfig(id="elon", agent="Elon", system_prompt="p", enabled=False),
            AgentConfig(id="amal", agent="Amal", system_prompt="p"),
        ]

        assignments = assign_questions_to_experts(sample_questions, configs)

        assert [a.expert_id for a in assignments] == ["amal"]
        assert len(assignments[0].questions) == 3

    def test_no_enabled_experts(self, sample_questions: list[ResearchQuestion]) -> None:
        from src.research.assignment import assign_questions_to_experts

        configs = [AgentConfig(id="elon", agent="Elon", system_prompt="p", enabled=False)]

        assert assign_questions_to_experts(sample_questions, configs) == []

    def test_id_derived_from_name(self) -> None:
        from src.research.assignment import assign_questions_to_experts

        configs = [AgentConfig(agent="Guest Expert", system_prompt="p")]

        assignments = assign_questions_to_experts([_question("q1", Domain.MARKET)], configs)

        assert assignments[0].expert_id == "guest_expert"
        assert assignments[0].model == "deepseek-v3"


class TestBalanceWorkload:
    """Tests for single-pass rebalancing."""

    def test_balanced_input_unchanged(self) -> None:
        from src.research.assignment import balance_workload

        assignments = [
            _assignment("elon", [_question("q1", Domain.TECHNICAL)]),
            _assignment("steve", [_question("q2", Domain.DESIGN)]),
        ]

        result = balance_workload(assignments)

        assert [len(a.questions) for a in result] == [1, 1]

    def test_moves_half_of_low_priority_questions(self) -> None:
        from src.research.assignment import balance_workload

        overloaded = [_question(f"d{i}", Domain.DESIGN, priority=5) for i in range(8)]
        assignments = [
            _assignment("elon", overloaded),
            _assignment("jony", [_question("j1", Domain.DESIGN, priority=9)]),
            _assignment("steve", [_question("s1", Domain.DESIGN, priority=9)]),
            _assignment("zaha", [_question("z1", Domain.DESIGN, priority=9)]),
        ]

        result = balance_workload(assignments)

        counts = {a.expert_id: len(a.questions) for a in result}
        assert counts == {"elon": 4, "jony": 5, "steve": 1, "zaha": 1}
        assert sum(counts.values()) == 11

    def test_high_priority_questions_never_move(self) -> None:
        from src.research.assignment import balance_workload

        assignments = [
            _assignment("elon", [_question(f"d{i}", Domain.DESIGN, priority=9) for i in range(8)]),
            _assignment("jony", [_question("j1", Domain.DESIGN)]),
            _assignment("steve", [_question("s1", Domain.DESIGN)]),
            _assignment("zaha", [_question("z1", Domain.DESIGN)]),
        ]

        result = balance_workload(assignments)

        assert len(result[0].questions) == 8

    def test_targets_need_domain_expertise(self) -> None:
        from src.research.assignment import balance_workload

        assignments = [
            _assignment("amal", [_question(f"d{i}", Domain.DESIGN) for i in range(8)]),
            _assignment("bartlett", [_question("b1", Domain.MARKET)]),
            _assignment("elon", [_question("e1", Domain.TECHNICAL)]),
            _assignment("zaha", [_question("z1", Domain.DESIGN)]),
        ]

        result = balance_workload(assignments)

        counts = {a.expert_id: len(a.questions) for a in result}
        assert counts == {"amal": 4, "bartlett": 1, "elon": 1, "zaha": 5}

    def test_shared_ids_are_moved_one_at_a_time(self) -> None:
        from src.research.assignment import balance_workload

        overloaded = [
            _question("dup", Domain.TECHNICAL, priority=1),
            _question("dup", Domain.TECHNICAL, priority=1),
            *(_question(f"t{i}", Domain.TECHNICAL, priority=3) for i in range(4)),
        ]
        assignments = [
            _assignment("elon", list(overloaded)),
            _assignment("jony", [_question("j1", Domain.DESIGN, priority=9)]),
            _assignment("bartlett", [_question("b1", Domain.MARKET, priority=9)]),
        ]

        result = balance_workload(assignments)

        counts = {a.expert_id: len(a.questions) for a in result}
        held = [q for a in result for q in a.questions]
        assert counts == {"elon": 3, "jony": 4, "bartlett": 1}
        assert all(any(q is original for q in held) for original in overloaded)

    def test_empty(self) -> None:
        from src.research.assignment import balance_workload

        assert balance_workload([]) == []
