"""
Tests for the quiz run state machine.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from quizflow.config import Config
from quizflow.errors import InvalidOperationError, SchemaError
from quizflow.quiz.graph import Condition, ConditionOperator, Quiz, QuizNode, QuizSettings, Transition
from quizflow.quiz.schema import DateQuestion, NumberQuestion, TextQuestion
from quizflow.runner import (
    QuizRunner,
    QuizState,
    RunStatus,
    StepOutcome,
    run_answers,
)


def make_quiz(allow_back_tracking: bool = False) -> Quiz:
    """A(start) -> B -> C(end); A only moves on when age > 18."""
    return Quiz(
        id="demo",
        title="Demo",
        version="1",
        settings=QuizSettings(allow_back_tracking=allow_back_tracking),
        nodes=[
            QuizNode(
                id="A",
                title="Age",
                is_start=True,
                questions=[NumberQuestion(id="age", label="Age", required=True)],
                transitions=[
                    Transition(
                        next_node_id="B",
                        conditions=[Condition("age", ConditionOperator.GREATER_THAN, 18)],
                    )
                ],
            ),
            QuizNode(
                id="B",
                title="Details",
                questions=[
                    TextQuestion(id="name", label="Name"),
                    DateQuestion(id="start", label="Start date"),
                ],
                transitions=[Transition(next_node_id="C")],
            ),
            QuizNode(id="C", title="Done", is_end=True),
        ],
    )


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class TestQuizRunner:
    """Tests for QuizRunner."""

    @pytest.fixture
    def runner(self):
        return QuizRunner(make_quiz(allow_back_tracking=True), clock=FakeClock())

    def test_invalid_quiz_rejected(self):
        """Test a runner cannot be built for an invalid quiz."""
        quiz = make_quiz()
        quiz.nodes[1].transitions[0].next_node_id = "missing"

        with pytest.raises(SchemaError):
            QuizRunner(quiz)

    def test_start(self, runner):
        """Test a new run begins at the start node."""
        state = runner.start()

        assert state.current_node_id == "A"
        assert state.visited_nodes == ["A"]
        assert state.status == RunStatus.RUNNING
        assert state.responses == {}

    def test_end_to_end(self, runner):
        """Test A -> B -> C with age 20."""
        state = runner.start()

        result = runner.submit_answer(state, "age", 20)
        assert result.outcome == StepOutcome.ACCEPTED
        assert result.response.is_valid is True

        result = runner.advance(state)
        assert result.outcome == StepOutcome.ADVANCED
        assert state.current_node_id == "B"

        result = runner.advance(state)
        assert result.outcome == StepOutcome.COMPLETED
        assert state.current_node_id == "C"
        assert state.completed is True
        assert state.end_node_id == "C"
        assert state.visited_nodes == ["A", "B", "C"]
        assert state.status == RunStatus.COMPLETED

    def test_no_match_blocks(self, runner):
        """Test a non-matching answer leaves the state unchanged."""
        state = runner.start()
        runner.submit_answer(state, "age", 12)
        before = state.to_dict()

        result = runner.advance(state)

        assert result.outcome == StepOutcome.BLOCKED
        assert result.ok is False
        assert state.to_dict() == before

    def test_back_tracking(self, runner):
        """Test going back keeps earlier answers."""
        state = runner.start()
        runner.submit_answer(state, "age", 20)
        runner.advance(state)

        result = runner.go_back(state)

        assert result.outcome == StepOutcome.BACKTRACKED
        assert state.current_node_id == "A"
        assert state.visited_nodes == ["A"]
        assert state.responses["age"].value == 20

    def test_back_tracking_disabled(self):
        """Test go_back is rejected when the quiz disallows it."""
        runner = QuizRunner(make_quiz(allow_back_tracking=False))
        state = runner.start()
        runner.submit_answer(state, "age", 20)
        runner.advance(state)

        result = runner.go_back(state)

        assert result.outcome == StepOutcome.REJECTED
        assert state.current_node_id == "B"

    def test_back_at_start(self, runner):
        """Test go_back is rejected at the first node."""
        state = runner.start()

        assert runner.go_back(state).outcome == StepOutcome.REJECTED

    def test_completed_is_terminal(self, runner):
        """Test every operation is rejected once completed."""
        state = runner.start()
        runner.submit_answer(state, "age", 20)
        runner.advance(state)
        runner.advance(state)
        before = state.to_dict()

        assert runner.submit_answer(state, "name", "Ada").outcome == StepOutcome.REJECTED
        assert runner.advance(state).outcome == StepOutcome.REJECTED
        assert runner.go_back(state).outcome == StepOutcome.REJECTED
        assert state.to_dict() == before

    def test_raise_for_outcome(self, runner):
        """Test rejected results can be raised."""
        state = runner.start()

        with pytest.raises(InvalidOperationError):
            runner.go_back(state).raise_for_outcome()

        assert runner.submit_answer(state, "age", 20).raise_for_outcome().ok is True

    def test_invalid_answer_stored(self, runner):
        """Test invalid answers are kept with their errors."""
        state = runner.start()

        result = runner.submit_answer(state, "age", "twenty")

        assert result.outcome == StepOutcome.ACCEPTED
        assert state.responses["age"].is_valid is False
        assert state.responses["age"].validation_errors == ["'Age' must be a number"]

    def test_overwrite_answer(self, runner):
        """Test re-answering replaces the previous response."""
        state = runner.start()
        runner.submit_answer(state, "age", 10)
        runner.submit_answer(state, "age", 30)

        assert state.responses["age"].value == 30
        assert len(state.responses) == 1

    def test_timestamps(self, runner):
        """Test last_updated moves with each operation."""
        state = runner.start()
        started = state.last_updated

        runner.submit_answer(state, "age", 20)

        assert state.last_updated > started
        assert state.responses["age"].timestamp == state.last_updated

    def test_question_not_on_node(self, runner):
        """Test answers only go to questions on the current node."""
        state = runner.start()

        result = runner.submit_answer(state, "name", "Ada")

        assert result.outcome == StepOutcome.REJECTED
        assert state.responses == {}

    def test_required_blocks_advance(self, runner):
        """Test missing required answers block advance."""
        state = runner.start()

        result = runner.advance(state)

        assert result.outcome == StepOutcome.BLOCKED
        assert result.errors == ["'age' is required"]
        assert runner.missing_required(state) == ["age"]

    def test_invalid_required_blocks_advance(self, runner):
        """Test an invalid required answer blocks advance."""
        state = runner.start()
        runner.submit_answer(state, "age", "old")

        assert runner.advance(state).outcome == StepOutcome.BLOCKED

    def test_lenient_mode(self):
        """Test required answers are not enforced in lenient mode."""
        quiz = make_quiz()
        quiz.nodes[0].transitions.append(Transition(next_node_id="B"))
        runner = QuizRunner(quiz, cfg=Config.lenient_mode())
        state = runner.start()

        result = runner.advance(state)

        assert result.outcome == StepOutcome.ADVANCED
        assert state.current_node_id == "B"

    def test_preview_next(self, runner):
        """Test preview does not move the run."""
        state = runner.start()
        runner.submit_answer(state, "age", 20)

        assert runner.preview_next(state) == "B"
        assert state.current_node_id == "A"

    def test_state_for_other_quiz(self, runner):
        """Test a state from another quiz is rejected."""
        state = runner.start()
        state.quiz_id = "other"

        assert runner.advance(state).outcome == StepOutcome.REJECTED

    def test_start_is_end(self):
        """Test a single-node quiz completes in place."""
        quiz = Quiz(
            id="one",
            title="One",
            version="1",
            nodes=[QuizNode(id="only", title="Only", is_start=True, is_end=True)],
        )
        runner = QuizRunner(quiz)
        state = runner.start()

        result = runner.advance(state)

        assert result.outcome == StepOutcome.COMPLETED
        assert state.visited_nodes == ["only"]
        assert state.end_node_id == "only"


class TestQuizState:
    """Tests for QuizState serialization."""

    def test_round_trip(self):
        """Test to_dict / from_dict preserves everything."""
        runner = QuizRunner(make_quiz(), clock=FakeClock())
        state = runner.start()
        runner.submit_answer(state, "age", 20)
        runner.advance(state)
        runner.submit_answer(state, "start", date(2024, 9, 1))

        data = state.to_dict()
        restored = QuizState.from_dict(data)

        assert data["currentNodeId"] == "B"
        assert data["visitedNodes"] == ["A", "B"]
        assert restored == state
        assert restored.responses["start"].value == date(2024, 9, 1)

    def test_resume_after_round_trip(self):
        """Test a restored state keeps running."""
        runner = QuizRunner(make_quiz())
        state = runner.start()
        runner.submit_answer(state, "age", 20)

        restored = QuizState.from_dict(state.to_dict())

        assert runner.advance(restored).outcome == StepOutcome.ADVANCED


class TestRunAnswers:
    """Tests for run_answers replay."""

    def test_completes(self):
        """Test replaying answers to completion."""
        result = run_answers(make_quiz(), {"age": 40, "name": "Ada"})

        assert result.outcome == StepOutcome.COMPLETED
        assert result.state.visited_nodes == ["A", "B", "C"]
        assert result.state.answers == {"age": 40, "name": "Ada"}

    def test_stops_when_blocked(self):
        """Test replay stops at the first block."""
        result = run_answers(make_quiz(), {"age": 5})

        assert result.outcome == StepOutcome.BLOCKED
        assert result.state.current_node_id == "A"

    def test_step_limit(self):
        """Test a cycle stops after the configured number of steps."""
        quiz = make_quiz()
        quiz.nodes[1].transitions.insert(0, Transition(next_node_id="A"))
        cfg = Config()
        cfg.engine.max_replay_steps = 5

        result = run_answers(quiz, {"age": 40}, cfg=cfg)

        assert result.outcome == StepOutcome.BLOCKED
        assert "stopped after 5 steps" in result.message
        assert result.state.completed is False
