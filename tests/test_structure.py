"""
Tests for whole-quiz structural validation.
"""

import logging

import pytest

from quizflow.errors import SchemaError
from quizflow.quiz.graph import Condition, ConditionOperator, Quiz, QuizNode, Transition
from quizflow.quiz.schema import (
    NumberQuestion,
    NumberValidation,
    QuizOption,
    SelectQuestion,
    TextQuestion,
    TextValidation,
)
from quizflow.rules.structure import check_quiz, ensure_valid_quiz, validate_quiz


def make_quiz() -> Quiz:
    """Valid A(start) -> B -> C(end) quiz."""
    return Quiz(
        id="demo",
        title="Demo",
        version="1",
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
                title="Name",
                questions=[TextQuestion(id="name", label="Name")],
                transitions=[Transition(next_node_id="C")],
            ),
            QuizNode(id="C", title="Done", is_end=True),
        ],
    )


def messages(report) -> list[str]:
    return [i.message for i in report.errors]


class TestCheckQuiz:
    """Tests for check_quiz."""

    def test_valid(self):
        """Test a well-formed quiz passes without warnings."""
        report = check_quiz(make_quiz())

        assert report.is_valid is True
        assert report.issues == []

    def test_dangling_reference_then_fixed(self):
        """Test an unknown nextNodeId is rejected and accepted once fixed."""
        quiz = make_quiz()
        quiz.nodes[1].transitions[0].next_node_id = "Z"

        report = check_quiz(quiz)
        assert report.is_valid is False
        assert any("unknown node 'Z'" in m for m in messages(report))

        quiz.nodes[1].transitions[0].next_node_id = "C"
        assert check_quiz(quiz).is_valid is True

    def test_no_nodes(self):
        """Test empty quiz."""
        quiz = Quiz(id="empty", title="Empty", version="1")

        assert messages(check_quiz(quiz)) == ["quiz has no nodes"]

    def test_duplicate_node_ids(self):
        """Test node ids must be unique."""
        quiz = make_quiz()
        quiz.nodes[1].id = "A"

        assert any("node id used 2 times" in m for m in messages(check_quiz(quiz)))

    @pytest.mark.parametrize("starts", [0, 2])
    def test_start_count(self, starts):
        """Test exactly one start node."""
        quiz = make_quiz()
        quiz.nodes[0].is_start = starts > 0
        quiz.nodes[1].is_start = starts > 1

        assert any("exactly one start node" in m for m in messages(check_quiz(quiz)))

    def test_duplicate_question_ids(self):
        """Test question ids are unique across the quiz."""
        quiz = make_quiz()
        quiz.nodes[1].questions.append(TextQuestion(id="age", label="Again"))

        assert any("question id used 2 times" in m for m in messages(check_quiz(quiz)))

    def test_duplicate_option_values(self):
        """Test option values are unique within a question."""
        quiz = make_quiz()
        quiz.nodes[1].questions.append(
            SelectQuestion(id="c", label="C", options=[QuizOption("x", "X"), QuizOption("x", "X2")])
        )

        assert any("duplicate option values" in m for m in messages(check_quiz(quiz)))

    def test_number_and_string_options_distinct(self):
        """Test 1 and "1" are different option values."""
        quiz = make_quiz()
        quiz.nodes[1].questions.append(
            SelectQuestion(id="c", label="C", options=[QuizOption(1, "One"), QuizOption("1", "One")])
        )

        assert check_quiz(quiz).is_valid is True

    def test_empty_options_warn(self):
        """Test a select without options is a warning."""
        quiz = make_quiz()
        quiz.nodes[1].questions.append(SelectQuestion(id="c", label="C"))
        report = check_quiz(quiz)

        assert report.is_valid is True
        assert len(report.warnings) == 1

    def test_rule_sanity(self):
        """Test inverted bounds and bad patterns."""
        quiz = make_quiz()
        quiz.nodes[1].questions = [
            TextQuestion(id="name", label="Name", validation=TextValidation(pattern="(")),
            NumberQuestion(id="n", label="N", validation=NumberValidation(min=5, max=1, step=0)),
        ]
        errors = messages(check_quiz(quiz))

        assert any("invalid regex" in m for m in errors)
        assert any("minimum is greater than its maximum" in m for m in errors)
        assert any("step must be positive" in m for m in errors)

    def test_unknown_condition_question(self):
        """Test conditions must reference a known question."""
        quiz = make_quiz()
        quiz.nodes[0].transitions[0].conditions[0].question_id = "ghost"

        assert any("unknown question 'ghost'" in m for m in messages(check_quiz(quiz)))

    def test_between_needs_upper_bound(self):
        """Test BETWEEN without additionalValue is a schema error."""
        quiz = make_quiz()
        quiz.nodes[0].transitions[0].conditions = [Condition("age", ConditionOperator.BETWEEN, 18)]

        assert any("upper bound" in m for m in messages(check_quiz(quiz)))

    def test_ordered_operator_needs_number(self):
        """Test GREATER_THAN with a string bound is rejected."""
        quiz = make_quiz()
        quiz.nodes[0].transitions[0].conditions[0].value = "18"

        assert any("number or date bounds" in m for m in messages(check_quiz(quiz)))

    def test_string_operator_accepted(self):
        """Test plain string operators are normalized."""
        quiz = make_quiz()
        quiz.nodes[0].transitions[0].conditions[0].operator = "greaterThan"

        assert check_quiz(quiz).is_valid is True

    def test_unknown_operator(self):
        """Test operators outside the enum are rejected."""
        quiz = make_quiz()
        quiz.nodes[0].transitions[0].conditions[0].operator = "startsWith"

        assert any("Not a valid operation" in m for m in messages(check_quiz(quiz)))

    def test_no_end_node(self):
        """Test a quiz needs an end node."""
        quiz = make_quiz()
        quiz.nodes[2].is_end = False

        assert "quiz has no end node" in messages(check_quiz(quiz))

    def test_end_unreachable(self):
        """Test an end node must be reachable from the start."""
        quiz = make_quiz()
        quiz.nodes[1].transitions[0].next_node_id = "A"

        errors = messages(check_quiz(quiz))
        assert any("no end node is reachable" in m for m in errors)

    def test_unreachable_node_warns(self):
        """Test orphan nodes are warnings."""
        quiz = make_quiz()
        quiz.nodes.append(QuizNode(id="orphan", title="Orphan", is_end=True))
        report = check_quiz(quiz)

        assert report.is_valid is True
        assert any("unreachable" in i.message for i in report.warnings)

    def test_to_dict(self):
        """Test report serialization."""
        data = check_quiz(make_quiz()).to_dict()

        assert data["quiz_id"] == "demo"
        assert data["valid"] is True


class TestValidateQuiz:
    """Tests for validate_quiz and ensure_valid_quiz."""

    def test_validate_quiz_logs(self, caplog):
        """Test failures are logged."""
        quiz = make_quiz()
        quiz.nodes[1].transitions[0].next_node_id = "Z"

        with caplog.at_level(logging.ERROR, logger="quizflow.rules.structure"):
            assert validate_quiz(quiz) is False

        assert "Quiz validation failed" in caplog.text

    def test_ensure_valid_raises(self):
        """Test invalid quizzes raise with every issue attached."""
        quiz = make_quiz()
        quiz.nodes[1].transitions[0].next_node_id = "Z"

        with pytest.raises(SchemaError) as exc_info:
            ensure_valid_quiz(quiz)

        issues = exc_info.value.errors
        assert any(i.path == "nodes[B].transitions[0].nextNodeId" for i in issues)
        assert "is invalid" in str(exc_info.value)

    def test_ensure_valid_returns_report(self):
        """Test valid quizzes return their report."""
        assert ensure_valid_quiz(make_quiz()).is_valid is True
