"""
quizflow: branching questionnaire engine.

Validates answers per question kind, evaluates conditional transitions and
steps a run through a graph of question nodes.
"""

__version__ = "0.1.0"

from .config import config, Config
from .errors import QuizError, SchemaError, InvalidOperationError, SchemaIssue
from .loader import load_quiz, load_answers
from .quiz import Quiz, QuizNode, Transition, Condition, QuestionResponse
from .rules import (
    validate_answer,
    evaluate_condition,
    evaluate_transition,
    resolve_next_node,
    check_quiz,
    validate_quiz,
)
from .runner import (
    QuizRunner,
    QuizState,
    RunStatus,
    StepOutcome,
    StepResult,
    run_answers,
)

__all__ = [
    # Config
    "config",
    "Config",
    # Errors
    "QuizError",
    "SchemaError",
    "InvalidOperationError",
    "SchemaIssue",
    # Loading
    "load_quiz",
    "load_answers",
    # Model
    "Quiz",
    "QuizNode",
    "Transition",
    "Condition",
    "QuestionResponse",
    # Rules
    "validate_answer",
    "evaluate_condition",
    "evaluate_transition",
    "resolve_next_node",
    "check_quiz",
    "validate_quiz",
    # Runner
    "QuizRunner",
    "QuizState",
    "RunStatus",
    "StepOutcome",
    "StepResult",
    "run_answers",
]
