"""
Rule evaluation for quizflow

Answer validation, condition evaluation, transition resolution and
whole-quiz structural checks.
"""

from .answers import AnswerValidation, is_required, validate_answer
from .conditions import (
    compare_values,
    evaluate_condition,
    evaluate_transition,
    resolve_next_node,
    values_equal,
)
from .structure import QuizReport, check_quiz, ensure_valid_quiz, validate_quiz

__all__ = [
    "AnswerValidation",
    "validate_answer",
    "is_required",
    "compare_values",
    "values_equal",
    "evaluate_condition",
    "evaluate_transition",
    "resolve_next_node",
    "QuizReport",
    "check_quiz",
    "validate_quiz",
    "ensure_valid_quiz",
]
