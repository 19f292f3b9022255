"""
Quiz data model for quizflow

Question kinds, options, validation rules, responses and the node graph.
"""

from .schema import (
    QuestionType,
    ValueKind,
    Question,
    TextQuestion,
    NumberQuestion,
    SelectQuestion,
    MultiSelectQuestion,
    CheckboxQuestion,
    CheckboxGroupQuestion,
    DateQuestion,
    RatingQuestion,
    FileQuestion,
    SignatureQuestion,
    QuizOption,
    TextValidation,
    NumberValidation,
    DateValidation,
    SelectionValidation,
    RatingValidation,
    FileValidation,
    SignatureValidation,
    UploadedFile,
    SignatureCapture,
    QuestionResponse,
    QUESTION_TYPES,
    create_response,
    expected_value_kind,
    question_from_dict,
)
from .graph import (
    ConditionOperator,
    CombinationType,
    Condition,
    Transition,
    QuizNode,
    QuizSettings,
    Quiz,
)

__all__ = [
    # Questions
    "QuestionType",
    "ValueKind",
    "Question",
    "TextQuestion",
    "NumberQuestion",
    "SelectQuestion",
    "MultiSelectQuestion",
    "CheckboxQuestion",
    "CheckboxGroupQuestion",
    "DateQuestion",
    "RatingQuestion",
    "FileQuestion",
    "SignatureQuestion",
    "QuizOption",
    "QUESTION_TYPES",
    "question_from_dict",
    "expected_value_kind",
    # Validation rules
    "TextValidation",
    "NumberValidation",
    "DateValidation",
    "SelectionValidation",
    "RatingValidation",
    "FileValidation",
    "SignatureValidation",
    # Values and responses
    "UploadedFile",
    "SignatureCapture",
    "QuestionResponse",
    "create_response",
    # Graph
    "ConditionOperator",
    "CombinationType",
    "Condition",
    "Transition",
    "QuizNode",
    "QuizSettings",
    "Quiz",
]
