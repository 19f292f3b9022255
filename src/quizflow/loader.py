"""
Loading quizzes and answers from JSON

Turns wire documents into model objects. Answer values arrive as plain JSON,
so values for date, file and signature questions are converted here.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

from .errors import SchemaError
from .quiz.graph import Quiz
from .quiz.schema import (
    Question,
    QuestionType,
    SignatureCapture,
    UploadedFile,
    parse_date,
)


logger = logging.getLogger(__name__)


def _read_json(source: Union[str, Path]) -> Any:
    path = Path(source)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaError(f"{path} is not valid JSON: {e}", path=str(path))


def load_quiz(source: Union[str, Path, dict]) -> Quiz:
    """
    Load a quiz from a JSON file path or an already-decoded dict.

    The quiz is parsed but not structurally checked; use
    rules.structure.check_quiz or build a QuizRunner for that.

    Raises:
        SchemaError: If the document does not match the quiz schema
        OSError: If the file cannot be read
    """
    data = source if isinstance(source, dict) else _read_json(source)
    quiz = Quiz.from_dict(data)
    logger.debug(f"Loaded quiz {quiz.id} v{quiz.version} with {len(quiz.nodes)} nodes")
    return quiz


def _to_upload(raw: Any) -> Any:
    if isinstance(raw, dict) and "name" in raw:
        return UploadedFile.from_dict(raw)
    return raw


def coerce_answer_value(question: Question, raw: Any) -> Any:
    """
    Convert a JSON answer value into the shape its question expects.

    Values that cannot be converted are returned unchanged so answer
    validation reports them.
    """
    if raw is None:
        return None
    if question.type == QuestionType.DATE and isinstance(raw, str):
        try:
            return parse_date(raw)
        except SchemaError:
            return raw
    if question.type == QuestionType.FILE:
        if isinstance(raw, list):
            return [_to_upload(r) for r in raw]
        return _to_upload(raw)
    if question.type == QuestionType.SIGNATURE and isinstance(raw, dict):
        return SignatureCapture.from_dict(raw)
    return raw


def load_answers(source: Union[str, Path, dict], quiz: Quiz) -> dict[str, Any]:
    """
    Load a question id -> value mapping, coercing values per question kind.

    Answers to questions the quiz does not define are dropped with a warning.
    """
    data = source if isinstance(source, dict) else _read_json(source)
    if not isinstance(data, dict):
        raise SchemaError("answers must be an object of question id -> value")

    answers = {}
    for question_id, raw in data.items():
        question = quiz.find_question(question_id)
        if question is None:
            logger.warning(f"Ignoring answer for unknown question {question_id!r}")
            continue
        answers[question_id] = coerce_answer_value(question, raw)
    return answers
