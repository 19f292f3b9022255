"""
Tests for loading quizzes and answers from JSON.
"""

import json
import logging
from datetime import date

import pytest

from quizflow.errors import SchemaError
from quizflow.loader import coerce_answer_value, load_answers, load_quiz
from quizflow.quiz.schema import (
    DateQuestion,
    FileQuestion,
    NumberQuestion,
    SignatureCapture,
    SignatureQuestion,
    UploadedFile,
)


QUIZ = {
    "id": "upload",
    "title": "Upload",
    "version": "2",
    "nodes": [
        {
            "id": "start",
            "title": "Start",
            "isStart": True,
            "questions": [
                {"id": "when", "type": "date", "label": "When"},
                {"id": "docs", "type": "file", "label": "Docs", "multiple": True},
            ],
            "transitions": [{"nextNodeId": "end", "conditions": []}],
        },
        {"id": "end", "title": "End", "isEnd": True, "questions": [], "transitions": []},
    ],
}


class TestLoadQuiz:
    """Tests for load_quiz."""

    def test_from_dict(self):
        """Test loading from a decoded document."""
        quiz = load_quiz(QUIZ)

        assert quiz.id == "upload"
        assert len(quiz.nodes) == 2

    def test_from_file(self, tmp_path):
        """Test loading from a path."""
        path = tmp_path / "quiz.json"
        path.write_text(json.dumps(QUIZ))

        assert load_quiz(path).start_node.id == "start"
        assert load_quiz(str(path)).version == "2"

    def test_invalid_json(self, tmp_path):
        """Test malformed JSON becomes a SchemaError."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(SchemaError, match="not valid JSON"):
            load_quiz(path)

    def test_invalid_utf8(self, tmp_path):
        """Test undecodable bytes become a SchemaError."""
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"id": "\xff"}')

        with pytest.raises(SchemaError, match="not valid JSON"):
            load_quiz(path)

    def test_answers_invalid_utf8(self, tmp_path):
        """Test answers files are decoded the same way."""
        path = tmp_path / "answers.json"
        path.write_bytes(b'{"when": "\xfe"}')

        with pytest.raises(SchemaError):
            load_answers(path, load_quiz(QUIZ))

    def test_missing_file(self, tmp_path):
        """Test missing files raise OSError."""
        with pytest.raises(OSError):
            load_quiz(tmp_path / "nope.json")


class TestCoerceAnswerValue:
    """Tests for coerce_answer_value."""

    def test_date(self):
        """Test ISO strings become dates for date questions."""
        q = DateQuestion(id="d", label="D")

        assert coerce_answer_value(q, "2024-02-29") == date(2024, 2, 29)

    def test_bad_date_passes_through(self):
        """Test unparseable dates are left for validation to report."""
        q = DateQuestion(id="d", label="D")

        assert coerce_answer_value(q, "soon") == "soon"

    def test_files(self):
        """Test file dicts become UploadedFile values."""
        q = FileQuestion(id="f", label="F", multiple=True)
        value = coerce_answer_value(q, [{"name": "a.pdf", "size": 3, "type": "application/pdf"}])

        assert value == [UploadedFile("a.pdf", 3, "application/pdf")]

    def test_signature(self):
        """Test signature dicts become SignatureCapture values."""
        q = SignatureQuestion(id="s", label="S")

        assert coerce_answer_value(q, {"data": "xx", "width": 200}) == SignatureCapture("xx", 200)

    def test_other_kinds_untouched(self):
        """Test plain values pass through."""
        q = NumberQuestion(id="n", label="N")

        assert coerce_answer_value(q, 7) == 7
        assert coerce_answer_value(q, None) is None


class TestLoadAnswers:
    """Tests for load_answers."""

    def test_coerces_per_question(self, tmp_path):
        """Test answers are converted per question kind."""
        path = tmp_path / "answers.json"
        path.write_text(json.dumps({"when": "2024-01-05", "docs": [{"name": "x.png", "size": 1}]}))

        answers = load_answers(path, load_quiz(QUIZ))

        assert answers["when"] == date(2024, 1, 5)
        assert answers["docs"][0].name == "x.png"

    def test_unknown_question_dropped(self, caplog):
        """Test answers to unknown questions are ignored with a warning."""
        with caplog.at_level(logging.WARNING, logger="quizflow.loader"):
            answers = load_answers({"ghost": 1}, load_quiz(QUIZ))

        assert answers == {}
        assert "ghost" in caplog.text

    def test_not_an_object(self, tmp_path):
        """Test the answers document must be an object."""
        path = tmp_path / "answers.json"
        path.write_text("[1, 2]")

        with pytest.raises(SchemaError):
            load_answers(path, load_quiz(QUIZ))
