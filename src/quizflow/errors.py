"""
Exceptions for quizflow

Schema problems are fatal to loading a quiz. Everything that can go wrong
during a run is reported through StepResult outcomes instead.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class SchemaIssue:
    """A single problem found in a quiz definition."""
    path: str
    message: str
    severity: str = "error"  # "error" or "warning"

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self):
        return f"{self.path}: {self.message}"

    def to_dict(self) -> dict:
        return {"path": self.path, "message": self.message, "severity": self.severity}


class QuizError(Exception):
    """Base exception for quizflow errors."""
    pass


class SchemaError(QuizError):
    """A quiz, node, question or condition failed structural validation."""

    def __init__(self, message: str, issues: Optional[list[SchemaIssue]] = None, path: str = ""):
        if issues is None:
            issues = [SchemaIssue(path=path or "$", message=message)]
        self.issues = issues
        super().__init__(message)

    @property
    def errors(self) -> list[SchemaIssue]:
        return [i for i in self.issues if i.is_error]


class InvalidOperationError(QuizError):
    """A run operation was rejected (completed run, back-tracking disabled, ...)."""
    pass
