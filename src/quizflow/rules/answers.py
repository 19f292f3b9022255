"""
Answer validation

Checks a submitted value against its question's kind and validation rule.
Pure functions: the caller folds the result into a QuestionResponse.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import Config, config
from ..quiz.schema import (
    Question,
    QuestionType,
    SignatureCapture,
    UploadedFile,
    ValueKind,
    as_instant,
    expected_value_kind,
    is_date,
    is_number,
)


@dataclass
class AnswerValidation:
    """Outcome of validating one answer. Unpacks as (is_valid, errors)."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def __iter__(self):
        return iter((self.is_valid, self.errors))


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if isinstance(value, SignatureCapture):
        return not value.data.strip()
    return False


def _is_finite(value: Any) -> bool:
    # Ints beyond float range overflow here
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _matches_kind(kind: ValueKind, value: Any) -> bool:
    if kind == ValueKind.STRING:
        return isinstance(value, str)
    if kind == ValueKind.NUMBER:
        return is_number(value) and _is_finite(value)
    if kind == ValueKind.BOOLEAN:
        return isinstance(value, bool)
    if kind == ValueKind.DATE:
        return is_date(value)
    if kind == ValueKind.OPTION:
        return isinstance(value, str) or is_number(value)
    if kind == ValueKind.OPTION_LIST:
        return isinstance(value, list) and all(isinstance(v, str) or is_number(v) for v in value)
    if kind == ValueKind.FILE:
        return isinstance(value, UploadedFile)
    if kind == ValueKind.FILE_LIST:
        return isinstance(value, list) and all(isinstance(v, UploadedFile) for v in value)
    if kind == ValueKind.SIGNATURE:
        return isinstance(value, (str, SignatureCapture))
    return False


_KIND_NAMES = {
    ValueKind.STRING: "text",
    ValueKind.NUMBER: "a number",
    ValueKind.BOOLEAN: "true or false",
    ValueKind.DATE: "a date",
    ValueKind.OPTION: "one of the options",
    ValueKind.OPTION_LIST: "a list of options",
    ValueKind.FILE: "a file",
    ValueKind.FILE_LIST: "a list of files",
    ValueKind.SIGNATURE: "a signature",
}


# =============================================================================
# PER-KIND RULES
# =============================================================================

def _check_text(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    name = question.label
    errors = []
    if rule.min_length is not None and len(value) < rule.min_length:
        errors.append(f"'{name}' must be at least {rule.min_length} characters")
    if rule.max_length is not None and len(value) > rule.max_length:
        errors.append(f"'{name}' must be at most {rule.max_length} characters")
    if rule.pattern:
        try:
            matched = re.search(rule.pattern, value) is not None
        except re.error:
            matched = False
        if not matched:
            errors.append(rule.pattern_error or f"'{name}' is not in the expected format")
    return errors


def _check_number(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    name = question.label
    errors = []
    if rule.min is not None and value < rule.min:
        errors.append(f"'{name}' must be at least {rule.min}")
    if rule.max is not None and value > rule.max:
        errors.append(f"'{name}' must be at most {rule.max}")
    if rule.integer and not (isinstance(value, int) or value.is_integer()):
        errors.append(f"'{name}' must be a whole number")
    if rule.step:
        base = rule.min if rule.min is not None else 0
        steps = (value - base) / rule.step
        off_step = not math.isfinite(steps) or abs(steps - round(steps)) > cfg.validation.step_tolerance
        if off_step:
            errors.append(f"'{name}' must be in steps of {rule.step}")
    return errors


def _option_equals(option_value: Any, value: Any) -> bool:
    if isinstance(option_value, str) or isinstance(value, str):
        return option_value == value
    return is_number(option_value) and is_number(value) and option_value == value


def _check_options(question, values: list, errors: list[str]):
    for value in values:
        option = next((o for o in question.options if _option_equals(o.value, value)), None)
        if option is None:
            errors.append(f"Invalid value for '{question.label}': {value}")
        elif option.disabled:
            errors.append(f"Option '{option.label}' is not available for '{question.label}'")


def _check_select(question, value, cfg: Config) -> list[str]:
    errors = []
    _check_options(question, [value], errors)
    return errors


def _check_selection(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    name = question.label
    errors = []
    count = len(value)
    if rule.min_selected is not None and count < rule.min_selected:
        errors.append(f"Select at least {rule.min_selected} for '{name}'")
    if rule.max_selected is not None and count > rule.max_selected:
        errors.append(f"Select at most {rule.max_selected} for '{name}'")
    _check_options(question, value, errors)
    return errors


def _check_checkbox(question, value, cfg: Config) -> list[str]:
    return []


def _check_date(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    name = question.label
    errors = []
    instant = as_instant(value)
    if rule.min_date is not None and instant < as_instant(rule.min_date):
        errors.append(f"'{name}' must be on or after {rule.min_date.isoformat()}")
    if rule.max_date is not None and instant > as_instant(rule.max_date):
        errors.append(f"'{name}' must be on or before {rule.max_date.isoformat()}")
    if rule.disallowed_dates and any(instant == as_instant(d) for d in rule.disallowed_dates):
        errors.append(f"{value.isoformat()} is not an allowed date for '{name}'")
    return errors


def _check_rating(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    low = rule.min if rule.min is not None else cfg.validation.rating_min
    high = rule.max if rule.max is not None else cfg.validation.rating_max
    if value < low or value > high:
        return [f"'{question.label}' must be between {low:g} and {high:g}"]
    return []


def _type_allowed(upload: UploadedFile, allowed_types: list[str]) -> bool:
    content_type = (upload.content_type or "").lower()
    for allowed in allowed_types:
        allowed = allowed.strip().lower()
        if allowed.startswith("."):
            if upload.extension == allowed:
                return True
        elif allowed.endswith("/*"):
            if content_type.startswith(allowed[:-1]):
                return True
        elif content_type == allowed:
            return True
    return False


def _check_file(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    uploads = value if isinstance(value, list) else [value]
    errors = []
    for upload in uploads:
        if rule.max_size is not None and upload.size > rule.max_size:
            errors.append(f"{upload.name} exceeds the maximum size of {rule.max_size} bytes")
        if rule.allowed_types and not _type_allowed(upload, rule.allowed_types):
            errors.append(f"{upload.name} is not an allowed file type ({', '.join(rule.allowed_types)})")
    return errors


def _check_signature(question, value, cfg: Config) -> list[str]:
    rule = question.rule
    name = question.label
    errors = []
    # Plain string signatures carry no dimensions
    width = value.width if isinstance(value, SignatureCapture) else None
    if width is not None:
        if rule.min_width is not None and width < rule.min_width:
            errors.append(f"Signature for '{name}' must be at least {rule.min_width} wide")
        if rule.max_width is not None and width > rule.max_width:
            errors.append(f"Signature for '{name}' must be at most {rule.max_width} wide")
    return errors


_RULE_CHECKS = {
    QuestionType.TEXT: _check_text,
    QuestionType.NUMBER: _check_number,
    QuestionType.SELECT: _check_select,
    QuestionType.MULTI_SELECT: _check_selection,
    QuestionType.CHECKBOX: _check_checkbox,
    QuestionType.CHECKBOX_GROUP: _check_selection,
    QuestionType.DATE: _check_date,
    QuestionType.RATING: _check_rating,
    QuestionType.FILE: _check_file,
    QuestionType.SIGNATURE: _check_signature,
}

assert set(_RULE_CHECKS) == set(QuestionType), "every question kind needs a rule check"


def is_required(question: Question) -> bool:
    """True if the question needs a non-empty answer."""
    if question.type == QuestionType.SIGNATURE and question.rule.required:
        return True
    return question.required


def validate_answer(question: Question, value: Any, cfg: Optional[Config] = None) -> AnswerValidation:
    """
    Validate an answer against its question.

    Checks run in order and accumulate: value shape, required-ness, then
    the kind's rule (only when the shape matched). An empty answer to an
    optional question is valid. A required checkbox must be checked.

    Args:
        question: Question being answered
        value: Candidate value
        cfg: Config override (defaults to the global config)

    Returns:
        AnswerValidation with is_valid and the list of error messages

    Raises:
        SchemaError: If the question is not a known kind
    """
    cfg = cfg or config
    kind = expected_value_kind(question)
    errors: list[str] = []

    empty = _is_empty(value)
    if not empty and not _matches_kind(kind, value):
        errors.append(f"'{question.label}' must be {_KIND_NAMES[kind]}")

    if is_required(question):
        unchecked = question.type == QuestionType.CHECKBOX and value is False
        if empty or unchecked:
            errors.append(f"'{question.label}' is required")

    if not empty and not errors:
        errors.extend(_RULE_CHECKS[question.type](question, value, cfg))

    return AnswerValidation(is_valid=not errors, errors=errors)
