"""
Question schema and data structures

Defines the ten question kinds, their validation rules, the value shapes
they accept and the response records stored during a run.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from ..errors import SchemaError


class QuestionType(str, Enum):
    """Kinds of quiz questions."""
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multiSelect"
    CHECKBOX = "checkbox"
    CHECKBOX_GROUP = "checkboxGroup"
    DATE = "date"
    RATING = "rating"
    FILE = "file"
    SIGNATURE = "signature"


class ValueKind(str, Enum):
    """Shape of the value a question accepts."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OPTION = "option"  # str or number matching an option value
    OPTION_LIST = "option_list"
    FILE = "file"
    FILE_LIST = "file_list"
    SIGNATURE = "signature"


# =============================================================================
# VALUE HELPERS
# =============================================================================

def is_number(value: Any) -> bool:
    """True for ints and floats, never for bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_date(value: Any) -> bool:
    return isinstance(value, (date, datetime))


def as_instant(value: Union[date, datetime]) -> datetime:
    """
    Normalize a date or datetime to an aware UTC datetime.

    Plain dates become midnight UTC; naive datetimes are assumed to be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def parse_date(value: Any, path: str = "$") -> Union[date, datetime]:
    """Parse an ISO date or datetime string (dates and datetimes pass through)."""
    if is_date(value):
        return value
    if not isinstance(value, str):
        raise SchemaError(f"expected an ISO date, got {value!r}", path=path)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text)
    except ValueError:
        raise SchemaError(f"invalid ISO date {value!r}", path=path)


@dataclass
class UploadedFile:
    """A file submitted to a file question."""
    name: str
    size: int
    content_type: str = ""

    @property
    def extension(self) -> str:
        if "." not in self.name:
            return ""
        return "." + self.name.rsplit(".", 1)[-1].lower()

    def to_dict(self) -> dict:
        return {"name": self.name, "size": self.size, "type": self.content_type}

    @classmethod
    def from_dict(cls, data: dict) -> "UploadedFile":
        return cls(name=data["name"], size=data.get("size", 0), content_type=data.get("type", ""))


@dataclass
class SignatureCapture:
    """A captured signature with the dimensions it was drawn at."""
    data: str
    width: Optional[float] = None
    height: Optional[float] = None

    def to_dict(self) -> dict:
        return {"data": self.data, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict) -> "SignatureCapture":
        return cls(data=data.get("data", ""), width=data.get("width"), height=data.get("height"))


def encode_value(value: Any) -> Any:
    """Encode an answer value into JSON-safe, type-tagged form."""
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, UploadedFile):
        return {"$file": value.to_dict()}
    if isinstance(value, SignatureCapture):
        return {"$signature": value.to_dict()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if isinstance(value, dict) and len(value) == 1:
        tag, payload = next(iter(value.items()))
        if tag == "$datetime":
            return datetime.fromisoformat(payload)
        if tag == "$date":
            return date.fromisoformat(payload)
        if tag == "$file":
            return UploadedFile.from_dict(payload)
        if tag == "$signature":
            return SignatureCapture.from_dict(payload)
    return value


# =============================================================================
# WIRE PARSING
# =============================================================================

def _check_type(value: Any, kind: str) -> bool:
    if kind == "str":
        return isinstance(value, str)
    if kind == "number":
        return is_number(value)
    if kind == "bool":
        return isinstance(value, bool)
    if kind == "str_list":
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if kind == "list":
        return isinstance(value, list)
    if kind == "dict":
        return isinstance(value, dict)
    if kind == "option_value":
        return isinstance(value, str) or is_number(value)
    return True


def read_field(data: dict, key: str, kind: str, path: str, required: bool = False, default: Any = None) -> Any:
    """
    Read one field from a wire dict, checking its type.

    Args:
        data: Source dict
        key: Wire (camelCase) key
        kind: Type token ("str", "number", "bool", "str_list", "list", "dict", "date", "date_list")
        path: Path of the containing object, for error messages
        required: Raise when the key is missing
        default: Returned when the key is missing or null

    Raises:
        SchemaError: If the field is missing (and required) or has the wrong type
    """
    field_path = f"{path}.{key}"
    if data.get(key) is None:
        if required:
            raise SchemaError(f"missing required field '{key}'", path=field_path)
        return default

    value = data[key]
    if kind == "date":
        return parse_date(value, field_path)
    if kind == "date_list":
        if not isinstance(value, list):
            raise SchemaError(f"'{key}' must be a list of dates", path=field_path)
        return [parse_date(v, f"{field_path}[{i}]") for i, v in enumerate(value)]
    if not _check_type(value, kind):
        raise SchemaError(f"'{key}' has invalid type {type(value).__name__}, expected {kind}", path=field_path)
    return value


def _wire_value(value: Any) -> Any:
    if is_date(value):
        return value.isoformat()
    if isinstance(value, list):
        return [_wire_value(v) for v in value]
    return value


# =============================================================================
# OPTIONS AND VALIDATION RULES
# =============================================================================

@dataclass
class QuizOption:
    """An option for select-type questions."""
    value: Union[str, int, float]
    label: str
    disabled: bool = False

    def to_dict(self) -> dict:
        result = {"value": self.value, "label": self.label}
        if self.disabled:
            result["disabled"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "$") -> "QuizOption":
        if not isinstance(data, dict):
            raise SchemaError("option must be an object", path=path)
        return cls(
            value=read_field(data, "value", "option_value", path, required=True),
            label=read_field(data, "label", "str", path, required=True),
            disabled=read_field(data, "disabled", "bool", path, default=False),
        )


@dataclass
class Rule:
    """
    Base for per-kind validation rules.

    WIRE_FIELDS maps attribute name -> (camelCase key, type token).
    """
    WIRE_FIELDS: ClassVar[dict[str, tuple[str, str]]] = {}

    def to_dict(self) -> dict:
        result = {}
        for attr, (key, _) in self.WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[key] = _wire_value(value)
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "$"):
        if not isinstance(data, dict):
            raise SchemaError("validation must be an object", path=path)
        kwargs = {
            attr: read_field(data, key, kind, path)
            for attr, (key, kind) in cls.WIRE_FIELDS.items()
        }
        return cls(**{k: v for k, v in kwargs.items() if v is not None})


@dataclass
class TextValidation(Rule):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None  # regex
    pattern_error: Optional[str] = None  # custom message for pattern failures

    WIRE_FIELDS: ClassVar[dict] = {
        "min_length": ("minLength", "number"),
        "max_length": ("maxLength", "number"),
        "pattern": ("pattern", "str"),
        "pattern_error": ("patternError", "str"),
    }


@dataclass
class NumberValidation(Rule):
    min: Optional[float] = None
    max: Optional[float] = None
    integer: Optional[bool] = None
    step: Optional[float] = None

    WIRE_FIELDS: ClassVar[dict] = {
        "min": ("min", "number"),
        "max": ("max", "number"),
        "integer": ("integer", "bool"),
        "step": ("step", "number"),
    }


@dataclass
class DateValidation(Rule):
    min_date: Optional[Union[date, datetime]] = None
    max_date: Optional[Union[date, datetime]] = None
    disallowed_dates: Optional[list] = None

    WIRE_FIELDS: ClassVar[dict] = {
        "min_date": ("minDate", "date"),
        "max_date": ("maxDate", "date"),
        "disallowed_dates": ("disallowedDates", "date_list"),
    }


@dataclass
class SelectionValidation(Rule):
    """Selected-count bounds for multiSelect and checkboxGroup."""
    min_selected: Optional[int] = None
    max_selected: Optional[int] = None

    WIRE_FIELDS: ClassVar[dict] = {
        "min_selected": ("minSelected", "number"),
        "max_selected": ("maxSelected", "number"),
    }


@dataclass
class RatingValidation(Rule):
    """Rating bounds; unset bounds fall back to config (1 and 5)."""
    min: Optional[float] = None
    max: Optional[float] = None

    WIRE_FIELDS: ClassVar[dict] = {
        "min": ("min", "number"),
        "max": ("max", "number"),
    }


@dataclass
class FileValidation(Rule):
    max_size: Optional[int] = None  # bytes
    allowed_types: Optional[list[str]] = None  # mime types, "type/*" or ".ext"

    WIRE_FIELDS: ClassVar[dict] = {
        "max_size": ("maxSize", "number"),
        "allowed_types": ("allowedTypes", "str_list"),
    }


@dataclass
class SignatureValidation(Rule):
    min_width: Optional[float] = None
    max_width: Optional[float] = None
    required: Optional[bool] = None

    WIRE_FIELDS: ClassVar[dict] = {
        "min_width": ("minWidth", "number"),
        "max_width": ("maxWidth", "number"),
        "required": ("required", "bool"),
    }


# =============================================================================
# QUESTIONS
# =============================================================================

QUESTION_TYPES: dict[QuestionType, type] = {}


def register_question(cls):
    """Class decorator adding a question kind to the registry."""
    QUESTION_TYPES[cls.type] = cls
    return cls


@dataclass
class Question:
    """
    Fields shared by every question kind.

    Subclasses set `type`, optionally `rule_class`, and list their extra
    wire fields in EXTRA_FIELDS as attribute name -> (camelCase key, type token).
    """
    id: str
    label: str
    description: Optional[str] = None
    required: bool = False

    type: ClassVar[QuestionType]
    rule_class: ClassVar[Optional[type]] = None
    EXTRA_FIELDS: ClassVar[dict[str, tuple[str, str]]] = {}

    @property
    def rule(self):
        """The question's validation rule, or an empty one."""
        validation = getattr(self, "validation", None)
        if validation is not None:
            return validation
        return self.rule_class() if self.rule_class else None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "required": self.required,
        }
        if self.description:
            result["description"] = self.description
        for attr, (key, _) in self.EXTRA_FIELDS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if key == "options":
                result[key] = [o.to_dict() for o in value]
            else:
                result[key] = _wire_value(value)
        validation = getattr(self, "validation", None)
        if validation is not None:
            result["validation"] = validation.to_dict()
        return result

    @classmethod
    def _from_dict(cls, data: dict, path: str) -> "Question":
        kwargs = {
            "id": read_field(data, "id", "str", path, required=True),
            "label": read_field(data, "label", "str", path, required=True),
            "description": read_field(data, "description", "str", path),
            "required": read_field(data, "required", "bool", path, default=False),
        }
        for attr, (key, kind) in cls.EXTRA_FIELDS.items():
            if kind == "options":
                raw = read_field(data, key, "list", path, required=True)
                kwargs[attr] = [
                    QuizOption.from_dict(o, f"{path}.{key}[{i}]") for i, o in enumerate(raw)
                ]
                continue
            value = read_field(data, key, kind, path)
            if value is not None:
                kwargs[attr] = value
        if cls.rule_class is not None:
            raw_rule = read_field(data, "validation", "dict", path)
            if raw_rule is not None:
                kwargs["validation"] = cls.rule_class.from_dict(raw_rule, f"{path}.validation")
        return cls(**kwargs)


@register_question
@dataclass
class TextQuestion(Question):
    validation: Optional[TextValidation] = None
    placeholder: Optional[str] = None
    default_value: Optional[str] = None

    type: ClassVar[QuestionType] = QuestionType.TEXT
    rule_class: ClassVar[type] = TextValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "placeholder": ("placeholder", "str"),
        "default_value": ("defaultValue", "str"),
    }


@register_question
@dataclass
class NumberQuestion(Question):
    validation: Optional[NumberValidation] = None
    placeholder: Optional[str] = None
    default_value: Optional[float] = None

    type: ClassVar[QuestionType] = QuestionType.NUMBER
    rule_class: ClassVar[type] = NumberValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "placeholder": ("placeholder", "str"),
        "default_value": ("defaultValue", "number"),
    }


@register_question
@dataclass
class SelectQuestion(Question):
    options: list[QuizOption] = field(default_factory=list)
    default_value: Optional[str] = None
    placeholder: Optional[str] = None

    type: ClassVar[QuestionType] = QuestionType.SELECT
    EXTRA_FIELDS: ClassVar[dict] = {
        "options": ("options", "options"),
        "default_value": ("defaultValue", "option_value"),
        "placeholder": ("placeholder", "str"),
    }


@register_question
@dataclass
class MultiSelectQuestion(Question):
    options: list[QuizOption] = field(default_factory=list)
    validation: Optional[SelectionValidation] = None
    default_value: Optional[list[str]] = None
    placeholder: Optional[str] = None

    type: ClassVar[QuestionType] = QuestionType.MULTI_SELECT
    rule_class: ClassVar[type] = SelectionValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "options": ("options", "options"),
        "default_value": ("defaultValue", "list"),
        "placeholder": ("placeholder", "str"),
    }


@register_question
@dataclass
class CheckboxQuestion(Question):
    default_value: Optional[bool] = None

    type: ClassVar[QuestionType] = QuestionType.CHECKBOX
    EXTRA_FIELDS: ClassVar[dict] = {
        "default_value": ("defaultValue", "bool"),
    }


@register_question
@dataclass
class CheckboxGroupQuestion(Question):
    options: list[QuizOption] = field(default_factory=list)
    validation: Optional[SelectionValidation] = None
    default_value: Optional[list[str]] = None

    type: ClassVar[QuestionType] = QuestionType.CHECKBOX_GROUP
    rule_class: ClassVar[type] = SelectionValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "options": ("options", "options"),
        "default_value": ("defaultValue", "list"),
    }


@register_question
@dataclass
class DateQuestion(Question):
    validation: Optional[DateValidation] = None
    default_value: Optional[Union[date, datetime]] = None
    placeholder: Optional[str] = None

    type: ClassVar[QuestionType] = QuestionType.DATE
    rule_class: ClassVar[type] = DateValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "default_value": ("defaultValue", "date"),
        "placeholder": ("placeholder", "str"),
    }


@register_question
@dataclass
class RatingQuestion(Question):
    validation: Optional[RatingValidation] = None
    default_value: Optional[float] = None

    type: ClassVar[QuestionType] = QuestionType.RATING
    rule_class: ClassVar[type] = RatingValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "default_value": ("defaultValue", "number"),
    }


@register_question
@dataclass
class FileQuestion(Question):
    validation: Optional[FileValidation] = None
    multiple: bool = False

    type: ClassVar[QuestionType] = QuestionType.FILE
    rule_class: ClassVar[type] = FileValidation
    EXTRA_FIELDS: ClassVar[dict] = {
        "multiple": ("multiple", "bool"),
    }


@register_question
@dataclass
class SignatureQuestion(Question):
    validation: Optional[SignatureValidation] = None

    type: ClassVar[QuestionType] = QuestionType.SIGNATURE
    rule_class: ClassVar[type] = SignatureValidation


assert set(QUESTION_TYPES) == set(QuestionType), "every question kind needs a class"


_VALUE_KINDS = {
    QuestionType.TEXT: ValueKind.STRING,
    QuestionType.NUMBER: ValueKind.NUMBER,
    QuestionType.SELECT: ValueKind.OPTION,
    QuestionType.MULTI_SELECT: ValueKind.OPTION_LIST,
    QuestionType.CHECKBOX: ValueKind.BOOLEAN,
    QuestionType.CHECKBOX_GROUP: ValueKind.OPTION_LIST,
    QuestionType.DATE: ValueKind.DATE,
    QuestionType.RATING: ValueKind.NUMBER,
    QuestionType.SIGNATURE: ValueKind.SIGNATURE,
}


def expected_value_kind(question: Question) -> ValueKind:
    """
    Get the value shape a question accepts.

    Raises:
        SchemaError: If the question is not one of the registered kinds
    """
    q_type = getattr(question, "type", None)
    question_class = QUESTION_TYPES.get(q_type)
    if question_class is None or not isinstance(question, question_class):
        raise SchemaError(
            f"Unknown question type: {q_type!r}",
            path=f"question[{getattr(question, 'id', '?')}]",
        )
    if q_type == QuestionType.FILE:
        return ValueKind.FILE_LIST if question.multiple else ValueKind.FILE
    return _VALUE_KINDS[q_type]


def question_from_dict(data: dict, path: str = "$") -> Question:
    """Build the right Question subclass from a wire dict."""
    if not isinstance(data, dict):
        raise SchemaError("question must be an object", path=path)
    raw_type = read_field(data, "type", "str", path, required=True)
    try:
        q_type = QuestionType(raw_type)
    except ValueError:
        raise SchemaError(f"Invalid question type: {raw_type!r}", path=f"{path}.type")
    return QUESTION_TYPES[q_type]._from_dict(data, path)


# =============================================================================
# RESPONSES
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class QuestionResponse:
    """Response to a quiz question."""
    question_id: str
    value: Any
    timestamp: datetime = field(default_factory=utcnow)
    is_valid: bool = True
    validation_errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "value": encode_value(self.value),
            "timestamp": self.timestamp.isoformat(),
            "isValid": self.is_valid,
            "validationErrors": list(self.validation_errors),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionResponse":
        return cls(
            question_id=data["questionId"],
            value=decode_value(data.get("value")),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            is_valid=data.get("isValid", True),
            validation_errors=list(data.get("validationErrors") or []),
        )


def create_response(
    question: Question,
    value: Any,
    is_valid: bool = True,
    validation_errors: Optional[list[str]] = None,
    timestamp: Optional[datetime] = None,
) -> QuestionResponse:
    """Build a response for a question, stamped with the current time."""
    return QuestionResponse(
        question_id=question.id,
        value=value,
        timestamp=timestamp or utcnow(),
        is_valid=is_valid,
        validation_errors=list(validation_errors or []),
    )
