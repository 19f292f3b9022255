"""
Quiz graph structures

Nodes hold questions and ordered, conditional transitions to other nodes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from ..errors import SchemaError
from .schema import (
    Question,
    QuestionType,
    is_date,
    is_number,
    parse_date,
    question_from_dict,
    read_field,
)


class ConditionOperator(str, Enum):
    """Operators a transition condition can use."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    MATCHES = "matches"


class CombinationType(str, Enum):
    """How a transition combines its conditions."""
    AND = "AND"
    OR = "OR"


def _is_primitive(value: Any) -> bool:
    return isinstance(value, (str, bool)) or is_number(value) or is_date(value)


def _is_condition_value(value: Any) -> bool:
    if isinstance(value, list):
        return all(_is_primitive(v) for v in value)
    return _is_primitive(value)


@dataclass
class Condition:
    """A single predicate over one answered question's value."""
    question_id: str
    operator: ConditionOperator
    value: Any
    additional_value: Any = None  # upper bound for BETWEEN

    def to_dict(self) -> dict:
        result = {
            "questionId": self.question_id,
            "operator": self.operator.value,
            "value": _wire(self.value),
        }
        if self.additional_value is not None:
            result["additionalValue"] = _wire(self.additional_value)
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "$") -> "Condition":
        if not isinstance(data, dict):
            raise SchemaError("condition must be an object", path=path)
        raw_operator = read_field(data, "operator", "str", path, required=True)
        try:
            operator = ConditionOperator(raw_operator)
        except ValueError:
            raise SchemaError(f"Not a valid operation: {raw_operator!r}", path=f"{path}.operator")

        if "value" not in data:
            raise SchemaError("missing required field 'value'", path=f"{path}.value")
        value = data["value"]
        if not _is_condition_value(value):
            raise SchemaError(f"invalid condition value {value!r}", path=f"{path}.value")
        additional = data.get("additionalValue")
        if additional is not None and not _is_primitive(additional):
            raise SchemaError(f"invalid additionalValue {additional!r}", path=f"{path}.additionalValue")

        return cls(
            question_id=read_field(data, "questionId", "str", path, required=True),
            operator=operator,
            value=value,
            additional_value=additional,
        )


def _wire(value: Any) -> Any:
    if is_date(value):
        return value.isoformat()
    if isinstance(value, list):
        return [_wire(v) for v in value]
    return value


@dataclass
class Transition:
    """A conditional edge to another node."""
    next_node_id: str
    conditions: list[Condition] = field(default_factory=list)
    combination_type: CombinationType = CombinationType.AND

    def to_dict(self) -> dict:
        return {
            "conditions": [c.to_dict() for c in self.conditions],
            "nextNodeId": self.next_node_id,
            "combinationType": self.combination_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict, path: str = "$") -> "Transition":
        if not isinstance(data, dict):
            raise SchemaError("transition must be an object", path=path)
        raw_conditions = read_field(data, "conditions", "list", path, required=True)
        raw_combination = read_field(data, "combinationType", "str", path, default="AND")
        try:
            combination = CombinationType(raw_combination)
        except ValueError:
            raise SchemaError(
                f"invalid combinationType {raw_combination!r}", path=f"{path}.combinationType"
            )
        return cls(
            next_node_id=read_field(data, "nextNodeId", "str", path, required=True),
            conditions=[
                Condition.from_dict(c, f"{path}.conditions[{i}]")
                for i, c in enumerate(raw_conditions)
            ],
            combination_type=combination,
        )


@dataclass
class QuizNode:
    """A step in the quiz graph."""
    id: str
    title: str
    description: Optional[str] = None
    questions: list[Question] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)
    is_start: bool = False
    is_end: bool = False
    metadata: dict = field(default_factory=dict)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "title": self.title,
            "questions": [q.to_dict() for q in self.questions],
            "transitions": [t.to_dict() for t in self.transitions],
            "isStart": self.is_start,
            "isEnd": self.is_end,
        }
        if self.description:
            result["description"] = self.description
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "$") -> "QuizNode":
        if not isinstance(data, dict):
            raise SchemaError("node must be an object", path=path)
        raw_questions = read_field(data, "questions", "list", path, required=True)
        raw_transitions = read_field(data, "transitions", "list", path, required=True)
        return cls(
            id=read_field(data, "id", "str", path, required=True),
            title=read_field(data, "title", "str", path, required=True),
            description=read_field(data, "description", "str", path),
            questions=[
                question_from_dict(q, f"{path}.questions[{i}]")
                for i, q in enumerate(raw_questions)
            ],
            transitions=[
                Transition.from_dict(t, f"{path}.transitions[{i}]")
                for i, t in enumerate(raw_transitions)
            ],
            is_start=read_field(data, "isStart", "bool", path, default=False),
            is_end=read_field(data, "isEnd", "bool", path, default=False),
            metadata=read_field(data, "metadata", "dict", path, default={}),
        )


@dataclass
class QuizSettings:
    """Presentation settings; only allow_back_tracking is read by the engine."""
    allow_back_tracking: bool = False
    show_progress_bar: Optional[bool] = None
    shuffle_questions: Optional[bool] = None
    theme: Optional[str] = None
    time_limit: Optional[float] = None

    def to_dict(self) -> dict:
        result = {"allowBackTracking": self.allow_back_tracking}
        if self.show_progress_bar is not None:
            result["showProgressBar"] = self.show_progress_bar
        if self.shuffle_questions is not None:
            result["shuffleQuestions"] = self.shuffle_questions
        if self.theme is not None:
            result["theme"] = self.theme
        if self.time_limit is not None:
            result["timeLimit"] = self.time_limit
        return result

    @classmethod
    def from_dict(cls, data: dict, path: str = "$") -> "QuizSettings":
        if not isinstance(data, dict):
            raise SchemaError("settings must be an object", path=path)
        return cls(
            allow_back_tracking=read_field(data, "allowBackTracking", "bool", path, default=False),
            show_progress_bar=read_field(data, "showProgressBar", "bool", path),
            shuffle_questions=read_field(data, "shuffleQuestions", "bool", path),
            theme=read_field(data, "theme", "str", path),
            time_limit=read_field(data, "timeLimit", "number", path),
        )


@dataclass
class Quiz:
    """
    A complete quiz definition.

    The graph is not checked on construction; run it through
    rules.structure.check_quiz before starting a run.
    """
    id: str
    title: str
    version: str
    nodes: list[QuizNode] = field(default_factory=list)
    description: Optional[str] = None
    settings: QuizSettings = field(default_factory=QuizSettings)
    metadata: dict = field(default_factory=dict)

    @property
    def start_node(self) -> Optional[QuizNode]:
        for node in self.nodes:
            if node.is_start:
                return node
        return None

    def get_node(self, node_id: str) -> Optional[QuizNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def iter_questions(self) -> Iterator[tuple[QuizNode, Question]]:
        """Yield (node, question) pairs in declaration order."""
        for node in self.nodes:
            for question in node.questions:
                yield node, question

    def find_question(self, question_id: str) -> Optional[Question]:
        for _, question in self.iter_questions():
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "title": self.title,
            "version": self.version,
            "nodes": [n.to_dict() for n in self.nodes],
            "settings": self.settings.to_dict(),
        }
        if self.description:
            result["description"] = self.description
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Quiz":
        """
        Parse a quiz from its wire form.

        Condition values that target date questions are parsed into dates.

        Raises:
            SchemaError: On missing fields, wrong types or unknown enum values
        """
        if not isinstance(data, dict):
            raise SchemaError("quiz must be an object")
        path = "$"
        raw_nodes = read_field(data, "nodes", "list", path, required=True)
        raw_settings = read_field(data, "settings", "dict", path)
        quiz = cls(
            id=read_field(data, "id", "str", path, required=True),
            title=read_field(data, "title", "str", path, required=True),
            version=read_field(data, "version", "str", path, required=True),
            nodes=[QuizNode.from_dict(n, f"$.nodes[{i}]") for i, n in enumerate(raw_nodes)],
            description=read_field(data, "description", "str", path),
            settings=QuizSettings.from_dict(raw_settings, "$.settings") if raw_settings else QuizSettings(),
            metadata=read_field(data, "metadata", "dict", path, default={}),
        )
        quiz._parse_date_conditions()
        return quiz

    def _parse_date_conditions(self):
        date_questions = {
            q.id for _, q in self.iter_questions() if q.type == QuestionType.DATE
        }
        for n_index, node in enumerate(self.nodes):
            for t_index, transition in enumerate(node.transitions):
                for c_index, condition in enumerate(transition.conditions):
                    if condition.question_id not in date_questions:
                        continue
                    path = f"$.nodes[{n_index}].transitions[{t_index}].conditions[{c_index}]"
                    if isinstance(condition.value, str):
                        condition.value = parse_date(condition.value, f"{path}.value")
                    elif isinstance(condition.value, list):
                        condition.value = [
                            parse_date(v, f"{path}.value[{i}]") if isinstance(v, str) else v
                            for i, v in enumerate(condition.value)
                        ]
                    if isinstance(condition.additional_value, str):
                        condition.additional_value = parse_date(
                            condition.additional_value, f"{path}.additionalValue"
                        )
