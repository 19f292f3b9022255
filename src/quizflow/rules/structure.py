"""
Quiz graph validation

Load-time checks of a whole quiz: unique ids, a single start node,
resolvable references, sane validation rules and a reachable end.
A run must never start against a quiz that fails these checks.
"""

import logging
import re
from collections import Counter, deque
from dataclasses import dataclass, field

from ..errors import SchemaError, SchemaIssue
from ..quiz.graph import CombinationType, ConditionOperator, Quiz, QuizNode
from ..quiz.schema import QuestionType, as_instant, expected_value_kind, is_date, is_number


logger = logging.getLogger(__name__)

_OPTION_TYPES = {QuestionType.SELECT, QuestionType.MULTI_SELECT, QuestionType.CHECKBOX_GROUP}
_COMBINATIONS = set(CombinationType)
_ORDERED_OPERATORS = {ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN, ConditionOperator.BETWEEN}


@dataclass
class QuizReport:
    """Diagnostics collected while checking a quiz."""
    quiz_id: str
    issues: list[SchemaIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[SchemaIssue]:
        return [i for i in self.issues if i.is_error]

    @property
    def warnings(self) -> list[SchemaIssue]:
        return [i for i in self.issues if not i.is_error]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, path: str, message: str, severity: str = "error"):
        self.issues.append(SchemaIssue(path=path, message=message, severity=severity))

    def to_dict(self) -> dict:
        return {
            "quiz_id": self.quiz_id,
            "valid": self.is_valid,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
        }


def _option_key(value) -> tuple:
    return ("str", value) if isinstance(value, str) else ("number", value)


def _check_bounds(report: QuizReport, path: str, low, high, label: str):
    if low is None or high is None:
        return
    if is_date(low) and is_date(high):
        low, high = as_instant(low), as_instant(high)
    if low > high:
        report.add(path, f"{label} minimum is greater than its maximum")


def _check_question_rules(question, path: str, report: QuizReport):
    rule = question.rule
    if rule is None:
        return
    q_type = question.type
    if q_type == QuestionType.TEXT:
        _check_bounds(report, path, rule.min_length, rule.max_length, "length")
        if rule.pattern is not None:
            try:
                re.compile(rule.pattern)
            except re.error as e:
                report.add(f"{path}.pattern", f"invalid regex pattern: {e}")
    elif q_type == QuestionType.NUMBER:
        _check_bounds(report, path, rule.min, rule.max, "value")
        if rule.step is not None and rule.step <= 0:
            report.add(f"{path}.step", "step must be positive")
    elif q_type in (QuestionType.MULTI_SELECT, QuestionType.CHECKBOX_GROUP):
        _check_bounds(report, path, rule.min_selected, rule.max_selected, "selection count")
    elif q_type == QuestionType.DATE:
        _check_bounds(report, path, rule.min_date, rule.max_date, "date")
    elif q_type == QuestionType.RATING:
        _check_bounds(report, path, rule.min, rule.max, "rating")
    elif q_type == QuestionType.FILE:
        if rule.max_size is not None and rule.max_size < 0:
            report.add(f"{path}.maxSize", "maxSize must not be negative")
    elif q_type == QuestionType.SIGNATURE:
        _check_bounds(report, path, rule.min_width, rule.max_width, "width")


def _check_questions(quiz: Quiz, report: QuizReport) -> set[str]:
    seen: Counter = Counter()
    for node, question in quiz.iter_questions():
        path = f"nodes[{node.id}].questions[{question.id}]"
        try:
            expected_value_kind(question)
        except SchemaError as e:
            report.add(path, str(e))
            continue
        seen[question.id] += 1

        if question.type in _OPTION_TYPES:
            if not question.options:
                report.add(f"{path}.options", "question has no options", "warning")
            keys = Counter(_option_key(o.value) for o in question.options)
            duplicates = [key[1] for key, count in keys.items() if count > 1]
            if duplicates:
                report.add(f"{path}.options", f"duplicate option values: {duplicates}")

        _check_question_rules(question, f"{path}.validation", report)

    for question_id, count in seen.items():
        if count > 1:
            report.add(f"questions[{question_id}]", f"question id used {count} times")
    return set(seen)


def _check_transitions(node: QuizNode, node_ids: set[str], question_ids: set[str], report: QuizReport):
    if node.is_end:
        if node.transitions:
            report.add(f"nodes[{node.id}].transitions", "transitions on end nodes are ignored", "warning")
        return
    if not node.transitions:
        report.add(f"nodes[{node.id}].transitions", "non-end node has no transitions", "warning")

    for t_index, transition in enumerate(node.transitions):
        path = f"nodes[{node.id}].transitions[{t_index}]"
        if transition.next_node_id not in node_ids:
            report.add(f"{path}.nextNodeId", f"unknown node {transition.next_node_id!r}")
        if transition.combination_type not in _COMBINATIONS:
            report.add(f"{path}.combinationType", f"invalid combination {transition.combination_type!r}")

        for c_index, condition in enumerate(transition.conditions):
            c_path = f"{path}.conditions[{c_index}]"
            if condition.question_id not in question_ids:
                report.add(f"{c_path}.questionId", f"unknown question {condition.question_id!r}")
            try:
                operator = ConditionOperator(condition.operator)
            except ValueError:
                report.add(f"{c_path}.operator", f"Not a valid operation: {condition.operator!r}")
                continue

            if operator in _ORDERED_OPERATORS:
                bounds = [condition.value]
                if operator == ConditionOperator.BETWEEN:
                    if condition.additional_value is None:
                        report.add(f"{c_path}.additionalValue", "between requires an upper bound")
                    else:
                        bounds.append(condition.additional_value)
                if not all(is_number(b) for b in bounds) and not all(is_date(b) for b in bounds):
                    report.add(f"{c_path}.value", f"{operator.value} needs number or date bounds")
            elif operator == ConditionOperator.MATCHES:
                if not isinstance(condition.value, str):
                    report.add(f"{c_path}.value", "matches needs a string pattern")
                else:
                    try:
                        re.compile(condition.value)
                    except re.error as e:
                        report.add(f"{c_path}.value", f"invalid regex pattern: {e}")


def _reachable(quiz: Quiz, start: QuizNode) -> set[str]:
    nodes = {n.id: n for n in quiz.nodes}
    seen = {start.id}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        if node.is_end:
            continue
        for transition in node.transitions:
            target = nodes.get(transition.next_node_id)
            if target is not None and target.id not in seen:
                seen.add(target.id)
                queue.append(target)
    return seen


def check_quiz(quiz: Quiz) -> QuizReport:
    """
    Check a quiz's structure.

    Args:
        quiz: Quiz to check

    Returns:
        QuizReport listing every error and warning found
    """
    report = QuizReport(quiz_id=quiz.id)
    if not quiz.nodes:
        report.add("nodes", "quiz has no nodes")
        return report

    node_counts = Counter(n.id for n in quiz.nodes)
    for node_id, count in node_counts.items():
        if count > 1:
            report.add(f"nodes[{node_id}]", f"node id used {count} times")

    starts = [n for n in quiz.nodes if n.is_start]
    if len(starts) != 1:
        report.add("nodes", f"expected exactly one start node, found {len(starts)}")

    question_ids = _check_questions(quiz, report)
    node_ids = set(node_counts)
    for node in quiz.nodes:
        _check_transitions(node, node_ids, question_ids, report)

    if not any(n.is_end for n in quiz.nodes):
        report.add("nodes", "quiz has no end node")
    elif len(starts) == 1:
        reachable = _reachable(quiz, starts[0])
        if not any(n.is_end and n.id in reachable for n in quiz.nodes):
            report.add("nodes", f"no end node is reachable from start node {starts[0].id!r}")
        for node in quiz.nodes:
            if node.id not in reachable:
                report.add(f"nodes[{node.id}]", "node is unreachable from the start node", "warning")

    return report


def validate_quiz(quiz: Quiz) -> bool:
    """Return True if the quiz is structurally valid; logs the failures otherwise."""
    report = check_quiz(quiz)
    if not report.is_valid:
        logger.error(
            f"Quiz validation failed for {quiz.id!r}: "
            + "; ".join(str(i) for i in report.errors)
        )
    for issue in report.warnings:
        logger.warning(f"Quiz {quiz.id!r}: {issue}")
    return report.is_valid


def ensure_valid_quiz(quiz: Quiz) -> QuizReport:
    """
    Check a quiz and raise if it is invalid.

    Raises:
        SchemaError: Carrying every issue, when the quiz has errors
    """
    report = check_quiz(quiz)
    if not report.is_valid:
        first = report.errors[0]
        raise SchemaError(
            f"Quiz {quiz.id!r} is invalid ({len(report.errors)} errors, first: {first})",
            issues=report.issues,
        )
    return report
