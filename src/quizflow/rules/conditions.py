"""
Condition evaluation and transition resolution

Decides which outgoing transition of a node fires for the answers collected
so far. Type mismatches never raise; they make a condition false.
"""

import logging
import re
from typing import Any, Mapping, Optional

from ..errors import SchemaError
from ..quiz.graph import CombinationType, Condition, ConditionOperator, QuizNode, Transition
from ..quiz.schema import QuestionResponse, as_instant, is_date, is_number


logger = logging.getLogger(__name__)

_MISSING = object()


def values_equal(left: Any, right: Any) -> bool:
    """
    Kind-aware equality.

    Dates compare by instant, booleans only equal booleans, lists compare
    element-wise in order, everything else by plain equality.
    """
    if is_date(left) or is_date(right):
        return is_date(left) and is_date(right) and as_instant(left) == as_instant(right)
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (list, tuple)) or isinstance(right, (list, tuple)):
        return (
            isinstance(left, (list, tuple))
            and isinstance(right, (list, tuple))
            and len(left) == len(right)
            and all(values_equal(a, b) for a, b in zip(left, right))
        )
    return left == right


def compare_values(left: Any, right: Any) -> Optional[int]:
    """
    Order two values: -1, 0 or 1, or None when they are not comparable.

    Only number/number and date/date pairs are comparable.
    """
    if is_number(left) and is_number(right):
        pass
    elif is_date(left) and is_date(right):
        left, right = as_instant(left), as_instant(right)
    else:
        return None
    return (left > right) - (left < right)


def _response_value(responses: Mapping[str, Any], question_id: str) -> Any:
    if question_id not in responses:
        return _MISSING
    response = responses[question_id]
    if isinstance(response, QuestionResponse):
        return response.value
    return response


def _equals(value: Any, condition: Condition) -> bool:
    return values_equal(value, condition.value)


def _not_equals(value: Any, condition: Condition) -> bool:
    return not values_equal(value, condition.value)


def _contains(value: Any, condition: Condition) -> bool:
    return isinstance(value, list) and any(values_equal(v, condition.value) for v in value)


def _not_contains(value: Any, condition: Condition) -> bool:
    return isinstance(value, list) and not any(values_equal(v, condition.value) for v in value)


def _greater_than(value: Any, condition: Condition) -> bool:
    order = compare_values(value, condition.value)
    return order is not None and order > 0


def _less_than(value: Any, condition: Condition) -> bool:
    order = compare_values(value, condition.value)
    return order is not None and order < 0


def _between(value: Any, condition: Condition) -> bool:
    # Both bounds are required; there is no open-ended upper bound
    if condition.additional_value is None:
        logger.debug(f"BETWEEN on {condition.question_id} has no upper bound, treating as false")
        return False
    lower = compare_values(value, condition.value)
    upper = compare_values(value, condition.additional_value)
    return lower is not None and upper is not None and lower > 0 and upper < 0


def _matches(value: Any, condition: Condition) -> bool:
    if not isinstance(value, str) or not isinstance(condition.value, str):
        return False
    try:
        return re.search(condition.value, value) is not None
    except re.error as e:
        logger.warning(f"Invalid pattern {condition.value!r} on {condition.question_id}: {e}")
        return False


_OPERATORS = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.NOT_EQUALS: _not_equals,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: _not_contains,
    ConditionOperator.GREATER_THAN: _greater_than,
    ConditionOperator.LESS_THAN: _less_than,
    ConditionOperator.BETWEEN: _between,
    ConditionOperator.MATCHES: _matches,
}

assert set(_OPERATORS) == set(ConditionOperator), "every operator needs an evaluator"


def evaluate_condition(condition: Condition, responses: Mapping[str, Any]) -> bool:
    """
    Evaluate one condition against collected answers.

    Args:
        condition: Condition to check
        responses: Mapping of question id to QuestionResponse (or a raw value)

    Returns:
        True if the condition holds. Always False for an unanswered question.

    Raises:
        SchemaError: If the operator is unknown (only reachable with an unchecked quiz)
    """
    evaluator = _OPERATORS.get(condition.operator)
    if evaluator is None:
        raise SchemaError(
            f"Not a valid operation: {condition.operator!r}",
            path=f"condition[{condition.question_id}].operator",
        )

    value = _response_value(responses, condition.question_id)
    if value is _MISSING:
        return False
    return evaluator(value, condition)


def evaluate_transition(transition: Transition, responses: Mapping[str, Any]) -> bool:
    """
    Combine a transition's conditions.

    AND needs every condition (an empty list always fires); OR needs at least one.
    """
    results = (evaluate_condition(c, responses) for c in transition.conditions)
    if transition.combination_type == CombinationType.OR:
        return any(results)
    return all(results)


def resolve_next_node(node: QuizNode, responses: Mapping[str, Any]) -> Optional[str]:
    """
    Pick the next node id for a node.

    Transitions are tried in declared order and the first match wins.
    End nodes never transition.

    Returns:
        The target node id, or None when no transition matches
    """
    if node.is_end:
        return None

    for index, transition in enumerate(node.transitions):
        if evaluate_transition(transition, responses):
            logger.debug(f"Node {node.id}: transition {index} matched -> {transition.next_node_id}")
            return transition.next_node_id

    logger.debug(f"Node {node.id}: no transition matched")
    return None
