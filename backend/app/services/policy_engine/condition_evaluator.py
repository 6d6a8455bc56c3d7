"""Condition evaluator: one field/operator/value comparison against the context."""

import logging
from decimal import Decimal
from typing import Callable, Dict, Optional

from app.core.enums import ConditionOperator
from app.models.domain.rule import Condition
from app.services.policy_engine.context import (
    EvaluationContext,
    FactValue,
    parse_number,
)
from app.services.policy_engine.results import ConditionResult

logger = logging.getLogger(__name__)

# Handler signature: (actual, condition) -> matched
OperatorHandler = Callable[[FactValue, Condition], bool]


class CoercionError(ValueError):
    """A value could not be read as the type the operator requires."""


def _require_number(text: Optional[str], label: str) -> Decimal:
    number = parse_number(text)
    if number is None:
        raise CoercionError(f"Cannot parse {label} '{text}' as a number")
    return number


def _actual_number(actual: FactValue) -> Decimal:
    if actual.number is None:
        raise CoercionError(f"Cannot parse '{actual.raw}' as a number for comparison")
    return actual.number


class ConditionEvaluator:
    """
    Evaluates single conditions against an EvaluationContext.

    Operators are dispatched through a registry, so custom operators can be
    plugged in with register_operator(). Evaluation never raises for rule
    or fact content: a missing field, a missing operand or a value that
    cannot be coerced yields matched=False with the reason recorded.
    """

    def __init__(self):
        """Initialize the evaluator with the default operator registry."""
        self._handlers: Dict[ConditionOperator, OperatorHandler] = {}
        self._register_default_operators()

    def _register_default_operators(self) -> None:
        # Comparison
        self._handlers[ConditionOperator.EQUALS] = self._equals
        self._handlers[ConditionOperator.NOT_EQUALS] = lambda a, c: not self._equals(a, c)
        self._handlers[ConditionOperator.GREATER_THAN] = lambda a, c: self._compare(a, c) > 0
        self._handlers[ConditionOperator.GREATER_THAN_OR_EQUAL] = (
            lambda a, c: self._compare(a, c) >= 0
        )
        self._handlers[ConditionOperator.LESS_THAN] = lambda a, c: self._compare(a, c) < 0
        self._handlers[ConditionOperator.LESS_THAN_OR_EQUAL] = (
            lambda a, c: self._compare(a, c) <= 0
        )

        # Range and collection
        self._handlers[ConditionOperator.BETWEEN] = self._between
        self._handlers[ConditionOperator.IN] = self._in
        self._handlers[ConditionOperator.NOT_IN] = lambda a, c: not self._in(a, c)

        # Text
        self._handlers[ConditionOperator.CONTAINS] = (
            lambda a, c: c.value.strip().lower() in a.text.lower()
        )
        self._handlers[ConditionOperator.STARTS_WITH] = (
            lambda a, c: a.text.lower().startswith(c.value.strip().lower())
        )

        # Boolean
        self._handlers[ConditionOperator.IS_TRUE] = lambda a, c: self._boolean(a) is True
        self._handlers[ConditionOperator.IS_FALSE] = lambda a, c: self._boolean(a) is False

    def register_operator(
        self, operator: ConditionOperator, handler: OperatorHandler
    ) -> None:
        """
        Register or override the handler for an operator.

        Args:
            operator: The operator to handle
            handler: Callable taking (actual FactValue, Condition) and returning a bool
        """
        self._handlers[operator] = handler

    def evaluate(self, condition: Condition, context: EvaluationContext) -> ConditionResult:
        """
        Evaluate one condition.

        Args:
            condition: The condition to evaluate
            context: Facts for the application under evaluation

        Returns:
            ConditionResult with the match flag and a human-readable reason
        """
        field = condition.field
        operator = condition.operator
        actual = context.lookup(field)
        actual_raw = actual.raw if actual is not None else None

        logger.debug(f"Evaluating condition: {field} {operator.value} {condition.expected_display()}")

        # Presence operators ignore the stored value
        if operator == ConditionOperator.IS_NULL:
            matched = actual is None
            reason = "Field is absent" if matched else f"Field has value: {actual_raw}"
            return self._result(condition, actual_raw, matched, reason)

        if operator == ConditionOperator.IS_NOT_NULL:
            matched = actual is not None
            reason = f"Field has value: {actual_raw}" if matched else "Field is absent"
            return self._result(condition, actual_raw, matched, reason)

        if actual is None:
            return self._result(
                condition, None, False, f"Field '{field}' not found in evaluation context"
            )

        problem = condition.operand_problem()
        if problem:
            return self._result(condition, actual_raw, False, f"Invalid condition: {problem}")

        handler = self._handlers.get(operator)
        if handler is None:
            return self._result(
                condition, actual_raw, False, f"Unsupported operator: {operator.value}"
            )

        try:
            matched = handler(actual, condition)
        except CoercionError as e:
            logger.warning(
                f"Coercion failed for condition {field} {operator.value} "
                f"{condition.expected_display()}: {e}"
            )
            return self._result(condition, actual_raw, False, f"Evaluation error: {e}")
        except Exception as e:
            # Registered handlers may raise anything
            logger.warning(
                f"Error evaluating condition {field} {operator.value}: {e}",
                exc_info=True,
            )
            return self._result(condition, actual_raw, False, f"Evaluation error: {e}")

        verdict = "PASS" if matched else "FAIL"
        reason = f"'{actual_raw}' {operator.value} {condition.expected_display()} -> {verdict}"
        return self._result(condition, actual_raw, matched, reason)

    # ===== Operator implementations =====

    @staticmethod
    def _equals(actual: FactValue, condition: Condition) -> bool:
        """Numeric equality when both sides are numbers, else case-insensitive text."""
        expected_number = parse_number(condition.value)
        if actual.number is not None and expected_number is not None:
            return actual.number == expected_number
        return actual.text.lower() == condition.value.strip().lower()

    @staticmethod
    def _compare(actual: FactValue, condition: Condition) -> int:
        left = _actual_number(actual)
        right = _require_number(condition.value, "expected value")
        if left > right:
            return 1
        if left < right:
            return -1
        return 0

    @staticmethod
    def _between(actual: FactValue, condition: Condition) -> bool:
        """Inclusive on both bounds."""
        value = _actual_number(actual)
        low = _require_number(condition.min_value, "min value")
        high = _require_number(condition.max_value, "max value")
        return low <= value <= high

    @staticmethod
    def _in(actual: FactValue, condition: Condition) -> bool:
        """Exact set membership; numeric members compare by value."""
        for candidate in condition.values or ():
            if candidate is None:
                continue
            candidate_number = parse_number(candidate)
            if actual.number is not None and candidate_number is not None:
                if actual.number == candidate_number:
                    return True
            elif actual.text == candidate.strip():
                return True
        return False

    @staticmethod
    def _boolean(actual: FactValue) -> bool:
        if actual.boolean is None:
            raise CoercionError(f"Cannot parse '{actual.raw}' as a boolean")
        return actual.boolean

    @staticmethod
    def _result(
        condition: Condition,
        actual_value: Optional[str],
        matched: bool,
        reason: str,
    ) -> ConditionResult:
        return ConditionResult(
            field=condition.field,
            operator=condition.operator.value,
            expected_value=condition.expected_display(),
            actual_value=actual_value,
            matched=matched,
            reason=reason,
        )
