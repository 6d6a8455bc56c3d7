"""
Unit tests for ConditionEvaluator.
"""

import pytest

from app.core.enums import ConditionOperator
from app.models.domain.rule import Condition
from app.services.policy_engine.condition_evaluator import ConditionEvaluator
from app.services.policy_engine.context import EvaluationContext


class TestConditionEvaluator:
    """Test cases for single condition evaluation."""

    @pytest.fixture
    def evaluator(self):
        """Create ConditionEvaluator instance."""
        return ConditionEvaluator()

    @pytest.fixture
    def context(self):
        """Create a typical applicant context."""
        return EvaluationContext(
            {
                "applicant.cibilScore": 720,
                "applicant.age": 35,
                "applicant.employmentType": "SALARIED",
                "applicant.monthlyIncome": "55000.50",
                "applicant.landOwnership": True,
                "loan.purpose": "Home Renovation",
                "applicant.riskCategory": "not-a-number",
            }
        )

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            (ConditionOperator.GREATER_THAN, 700, True),
            (ConditionOperator.GREATER_THAN, 720, False),
            (ConditionOperator.GREATER_THAN_OR_EQUAL, 720, True),
            (ConditionOperator.LESS_THAN, 720, False),
            (ConditionOperator.LESS_THAN_OR_EQUAL, "720.00", True),
            (ConditionOperator.EQUALS, "720.0", True),
            (ConditionOperator.NOT_EQUALS, 650, True),
        ],
    )
    def test_numeric_comparisons(self, evaluator, context, operator, value, expected):
        """Numeric operators compare by value, not by text."""
        condition = Condition.compare("applicant.cibilScore", operator, value)

        result = evaluator.evaluate(condition, context)

        assert result.matched is expected
        assert result.actual_value == "720"

    def test_equals_text_is_case_insensitive(self, evaluator, context):
        """EQUALS falls back to trimmed, case-insensitive text."""
        condition = Condition.compare("applicant.employmentType", ConditionOperator.EQUALS, " salaried ")

        assert evaluator.evaluate(condition, context).matched is True

    def test_between_is_inclusive(self, evaluator):
        """Both bounds of BETWEEN are inclusive."""
        condition = Condition.between("applicant.age", 21, 60)

        for age, expected in [(21, True), (60, True), (20, False), (61, False)]:
            context = EvaluationContext({"applicant.age": age})
            assert evaluator.evaluate(condition, context).matched is expected

    def test_in_matches_numeric_by_value(self, evaluator):
        """IN compares numeric members by value, so 700 matches 700.0."""
        condition = Condition.one_of("applicant.cibilScore", [650, 700])
        context = EvaluationContext({"applicant.cibilScore": "700.0"})

        assert evaluator.evaluate(condition, context).matched is True

    def test_in_text_is_exact(self, evaluator, context):
        """IN on text is an exact (trimmed) match."""
        exact = Condition.one_of("applicant.employmentType", ["SALARIED", "PROFESSIONAL"])
        wrong_case = Condition.one_of("applicant.employmentType", ["salaried"])
        negated = Condition.one_of("applicant.employmentType", ["BUSINESS"], negate=True)

        assert evaluator.evaluate(exact, context).matched is True
        assert evaluator.evaluate(wrong_case, context).matched is False
        assert evaluator.evaluate(negated, context).matched is True

    def test_text_operators(self, evaluator, context):
        """CONTAINS and STARTS_WITH ignore case."""
        contains = Condition.compare("loan.purpose", ConditionOperator.CONTAINS, "renovation")
        starts = Condition.compare("loan.purpose", ConditionOperator.STARTS_WITH, "HOME")

        assert evaluator.evaluate(contains, context).matched is True
        assert evaluator.evaluate(starts, context).matched is True

    def test_boolean_operators(self, evaluator, context):
        """IS_TRUE / IS_FALSE read true/false/1/0/yes/no."""
        is_true = Condition.check("applicant.landOwnership", ConditionOperator.IS_TRUE)
        is_false = Condition.check("applicant.landOwnership", ConditionOperator.IS_FALSE)

        assert evaluator.evaluate(is_true, context).matched is True
        assert evaluator.evaluate(is_false, context).matched is False
        assert evaluator.evaluate(is_true, EvaluationContext({"applicant.landOwnership": "yes"})).matched

    def test_presence_operators_ignore_value(self, evaluator, context):
        """IS_NULL / IS_NOT_NULL test key presence only."""
        present = Condition.check("applicant.age", ConditionOperator.IS_NOT_NULL)
        absent = Condition.check("property.estimatedValue", ConditionOperator.IS_NULL)
        not_absent = Condition.check("applicant.age", ConditionOperator.IS_NULL)

        assert evaluator.evaluate(present, context).matched is True
        assert evaluator.evaluate(absent, context).matched is True
        assert evaluator.evaluate(not_absent, context).matched is False

    def test_empty_string_is_present(self, evaluator):
        """An empty string is still a present value."""
        condition = Condition.check("loan.branchCode", ConditionOperator.IS_NOT_NULL)

        assert evaluator.evaluate(condition, EvaluationContext({"loan.branchCode": ""})).matched

    def test_missing_field_is_non_match(self, evaluator, context):
        """A missing field never raises; the reason says so."""
        condition = Condition.compare("property.estimatedValue", ConditionOperator.GREATER_THAN, 0)

        result = evaluator.evaluate(condition, context)

        assert result.matched is False
        assert result.actual_value is None
        assert "not found" in result.reason

    def test_coercion_failure_is_non_match(self, evaluator, context):
        """A non-numeric value under a numeric operator is a non-match with a reason."""
        condition = Condition.compare("applicant.riskCategory", ConditionOperator.GREATER_THAN, 5)

        result = evaluator.evaluate(condition, context)

        assert result.matched is False
        assert "Evaluation error" in result.reason

    def test_missing_operand_is_non_match(self, evaluator, context):
        """BETWEEN without a bound is reported, not raised."""
        condition = Condition(field="applicant.age", operator=ConditionOperator.BETWEEN, min_value="18")

        result = evaluator.evaluate(condition, context)

        assert result.matched is False
        assert "Invalid condition" in result.reason

    def test_reason_describes_comparison(self, evaluator, context):
        """The reason shows actual, operator, expected and verdict."""
        condition = Condition.compare("applicant.cibilScore", ConditionOperator.GREATER_THAN_OR_EQUAL, 650)

        result = evaluator.evaluate(condition, context)

        assert result.reason == "'720' GREATER_THAN_OR_EQUAL 650 -> PASS"
        assert result.expected_value == "650"
        assert result.operator == "GREATER_THAN_OR_EQUAL"

    def test_register_custom_operator(self, evaluator, context):
        """A registered handler overrides the default for its operator."""
        evaluator.register_operator(ConditionOperator.CONTAINS, lambda actual, condition: True)
        condition = Condition.compare("loan.purpose", ConditionOperator.CONTAINS, "anything")

        assert evaluator.evaluate(condition, context).matched is True

    def test_failing_custom_operator_is_contained(self, evaluator, context):
        """A handler that raises yields a non-match instead of an exception."""

        def broken(actual, condition):
            raise RuntimeError("boom")

        evaluator.register_operator(ConditionOperator.STARTS_WITH, broken)
        condition = Condition.compare("loan.purpose", ConditionOperator.STARTS_WITH, "Home")

        result = evaluator.evaluate(condition, context)

        assert result.matched is False
        assert "boom" in result.reason
