"""Rule evaluator: combines condition results with the rule's logical operator."""

import logging
from typing import List, Optional

from app.core.enums import LogicalOperator
from app.models.domain.policy import DEFAULT_POLICY_PRIORITY
from app.models.domain.rule import PolicyRule
from app.services.policy_engine.condition_evaluator import ConditionEvaluator
from app.services.policy_engine.context import EvaluationContext
from app.services.policy_engine.results import (
    ConditionResult,
    RuleMatchResult,
    TriggeredAction,
)

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """
    Evaluates a complete policy rule against an evaluation context.

    Every condition is evaluated, even after the outcome is known, so the
    audit trail always shows each condition's result.
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def evaluate(
        self,
        rule: PolicyRule,
        context: EvaluationContext,
        policy_code: str,
        policy_priority: int = DEFAULT_POLICY_PRIORITY,
    ) -> RuleMatchResult:
        """
        Evaluate a rule.

        Args:
            rule: The rule to evaluate
            context: Facts for the application under evaluation
            policy_code: Code of the owning policy, used to tag triggered actions
            policy_priority: Priority of the owning policy, used for conflict resolution

        Returns:
            RuleMatchResult with per-condition results and, if matched, the triggered actions
        """
        condition_results = [
            self.condition_evaluator.evaluate(condition, context)
            for condition in rule.conditions
        ]
        matched = self._combine(rule.logical_operator, condition_results)

        triggered: List[TriggeredAction] = []
        if matched:
            triggered = [
                TriggeredAction(
                    action_type=action.type,
                    parameters=dict(action.parameters),
                    description=action.description,
                    source_policy_code=policy_code,
                    source_rule_name=rule.name,
                    priority=rule.priority,
                    policy_priority=policy_priority,
                )
                for action in rule.actions
            ]

        logger.debug(
            f"Rule '{rule.name}' {'MATCHED' if matched else 'NOT MATCHED'} "
            f"({sum(1 for r in condition_results if r.matched)}/"
            f"{len(condition_results)} conditions matched)"
        )

        return RuleMatchResult(
            rule_name=rule.name,
            matched=matched,
            logical_operator=rule.logical_operator.value,
            condition_results=condition_results,
            triggered_actions=triggered,
        )

    @staticmethod
    def _combine(
        operator: LogicalOperator, results: List[ConditionResult]
    ) -> bool:
        """AND: all matched; OR: any matched; no conditions: vacuously true."""
        if not results:
            return True
        if operator == LogicalOperator.OR:
            return any(result.matched for result in results)
        return all(result.matched for result in results)
