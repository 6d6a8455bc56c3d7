"""Policy evaluation engine: conditions, rules and action resolution."""

from app.services.policy_engine.action_resolver import ActionResolver
from app.services.policy_engine.condition_evaluator import ConditionEvaluator
from app.services.policy_engine.context import EvaluationContext, FactValue
from app.services.policy_engine.results import (
    ConditionResult,
    EvaluationLogEntry,
    EvaluationOutcome,
    PolicyMatchResult,
    RuleMatchResult,
    TriggeredAction,
)
from app.services.policy_engine.rule_evaluator import RuleEvaluator

__all__ = [
    "ActionResolver",
    "ConditionEvaluator",
    "RuleEvaluator",
    "EvaluationContext",
    "FactValue",
    "ConditionResult",
    "TriggeredAction",
    "RuleMatchResult",
    "PolicyMatchResult",
    "EvaluationLogEntry",
    "EvaluationOutcome",
]
