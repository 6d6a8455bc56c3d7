"""Result records produced by the policy engine, one level per trace depth."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from app.core.enums import ActionType, Decision, LogLevel


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one condition, with enough detail to explain the match."""

    field: str
    operator: str
    expected_value: str
    actual_value: Optional[str]
    matched: bool
    reason: str


@dataclass(frozen=True)
class TriggeredAction:
    """
    An action emitted by a matched rule, tagged with its source.

    Attributes:
        priority: Priority of the rule that triggered the action
        policy_priority: Priority of the policy owning that rule
    """

    action_type: ActionType
    parameters: Dict[str, str]
    description: Optional[str]
    source_policy_code: str
    source_rule_name: str
    priority: int
    policy_priority: int

    def identity(self) -> tuple:
        return (self.action_type, tuple(sorted(self.parameters.items())))

    def source(self) -> str:
        return f"{self.source_policy_code}/{self.source_rule_name}"


@dataclass
class RuleMatchResult:
    """Outcome of one rule: every condition result plus triggered actions."""

    rule_name: str
    matched: bool
    logical_operator: str
    condition_results: List[ConditionResult] = field(default_factory=list)
    triggered_actions: List[TriggeredAction] = field(default_factory=list)


@dataclass
class PolicyMatchResult:
    """Outcome of one policy; matched when at least one rule matched."""

    policy_id: Optional[UUID]
    policy_code: str
    policy_name: str
    category: Optional[str]
    priority: int
    matched: bool
    rule_results: List[RuleMatchResult] = field(default_factory=list)


@dataclass(frozen=True)
class EvaluationLogEntry:
    """Timestamped audit line returned with the evaluation response."""

    level: LogLevel
    message: str
    timestamp: datetime

    @classmethod
    def info(cls, message: str) -> "EvaluationLogEntry":
        return cls(LogLevel.INFO, message, datetime.now(timezone.utc))

    @classmethod
    def warn(cls, message: str) -> "EvaluationLogEntry":
        return cls(LogLevel.WARN, message, datetime.now(timezone.utc))


@dataclass
class EvaluationOutcome:
    """Complete result of one evaluation call."""

    overall_decision: Decision
    application_id: str
    loan_type: str
    policies_evaluated: int = 0
    policies_matched: int = 0
    rules_evaluated: int = 0
    rules_matched: int = 0
    matched_policies: List[PolicyMatchResult] = field(default_factory=list)
    triggered_actions: List[TriggeredAction] = field(default_factory=list)
    evaluation_log: List[EvaluationLogEntry] = field(default_factory=list)
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    evaluation_duration_ms: int = 0
