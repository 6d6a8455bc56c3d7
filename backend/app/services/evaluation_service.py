"""Evaluation service orchestrating policy lookup, rule evaluation and resolution."""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from app.core.enums import Decision, LoanType
from app.models.domain.policy import Policy
from app.models.schemas.evaluation import PolicyEvaluationRequest
from app.services.policy_engine.action_resolver import ActionResolver
from app.services.policy_engine.context import EvaluationContext
from app.services.policy_engine.results import (
    EvaluationLogEntry,
    EvaluationOutcome,
    PolicyMatchResult,
    TriggeredAction,
)
from app.services.policy_engine.rule_evaluator import RuleEvaluator
from app.services.policy_provider import ActivePolicyProvider

logger = logging.getLogger(__name__)


class PolicyEvaluationService:
    """
    Evaluates a loan application against all applicable active policies.

    Flow:
    1. Build the evaluation context from the request
    2. Parse the loan type (unknown type -> ERROR decision, no exception)
    3. Fetch active policies for the loan type (ALL included)
    4. Sort by priority and evaluate the enabled rules of effective policies
    5. Resolve the triggered actions into one decision
    6. Return counts, the per-condition trace and the audit log

    Rule content never raises out of here; provider failures do.
    """

    def __init__(
        self,
        provider: ActivePolicyProvider,
        rule_evaluator: Optional[RuleEvaluator] = None,
        action_resolver: Optional[ActionResolver] = None,
    ):
        """
        Initialize the evaluation service.

        Args:
            provider: Source of active policies
            rule_evaluator: Rule evaluator (default instance if omitted)
            action_resolver: Action resolver (default instance if omitted)
        """
        self.provider = provider
        self.rule_evaluator = rule_evaluator or RuleEvaluator()
        self.action_resolver = action_resolver or ActionResolver()

    async def evaluate(self, request: PolicyEvaluationRequest) -> EvaluationOutcome:
        """
        Evaluate an application.

        Args:
            request: Application facts and loan type

        Returns:
            EvaluationOutcome with decision, resolved actions and trace
        """
        started = time.perf_counter()
        logger.info(
            f"Starting policy evaluation for application {request.application_id}, "
            f"loan type {request.loan_type}"
        )

        evaluation_log: List[EvaluationLogEntry] = [
            EvaluationLogEntry.info(f"Starting evaluation for application {request.application_id}")
        ]

        context = request.to_evaluation_context()
        evaluation_log.append(
            EvaluationLogEntry.info(f"Evaluation context built with {len(context)} fields")
        )

        try:
            loan_type = LoanType.parse(request.loan_type)
        except ValueError:
            logger.warning(f"Invalid loan type: {request.loan_type}")
            evaluation_log.append(
                EvaluationLogEntry.warn(f"Evaluation error: Invalid loan type: {request.loan_type}")
            )
            return self._empty_outcome(request, Decision.ERROR, evaluation_log, started)

        policies = await self.provider.find_effective_policies(loan_type)
        evaluation_log.append(
            EvaluationLogEntry.info(f"Found {len(policies)} active policies for {loan_type.value}")
        )

        if not policies:
            logger.info(f"No active policies found for loan type {loan_type.value}")
            evaluation_log.append(
                EvaluationLogEntry.warn("No active policies found - evaluation skipped")
            )
            return self._empty_outcome(request, Decision.NO_MATCH, evaluation_log, started)

        # Lower priority value is evaluated first; sorted() keeps ties in fetch order
        ordered = sorted(policies, key=lambda policy: policy.priority)
        now = datetime.now(timezone.utc)

        policy_results: List[PolicyMatchResult] = []
        triggered: List[TriggeredAction] = []
        rules_evaluated = 0
        rules_matched = 0

        for policy in ordered:
            if not policy.is_effective(now):
                evaluation_log.append(
                    EvaluationLogEntry.info(f"Skipping policy {policy.policy_code} (not effective)")
                )
                continue

            policy_result = self._evaluate_policy(policy, context, evaluation_log)
            policy_results.append(policy_result)

            rules_evaluated += len(policy_result.rule_results)
            for rule_result in policy_result.rule_results:
                if rule_result.matched:
                    rules_matched += 1
                    triggered.extend(rule_result.triggered_actions)

        resolved = self.action_resolver.resolve_actions(triggered)
        decision = self.action_resolver.resolve_decision(triggered)

        duration_ms = self._elapsed_ms(started)
        policies_matched = sum(1 for result in policy_results if result.matched)

        evaluation_log.append(
            EvaluationLogEntry.info(
                f"Evaluation complete: decision={decision.value}, "
                f"policies={policies_matched}/{len(policy_results)} matched, "
                f"rules={rules_matched}/{rules_evaluated} matched, duration={duration_ms}ms"
            )
        )
        logger.info(
            f"Policy evaluation complete for {request.application_id}: "
            f"decision={decision.value}, policies matched={policies_matched}/{len(policy_results)}, "
            f"duration={duration_ms}ms"
        )

        return EvaluationOutcome(
            overall_decision=decision,
            application_id=request.application_id,
            loan_type=request.loan_type,
            policies_evaluated=len(policy_results),
            policies_matched=policies_matched,
            rules_evaluated=rules_evaluated,
            rules_matched=rules_matched,
            matched_policies=policy_results,
            triggered_actions=resolved,
            evaluation_log=evaluation_log,
            evaluation_duration_ms=duration_ms,
        )

    def _evaluate_policy(
        self,
        policy: Policy,
        context: EvaluationContext,
        evaluation_log: List[EvaluationLogEntry],
    ) -> PolicyMatchResult:
        """Evaluate every enabled rule of one policy."""
        logger.debug(f"Evaluating policy: {policy.name} ({policy.policy_code})")
        evaluation_log.append(
            EvaluationLogEntry.info(f"Evaluating policy: {policy.name} [{policy.policy_code}]")
        )

        rule_results = []
        for rule in policy.get_enabled_rules():
            result = self.rule_evaluator.evaluate(
                rule, context, policy.policy_code, policy.priority
            )
            rule_results.append(result)

            if result.matched:
                evaluation_log.append(
                    EvaluationLogEntry.info(
                        f"  Rule MATCHED: {rule.name} -> {len(result.triggered_actions)} actions"
                    )
                )
            else:
                evaluation_log.append(EvaluationLogEntry.info(f"  Rule not matched: {rule.name}"))

        return PolicyMatchResult(
            policy_id=policy.id,
            policy_code=policy.policy_code,
            policy_name=policy.name,
            category=policy.category.value if policy.category else None,
            priority=policy.priority,
            matched=any(result.matched for result in rule_results),
            rule_results=rule_results,
        )

    def _empty_outcome(
        self,
        request: PolicyEvaluationRequest,
        decision: Decision,
        evaluation_log: List[EvaluationLogEntry],
        started: float,
    ) -> EvaluationOutcome:
        return EvaluationOutcome(
            overall_decision=decision,
            application_id=request.application_id,
            loan_type=request.loan_type,
            evaluation_log=evaluation_log,
            evaluation_duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
