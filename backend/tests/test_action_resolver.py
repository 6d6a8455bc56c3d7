"""
Unit tests for ActionResolver.
"""

import logging

import pytest

from app.core.enums import ActionType, Decision
from app.services.policy_engine.action_resolver import ActionResolver
from app.services.policy_engine.results import TriggeredAction


def triggered(
    action_type,
    policy_code="POL-A",
    rule_name="Rule",
    priority=100,
    policy_priority=100,
    **parameters,
):
    return TriggeredAction(
        action_type=action_type,
        parameters=parameters,
        description=None,
        source_policy_code=policy_code,
        source_rule_name=rule_name,
        priority=priority,
        policy_priority=policy_priority,
    )


class TestResolveDecision:
    """Test cases for the overall decision."""

    @pytest.fixture
    def resolver(self):
        """Create ActionResolver instance."""
        return ActionResolver()

    def test_empty_is_no_match(self, resolver):
        assert resolver.resolve_decision([]) == Decision.NO_MATCH

    def test_non_decision_actions_are_no_match(self, resolver):
        """Side-effect actions alone never produce a decision."""
        actions = [triggered(ActionType.SET_MAX_AMOUNT, amount="100000")]

        assert resolver.resolve_decision(actions) == Decision.NO_MATCH

    @pytest.mark.parametrize(
        "types,expected",
        [
            ([ActionType.APPROVE], Decision.APPROVED),
            ([ActionType.APPROVE, ActionType.REFER], Decision.REFERRED),
            ([ActionType.APPROVE, ActionType.FLAG_RISK], Decision.REFERRED),
            ([ActionType.APPROVE, ActionType.REFER, ActionType.REJECT], Decision.REJECTED),
            ([ActionType.REJECT, ActionType.APPROVE], Decision.REJECTED),
        ],
    )
    def test_precedence(self, resolver, types, expected):
        """REJECT beats REFER/FLAG_RISK, which beat APPROVE, whatever the order."""
        actions = [triggered(action_type) for action_type in types]

        assert resolver.resolve_decision(actions) == expected
        assert resolver.resolve_decision(list(reversed(actions))) == expected


class TestResolveActions:
    """Test cases for deduplication and conflict resolution."""

    @pytest.fixture
    def resolver(self):
        """Create ActionResolver instance."""
        return ActionResolver()

    def test_duplicates_collapse(self, resolver):
        """Identical type and parameters appear once, from the first source."""
        actions = [
            triggered(ActionType.REQUIRE_DOCUMENT, policy_code="POL-A", documentType="PAN", mandatory="true"),
            triggered(ActionType.REQUIRE_DOCUMENT, policy_code="POL-B", documentType="PAN", mandatory="true"),
        ]

        resolved = resolver.resolve_actions(actions)

        assert len(resolved) == 1
        assert resolved[0].source_policy_code == "POL-A"

    def test_accumulating_types_keep_distinct_instances(self, resolver):
        """Different documents and risk flags are all kept."""
        actions = [
            triggered(ActionType.REQUIRE_DOCUMENT, documentType="PAN"),
            triggered(ActionType.REQUIRE_DOCUMENT, documentType="SALARY_SLIP"),
            triggered(ActionType.FLAG_RISK, reason="Low score"),
            triggered(ActionType.FLAG_RISK, reason="High amount"),
            triggered(ActionType.NOTIFY, recipient="ops"),
        ]

        assert len(resolver.resolve_actions(actions)) == 5

    def test_single_valued_keeps_highest_priority_policy(self, resolver):
        """The lower policy priority number wins a SET_INTEREST_RATE conflict."""
        actions = [
            triggered(ActionType.SET_INTEREST_RATE, policy_code="POL-LOW", policy_priority=50, rate="14.0"),
            triggered(ActionType.SET_INTEREST_RATE, policy_code="POL-HIGH", policy_priority=10, rate="12.5"),
        ]

        resolved = resolver.resolve_actions(actions)

        assert len(resolved) == 1
        assert resolved[0].source_policy_code == "POL-HIGH"
        assert resolved[0].parameters == {"rate": "12.5"}

    def test_rule_priority_breaks_policy_ties(self, resolver):
        """Within one policy priority, the lower rule priority wins."""
        actions = [
            triggered(ActionType.SET_MAX_AMOUNT, rule_name="Late", priority=20, amount="1500000"),
            triggered(ActionType.SET_MAX_AMOUNT, rule_name="Early", priority=10, amount="2000000"),
        ]

        resolved = resolver.resolve_actions(actions)

        assert [a.source_rule_name for a in resolved] == ["Early"]

    def test_arrival_order_breaks_full_ties(self, resolver):
        """With equal priorities the first-arriving action wins."""
        actions = [
            triggered(ActionType.ASSIGN_TO_ROLE, rule_name="First", role="UNDERWRITER"),
            triggered(ActionType.ASSIGN_TO_ROLE, rule_name="Second", role="SENIOR_UNDERWRITER"),
        ]

        resolved = resolver.resolve_actions(actions)

        assert [a.source_rule_name for a in resolved] == ["First"]

    def test_output_is_priority_ordered(self, resolver):
        """Resolved actions come out ordered by (policy priority, rule priority)."""
        actions = [
            triggered(ActionType.NOTIFY, policy_priority=30, recipient="late"),
            triggered(ActionType.APPROVE, policy_priority=10, priority=20),
            triggered(ActionType.REQUIRE_DOCUMENT, policy_priority=10, priority=5, documentType="PAN"),
        ]

        resolved = resolver.resolve_actions(actions)

        assert [a.action_type for a in resolved] == [
            ActionType.REQUIRE_DOCUMENT,
            ActionType.APPROVE,
            ActionType.NOTIFY,
        ]

    def test_discarded_conflict_is_logged(self, resolver, caplog):
        """Dropping a conflicting single-valued action is logged at INFO."""
        actions = [
            triggered(ActionType.SET_PROCESSING_FEE, policy_code="POL-A", policy_priority=1, percentage="1.0"),
            triggered(ActionType.SET_PROCESSING_FEE, policy_code="POL-B", policy_priority=2, percentage="2.0"),
        ]

        with caplog.at_level(logging.INFO, logger="app.services.policy_engine.action_resolver"):
            resolver.resolve_actions(actions)

        assert "discarded" in caplog.text
        assert "POL-B" in caplog.text
