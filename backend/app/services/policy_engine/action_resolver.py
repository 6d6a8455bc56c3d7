"""Action resolver: merges triggered actions into one decision and action list."""

import logging
from typing import Dict, List

from app.core.enums import ActionType, Decision
from app.models.domain.actions import DECISION_TYPES, describe_action
from app.models.domain.rule import Action
from app.services.policy_engine.results import TriggeredAction

logger = logging.getLogger(__name__)

# Only one value can be in force; the highest-priority source wins
SINGLE_VALUED_TYPES = frozenset(
    {
        ActionType.SET_INTEREST_RATE,
        ActionType.SET_PROCESSING_FEE,
        ActionType.SET_MAX_AMOUNT,
        ActionType.SET_MAX_TENURE,
        ActionType.ASSIGN_TO_ROLE,
    }
)

# Every distinct instance is kept
ACCUMULATING_TYPES = frozenset(
    {
        ActionType.REQUIRE_DOCUMENT,
        ActionType.NOTIFY,
        ActionType.FLAG_RISK,
    }
)


def _describe(action: TriggeredAction) -> str:
    return describe_action(Action(type=action.action_type, parameters=action.parameters))


class ActionResolver:
    """
    Resolves actions triggered by all matched rules across all matched policies.

    Decision precedence (most conservative wins, independent of arrival order):
        REJECT > REFER (or FLAG_RISK) > APPROVE > NO_MATCH

    Ordering key for conflicts and output: (policy priority, rule priority,
    arrival order), lowest first.
    """

    def resolve_decision(self, actions: List[TriggeredAction]) -> Decision:
        """
        Determine the overall decision from the triggered actions.

        Args:
            actions: All triggered actions (duplicates allowed)

        Returns:
            The overall Decision; NO_MATCH when no decision action was triggered
        """
        types = {action.action_type for action in actions}

        if ActionType.REJECT in types:
            logger.info("Decision: REJECTED (reject action triggered)")
            return Decision.REJECTED
        if ActionType.REFER in types:
            logger.info("Decision: REFERRED (refer action triggered)")
            return Decision.REFERRED
        if ActionType.FLAG_RISK in types:
            logger.info("Decision: REFERRED (risk flag triggered)")
            return Decision.REFERRED
        if ActionType.APPROVE in types:
            logger.info("Decision: APPROVED (approve action triggered)")
            return Decision.APPROVED

        logger.info("Decision: NO_MATCH (no decision actions in triggered set)")
        return Decision.NO_MATCH

    def resolve_actions(self, actions: List[TriggeredAction]) -> List[TriggeredAction]:
        """
        Deduplicate actions and resolve same-type conflicts.

        Identical (type, parameters) pairs collapse to their highest-priority
        instance. Single-valued and decision types keep only the
        highest-priority instance; accumulating types keep every distinct one.

        Args:
            actions: All triggered actions in evaluation order

        Returns:
            Resolved actions ordered by priority
        """
        ranked = sorted(
            enumerate(actions),
            key=lambda pair: (pair[1].policy_priority, pair[1].priority, pair[0]),
        )

        resolved: List[TriggeredAction] = []
        seen = set()
        winners: Dict[ActionType, TriggeredAction] = {}

        for _, action in ranked:
            identity = action.identity()
            if identity in seen:
                logger.debug(
                    f"Dropped duplicate {action.action_type.value} from {action.source()}"
                )
                continue
            seen.add(identity)

            action_type = action.action_type
            if action_type in SINGLE_VALUED_TYPES or action_type in DECISION_TYPES:
                kept = winners.get(action_type)
                if kept is not None:
                    logger.info(
                        f"Resolved conflicting {action_type.value}: kept "
                        f"{_describe(kept)} from {kept.source()} "
                        f"(policy priority {kept.policy_priority}, rule priority {kept.priority}), "
                        f"discarded {_describe(action)} from {action.source()}"
                    )
                    continue
                winners[action_type] = action

            resolved.append(action)

        return resolved
