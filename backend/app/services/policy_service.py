"""Policy service for authoring, lifecycle transitions and queries."""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from app.core.enums import LoanType, PolicyCategory, PolicyStatus
from app.core.exceptions import (
    DuplicatePolicyError,
    IllegalPolicyStateError,
    PolicyNotFoundError,
    PolicyValidationError,
)
from app.models.domain.actions import parse_action
from app.models.domain.policy import Policy
from app.models.domain.rule import PolicyRule
from app.models.schemas.policy import PolicyCreate, PolicyStatsResponse, PolicyUpdate
from app.repositories.policy_repository import PolicyRepository
from app.services.policy_cache import PolicyCache, active_policies_key

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"


def validate_rules(rules: List[PolicyRule]) -> None:
    """
    Check rules before they are stored.

    Raises:
        PolicyValidationError: On duplicate rule names, conditions missing an
            operand, or action parameters that do not fit the action type
    """
    seen = set()
    for rule in rules:
        key = rule.name.strip().lower()
        if key in seen:
            raise PolicyValidationError(f"Duplicate rule name '{rule.name}'")
        seen.add(key)

        for condition in rule.conditions:
            problem = condition.operand_problem()
            if problem:
                raise PolicyValidationError(
                    f"Rule '{rule.name}', condition on {condition.field}: {problem}"
                )
        for action in rule.actions:
            try:
                parse_action(action)
            except PolicyValidationError as e:
                raise PolicyValidationError(f"Rule '{rule.name}': {e}") from e


class PolicyService:
    """
    Policy service for CRUD and lifecycle flows.

    Every change that can alter the active set for a loan type evicts that
    loan type's cache entry and the ALL entry, after the change is committed.
    A change to an ALL-type policy evicts every loan type's entry.
    """

    def __init__(self, repository: PolicyRepository, cache: PolicyCache):
        """
        Initialize the policy service.

        Args:
            repository: Policy repository bound to the request's session
            cache: Active-policy cache to invalidate on changes
        """
        self.repository = repository
        self.cache = cache

    # ==================== Authoring ====================

    async def create_policy(
        self, data: PolicyCreate, created_by: str = SYSTEM_USER
    ) -> Policy:
        """
        Create a version-1 DRAFT policy.

        Raises:
            DuplicatePolicyError: If the name is already used (case-insensitive)
            PolicyValidationError: If the rules or effective window are invalid
        """
        logger.info(f"Creating policy '{data.name}' by {created_by}")

        if await self.repository.exists_by_name_ignore_case(data.name):
            raise DuplicatePolicyError(f"Policy with name '{data.name}' already exists")
        validate_rules(data.rules)

        policy = Policy.create_draft(
            name=data.name,
            category=data.category,
            loan_type=data.loan_type,
            rules=data.rules,
            description=data.description,
            priority=data.priority,
            effective_from=data.effective_from,
            effective_until=data.effective_until,
            tags=data.tags,
            created_by=created_by,
        )
        policy.policy_code = await self._next_policy_code()

        saved = await self.repository.save(policy)
        await self.repository.commit()
        logger.info(f"Created policy {saved.policy_code} v{saved.version_number}")
        return saved

    async def update_policy(
        self, policy_id: UUID, data: PolicyUpdate, modified_by: str = SYSTEM_USER
    ) -> Policy:
        """
        Update a DRAFT or INACTIVE policy in place.

        Raises:
            PolicyNotFoundError: If the policy does not exist
            IllegalPolicyStateError: If the policy is ACTIVE or ARCHIVED
            DuplicatePolicyError: If a rename collides with another policy
            PolicyValidationError: If the name is blank or the rules or effective window are invalid
        """
        logger.info(f"Updating policy {policy_id} by {modified_by}")
        policy = await self.get_policy(policy_id)

        if not policy.is_mutable():
            raise IllegalPolicyStateError(
                f"Cannot update an {policy.status.value} policy. Create a new version instead."
            )

        fields = data.model_fields_set
        previous_loan_type = policy.loan_type

        if data.name is not None:
            name = data.name.strip()
            if not name:
                raise PolicyValidationError("Policy name is required")
            renamed = name.lower() != policy.name.lower()
            if renamed and await self.repository.exists_by_name_ignore_case(
                name, exclude_policy_code=policy.policy_code
            ):
                raise DuplicatePolicyError(f"Policy with name '{name}' already exists")
            policy.name = name
        if "description" in fields:
            policy.description = data.description
        if data.category is not None:
            policy.category = data.category
        if data.loan_type is not None:
            policy.loan_type = data.loan_type
        if data.priority is not None:
            policy.priority = data.priority
        if data.tags is not None:
            policy.tags = list(data.tags)
        if "effective_from" in fields or "effective_until" in fields:
            policy.set_effective_window(
                data.effective_from if "effective_from" in fields else policy.effective_from,
                data.effective_until if "effective_until" in fields else policy.effective_until,
            )
        if data.rules is not None:
            validate_rules(data.rules)
            policy.replace_rules(data.rules)

        policy.modified_by = modified_by
        saved = await self.repository.save(policy)
        await self.repository.commit()
        await self._evict(previous_loan_type, saved.loan_type)

        logger.info(f"Updated policy {saved.policy_code} v{saved.version_number}")
        return saved

    async def delete_policy(self, policy_id: UUID) -> None:
        """
        Delete a DRAFT policy.

        Raises:
            PolicyNotFoundError: If the policy does not exist
            IllegalPolicyStateError: If the policy is not a DRAFT
        """
        policy = await self.get_policy(policy_id)
        if policy.status != PolicyStatus.DRAFT:
            raise IllegalPolicyStateError(
                f"Only DRAFT policies can be deleted. Current status: {policy.status.value}"
            )

        await self.repository.delete(policy)
        await self.repository.commit()
        await self._evict(policy.loan_type)
        logger.info(f"Deleted policy {policy_id} (code: {policy.policy_code})")

    # ==================== Lifecycle ====================

    async def activate_policy(self, policy_id: UUID, modified_by: str = SYSTEM_USER) -> Policy:
        """
        Activate a policy.

        Raises:
            PolicyNotFoundError: If the policy does not exist
            IllegalPolicyStateError: If the policy has no rules or is ARCHIVED
        """
        logger.info(f"Activating policy {policy_id} by {modified_by}")
        policy = await self.get_policy(policy_id)
        policy.activate()
        policy.modified_by = modified_by

        saved = await self.repository.save(policy)
        await self.repository.commit()
        await self._evict(saved.loan_type)
        logger.info(f"Activated policy {saved.policy_code} v{saved.version_number}")
        return saved

    async def deactivate_policy(self, policy_id: UUID, modified_by: str = SYSTEM_USER) -> Policy:
        """
        Deactivate a policy.

        Raises:
            PolicyNotFoundError: If the policy does not exist
            IllegalPolicyStateError: If the policy is ARCHIVED
        """
        logger.info(f"Deactivating policy {policy_id} by {modified_by}")
        policy = await self.get_policy(policy_id)
        policy.deactivate()
        policy.modified_by = modified_by

        saved = await self.repository.save(policy)
        await self.repository.commit()
        await self._evict(saved.loan_type)
        logger.info(f"Deactivated policy {saved.policy_code} v{saved.version_number}")
        return saved

    async def create_new_version(self, policy_id: UUID, created_by: str = SYSTEM_USER) -> Policy:
        """
        Create the next DRAFT version; an ACTIVE source is archived.

        Only the latest version can be versioned, so version numbers stay
        unique per policy code.

        Raises:
            PolicyNotFoundError: If the policy does not exist
            IllegalPolicyStateError: If the policy is DRAFT, ARCHIVED or not the latest version
        """
        logger.info(f"Creating new version of policy {policy_id} by {created_by}")
        current = await self.get_policy(policy_id)

        latest = await self.repository.find_latest_by_code(current.policy_code)
        if latest is not None and latest.version_number != current.version_number:
            raise IllegalPolicyStateError(
                f"Policy {current.policy_code} v{current.version_number} is not the latest "
                f"version (latest is v{latest.version_number})"
            )

        was_active = current.status == PolicyStatus.ACTIVE
        new_version = current.create_new_version(created_by=created_by)

        if was_active:
            current.modified_by = created_by
            await self.repository.save(current)
        saved = await self.repository.save(new_version)
        await self.repository.commit()
        await self._evict(current.loan_type)

        logger.info(f"Created new version: {saved.policy_code} v{saved.version_number}")
        return saved

    # ==================== Queries ====================

    async def get_policy(self, policy_id: UUID) -> Policy:
        """
        Retrieve one policy version by id.

        Raises:
            PolicyNotFoundError: If the policy does not exist
        """
        policy = await self.repository.get_by_id(policy_id)
        if policy is None:
            raise PolicyNotFoundError(f"Policy not found with id: {policy_id}")
        return policy

    async def get_latest_by_code(self, policy_code: str) -> Policy:
        policy = await self.repository.find_latest_by_code(policy_code)
        if policy is None:
            raise PolicyNotFoundError(f"Policy not found with code: {policy_code}")
        return policy

    async def get_version(self, policy_code: str, version_number: int) -> Policy:
        policy = await self.repository.find_by_code_and_version(policy_code, version_number)
        if policy is None:
            raise PolicyNotFoundError(
                f"Policy not found with code: {policy_code}, version: {version_number}"
            )
        return policy

    async def get_version_history(self, policy_code: str) -> List[Policy]:
        versions = await self.repository.find_versions_by_code(policy_code)
        if not versions:
            raise PolicyNotFoundError(f"Policy not found with code: {policy_code}")
        return versions

    async def list_policies(
        self,
        category: Optional[PolicyCategory] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Policy], int]:
        return await self.repository.list_policies(
            category=category, skip=(page - 1) * size, limit=size
        )

    async def search_policies(self, term: str, page: int = 1, size: int = 20) -> List[Policy]:
        return await self.repository.search(term, skip=(page - 1) * size, limit=size)

    async def get_active_policies(
        self, loan_type: LoanType, category: Optional[PolicyCategory] = None
    ) -> List[Policy]:
        """Active policies for a loan type (ALL included), optionally one category."""
        if category is not None:
            return await self.repository.find_active_by_category_and_loan_type(
                category, loan_type
            )
        return await self.repository.find_active_policies_for_loan_type(loan_type)

    async def get_stats(self) -> PolicyStatsResponse:
        rows = await self.repository.count_by_category_and_status()

        by_status = {status: 0 for status in PolicyStatus}
        by_category = {}
        for category, status, count in rows:
            by_status[status] += count
            if status == PolicyStatus.ACTIVE:
                by_category[category.value] = by_category.get(category.value, 0) + count

        return PolicyStatsResponse(
            total=sum(by_status.values()),
            active=by_status[PolicyStatus.ACTIVE],
            draft=by_status[PolicyStatus.DRAFT],
            inactive=by_status[PolicyStatus.INACTIVE],
            archived=by_status[PolicyStatus.ARCHIVED],
            by_category=by_category,
        )

    # ==================== Helpers ====================

    async def _next_policy_code(self) -> str:
        prefix = Policy.policy_code_prefix()
        highest = await self.repository.find_highest_policy_code(prefix)
        sequence = int(highest[len(prefix):]) + 1 if highest else 1
        return Policy.generate_policy_code(sequence)

    async def _evict(self, *loan_types: LoanType) -> None:
        # Every per-loan-type entry also holds the ALL-type policies
        if LoanType.ALL in loan_types:
            loan_types = tuple(LoanType)
        keys = {active_policies_key(LoanType.ALL)}
        keys.update(active_policies_key(loan_type) for loan_type in loan_types)
        await self.cache.delete(*sorted(keys))
