"""Shared fixtures: in-memory repository, cache and policy builders."""

import os

# Keep app startup away from Postgres and Redis during tests
os.environ.setdefault("SEED_POLICY_TEMPLATES", "false")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import pytest

from app.core.enums import (
    ActionType,
    LoanType,
    LogicalOperator,
    PolicyCategory,
    PolicyStatus,
)
from app.models.domain.policy import Policy
from app.models.domain.rule import Action, Condition, PolicyRule
from app.services.policy_cache import InMemoryPolicyCache
from app.services.policy_service import PolicyService


class InMemoryPolicyRepository:
    """Dict-backed stand-in for PolicyRepository with the same query semantics."""

    def __init__(self):
        self.policies: Dict[UUID, Policy] = {}
        self.commits = 0
        self.active_lookups = 0

    async def get_by_id(self, id: UUID) -> Optional[Policy]:
        return self.policies.get(id)

    async def save(self, policy: Policy) -> Policy:
        now = datetime.now(timezone.utc)
        if policy.created_at is None:
            policy.created_at = now
        policy.updated_at = now
        self.policies[policy.id] = policy
        return policy

    async def delete(self, policy: Policy) -> None:
        self.policies.pop(policy.id, None)

    async def commit(self) -> None:
        self.commits += 1

    async def find_latest_by_code(self, policy_code: str) -> Optional[Policy]:
        versions = await self.find_versions_by_code(policy_code)
        return versions[0] if versions else None

    async def find_highest_policy_code(self, prefix: str) -> Optional[str]:
        codes = [p.policy_code for p in self.policies.values() if p.policy_code.startswith(prefix)]
        return max(codes, key=lambda code: (len(code), code), default=None)

    async def find_versions_by_code(self, policy_code: str) -> List[Policy]:
        versions = [p for p in self.policies.values() if p.policy_code == policy_code]
        return sorted(versions, key=lambda p: p.version_number, reverse=True)

    async def find_by_code_and_version(
        self, policy_code: str, version_number: int
    ) -> Optional[Policy]:
        for policy in self.policies.values():
            if policy.policy_code == policy_code and policy.version_number == version_number:
                return policy
        return None

    async def find_active_policies_for_loan_type(self, loan_type: LoanType) -> List[Policy]:
        self.active_lookups += 1
        return sorted(
            (
                p
                for p in self.policies.values()
                if p.status == PolicyStatus.ACTIVE and p.loan_type in (loan_type, LoanType.ALL)
            ),
            key=lambda p: (p.priority, p.policy_code),
        )

    async def find_active_by_category_and_loan_type(
        self, category: PolicyCategory, loan_type: LoanType
    ) -> List[Policy]:
        policies = await self.find_active_policies_for_loan_type(loan_type)
        return [p for p in policies if p.category == category]

    async def exists_by_name_ignore_case(
        self, name: str, exclude_policy_code: Optional[str] = None
    ) -> bool:
        wanted = name.strip().lower()
        return any(
            p.name.lower() == wanted and p.policy_code != exclude_policy_code
            for p in self.policies.values()
        )

    async def search(self, term: str, skip: int = 0, limit: int = 100) -> List[Policy]:
        needle = term.strip().lower()
        hits = [
            p
            for p in self.policies.values()
            if needle in p.name.lower()
            or needle in p.policy_code.lower()
            or needle in (p.description or "").lower()
        ]
        return hits[skip:skip + limit]

    async def list_policies(
        self,
        category: Optional[PolicyCategory] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Policy], int]:
        rows = [p for p in self.policies.values() if category is None or p.category == category]
        rows.sort(key=lambda p: (p.priority, p.policy_code, -p.version_number))
        return rows[skip:skip + limit], len(rows)

    async def count_by_category_and_status(self) -> List[Tuple[PolicyCategory, PolicyStatus, int]]:
        counts: Dict[Tuple[PolicyCategory, PolicyStatus], int] = {}
        for policy in self.policies.values():
            key = (policy.category, policy.status)
            counts[key] = counts.get(key, 0) + 1
        return [(category, status, count) for (category, status), count in counts.items()]


def make_rule(
    name: str,
    conditions: List[Condition],
    actions: List[Action],
    priority: int = 100,
    logical_operator: LogicalOperator = LogicalOperator.AND,
    enabled: bool = True,
) -> PolicyRule:
    return PolicyRule(
        name=name,
        conditions=conditions,
        actions=actions,
        priority=priority,
        logical_operator=logical_operator,
        enabled=enabled,
    )


def make_action(action_type: ActionType, **parameters: str) -> Action:
    return Action(type=action_type, parameters=parameters)


def make_policy(
    name: str,
    rules: List[PolicyRule],
    loan_type: LoanType = LoanType.PERSONAL_LOAN,
    priority: int = 100,
    category: PolicyCategory = PolicyCategory.ELIGIBILITY,
    active: bool = True,
) -> Policy:
    policy = Policy.create_draft(
        name=name,
        category=category,
        loan_type=loan_type,
        rules=rules,
        priority=priority,
    )
    if active:
        policy.activate()
    return policy


@pytest.fixture
def repository() -> InMemoryPolicyRepository:
    """Empty in-memory policy repository."""
    return InMemoryPolicyRepository()


@pytest.fixture
def cache() -> InMemoryPolicyCache:
    """In-process policy cache."""
    return InMemoryPolicyCache()


@pytest.fixture
def policy_service(repository, cache) -> PolicyService:
    """Policy service over the in-memory repository and cache."""
    return PolicyService(repository, cache)


@pytest.fixture
def approve_rule() -> PolicyRule:
    """Approves salaried applicants with CIBIL >= 650."""
    return make_rule(
        "Salaried Approval",
        [
            Condition.one_of("applicant.employmentType", ["SALARIED"]),
            Condition.compare("applicant.cibilScore", "GREATER_THAN_OR_EQUAL", 650),
        ],
        [make_action(ActionType.APPROVE)],
        priority=10,
    )
