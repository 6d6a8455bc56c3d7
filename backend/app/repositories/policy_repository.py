"""Repository for policy aggregates and their version history."""

from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import LoanType, PolicyCategory, PolicyStatus
from app.models.domain.policy import Policy
from app.repositories.base import BaseRepository


class PolicyRepository(BaseRepository[Policy]):
    """
    Repository for Policy with version-aware queries.

    Every version of a policy is its own row sharing a policy_code; the
    latest version is the one with the highest version_number.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the policy repository.

        Args:
            db: Async database session
        """
        super().__init__(Policy, db)

    # ==================== Versions ====================

    async def find_latest_by_code(self, policy_code: str) -> Optional[Policy]:
        """
        Retrieve the latest version of a policy.

        Args:
            policy_code: Stable code shared by all versions

        Returns:
            The highest version, or None if the code is unknown
        """
        stmt = (
            select(Policy)
            .where(Policy.policy_code == policy_code)
            .order_by(Policy.version_number.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_highest_policy_code(self, prefix: str) -> Optional[str]:
        """Highest policy code starting with prefix, comparing numerically."""
        stmt = (
            select(Policy.policy_code)
            .where(Policy.policy_code.startswith(prefix))
            .order_by(func.length(Policy.policy_code).desc(), Policy.policy_code.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_versions_by_code(self, policy_code: str) -> List[Policy]:
        """All versions of a policy, newest first."""
        stmt = (
            select(Policy)
            .where(Policy.policy_code == policy_code)
            .order_by(Policy.version_number.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_by_code_and_version(
        self, policy_code: str, version_number: int
    ) -> Optional[Policy]:
        stmt = select(Policy).where(
            Policy.policy_code == policy_code,
            Policy.version_number == version_number,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== Active Policies ====================

    async def find_active_policies_for_loan_type(
        self, loan_type: LoanType
    ) -> List[Policy]:
        """
        Retrieve ACTIVE policies for a loan type, including ALL-type policies.

        Effective windows are not applied here; the caller checks
        Policy.is_effective() at evaluation time.

        Args:
            loan_type: The loan type being evaluated

        Returns:
            Active policies ordered by ascending priority
        """
        stmt = (
            select(Policy)
            .where(
                Policy.status == PolicyStatus.ACTIVE,
                Policy.loan_type.in_([loan_type, LoanType.ALL]),
            )
            .order_by(Policy.priority, Policy.policy_code)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_active_by_category_and_loan_type(
        self, category: PolicyCategory, loan_type: LoanType
    ) -> List[Policy]:
        """Active policies of one category for a loan type (ALL included)."""
        stmt = (
            select(Policy)
            .where(
                Policy.status == PolicyStatus.ACTIVE,
                Policy.category == category,
                Policy.loan_type.in_([loan_type, LoanType.ALL]),
            )
            .order_by(Policy.priority, Policy.policy_code)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ==================== Lookup & Listing ====================

    async def exists_by_name_ignore_case(
        self, name: str, exclude_policy_code: Optional[str] = None
    ) -> bool:
        """
        Check whether a policy name is taken, ignoring case.

        Args:
            name: Candidate name
            exclude_policy_code: Ignore versions of this policy (used on rename)

        Returns:
            True if another policy already uses the name
        """
        stmt = select(Policy.id).where(func.lower(Policy.name) == name.strip().lower())
        if exclude_policy_code is not None:
            stmt = stmt.where(Policy.policy_code != exclude_policy_code)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def search(
        self, term: str, skip: int = 0, limit: int = 100
    ) -> List[Policy]:
        """
        Case-insensitive search over name, code and description.

        Args:
            term: Text to look for
            skip: Number of records to skip (offset)
            limit: Maximum number of records to return

        Returns:
            Matching policies, most recently updated first
        """
        pattern = f"%{term.strip()}%"
        stmt = (
            select(Policy)
            .where(
                or_(
                    Policy.name.ilike(pattern),
                    Policy.policy_code.ilike(pattern),
                    Policy.description.ilike(pattern),
                )
            )
            .order_by(Policy.updated_at.desc(), Policy.version_number.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_policies(
        self,
        category: Optional[PolicyCategory] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Policy], int]:
        """
        Paginated listing of all policy versions.

        Args:
            category: Optional category filter
            skip: Number of records to skip (offset)
            limit: Maximum number of records to return

        Returns:
            Tuple of (page of policies, total matching count)
        """
        stmt = select(Policy)
        count_stmt = select(func.count()).select_from(Policy)
        if category is not None:
            stmt = stmt.where(Policy.category == category)
            count_stmt = count_stmt.where(Policy.category == category)

        stmt = (
            stmt.order_by(Policy.priority, Policy.policy_code, Policy.version_number.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        total = (await self.db.execute(count_stmt)).scalar_one()
        return list(result.scalars().all()), total

    async def count_by_category_and_status(
        self,
    ) -> List[Tuple[PolicyCategory, PolicyStatus, int]]:
        """Row counts grouped by (category, status)."""
        stmt = select(Policy.category, Policy.status, func.count()).group_by(
            Policy.category, Policy.status
        )
        result = await self.db.execute(stmt)
        return [(category, status, count) for category, status, count in result.all()]
