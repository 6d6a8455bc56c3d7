"""Provider of active policies for evaluation: cache first, repository second."""

import logging
from typing import List, Optional

from app.core.enums import LoanType
from app.models.domain.policy import Policy
from app.repositories.policy_repository import PolicyRepository
from app.services.policy_cache import PolicyCache, active_policies_key

logger = logging.getLogger(__name__)


class ActivePolicyProvider:
    """
    Supplies ACTIVE policies (ALL-type included) for a loan type.

    Cache failures are absorbed by the cache itself; repository failures
    propagate to the caller.
    """

    def __init__(
        self,
        repository: PolicyRepository,
        cache: PolicyCache,
        ttl_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def find_effective_policies(self, loan_type: LoanType) -> List[Policy]:
        """
        Active policies for a loan type.

        Effective windows are checked by the caller at evaluation time, so
        cached lists stay valid as the clock moves.

        Args:
            loan_type: The loan type being evaluated

        Returns:
            Active policies for the loan type plus ALL-type policies
        """
        key = active_policies_key(loan_type)

        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for active policies: {loan_type.value}")
            return cached

        policies = await self.repository.find_active_policies_for_loan_type(loan_type)
        logger.debug(f"Loaded {len(policies)} active policies for {loan_type.value} from database")
        await self.cache.set(key, policies, self.ttl_seconds)
        return policies
