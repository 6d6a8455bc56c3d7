"""Dependency injection for FastAPI endpoints."""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.session import get_db
from app.repositories.policy_repository import PolicyRepository
from app.services.evaluation_service import PolicyEvaluationService
from app.services.policy_cache import PolicyCache
from app.services.policy_provider import ActivePolicyProvider
from app.services.policy_service import SYSTEM_USER, PolicyService

__all__ = [
    "get_db",
    "get_session",
    "get_policy_cache",
    "get_policy_service",
    "get_evaluation_service",
    "get_current_user",
]


# Re-export get_db for convenience
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session dependency.

    This is an alias for get_db for clarity in endpoint signatures.
    """
    async for session in get_db():
        yield session


def get_policy_cache(request: Request) -> PolicyCache:
    """Active-policy cache created by the application lifespan."""
    return request.app.state.policy_cache


def get_policy_service(
    db: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[PolicyCache, Depends(get_policy_cache)],
) -> PolicyService:
    return PolicyService(PolicyRepository(db), cache)


def get_evaluation_service(
    db: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[PolicyCache, Depends(get_policy_cache)],
) -> PolicyEvaluationService:
    provider = ActivePolicyProvider(
        PolicyRepository(db), cache, ttl_seconds=settings.POLICY_CACHE_TTL_SECONDS
    )
    return PolicyEvaluationService(provider)


def get_current_user(
    x_user_id: Annotated[Optional[str], Header(description="Acting user id")] = None,
) -> str:
    """Acting user from the X-User-Id header, 'system' when absent."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else SYSTEM_USER
