"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.config import settings
from app.db.session import SessionLocal, dispose_engine
from app.repositories.policy_repository import PolicyRepository
from app.services.policy_cache import InMemoryPolicyCache, PolicyCache, RedisPolicyCache
from app.services.policy_service import PolicyService
from app.services.policy_templates import seed_policy_templates

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_policy_cache() -> PolicyCache:
    """Redis cache when REDIS_URL is set, otherwise an in-process cache."""
    if settings.REDIS_URL:
        return RedisPolicyCache(settings.REDIS_URL, settings.POLICY_CACHE_TTL_SECONDS)
    logger.info("REDIS_URL not set; using in-process policy cache")
    return InMemoryPolicyCache(settings.POLICY_CACHE_TTL_SECONDS)


async def seed_templates(cache: PolicyCache) -> None:
    """Seed built-in templates; a database failure here does not stop startup."""
    try:
        async with SessionLocal() as session:
            await seed_policy_templates(PolicyService(PolicyRepository(session), cache))
    except Exception as e:
        logger.error(f"Policy template initialization failed: {str(e)}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    cache = build_policy_cache()
    await cache.start()
    app.state.policy_cache = cache

    if settings.SEED_POLICY_TEMPLATES:
        await seed_templates(cache)

    yield

    await cache.stop()
    await dispose_engine()


# Create FastAPI application
app = FastAPI(
    title="LoanFlow Policy Engine API",
    description="API for authoring versioned loan policies and evaluating applications against them",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router with v1 prefix
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": "LoanFlow Policy Engine API",
        "version": "1.0.0",
        "docs": "/api/docs",
    }
