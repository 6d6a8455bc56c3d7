"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import health, policies

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    health.router,
    tags=["health"],
)

api_router.include_router(
    policies.router,
    prefix="/policies",
    tags=["policies"],
)
