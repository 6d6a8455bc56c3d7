"""Pydantic schemas for API validation and serialization."""

from app.models.schemas.evaluation import (
    ConditionResultResponse,
    EvaluationLogEntryResponse,
    PolicyEvaluationRequest,
    PolicyEvaluationResponse,
    PolicyMatchResultResponse,
    RuleMatchResultResponse,
    TriggeredActionResponse,
)
from app.models.schemas.policy import (
    CamelModel,
    PolicyCreate,
    PolicyListResponse,
    PolicyResponse,
    PolicyStatsResponse,
    PolicySummaryResponse,
    PolicyUpdate,
)

__all__ = [
    # Policy schemas
    "CamelModel",
    "PolicyCreate",
    "PolicyUpdate",
    "PolicyResponse",
    "PolicySummaryResponse",
    "PolicyListResponse",
    "PolicyStatsResponse",
    # Evaluation schemas
    "PolicyEvaluationRequest",
    "PolicyEvaluationResponse",
    "PolicyMatchResultResponse",
    "RuleMatchResultResponse",
    "ConditionResultResponse",
    "TriggeredActionResponse",
    "EvaluationLogEntryResponse",
]
