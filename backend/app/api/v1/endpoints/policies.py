"""Policy management and evaluation endpoints."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.enums import LoanType, PolicyCategory
from app.core.exceptions import (
    DuplicatePolicyError,
    IllegalPolicyStateError,
    PolicyEngineError,
    PolicyNotFoundError,
    PolicyValidationError,
)
from app.deps import get_current_user, get_evaluation_service, get_policy_service
from app.models.schemas.evaluation import PolicyEvaluationRequest, PolicyEvaluationResponse
from app.models.schemas.policy import (
    PolicyCreate,
    PolicyListResponse,
    PolicyResponse,
    PolicyStatsResponse,
    PolicySummaryResponse,
    PolicyUpdate,
)
from app.services.evaluation_service import PolicyEvaluationService
from app.services.policy_service import PolicyService

logger = logging.getLogger(__name__)

router = APIRouter()

PolicyServiceDep = Annotated[PolicyService, Depends(get_policy_service)]
CurrentUser = Annotated[str, Depends(get_current_user)]


def _http_error(e: PolicyEngineError) -> HTTPException:
    """Map a domain error to its HTTP status."""
    if isinstance(e, PolicyNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (DuplicatePolicyError, IllegalPolicyStateError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, PolicyValidationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return HTTPException(status_code=code, detail=str(e))


def _parse_loan_type(value: str) -> LoanType:
    try:
        return LoanType.parse(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid loan type: {value}",
        )


# ==================== Evaluation ====================


@router.post(
    "/evaluate",
    response_model=PolicyEvaluationResponse,
    summary="Evaluate an application",
    description="Evaluate a loan application against all active policies for its loan type",
)
async def evaluate_application(
    request: PolicyEvaluationRequest,
    service: Annotated[PolicyEvaluationService, Depends(get_evaluation_service)],
) -> PolicyEvaluationResponse:
    """
    Evaluate a loan application.

    Returns the overall decision (APPROVED, REJECTED, REFERRED, NO_MATCH or
    ERROR), the resolved actions and a per-condition trace. An unknown loan
    type yields an ERROR decision rather than an HTTP error.
    """
    try:
        outcome = await service.evaluate(request)
        return PolicyEvaluationResponse.model_validate(outcome)
    except Exception as e:
        logger.error(
            f"Error evaluating application {request.application_id}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to evaluate application",
        )


# ==================== Queries ====================


@router.get(
    "/",
    response_model=PolicyListResponse,
    summary="List policies",
    description="Retrieve all policy versions with pagination",
)
async def list_policies(
    service: PolicyServiceDep,
    category: Annotated[
        Optional[PolicyCategory], Query(description="Filter by category")
    ] = None,
    page: Annotated[int, Query(ge=1, description="Page number (1-indexed)")] = 1,
    page_size: Annotated[
        int, Query(ge=1, le=100, description="Number of items per page")
    ] = 20,
) -> PolicyListResponse:
    policies, total = await service.list_policies(category=category, page=page, size=page_size)
    return PolicyListResponse(
        policies=[PolicySummaryResponse.model_validate(p) for p in policies],
        total=total,
        page=page,
        size=page_size,
    )


@router.get(
    "/search",
    response_model=list[PolicySummaryResponse],
    summary="Search policies",
)
async def search_policies(
    service: PolicyServiceDep,
    q: Annotated[str, Query(min_length=1, description="Text to search in name, code and description")],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[PolicySummaryResponse]:
    policies = await service.search_policies(q, page=page, size=page_size)
    return [PolicySummaryResponse.model_validate(p) for p in policies]


@router.get(
    "/stats",
    response_model=PolicyStatsResponse,
    summary="Policy statistics",
)
async def get_stats(service: PolicyServiceDep) -> PolicyStatsResponse:
    return await service.get_stats()


@router.get(
    "/active/{loan_type}",
    response_model=list[PolicyResponse],
    summary="Active policies for a loan type",
    description="ACTIVE policies for the loan type plus ALL-type policies, by priority",
)
async def get_active_policies(
    loan_type: str,
    service: PolicyServiceDep,
    category: Annotated[Optional[PolicyCategory], Query()] = None,
) -> list[PolicyResponse]:
    policies = await service.get_active_policies(_parse_loan_type(loan_type), category)
    return [PolicyResponse.model_validate(p) for p in policies]


@router.get(
    "/code/{policy_code}",
    response_model=PolicyResponse,
    summary="Get latest version by code",
)
async def get_policy_by_code(policy_code: str, service: PolicyServiceDep) -> PolicyResponse:
    try:
        return PolicyResponse.model_validate(await service.get_latest_by_code(policy_code))
    except PolicyEngineError as e:
        raise _http_error(e)


@router.get(
    "/code/{policy_code}/versions",
    response_model=list[PolicyResponse],
    summary="Version history",
    description="All versions of a policy, newest first",
)
async def get_version_history(
    policy_code: str, service: PolicyServiceDep
) -> list[PolicyResponse]:
    try:
        versions = await service.get_version_history(policy_code)
    except PolicyEngineError as e:
        raise _http_error(e)
    return [PolicyResponse.model_validate(p) for p in versions]


@router.get(
    "/code/{policy_code}/versions/{version_number}",
    response_model=PolicyResponse,
    summary="Get one version by code",
)
async def get_policy_version(
    policy_code: str, version_number: int, service: PolicyServiceDep
) -> PolicyResponse:
    try:
        return PolicyResponse.model_validate(
            await service.get_version(policy_code, version_number)
        )
    except PolicyEngineError as e:
        raise _http_error(e)


@router.get(
    "/{policy_id}",
    response_model=PolicyResponse,
    summary="Get policy by ID",
)
async def get_policy(policy_id: UUID, service: PolicyServiceDep) -> PolicyResponse:
    try:
        return PolicyResponse.model_validate(await service.get_policy(policy_id))
    except PolicyEngineError as e:
        raise _http_error(e)


# ==================== Authoring & Lifecycle ====================


@router.post(
    "/",
    response_model=PolicyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a policy",
    description="Create a new DRAFT policy (version 1)",
)
async def create_policy(
    policy_data: PolicyCreate,
    service: PolicyServiceDep,
    user: CurrentUser,
) -> PolicyResponse:
    """
    Create a new policy.

    Rule actions are checked against their type (e.g. SET_INTEREST_RATE
    needs a numeric rate) and conditions must carry the operands their
    operator needs.
    """
    try:
        policy = await service.create_policy(policy_data, created_by=user)
        return PolicyResponse.model_validate(policy)
    except PolicyEngineError as e:
        logger.error(f"Error creating policy: {str(e)}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error creating policy: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create policy",
        )


@router.put(
    "/{policy_id}",
    response_model=PolicyResponse,
    summary="Update a policy",
    description="Update a DRAFT or INACTIVE policy",
)
async def update_policy(
    policy_id: UUID,
    policy_data: PolicyUpdate,
    service: PolicyServiceDep,
    user: CurrentUser,
) -> PolicyResponse:
    try:
        policy = await service.update_policy(policy_id, policy_data, modified_by=user)
        return PolicyResponse.model_validate(policy)
    except PolicyEngineError as e:
        logger.error(f"Error updating policy {policy_id}: {str(e)}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error updating policy {policy_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update policy",
        )


@router.delete(
    "/{policy_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a DRAFT policy",
)
async def delete_policy(policy_id: UUID, service: PolicyServiceDep) -> None:
    try:
        await service.delete_policy(policy_id)
    except PolicyEngineError as e:
        raise _http_error(e)


@router.post(
    "/{policy_id}/versions",
    response_model=PolicyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new version",
    description="Create the next DRAFT version; an ACTIVE source is archived",
)
async def create_new_version(
    policy_id: UUID,
    service: PolicyServiceDep,
    user: CurrentUser,
) -> PolicyResponse:
    try:
        policy = await service.create_new_version(policy_id, created_by=user)
        return PolicyResponse.model_validate(policy)
    except PolicyEngineError as e:
        logger.error(f"Error versioning policy {policy_id}: {str(e)}")
        raise _http_error(e)


@router.patch(
    "/{policy_id}/activate",
    response_model=PolicyResponse,
    summary="Activate a policy",
)
async def activate_policy(
    policy_id: UUID,
    service: PolicyServiceDep,
    user: CurrentUser,
) -> PolicyResponse:
    try:
        policy = await service.activate_policy(policy_id, modified_by=user)
        return PolicyResponse.model_validate(policy)
    except PolicyEngineError as e:
        logger.error(f"Error activating policy {policy_id}: {str(e)}")
        raise _http_error(e)


@router.patch(
    "/{policy_id}/deactivate",
    response_model=PolicyResponse,
    summary="Deactivate a policy",
)
async def deactivate_policy(
    policy_id: UUID,
    service: PolicyServiceDep,
    user: CurrentUser,
) -> PolicyResponse:
    try:
        policy = await service.deactivate_policy(policy_id, modified_by=user)
        return PolicyResponse.model_validate(policy)
    except PolicyEngineError as e:
        logger.error(f"Error deactivating policy {policy_id}: {str(e)}")
        raise _http_error(e)
