"""Pydantic schemas for policy management."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.enums import LoanType, PolicyCategory, PolicyStatus
from app.models.domain.policy import DEFAULT_POLICY_PRIORITY, Policy
from app.models.domain.rule import PolicyRule


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; snake_case is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== Request Schemas ====================


class PolicyCreate(CamelModel):
    """Schema for creating a DRAFT policy."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: PolicyCategory
    loan_type: LoanType
    priority: int = Field(DEFAULT_POLICY_PRIORITY, description="Lower is evaluated first")
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    rules: list[PolicyRule] = Field(default_factory=list)


class PolicyUpdate(CamelModel):
    """Schema for updating a DRAFT or INACTIVE policy (all fields optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[PolicyCategory] = None
    loan_type: Optional[LoanType] = None
    priority: Optional[int] = None
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    tags: Optional[list[str]] = None
    rules: Optional[list[PolicyRule]] = None


# ==================== Response Schemas ====================


class PolicyResponse(CamelModel):
    """
    Full policy snapshot.

    Also the JSON form stored in the active-policy cache; to_policy()
    rebuilds a detached Policy aggregate from it.
    """

    id: UUID
    policy_code: str
    name: str
    description: Optional[str] = None
    category: PolicyCategory
    loan_type: LoanType
    status: PolicyStatus
    version_number: int
    previous_version_id: Optional[UUID] = None
    priority: int
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    rules: list[PolicyRule] = Field(default_factory=list)
    rule_count: int = 0
    created_by: Optional[str] = None
    modified_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_policy(self) -> Policy:
        """Detached Policy carrying this snapshot's state (never added to a session)."""
        return Policy(
            id=self.id,
            policy_code=self.policy_code,
            name=self.name,
            description=self.description,
            category=self.category,
            loan_type=self.loan_type,
            status=self.status,
            version_number=self.version_number,
            previous_version_id=self.previous_version_id,
            priority=self.priority,
            effective_from=self.effective_from,
            effective_until=self.effective_until,
            tags=list(self.tags),
            rules_data=[rule.to_storage() for rule in self.rules],
            created_by=self.created_by,
            modified_by=self.modified_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class PolicySummaryResponse(CamelModel):
    """Compact policy row for list views."""

    id: UUID
    policy_code: str
    name: str
    category: PolicyCategory
    loan_type: LoanType
    status: PolicyStatus
    version_number: int
    priority: int
    rule_count: int = 0
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PolicyListResponse(CamelModel):
    """Paginated policy list."""

    policies: list[PolicySummaryResponse]
    total: int
    page: int
    size: int


class PolicyStatsResponse(CamelModel):
    """Policy counts for dashboards; by_category counts ACTIVE policies only."""

    total: int
    active: int
    draft: int
    inactive: int
    archived: int
    by_category: dict[str, int]
