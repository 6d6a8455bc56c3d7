"""Policy aggregate: versioned, lifecycle-governed container of rules."""

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.enums import LoanType, PolicyCategory, PolicyStatus
from app.core.exceptions import IllegalPolicyStateError, PolicyValidationError
from app.db.base import BaseModel
from app.models.domain.rule import PolicyRule

DEFAULT_POLICY_PRIORITY = 100

_MUTABLE_STATUSES = (PolicyStatus.DRAFT, PolicyStatus.INACTIVE)

# Fallback sequence for drafts built outside PolicyService; the service numbers
# codes from the highest stored one, and the (policy_code, version_number)
# unique index guarantees uniqueness across processes.
_CODE_SEQUENCE = itertools.count(1)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Policy(BaseModel):
    """
    Policy aggregate root.

    A policy bundles ordered rules for one loan type (or ALL). Versions share
    a policy_code; each version has its own id. Rules are stored as a JSONB
    list and exposed as immutable PolicyRule value objects.

    Lifecycle:
        DRAFT -> ACTIVE -> INACTIVE -> ACTIVE ...
        ACTIVE --create_new_version()--> ARCHIVED (+ new DRAFT version)
    """

    __tablename__ = "policies"
    __table_args__ = (
        UniqueConstraint("policy_code", "version_number", name="uq_policy_code_version"),
        Index("ix_policies_loan_type_status", "loan_type", "status"),
        Index("ix_policies_category_status", "category", "status"),
    )

    # Identity
    policy_code: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    category: Mapped[PolicyCategory] = mapped_column(
        SQLEnum(PolicyCategory, name="policy_category"),
        nullable=False,
    )
    loan_type: Mapped[LoanType] = mapped_column(
        SQLEnum(LoanType, name="loan_type"),
        nullable=False,
    )

    # Lifecycle & Versioning
    status: Mapped[PolicyStatus] = mapped_column(
        SQLEnum(PolicyStatus, name="policy_status"),
        nullable=False,
        default=PolicyStatus.DRAFT,
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    previous_version_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )

    # Ordering & Effective Window
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_POLICY_PRIORITY
    )  # lower = evaluated first
    effective_from: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    effective_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    tags: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)

    # Rules (JSONB list of PolicyRule dicts, camelCase keys)
    rules_data: Mapped[list[dict]] = mapped_column(
        "rules", JSONB, nullable=False, default=list
    )

    # Audit
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    modified_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __init__(self, **kwargs: Any):
        # Column defaults only fire on flush; transient instances need them too.
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("status", PolicyStatus.DRAFT)
        kwargs.setdefault("version_number", 1)
        kwargs.setdefault("priority", DEFAULT_POLICY_PRIORITY)
        kwargs.setdefault("tags", [])
        kwargs.setdefault("rules_data", [])
        super().__init__(**kwargs)

    # ===== Construction =====

    @staticmethod
    def policy_code_prefix() -> str:
        """Prefix shared by codes issued this year, e.g. POL-2026-."""
        return f"POL-{datetime.now(timezone.utc).year}-"

    @classmethod
    def generate_policy_code(cls, sequence: Optional[int] = None) -> str:
        """Generate a human-legible policy code, e.g. POL-2026-000001."""
        if sequence is None:
            sequence = next(_CODE_SEQUENCE)
        return f"{cls.policy_code_prefix()}{sequence:06d}"

    @classmethod
    def create_draft(
        cls,
        name: str,
        category: PolicyCategory,
        loan_type: LoanType,
        rules: Optional[list[PolicyRule]] = None,
        description: Optional[str] = None,
        priority: Optional[int] = None,
        effective_from: Optional[datetime] = None,
        effective_until: Optional[datetime] = None,
        tags: Optional[list[str]] = None,
        created_by: Optional[str] = None,
    ) -> "Policy":
        """
        Create a new version-1 DRAFT policy with a fresh policy code.

        Raises:
            PolicyValidationError: If the name is blank or the effective window is inverted
        """
        if not name or not name.strip():
            raise PolicyValidationError("Policy name is required")
        _check_window(effective_from, effective_until)

        return cls(
            policy_code=cls.generate_policy_code(),
            name=name.strip(),
            description=description,
            category=category,
            loan_type=loan_type,
            status=PolicyStatus.DRAFT,
            version_number=1,
            priority=DEFAULT_POLICY_PRIORITY if priority is None else priority,
            effective_from=effective_from,
            effective_until=effective_until,
            tags=list(tags or []),
            rules_data=[rule.to_storage() for rule in rules or []],
            created_by=created_by,
            modified_by=created_by,
        )

    # ===== Rules =====

    @property
    def rules(self) -> list[PolicyRule]:
        """Ordered rules as immutable value objects."""
        return [PolicyRule.model_validate(data) for data in self.rules_data or []]

    @property
    def rule_count(self) -> int:
        return len(self.rules_data or [])

    def get_enabled_rules(self) -> list[PolicyRule]:
        """Enabled rules ordered by ascending priority (stable for ties)."""
        enabled = [rule for rule in self.rules if rule.enabled]
        return sorted(enabled, key=lambda rule: rule.priority)

    def add_rule(self, rule: PolicyRule) -> None:
        """
        Append a rule.

        Raises:
            IllegalPolicyStateError: If the policy is ACTIVE or ARCHIVED
        """
        self._ensure_mutable()
        # Reassign so SQLAlchemy sees the JSONB change
        self.rules_data = [*(self.rules_data or []), rule.to_storage()]

    def remove_rule(self, rule_name: str) -> bool:
        """
        Remove every rule with the given name.

        Returns:
            True if at least one rule was removed

        Raises:
            IllegalPolicyStateError: If the policy is ACTIVE or ARCHIVED
        """
        self._ensure_mutable()
        remaining = [data for data in self.rules_data or [] if data.get("name") != rule_name]
        removed = len(remaining) != len(self.rules_data or [])
        self.rules_data = remaining
        return removed

    def replace_rules(self, rules: list[PolicyRule]) -> None:
        """Replace the whole rule list (DRAFT / INACTIVE only)."""
        self._ensure_mutable()
        self.rules_data = [rule.to_storage() for rule in rules]

    def set_effective_window(
        self, effective_from: Optional[datetime], effective_until: Optional[datetime]
    ) -> None:
        _check_window(effective_from, effective_until)
        self.effective_from = effective_from
        self.effective_until = effective_until

    # ===== Lifecycle =====

    def activate(self) -> None:
        """
        Move to ACTIVE. Activating an ACTIVE policy is a no-op.

        Raises:
            IllegalPolicyStateError: If the policy has no rules or is ARCHIVED
        """
        if self.status == PolicyStatus.ACTIVE:
            return
        if self.status == PolicyStatus.ARCHIVED:
            raise IllegalPolicyStateError("Cannot activate an archived policy")
        if not self.rules_data:
            raise IllegalPolicyStateError("Cannot activate a policy with no rules")
        self.status = PolicyStatus.ACTIVE

    def deactivate(self) -> None:
        """
        Move to INACTIVE.

        Raises:
            IllegalPolicyStateError: If the policy is ARCHIVED
        """
        if self.status == PolicyStatus.ARCHIVED:
            raise IllegalPolicyStateError("Cannot deactivate an archived policy")
        self.status = PolicyStatus.INACTIVE

    def archive(self) -> None:
        """Move to ARCHIVED; a superseded version is never evaluated again."""
        self.status = PolicyStatus.ARCHIVED

    def create_new_version(self, created_by: Optional[str] = None) -> "Policy":
        """
        Return the next DRAFT version of this policy.

        An ACTIVE policy is archived in the process. The new version carries
        an independent deep copy of the rules.

        Raises:
            IllegalPolicyStateError: If the policy is DRAFT or ARCHIVED
        """
        if self.status == PolicyStatus.DRAFT:
            raise IllegalPolicyStateError(
                "Cannot version a DRAFT policy. Edit the draft directly."
            )
        if self.status == PolicyStatus.ARCHIVED:
            raise IllegalPolicyStateError("Cannot version an archived policy")

        if self.status == PolicyStatus.ACTIVE:
            self.archive()

        author = created_by or self.modified_by
        return Policy(
            policy_code=self.policy_code,
            name=self.name,
            description=self.description,
            category=self.category,
            loan_type=self.loan_type,
            status=PolicyStatus.DRAFT,
            version_number=self.version_number + 1,
            previous_version_id=self.id,
            priority=self.priority,
            effective_from=self.effective_from,
            effective_until=self.effective_until,
            tags=list(self.tags or []),
            rules_data=copy.deepcopy(self.rules_data or []),
            created_by=author,
            modified_by=author,
        )

    def is_mutable(self) -> bool:
        return self.status in _MUTABLE_STATUSES

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        """ACTIVE and within [effective_from, effective_until]; open bounds are unbounded."""
        if self.status != PolicyStatus.ACTIVE:
            return False
        now = _as_utc(now) or datetime.now(timezone.utc)
        start = _as_utc(self.effective_from)
        end = _as_utc(self.effective_until)
        if start is not None and now < start:
            return False
        if end is not None and now > end:
            return False
        return True

    def _ensure_mutable(self) -> None:
        if not self.is_mutable():
            raise IllegalPolicyStateError(
                f"Cannot modify an {self.status.value} policy. Create a new version first."
            )

    def __repr__(self) -> str:
        return (
            f"<Policy(code={self.policy_code!r}, v{self.version_number}, "
            f"name={self.name!r}, status={self.status.value})>"
        )


def _check_window(
    effective_from: Optional[datetime], effective_until: Optional[datetime]
) -> None:
    if effective_from is not None and effective_until is not None:
        if _as_utc(effective_from) > _as_utc(effective_until):
            raise PolicyValidationError("effective_from cannot be after effective_until")
