"""Immutable value objects stored inside a policy: conditions, actions and rules."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.enums import ActionType, ConditionOperator, LogicalOperator

DEFAULT_RULE_PRIORITY = 100

# Operators that only test field presence or a boolean reading of the field
_OPERAND_FREE = {
    ConditionOperator.IS_NULL,
    ConditionOperator.IS_NOT_NULL,
    ConditionOperator.IS_TRUE,
    ConditionOperator.IS_FALSE,
}
_SET_OPERATORS = {ConditionOperator.IN, ConditionOperator.NOT_IN}


def _to_text(value: Any) -> Optional[str]:
    """Normalize a scalar authoring value to its stored string form."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ValueObject(BaseModel):
    """Frozen pydantic base using camelCase on the wire and in storage."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class Condition(ValueObject):
    """
    A single comparison of one context field against expected value(s).

    Attributes:
        field: Dot-notation path into the evaluation context (e.g. "applicant.age")
        operator: Comparison operator
        value: Expected value for single-value operators
        values: Expected set for IN / NOT_IN
        min_value: Inclusive lower bound for BETWEEN
        max_value: Inclusive upper bound for BETWEEN
    """

    field: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: Optional[str] = None
    values: Optional[tuple[str, ...]] = None
    min_value: Optional[str] = None
    max_value: Optional[str] = None

    @field_validator("value", "min_value", "max_value", mode="before")
    @classmethod
    def _coerce_scalar(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, v: Any) -> Optional[tuple[str, ...]]:
        if v is None:
            return None
        return tuple(_to_text(item) for item in v)

    # ===== Factory functions =====

    @classmethod
    def compare(
        cls, field: str, operator: ConditionOperator, value: Any
    ) -> "Condition":
        """Single-value comparison (EQUALS, GREATER_THAN, CONTAINS, ...)."""
        return cls(field=field, operator=operator, value=value)

    @classmethod
    def between(cls, field: str, min_value: Any, max_value: Any) -> "Condition":
        """Inclusive range check."""
        return cls(
            field=field,
            operator=ConditionOperator.BETWEEN,
            min_value=min_value,
            max_value=max_value,
        )

    @classmethod
    def one_of(cls, field: str, values: list[Any], negate: bool = False) -> "Condition":
        """Set membership (IN, or NOT_IN when negate is True)."""
        operator = ConditionOperator.NOT_IN if negate else ConditionOperator.IN
        return cls(field=field, operator=operator, values=values)

    @classmethod
    def check(cls, field: str, operator: ConditionOperator) -> "Condition":
        """Operand-free check (IS_NULL, IS_NOT_NULL, IS_TRUE, IS_FALSE)."""
        return cls(field=field, operator=operator)

    # ===== Helpers =====

    def operand_problem(self) -> Optional[str]:
        """
        Describe a missing operand for this condition's operator.

        Returns:
            A human-readable problem description, or None if the operands are complete
        """
        if self.operator in _OPERAND_FREE:
            return None
        if self.operator == ConditionOperator.BETWEEN:
            if self.min_value is None or self.max_value is None:
                return "BETWEEN requires both minValue and maxValue"
            return None
        if self.operator in _SET_OPERATORS:
            if not self.values:
                return f"{self.operator.value} requires a non-empty values list"
            return None
        if self.value is None:
            return f"{self.operator.value} requires a value"
        return None

    def expected_display(self) -> str:
        """Display form of the expected operand, for audit trails."""
        if self.operator == ConditionOperator.BETWEEN:
            return f"[{self.min_value}, {self.max_value}]"
        if self.operator in _SET_OPERATORS:
            return "[" + ", ".join(self.values or ()) + "]"
        if self.operator in _OPERAND_FREE:
            return ""
        return self.value if self.value is not None else ""


class Action(ValueObject):
    """
    A side effect emitted when a rule matches.

    Parameters are a free-form string map on the wire; use
    app.models.domain.actions.parse_action() for the typed variant.
    """

    type: ActionType
    parameters: dict[str, str] = Field(default_factory=dict)
    description: Optional[str] = None

    @field_validator("parameters", mode="before")
    @classmethod
    def _coerce_parameters(cls, v: Any) -> dict[str, str]:
        if v is None:
            return {}
        return {
            str(key): _to_text(item)
            for key, item in dict(v).items()
            if item is not None
        }

    def identity(self) -> tuple:
        """Key used to detect duplicate actions: type plus parameters."""
        return (self.type, tuple(sorted(self.parameters.items())))


class PolicyRule(ValueObject):
    """
    A named combination of conditions that triggers actions when matched.

    Example:
        "Salaried Applicant Approval" (AND):
            applicant.employmentType IN [SALARIED, PROFESSIONAL]
            applicant.age BETWEEN 21, 60
        Actions: APPROVE, SET_MAX_AMOUNT {amount: 2000000}
    """

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    conditions: tuple[Condition, ...] = ()
    actions: tuple[Action, ...] = ()
    priority: int = DEFAULT_RULE_PRIORITY
    enabled: bool = True

    @field_validator("logical_operator", mode="before")
    @classmethod
    def _default_operator(cls, v: Any) -> Any:
        return LogicalOperator.AND if v is None else v

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, v: Any) -> Any:
        return DEFAULT_RULE_PRIORITY if v is None else v

    @field_validator("enabled", mode="before")
    @classmethod
    def _default_enabled(cls, v: Any) -> Any:
        return True if v is None else v

    @field_validator("conditions", "actions", mode="before")
    @classmethod
    def _default_empty(cls, v: Any) -> Any:
        return () if v is None else v

    def to_storage(self) -> dict[str, Any]:
        """JSON-compatible dict as persisted in the policy's rules column."""
        return self.model_dump(mode="json", by_alias=True)
