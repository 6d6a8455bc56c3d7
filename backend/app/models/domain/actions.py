"""Typed action variants and the adapter to/from the generic parameter map."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional, Union

from app.core.enums import ActionType
from app.core.exceptions import PolicyValidationError
from app.models.domain.rule import Action

DECISION_TYPES = frozenset({ActionType.APPROVE, ActionType.REJECT, ActionType.REFER})


@dataclass(frozen=True)
class DecisionAction:
    """APPROVE, REJECT or REFER."""

    decision: ActionType

    def to_parameters(self) -> Dict[str, str]:
        return {}

    def summary(self) -> str:
        return self.decision.value


@dataclass(frozen=True)
class InterestRateAction:
    """SET_INTEREST_RATE {rate, type}."""

    rate: Decimal
    rate_type: str = "FIXED"

    def to_parameters(self) -> Dict[str, str]:
        return {"rate": str(self.rate), "type": self.rate_type}

    def summary(self) -> str:
        return f"rate {self.rate}% ({self.rate_type})"


@dataclass(frozen=True)
class ProcessingFeeAction:
    """SET_PROCESSING_FEE {percentage}."""

    percentage: Decimal

    def to_parameters(self) -> Dict[str, str]:
        return {"percentage": str(self.percentage)}

    def summary(self) -> str:
        return f"processing fee {self.percentage}%"


@dataclass(frozen=True)
class MaxAmountAction:
    """SET_MAX_AMOUNT {amount}."""

    amount: Decimal

    def to_parameters(self) -> Dict[str, str]:
        return {"amount": str(self.amount)}

    def summary(self) -> str:
        return f"max amount {self.amount}"


@dataclass(frozen=True)
class MaxTenureAction:
    """SET_MAX_TENURE {months}."""

    months: int

    def to_parameters(self) -> Dict[str, str]:
        return {"months": str(self.months)}

    def summary(self) -> str:
        return f"max tenure {self.months} months"


@dataclass(frozen=True)
class RoleAssignmentAction:
    """ASSIGN_TO_ROLE {role}."""

    role: str

    def to_parameters(self) -> Dict[str, str]:
        return {"role": self.role}

    def summary(self) -> str:
        return f"assign to {self.role}"


@dataclass(frozen=True)
class DocumentRequirementAction:
    """REQUIRE_DOCUMENT {documentType, mandatory}."""

    document_type: str
    mandatory: bool = True

    def to_parameters(self) -> Dict[str, str]:
        return {
            "documentType": self.document_type,
            "mandatory": "true" if self.mandatory else "false",
        }

    def summary(self) -> str:
        kind = "mandatory" if self.mandatory else "optional"
        return f"{kind} document {self.document_type}"


@dataclass(frozen=True)
class NotificationAction:
    """NOTIFY {recipient, template}; both optional."""

    recipient: Optional[str] = None
    template: Optional[str] = None

    def to_parameters(self) -> Dict[str, str]:
        params = {}
        if self.recipient is not None:
            params["recipient"] = self.recipient
        if self.template is not None:
            params["template"] = self.template
        return params

    def summary(self) -> str:
        return f"notify {self.recipient or 'default recipients'}"


@dataclass(frozen=True)
class RiskFlagAction:
    """FLAG_RISK {reason}."""

    reason: Optional[str] = None

    def to_parameters(self) -> Dict[str, str]:
        return {"reason": self.reason} if self.reason is not None else {}

    def summary(self) -> str:
        return f"risk flag: {self.reason or 'unspecified'}"


TypedAction = Union[
    DecisionAction,
    InterestRateAction,
    ProcessingFeeAction,
    MaxAmountAction,
    MaxTenureAction,
    RoleAssignmentAction,
    DocumentRequirementAction,
    NotificationAction,
    RiskFlagAction,
]


def _required(params: Dict[str, str], key: str, action_type: ActionType) -> str:
    value = params.get(key)
    if value is None or not value.strip():
        raise PolicyValidationError(
            f"{action_type.value} action requires parameter '{key}'"
        )
    return value.strip()


def _decimal(params: Dict[str, str], key: str, action_type: ActionType) -> Decimal:
    raw = _required(params, key, action_type)
    try:
        number = Decimal(raw)
    except InvalidOperation:
        raise PolicyValidationError(
            f"{action_type.value} parameter '{key}' must be numeric, got '{raw}'"
        )
    if not number.is_finite() or number < 0:
        raise PolicyValidationError(
            f"{action_type.value} parameter '{key}' must be a non-negative number"
        )
    return number


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def _parse_tenure(params: Dict[str, str]) -> MaxTenureAction:
    months = _decimal(params, "months", ActionType.SET_MAX_TENURE)
    if months != months.to_integral_value():
        raise PolicyValidationError("SET_MAX_TENURE parameter 'months' must be whole")
    return MaxTenureAction(months=int(months))


_PARSERS: Dict[ActionType, Callable[[Dict[str, str]], TypedAction]] = {
    ActionType.APPROVE: lambda p: DecisionAction(ActionType.APPROVE),
    ActionType.REJECT: lambda p: DecisionAction(ActionType.REJECT),
    ActionType.REFER: lambda p: DecisionAction(ActionType.REFER),
    ActionType.SET_INTEREST_RATE: lambda p: InterestRateAction(
        rate=_decimal(p, "rate", ActionType.SET_INTEREST_RATE),
        rate_type=(p.get("type") or "FIXED").upper(),
    ),
    ActionType.SET_PROCESSING_FEE: lambda p: ProcessingFeeAction(
        percentage=_decimal(p, "percentage", ActionType.SET_PROCESSING_FEE)
    ),
    ActionType.SET_MAX_AMOUNT: lambda p: MaxAmountAction(
        amount=_decimal(p, "amount", ActionType.SET_MAX_AMOUNT)
    ),
    ActionType.SET_MAX_TENURE: _parse_tenure,
    ActionType.ASSIGN_TO_ROLE: lambda p: RoleAssignmentAction(
        role=_required(p, "role", ActionType.ASSIGN_TO_ROLE)
    ),
    ActionType.REQUIRE_DOCUMENT: lambda p: DocumentRequirementAction(
        document_type=_required(p, "documentType", ActionType.REQUIRE_DOCUMENT),
        mandatory=_flag(p.get("mandatory"), default=True),
    ),
    ActionType.NOTIFY: lambda p: NotificationAction(
        recipient=p.get("recipient"), template=p.get("template")
    ),
    ActionType.FLAG_RISK: lambda p: RiskFlagAction(reason=p.get("reason")),
}


def parse_action(action: Action) -> TypedAction:
    """
    Build the typed variant for an action from its generic parameter map.

    Unknown extra parameters are ignored so newer configurations keep loading.

    Raises:
        PolicyValidationError: If a required parameter is missing or malformed
    """
    return _PARSERS[action.type](action.parameters)


def to_action(variant: TypedAction, description: Optional[str] = None) -> Action:
    """Convert a typed variant back into the generic wire/storage form."""
    if isinstance(variant, DecisionAction):
        action_type = variant.decision
    else:
        action_type = _VARIANT_TYPES[type(variant)]
    return Action(
        type=action_type,
        parameters=variant.to_parameters(),
        description=description,
    )


_VARIANT_TYPES = {
    InterestRateAction: ActionType.SET_INTEREST_RATE,
    ProcessingFeeAction: ActionType.SET_PROCESSING_FEE,
    MaxAmountAction: ActionType.SET_MAX_AMOUNT,
    MaxTenureAction: ActionType.SET_MAX_TENURE,
    RoleAssignmentAction: ActionType.ASSIGN_TO_ROLE,
    DocumentRequirementAction: ActionType.REQUIRE_DOCUMENT,
    NotificationAction: ActionType.NOTIFY,
    RiskFlagAction: ActionType.FLAG_RISK,
}


def describe_action(action: Action) -> str:
    """Short summary for log lines; falls back to the raw map if parsing fails."""
    try:
        return parse_action(action).summary()
    except PolicyValidationError:
        return f"{action.type.value} {action.parameters}"
