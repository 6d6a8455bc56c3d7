"""Core enums for type safety across the application."""

from enum import Enum


class LoanType(str, Enum):
    """Loan products a policy can target."""

    PERSONAL_LOAN = "PERSONAL_LOAN"
    HOME_LOAN = "HOME_LOAN"
    VEHICLE_LOAN = "VEHICLE_LOAN"
    EDUCATION_LOAN = "EDUCATION_LOAN"
    GOLD_LOAN = "GOLD_LOAN"
    BUSINESS_LOAN = "BUSINESS_LOAN"
    KCC = "KCC"  # Kisan Credit Card
    LAP = "LAP"  # Loan Against Property
    ALL = "ALL"  # Applies to every loan type

    @classmethod
    def parse(cls, value: str) -> "LoanType":
        """
        Parse a loan type name case-insensitively.

        Raises:
            ValueError: If the value is not a known loan type
        """
        if value is None:
            raise ValueError("Loan type is required")
        return cls(value.strip().upper())


class PolicyCategory(str, Enum):
    """Business area a policy governs."""

    ELIGIBILITY = "ELIGIBILITY"
    PRICING = "PRICING"
    CREDIT_LIMIT = "CREDIT_LIMIT"
    DOCUMENT_REQUIREMENT = "DOCUMENT_REQUIREMENT"
    WORKFLOW = "WORKFLOW"
    RISK_SCORING = "RISK_SCORING"


class PolicyStatus(str, Enum):
    """Policy lifecycle states."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class LogicalOperator(str, Enum):
    """How the conditions of a rule are combined."""

    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    """Comparison operators for rule conditions."""

    # Comparison
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"

    # Range and collection
    BETWEEN = "BETWEEN"
    IN = "IN"
    NOT_IN = "NOT_IN"

    # Text
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"

    # Boolean
    IS_TRUE = "IS_TRUE"
    IS_FALSE = "IS_FALSE"

    # Presence
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"


class ActionType(str, Enum):
    """Side effects a matched rule can trigger."""

    # Decision actions
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REFER = "REFER"

    # Single-valued settings
    SET_INTEREST_RATE = "SET_INTEREST_RATE"
    SET_PROCESSING_FEE = "SET_PROCESSING_FEE"
    SET_MAX_AMOUNT = "SET_MAX_AMOUNT"
    SET_MAX_TENURE = "SET_MAX_TENURE"
    ASSIGN_TO_ROLE = "ASSIGN_TO_ROLE"

    # Accumulating actions
    REQUIRE_DOCUMENT = "REQUIRE_DOCUMENT"
    NOTIFY = "NOTIFY"
    FLAG_RISK = "FLAG_RISK"


class Decision(str, Enum):
    """Overall outcome of one evaluation call."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REFERRED = "REFERRED"
    NO_MATCH = "NO_MATCH"
    ERROR = "ERROR"


class LogLevel(str, Enum):
    """Levels used in the per-evaluation audit log."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
