"""Pydantic schemas for the policy evaluation wire contract."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import ConfigDict, Field

from app.core.enums import ActionType, Decision, LogLevel
from app.models.schemas.policy import CamelModel
from app.services.policy_engine.context import EvaluationContext


class PolicyEvaluationRequest(CamelModel):
    """
    Loan application facts to evaluate.

    Fields map to dot-notation context keys (loan.*, applicant.*, property.*);
    additionalFields are copied in under their own keys.
    """

    application_id: str = Field(..., min_length=1, description="Loan application ID for the audit trail")
    loan_type: str = Field(..., min_length=1, description="LoanType name, case-insensitive")
    requested_amount: Decimal
    tenure_months: int
    purpose: Optional[str] = None
    branch_code: Optional[str] = None
    cibil_score: Optional[int] = None
    risk_category: Optional[str] = Field(None, description="LOW, MEDIUM or HIGH")
    applicant_age: Optional[int] = None
    employment_type: Optional[str] = Field(
        None, description="SALARIED, SELF_EMPLOYED, BUSINESS or PROFESSIONAL"
    )
    monthly_income: Optional[Decimal] = None
    years_of_experience: Optional[int] = None
    property_value: Optional[Decimal] = None
    property_type: Optional[str] = None
    additional_fields: Optional[dict[str, str]] = None

    def to_evaluation_context(self) -> EvaluationContext:
        """Build the evaluation context; absent fields are left out."""
        context = EvaluationContext()

        # Loan
        context.put("loan.type", self.loan_type)
        context.put("loan.requestedAmount", self.requested_amount)
        context.put("loan.tenureMonths", self.tenure_months)
        context.put("loan.purpose", self.purpose)
        context.put("loan.branchCode", self.branch_code)

        # Applicant
        context.put("applicant.cibilScore", self.cibil_score)
        context.put("applicant.riskCategory", self.risk_category)
        context.put("applicant.age", self.applicant_age)
        context.put("applicant.employmentType", self.employment_type)
        context.put("applicant.monthlyIncome", self.monthly_income)
        context.put("applicant.yearsOfExperience", self.years_of_experience)

        # Property
        context.put("property.estimatedValue", self.property_value)
        context.put("property.type", self.property_type)

        for field, value in (self.additional_fields or {}).items():
            context.put(field, value)

        return context


class ConditionResultResponse(CamelModel):
    field: str
    operator: str
    expected_value: str
    actual_value: Optional[str] = None
    matched: bool
    reason: str

    model_config = ConfigDict(from_attributes=True)


class TriggeredActionResponse(CamelModel):
    action_type: ActionType
    parameters: dict[str, str]
    description: Optional[str] = None
    source_policy_code: str
    source_rule_name: str
    priority: int
    policy_priority: int

    model_config = ConfigDict(from_attributes=True)


class RuleMatchResultResponse(CamelModel):
    rule_name: str
    matched: bool
    logical_operator: str
    condition_results: list[ConditionResultResponse]
    triggered_actions: list[TriggeredActionResponse]

    model_config = ConfigDict(from_attributes=True)


class PolicyMatchResultResponse(CamelModel):
    policy_id: Optional[UUID] = None
    policy_code: str
    policy_name: str
    category: Optional[str] = None
    priority: int
    matched: bool
    rule_results: list[RuleMatchResultResponse]

    model_config = ConfigDict(from_attributes=True)


class EvaluationLogEntryResponse(CamelModel):
    level: LogLevel
    message: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class PolicyEvaluationResponse(CamelModel):
    """Decision, resolved actions and the full per-condition trace."""

    overall_decision: Decision
    application_id: str
    loan_type: str
    policies_evaluated: int
    policies_matched: int
    rules_evaluated: int
    rules_matched: int
    matched_policies: list[PolicyMatchResultResponse]
    triggered_actions: list[TriggeredActionResponse]
    evaluation_log: list[EvaluationLogEntryResponse]
    evaluated_at: datetime
    evaluation_duration_ms: int

    model_config = ConfigDict(from_attributes=True)
