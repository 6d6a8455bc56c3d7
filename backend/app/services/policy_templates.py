"""
Pre-built DRAFT eligibility templates seeded at startup.

Templates:
- Personal Loan: low CIBIL rejection, salaried approval, borderline referral, self-employed approval
- Home Loan: low CIBIL rejection, income rejection, high-value referral, standard approval
- KCC (Kisan Credit Card): no-land rejection, large farmer limits, standard approval

Seeding is idempotent: a template whose name already exists is skipped.
"""

import logging
from decimal import Decimal
from typing import List

from app.core.enums import (
    ActionType,
    ConditionOperator,
    LoanType,
    PolicyCategory,
)
from app.models.domain.actions import (
    DecisionAction,
    DocumentRequirementAction,
    InterestRateAction,
    MaxAmountAction,
    MaxTenureAction,
    ProcessingFeeAction,
    RiskFlagAction,
    RoleAssignmentAction,
    to_action,
)
from app.models.domain.rule import Condition, PolicyRule
from app.models.schemas.policy import PolicyCreate
from app.services.policy_service import SYSTEM_USER, PolicyService

logger = logging.getLogger(__name__)

GE = ConditionOperator.GREATER_THAN_OR_EQUAL


def _approve(description: str):
    return to_action(DecisionAction(ActionType.APPROVE), description)


def _reject(description: str):
    return to_action(DecisionAction(ActionType.REJECT), description)


def _refer(description: str):
    return to_action(DecisionAction(ActionType.REFER), description)


def personal_loan_template() -> PolicyCreate:
    rules = [
        PolicyRule(
            name="Low CIBIL Rejection",
            description="Reject applicants with CIBIL score below 500",
            conditions=[Condition.compare("applicant.cibilScore", ConditionOperator.LESS_THAN, 500)],
            actions=[_reject("CIBIL score below minimum threshold of 500")],
            priority=5,
        ),
        PolicyRule(
            name="Salaried Applicant Approval",
            description="Approve salaried/professional applicants meeting eligibility criteria",
            conditions=[
                Condition.one_of("applicant.employmentType", ["SALARIED", "PROFESSIONAL"]),
                Condition.compare("applicant.cibilScore", GE, 650),
                Condition.between("applicant.age", 21, 60),
                Condition.compare("applicant.monthlyIncome", GE, 25000),
            ],
            actions=[
                _approve("Eligible for personal loan (salaried applicant)"),
                to_action(MaxAmountAction(Decimal("2000000")), "Maximum loan amount: INR 20 lakhs"),
                to_action(
                    InterestRateAction(Decimal("12.5"), "FIXED"),
                    "Standard interest rate for salaried applicants",
                ),
            ],
            priority=10,
        ),
        PolicyRule(
            name="Borderline CIBIL Referral",
            description="Refer applicants with borderline CIBIL (500-649) to senior underwriter",
            conditions=[Condition.between("applicant.cibilScore", 500, 649)],
            actions=[
                _refer("Borderline CIBIL score requires senior underwriter review"),
                to_action(
                    RoleAssignmentAction("SENIOR_UNDERWRITER"),
                    "Assign to senior underwriter for manual review",
                ),
                to_action(RiskFlagAction("Borderline CIBIL score"), "Flag for risk review"),
            ],
            priority=15,
        ),
        PolicyRule(
            name="Self-Employed Applicant Approval",
            description="Approve self-employed/business applicants with stricter criteria",
            conditions=[
                Condition.one_of("applicant.employmentType", ["SELF_EMPLOYED", "BUSINESS"]),
                Condition.compare("applicant.cibilScore", GE, 700),
                Condition.between("applicant.age", 25, 55),
                Condition.compare("applicant.monthlyIncome", GE, 40000),
            ],
            actions=[
                _approve("Eligible for personal loan (self-employed applicant)"),
                to_action(MaxAmountAction(Decimal("1500000")), "Maximum loan amount: INR 15 lakhs"),
                to_action(
                    InterestRateAction(Decimal("14.0"), "FIXED"),
                    "Standard interest rate for self-employed applicants",
                ),
            ],
            priority=20,
        ),
    ]
    return PolicyCreate(
        name="Personal Loan - Eligibility Template",
        description=(
            "Pre-built eligibility template for Personal Loans. Covers salaried and "
            "self-employed approval, CIBIL-based rejection and borderline referral rules."
        ),
        category=PolicyCategory.ELIGIBILITY,
        loan_type=LoanType.PERSONAL_LOAN,
        tags=["template", "personal-loan", "eligibility"],
        rules=rules,
    )


def home_loan_template() -> PolicyCreate:
    rules = [
        PolicyRule(
            name="Low CIBIL Rejection",
            description="Reject applicants with CIBIL score below 600 for Home Loans",
            conditions=[Condition.compare("applicant.cibilScore", ConditionOperator.LESS_THAN, 600)],
            actions=[_reject("CIBIL score below Home Loan minimum threshold of 600")],
            priority=5,
        ),
        PolicyRule(
            name="Insufficient Income Rejection",
            description="Reject applicants with monthly income below INR 40,000",
            conditions=[
                Condition.compare("applicant.monthlyIncome", ConditionOperator.LESS_THAN, 40000)
            ],
            actions=[_reject("Monthly income below minimum requirement of INR 40,000")],
            priority=6,
        ),
        PolicyRule(
            name="High Value Loan Referral",
            description="Refer loans above INR 50 lakhs to senior underwriter",
            conditions=[
                Condition.compare("loan.requestedAmount", ConditionOperator.GREATER_THAN, 5000000)
            ],
            actions=[
                _refer("High value loan requires senior underwriter review"),
                to_action(RoleAssignmentAction("SENIOR_UNDERWRITER"), "Assign to senior underwriter"),
                to_action(
                    DocumentRequirementAction("VALUATION_REPORT", mandatory=True),
                    "Require property valuation report for high-value loans",
                ),
            ],
            priority=10,
        ),
        PolicyRule(
            name="Standard Home Loan Approval",
            description="Approve applicants meeting all Home Loan eligibility criteria",
            conditions=[
                Condition.compare("applicant.cibilScore", GE, 700),
                Condition.between("applicant.age", 21, 65),
                Condition.compare("applicant.monthlyIncome", GE, 40000),
                Condition.check("property.estimatedValue", ConditionOperator.IS_NOT_NULL),
            ],
            actions=[
                _approve("Eligible for Home Loan"),
                to_action(MaxTenureAction(360), "Maximum tenure: 30 years"),
                to_action(
                    InterestRateAction(Decimal("8.5"), "FLOATING"),
                    "Standard floating rate for Home Loans",
                ),
                to_action(
                    DocumentRequirementAction("PROPERTY_PAPERS", mandatory=True),
                    "Require property ownership documents",
                ),
            ],
            priority=20,
        ),
    ]
    return PolicyCreate(
        name="Home Loan - Eligibility Template",
        description=(
            "Pre-built eligibility template for Home Loans. Covers standard approval, "
            "high-value referral, CIBIL rejection and income check rules."
        ),
        category=PolicyCategory.ELIGIBILITY,
        loan_type=LoanType.HOME_LOAN,
        tags=["template", "home-loan", "eligibility"],
        rules=rules,
    )


def kcc_template() -> PolicyCreate:
    rules = [
        PolicyRule(
            name="No Land Ownership Rejection",
            description="Reject applicants without land ownership for KCC",
            conditions=[Condition.check("applicant.landOwnership", ConditionOperator.IS_FALSE)],
            actions=[_reject("Land ownership is required for KCC")],
            priority=5,
        ),
        PolicyRule(
            name="Large Farmer Enhanced Limit",
            description="Enhanced credit limits for large farmers with irrigated land (>5 acres)",
            conditions=[
                Condition.compare("applicant.landArea", ConditionOperator.GREATER_THAN, 5),
                Condition.check("applicant.irrigatedLand", ConditionOperator.IS_TRUE),
            ],
            actions=[
                to_action(MaxAmountAction(Decimal("500000")), "Enhanced limit: INR 5 lakhs for large farmers"),
                to_action(
                    InterestRateAction(Decimal("3.5"), "FIXED"), "Preferential rate for large farmers"
                ),
            ],
            priority=10,
        ),
        PolicyRule(
            name="Standard KCC Approval",
            description="Standard KCC approval for farmers with land and crop cultivation",
            conditions=[
                Condition.check("applicant.landOwnership", ConditionOperator.IS_TRUE),
                Condition.check("applicant.cropType", ConditionOperator.IS_NOT_NULL),
            ],
            actions=[
                _approve("Eligible for Kisan Credit Card"),
                to_action(MaxAmountAction(Decimal("300000")), "Standard KCC limit: INR 3 lakhs"),
                to_action(
                    InterestRateAction(Decimal("4.0"), "FIXED"),
                    "Standard KCC interest rate (subsidized)",
                ),
                to_action(ProcessingFeeAction(Decimal("0.5")), "Minimal processing fee for KCC"),
            ],
            priority=20,
        ),
    ]
    return PolicyCreate(
        name="KCC - Eligibility Template",
        description=(
            "Pre-built eligibility template for Kisan Credit Card (KCC). Covers standard "
            "KCC approval, large farmer enhanced limits and land ownership rejection."
        ),
        category=PolicyCategory.ELIGIBILITY,
        loan_type=LoanType.KCC,
        tags=["template", "kcc", "kisan-credit-card", "eligibility", "agriculture"],
        rules=rules,
    )


def builtin_templates() -> List[PolicyCreate]:
    return [personal_loan_template(), home_loan_template(), kcc_template()]


async def seed_policy_templates(service: PolicyService) -> int:
    """
    Create any built-in template that does not exist yet.

    Args:
        service: Policy service bound to an open session

    Returns:
        Number of templates created
    """
    logger.info("Checking for policy templates to initialize...")
    created = 0

    for template in builtin_templates():
        if await service.repository.exists_by_name_ignore_case(template.name):
            logger.debug(f"Template already exists: '{template.name}', skipping")
            continue

        policy = await service.create_policy(template, created_by=SYSTEM_USER)
        logger.info(
            f"Created policy template '{policy.name}' (code: {policy.policy_code}, "
            f"loan type: {policy.loan_type.value}, rules: {policy.rule_count})"
        )
        created += 1

    if created:
        logger.info(f"Policy template initialization complete. Created {created} new template(s)")
    else:
        logger.info("All policy templates already exist. No new templates created")
    return created
