"""Domain models for the application."""

from app.models.domain.policy import Policy
from app.models.domain.rule import Action, Condition, PolicyRule

__all__ = [
    "Policy",
    "PolicyRule",
    "Condition",
    "Action",
]
