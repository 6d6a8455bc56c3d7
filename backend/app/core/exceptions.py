"""Domain exceptions raised by the policy service and aggregate."""


class PolicyEngineError(Exception):
    """Base class for all policy engine errors."""


class PolicyValidationError(PolicyEngineError, ValueError):
    """Authoring input is malformed (unknown enum, bad parameters, bad window)."""


class IllegalPolicyStateError(PolicyEngineError):
    """Operation is not allowed in the policy's current lifecycle state."""


class PolicyNotFoundError(PolicyEngineError, LookupError):
    """No policy exists for the given id or code."""


class DuplicatePolicyError(PolicyEngineError):
    """A policy with the same name (case-insensitive) already exists."""
