"""Invariant validation for vault state."""

from .sanity_checks import InvariantChecker, ValidationWarning, validate_vault

__all__ = [
    "InvariantChecker",
    "ValidationWarning",
    "validate_vault"
]
