"""Exception hierarchy shared by every layer of the car wash POS."""

from __future__ import annotations


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class ValidationError(BusinessRuleViolation):
    """Raised for malformed or missing input, such as an unknown enum value."""


class NotFoundError(BusinessRuleViolation):
    """Raised when a referenced customer, vehicle, service, sale or item is unknown."""


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not an edge of the lifecycle graph."""


class StorageError(Exception):
    """Raised when the storage backend itself fails.

    Kept outside :class:`BusinessRuleViolation` so callers can tell an
    infrastructure fault apart from a rejected request.
    """


__all__ = [
    "BusinessRuleViolation",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "StorageError",
]
