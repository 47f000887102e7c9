"""Domain-level exceptions.

Services raise these errors to express business rule violations.
Callers at the edge (the authenticator, CLI scripts) catch them and map
them to results or exit codes.
"""


class DomainError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DomainError):
    """Requested entity does not exist."""


class DuplicateError(DomainError):
    """Entity with the same unique key already exists."""


class ValidationError(DomainError):
    """Input violates a business validation rule."""


class HashError(DomainError):
    """Password hashing or verification failed on malformed input.

    Distinct from a password mismatch, which is a plain ``False``.
    """


class StoreError(DomainError):
    """The account store is unavailable or a write did not go through."""
