"""Repository layer exceptions.

Only conditions detected by the repository itself live here.  Errors raised
by the ORM (``DoesNotExist``, ``ValidationError``, ``IntegrityError``, ...)
reach the caller unchanged.
"""

from __future__ import annotations


class RepositoryException(Exception):
    """Base class for repository errors."""


class RepositoryConfigurationError(RepositoryException):
    """The repository is bound to something that is not a concrete Django model."""


class InvalidCondition(RepositoryException, ValueError):
    """A ``where`` entry could not be turned into a query condition."""


class UnsupportedOperator(InvalidCondition):
    """The comparison operator of a condition is not recognised."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unsupported comparison operator: {operator!r}")
        self.operator = operator
