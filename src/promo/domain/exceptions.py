"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so callers can catch them uniformly.  The pricing entry point converts them
into typed ``PricingError`` results; nothing raised here crosses it.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class RuleDataInvalidError(ValidationError):
    """A discount rule is malformed (e.g. percentage above 100)."""


class MissingRateError(DomainException):
    """No exchange rate exists between two currencies."""

    def __init__(self, from_currency: str, to_currency: str) -> None:
        super().__init__(f"No exchange rate from {from_currency} to {to_currency}")
        self.from_currency = from_currency
        self.to_currency = to_currency


class EmptyCartError(ValidationError):
    """The cart has no lines."""


class InvalidQuantityError(ValidationError):
    """A cart line has a zero or negative quantity."""


class ReservationConflictError(DomainException):
    """A usage reservation can no longer be honoured."""


class ReservationNotFoundError(EntityNotFoundError):
    """No pending reservation exists for a token."""


class OrderPlacementError(DomainException):
    """The order collaborator refused the order (e.g. payment declined)."""
