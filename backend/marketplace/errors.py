# Overview: Typed domain failures shared by the service layer and mapped to HTTP by routes.

"""
Marketplace domain errors.

WHY: Validation-shaped outcomes (missing listing, not enough stock, bad OTP)
are expected results of a call, not crashes. Services raise one of these
typed errors; routes turn them into a JSON body and the status code carried
by the class. Anything else reaching a route is an internal error.
"""


class MarketplaceError(Exception):
    """Base class for expected domain failures."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class NotFound(MarketplaceError):
    http_status = 404


class NotOwner(MarketplaceError):
    http_status = 403


class NotAuthorized(MarketplaceError):
    """Caller lacks the capability required by the operation."""
    http_status = 403


class InvalidTransition(MarketplaceError):
    """Order status change not allowed by the lifecycle."""


class InsufficientStock(MarketplaceError):
    pass


class AlreadySold(InsufficientStock):
    """
    Listing is flagged sold (stock is zero).

    Subclasses InsufficientStock: a sold listing has no stock for any
    quantity, so callers that only care about "could not reserve" catch
    the parent.
    """


class ExpiredChallenge(MarketplaceError):
    pass


class InvalidChallenge(MarketplaceError):
    pass


class AlreadyVerified(MarketplaceError):
    pass


class AccountExists(MarketplaceError):
    pass


class AccountNotVerified(MarketplaceError):
    http_status = 401


class InvalidCredentials(MarketplaceError):
    http_status = 401


class PasswordValidationError(MarketplaceError):
    """Raised when password doesn't meet strength requirements."""


class SelfDeletion(MarketplaceError):
    pass


class NoMatch(MarketplaceError):
    """A bulk operation selected zero rows. Not a hard failure."""
    http_status = 404


class InvalidAdjustment(MarketplaceError):
    pass


class NotificationError(MarketplaceError):
    """The email channel refused or failed to deliver a message."""
    http_status = 502


class CascadeFailed(MarketplaceError):
    """
    A multi-entity write failed and was fully rolled back.

    The underlying error is kept on `cause` (and chained as
    __cause__ by the raiser).
    """
    http_status = 500

    def __init__(self, message: str, cause: BaseException, details: dict | None = None):
        super().__init__(message, details)
        self.cause = cause


class ValidationError(MarketplaceError):
    """400-level input problem."""
