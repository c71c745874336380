"""
Engine Errors
=============

Every error the engine raises derives from CredenceError and carries a
`details` dict that the API layer returns verbatim in its error envelope.

ValidationError family  -> caller mistakes, HTTP 400, never retried
ScoreComputationError   -> storage read failed while scoring a user
ShareComputationError   -> storage read failed while building shares
StorageError            -> ledger write failed
"""

from typing import Any, Dict, Optional


class CredenceError(Exception):
    """Base class for engine errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Validation (HTTP 400)
# =============================================================================

class ValidationError(CredenceError):
    """Raised when a request is invalid and must not be retried as-is."""
    status_code = 400


class InvalidAmountError(ValidationError):
    """Raised when an investment amount is not a positive integer."""

    def __init__(self, amount: Any):
        super().__init__(
            "Investment amount must be a positive integer",
            {"amount": amount},
        )


class UserNotFoundError(ValidationError):
    """Raised when a username does not exist."""

    def __init__(self, username: str):
        super().__init__(f"User not found: {username}", {"username": username})
        self.username = username


class ContentNotFoundError(ValidationError):
    """Raised when a content id does not exist."""

    def __init__(self, content_id: Any):
        super().__init__(f"Content not found: {content_id}", {"contentId": content_id})
        self.content_id = content_id


class InsufficientBalanceError(ValidationError):
    """Raised when an investor's balance cannot cover the amount."""

    def __init__(self, username: str, balance: Optional[int], amount: int):
        super().__init__(
            "Insufficient balance",
            {"username": username, "balance": balance, "amount": amount},
        )


# =============================================================================
# Computation / storage (HTTP 500)
# =============================================================================

class ScoreComputationError(CredenceError):
    """Raised when the ledger cannot be read while scoring a user."""

    def __init__(self, username: str, reason: str):
        super().__init__(
            f"Failed to score {username}: {reason}",
            {"username": username, "reason": reason},
        )
        self.username = username


class ShareComputationError(CredenceError):
    """Raised when effective shares cannot be computed for a content."""

    def __init__(self, content_id: Any, reason: str):
        super().__init__(
            f"Failed to compute shares for content {content_id}: {reason}",
            {"contentId": content_id, "reason": reason},
        )
        self.content_id = content_id


class StorageError(CredenceError):
    """Raised when a ledger write fails."""
    pass
