"""
rewear.exceptions — Typed Swap & Settlement Errors
===================================================

Every expected, caller-recoverable outcome of the swap engine is one of
these exceptions.  Each class carries the HTTP status and a stable
``error_type`` string so the API layer can map it without a lookup table.
Anything that is *not* a :class:`SwapError` is an infrastructure failure.
"""

from __future__ import annotations

from typing import Any


class SwapError(Exception):
    """Base class for all expected swap-engine errors."""

    status_code: int = 400
    error_type: str = "swap_error"
    default_message: str = "Swap operation failed"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": self.message, **self.context}


# 404
class NotFound(SwapError):
    """Referenced item, swap, or user does not exist."""

    status_code = 404
    error_type = "not_found"
    default_message = "Resource not found"


# 409
class ItemUnavailable(SwapError):
    """Item is not ``available`` (pending, swapped, or removed)."""

    status_code = 409
    error_type = "item_unavailable"
    default_message = "Item is not available"


class DuplicateRequest(SwapError):
    """Requester already has a pending swap for this item."""

    status_code = 409
    error_type = "duplicate_request"
    default_message = "You already have a pending swap request for this item"


# 400
class InvalidOperation(SwapError):
    """Self-swap, or an action that the entity's current state forbids."""

    error_type = "invalid_operation"
    default_message = "Operation not allowed"


class InvalidOffer(SwapError):
    """Offered item or offer terms fail validation."""

    error_type = "invalid_offer"
    default_message = "Invalid offer"


class InsufficientPoints(SwapError):
    """Balance is below the amount a debit requires.

    Carries ``required`` and ``available`` so the UI can explain the gap.
    """

    error_type = "insufficient_points"
    default_message = "Insufficient points"

    def __init__(self, *, required: int, available: int, message: str | None = None) -> None:
        super().__init__(
            message or (
                f"You need {required} points to redeem this item. "
                f"You have {available} points."
            ),
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


# 403
class Forbidden(SwapError):
    """Acting user is not the party allowed to perform this action."""

    status_code = 403
    error_type = "forbidden"
    default_message = "Access denied"


class InvalidListing(SwapError):
    """Listing fields fall outside the fixed enumerations or ranges."""

    error_type = "invalid_listing"
    default_message = "Invalid listing"
