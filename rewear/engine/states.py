"""
rewear.engine.states — Item & Swap State Machines
==================================================

Pure transition tables.  No DB I/O.

Item::

    pending ──approve──▶ available ──settle──▶ swapped
       │                    │
       └──reject/withdraw───┴──withdraw──▶ removed

Swap::

    pending ──▶ completed | declined | cancelled     (all terminal)

Services ask :func:`advance_item` / :func:`advance_swap` for the next
status; an illegal move raises :class:`~rewear.exceptions.InvalidOperation`.
The database write that follows is still conditional on the *current*
status, so a concurrent writer cannot slip through between the check and
the update.
"""

from __future__ import annotations

from rewear.database.models import ItemStatus, SwapStatus
from rewear.exceptions import InvalidOperation

__all__ = [
    "ITEM_TRANSITIONS",
    "SWAP_TRANSITIONS",
    "advance_item",
    "advance_swap",
    "can_request_swap",
]

ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.AVAILABLE, ItemStatus.REMOVED}),
    ItemStatus.AVAILABLE: frozenset({ItemStatus.SWAPPED, ItemStatus.REMOVED}),
    ItemStatus.SWAPPED: frozenset(),
    ItemStatus.REMOVED: frozenset(),
}

SWAP_TRANSITIONS: dict[SwapStatus, frozenset[SwapStatus]] = {
    SwapStatus.PENDING: frozenset({
        SwapStatus.COMPLETED, SwapStatus.DECLINED, SwapStatus.CANCELLED,
    }),
    SwapStatus.COMPLETED: frozenset(),
    SwapStatus.DECLINED: frozenset(),
    SwapStatus.CANCELLED: frozenset(),
}


def can_request_swap(item_status: str) -> bool:
    """Only ``available`` items accept new swap requests."""
    return ItemStatus(item_status) is ItemStatus.AVAILABLE


def advance_item(current: str, target: ItemStatus) -> ItemStatus:
    """Return *target* if ``current → target`` is legal, else raise."""
    source = ItemStatus(current)
    if target not in ITEM_TRANSITIONS[source]:
        raise InvalidOperation(
            f"Item cannot move from '{source.value}' to '{target.value}'"
        )
    return target


def advance_swap(current: str, target: SwapStatus) -> SwapStatus:
    """Return *target* if ``current → target`` is legal, else raise.

    Every legal move starts from ``pending``, so the message is phrased
    for the common case of acting on a settled request.
    """
    source = SwapStatus(current)
    if target not in SWAP_TRANSITIONS[source]:
        raise InvalidOperation(
            "Swap request is no longer pending",
            status=source.value,
        )
    return target
