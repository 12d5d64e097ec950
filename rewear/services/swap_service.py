"""
rewear.services.swap_service — Swap Request Lifecycle
======================================================

Shared service module behind the swap endpoints.  One function per
transition, each running in exactly one transaction:

* :func:`create_swap`   — validate, then either redeem immediately or
  store a ``pending`` request.
* :func:`accept_swap`   — owner accepts; acceptance settlement.
* :func:`decline_swap`  — owner declines; requester is notified via the
  activity log.
* :func:`cancel_swap`   — requester withdraws a pending request.

Expected failures raise :class:`~rewear.exceptions.SwapError` subclasses
and leave no partial writes behind.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rewear.constants import SWAP_MESSAGE_MAX_LENGTH
from rewear.database.models import (
    ActivityType,
    Item,
    ItemStatus,
    Swap,
    SwapStatus,
    User,
)
from rewear.database.seed import COMPLETION_BONUS_PERCENT
from rewear.engine.settlement import (
    DEFAULT_COMPLETION_BONUS_PERCENT,
    SettlementResult,
    meets_redemption_threshold,
)
from rewear.engine.states import advance_swap, can_request_swap
from rewear.exceptions import (
    DuplicateRequest,
    Forbidden,
    InsufficientPoints,
    InvalidOffer,
    InvalidOperation,
    ItemUnavailable,
    NotFound,
)
from rewear.services import activity_service, settings_service
from rewear.services.settlement_service import (
    close_swap,
    settle_acceptance,
    settle_redemption,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_SWAP_LOAD_OPTIONS = (
    selectinload(Swap.item).selectinload(Item.owner),
    selectinload(Swap.offered_item),
    selectinload(Swap.requester),
)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _find_pending(session: Session, requester_id: int, item_id: int) -> Swap | None:
    return session.scalar(
        select(Swap).where(
            Swap.requester_id == requester_id,
            Swap.item_id == item_id,
            Swap.status == SwapStatus.PENDING.value,
        )
    )


def _load_swap(session: Session, swap_id: int) -> Swap:
    swap = session.get(Swap, swap_id)
    if swap is None:
        raise NotFound("Swap request not found", swap_id=swap_id)
    return swap


def _validate_offer(points_offered: int | None, message: str) -> None:
    if points_offered is not None and points_offered < 0:
        raise InvalidOffer("points_offered cannot be negative")
    if len(message) > SWAP_MESSAGE_MAX_LENGTH:
        raise InvalidOffer(
            f"Message must be at most {SWAP_MESSAGE_MAX_LENGTH} characters"
        )


def _check_offered_item(session: Session, offered_item_id: int, requester_id: int) -> Item:
    offered = session.get(Item, offered_item_id)
    if offered is None:
        raise InvalidOffer("Offered item not found", offered_item_id=offered_item_id)
    if offered.owner_id != requester_id:
        raise InvalidOffer("You can only offer your own items")
    if offered.status != ItemStatus.AVAILABLE.value:
        raise InvalidOffer("Offered item must be available")
    return offered


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

def create_swap(
    engine: Engine,
    *,
    requester_id: int,
    item_id: int,
    offered_item_id: int | None = None,
    points_offered: int | None = None,
    message: str = "",
) -> Swap:
    """Create a swap request, redeeming immediately when the offer covers
    the item's valuation.

    Checks run in a fixed order and the first failure wins:

    1. item exists and is ``available``
    2. requester is not the owner, whatever the offer
    3. offer terms are well-formed
    4. no pending request for the same (requester, item)
    5. offered item, if any, belongs to the requester and is available
    6. on redemption, the requester can afford the valuation

    Returns the stored (detached) :class:`Swap` — ``completed`` for a
    redemption, ``pending`` otherwise.
    """
    message = message or ""

    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = session.get(Item, item_id)
        if item is None:
            raise NotFound("Item not found", item_id=item_id)
        if not can_request_swap(item.status):
            raise ItemUnavailable("Item not found or not available", item_id=item_id)

        if item.owner_id == requester_id:
            raise InvalidOperation("Cannot swap your own item")
        _validate_offer(points_offered, message)

        if _find_pending(session, requester_id, item_id) is not None:
            raise DuplicateRequest(item_id=item_id)

        if offered_item_id is not None:
            _check_offered_item(session, offered_item_id, requester_id)

        requester = session.get(User, requester_id)
        if requester is None:
            raise NotFound("User not found", user_id=requester_id)

        redeem = meets_redemption_threshold(points_offered, item.points)
        if redeem and requester.points < item.points:
            raise InsufficientPoints(required=item.points, available=requester.points)

        swap = Swap(
            requester_id=requester_id,
            item_id=item_id,
            offered_item_id=offered_item_id,
            points_offered=points_offered or 0,
            message=message,
            status=(SwapStatus.COMPLETED if redeem else SwapStatus.PENDING).value,
        )

        # The partial unique index is the real duplicate guard; the lookup
        # above only gives the common case a friendlier path.
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(swap)
                session.flush()
        except IntegrityError:
            raise DuplicateRequest(item_id=item_id) from None

        if redeem:
            settle_redemption(session, swap=swap, item=item)
        else:
            activity_service.record(
                session,
                user_id=requester_id,
                type_=ActivityType.SWAP_REQUEST,
                description=f"Requested swap for {item.title}",
                points=0,
                related_item_id=item.id,
                related_swap_id=swap.id,
            )
            logger.info(
                "Swap %s requested: user %s → item %s", swap.id, requester_id, item_id,
            )
        session.flush()
        session.refresh(swap)

    return swap


# ---------------------------------------------------------------------------
# accept / decline / cancel
# ---------------------------------------------------------------------------

def accept_swap(engine: Engine, *, swap_id: int, acting_user_id: int) -> SettlementResult:
    """Owner accepts a pending request; runs acceptance settlement."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        swap = _load_swap(session, swap_id)
        item = swap.item

        if item.owner_id != acting_user_id:
            raise Forbidden("Only the item owner can accept swap requests")
        advance_swap(swap.status, SwapStatus.COMPLETED)
        if not can_request_swap(item.status):
            raise ItemUnavailable(
                "Item has already been swapped or is no longer available",
                item_id=item.id,
            )

        percent = settings_service.get_int(
            session, COMPLETION_BONUS_PERCENT, DEFAULT_COMPLETION_BONUS_PERCENT, minimum=0,
        )
        return settle_acceptance(session, swap=swap, item=item, bonus_percent=percent)


def decline_swap(engine: Engine, *, swap_id: int, acting_user_id: int) -> Swap:
    """Owner declines a pending request.  No balance or item change."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        swap = _load_swap(session, swap_id)
        item = swap.item

        if item.owner_id != acting_user_id:
            raise Forbidden("Only the item owner can decline swap requests")
        close_swap(session, swap, SwapStatus.DECLINED)

        activity_service.record(
            session,
            user_id=swap.requester_id,
            type_=ActivityType.SWAP_DECLINED,
            description=f"Swap request for {item.title} was declined",
            points=0,
            related_item_id=item.id,
            related_swap_id=swap.id,
        )
        session.flush()
        session.refresh(swap)
        logger.info("Swap %s declined by owner %s", swap.id, acting_user_id)
    return swap


def cancel_swap(engine: Engine, *, swap_id: int, acting_user_id: int) -> Swap:
    """Requester withdraws a pending request.  Not journalled."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        swap = _load_swap(session, swap_id)

        if swap.requester_id != acting_user_id:
            raise Forbidden("Only the requester can cancel swap requests")
        close_swap(session, swap, SwapStatus.CANCELLED)
        session.refresh(swap)
        logger.info("Swap %s cancelled by requester %s", swap.id, acting_user_id)
    return swap


# ---------------------------------------------------------------------------
# Read-only queries (dashboards)
# ---------------------------------------------------------------------------

def get_swap(
    engine: Engine, *, swap_id: int, acting_user_id: int, is_admin: bool = False
) -> Swap:
    """Fetch one swap; visible to its requester, the item owner, and admins."""
    with Session(engine) as session:
        swap = session.scalar(
            select(Swap).where(Swap.id == swap_id).options(*_SWAP_LOAD_OPTIONS)
        )
        if swap is None:
            raise NotFound("Swap request not found", swap_id=swap_id)
        if not is_admin and acting_user_id not in (swap.requester_id, swap.item.owner_id):
            raise Forbidden("Not authorized to view this swap")
        session.expunge_all()
        return swap


def _list(engine: Engine, *criteria) -> list[Swap]:
    with Session(engine) as session:
        rows = session.scalars(
            select(Swap)
            .join(Item, Swap.item_id == Item.id)
            .where(*criteria)
            .options(*_SWAP_LOAD_OPTIONS)
            .order_by(Swap.created_at.desc(), Swap.id.desc())
        ).all()
        session.expunge_all()
        return list(rows)


def list_sent(engine: Engine, requester_id: int, status: SwapStatus | None = None) -> list[Swap]:
    """Swaps the member has requested, newest first."""
    criteria = [Swap.requester_id == requester_id]
    if status is not None:
        criteria.append(Swap.status == status.value)
    return _list(engine, *criteria)


def list_received(engine: Engine, owner_id: int, status: SwapStatus | None = None) -> list[Swap]:
    """Swaps requested against the member's items, newest first."""
    criteria = [Item.owner_id == owner_id]
    if status is not None:
        criteria.append(Swap.status == status.value)
    return _list(engine, *criteria)


def list_by_status(engine: Engine, status: SwapStatus) -> list[Swap]:
    return _list(engine, Swap.status == status.value)


def list_completed_for(engine: Engine, user_id: int) -> list[Swap]:
    """Completed swaps where the member was either requester or owner."""
    return _list(
        engine,
        Swap.status == SwapStatus.COMPLETED.value,
        or_(Swap.requester_id == user_id, Item.owner_id == user_id),
    )
