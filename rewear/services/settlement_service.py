"""
rewear.services.settlement_service — Atomic Swap Settlement
============================================================

Both settlement paths run inside the caller's transaction and follow the
same sequence:

  1. Flip the swap out of ``pending`` (acceptance only) with a
     conditional UPDATE — the double-accept gate.
  2. Flip the item ``available → swapped`` with a conditional UPDATE —
     the at-most-once gate.  Zero matched rows → ItemUnavailable.
  3. Apply balance deltas through the ledger.
  4. Append activity rows.

Any failure raises, and the caller's transaction rolls back every write
above.  Nothing is committed here.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from rewear.database.models import (
    ActivityType,
    Item,
    ItemStatus,
    Swap,
    SwapStatus,
)
from rewear.engine.settlement import (
    SettlementResult,
    acceptance_settlement,
    redemption_settlement,
)
from rewear.engine.states import advance_swap
from rewear.exceptions import InvalidOperation, ItemUnavailable
from rewear.services import activity_service, ledger_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Conditional status writes
# ---------------------------------------------------------------------------

def claim_item(session: Session, item: Item) -> None:
    """Move *item* ``available → swapped`` only if it is still available."""
    result = session.execute(
        update(Item)
        .where(Item.id == item.id, Item.status == ItemStatus.AVAILABLE.value)
        .values(status=ItemStatus.SWAPPED.value)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        raise ItemUnavailable(
            "Item has already been swapped or is no longer available",
            item_id=item.id,
        )


def close_swap(session: Session, swap: Swap, target: SwapStatus) -> None:
    """Move *swap* ``pending → target`` only if it is still pending."""
    advance_swap(swap.status, target)
    result = session.execute(
        update(Swap)
        .where(Swap.id == swap.id, Swap.status == SwapStatus.PENDING.value)
        .values(status=target.value)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        raise InvalidOperation("Swap request is no longer pending", swap_id=swap.id)


# ---------------------------------------------------------------------------
# Settlement paths
# ---------------------------------------------------------------------------

def settle_redemption(session: Session, *, swap: Swap, item: Item) -> SettlementResult:
    """Requester pays the full valuation; the item is theirs immediately.

    *swap* must already be flushed (it needs an id) with status
    ``completed``.
    """
    plan = redemption_settlement(
        item_id=item.id,
        requester_id=swap.requester_id,
        owner_id=item.owner_id,
        item_points=item.points,
    )

    claim_item(session, item)
    ledger_service.debit(session, plan.requester_id, item.points)
    ledger_service.credit(session, plan.owner_id, item.points)

    activity_service.record(
        session,
        user_id=plan.requester_id,
        type_=ActivityType.POINT_REDEMPTION,
        description=f"Redeemed {item.title} with {item.points} points",
        points=plan.requester_delta,
        related_item_id=item.id,
        related_swap_id=swap.id,
    )

    logger.info(
        "Redemption: swap %s item %s — %d points user %s → user %s",
        swap.id, item.id, item.points, plan.requester_id, plan.owner_id,
    )
    return plan


def settle_acceptance(
    session: Session, *, swap: Swap, item: Item, bonus_percent: int
) -> SettlementResult:
    """Owner accepts: swap completes, item is swapped, both parties earn a bonus."""
    plan = acceptance_settlement(
        item_id=item.id,
        requester_id=swap.requester_id,
        owner_id=item.owner_id,
        item_points=item.points,
        percent=bonus_percent,
    )

    close_swap(session, swap, SwapStatus.COMPLETED)
    claim_item(session, item)
    ledger_service.credit(session, plan.requester_id, plan.requester_delta)
    ledger_service.credit(session, plan.owner_id, plan.owner_delta)

    activity_service.record(
        session,
        user_id=plan.requester_id,
        type_=ActivityType.SWAP_COMPLETED,
        description=f"Successfully swapped {item.title}",
        points=plan.requester_delta,
        related_item_id=item.id,
        related_swap_id=swap.id,
    )
    activity_service.record(
        session,
        user_id=plan.owner_id,
        type_=ActivityType.SWAP_COMPLETED,
        description=f"Accepted swap for {item.title}",
        points=plan.owner_delta,
        related_item_id=item.id,
        related_swap_id=swap.id,
    )

    logger.info(
        "Acceptance: swap %s item %s — +%d points each to user %s and user %s",
        swap.id, item.id, plan.owner_delta, plan.requester_id, plan.owner_id,
    )
    return plan
