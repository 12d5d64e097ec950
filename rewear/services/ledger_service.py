"""
rewear.services.ledger_service — Atomic Balance Updates
========================================================

The SQL side of :mod:`rewear.engine.ledger`.  Each change is one
``UPDATE users SET points = points + :delta, level = CASE … END`` so a
concurrent settlement touching the same member can never lose an
increment, and the level is always derived from the balance it sits
next to.

Debits carry an extra ``AND points >= :amount`` guard; a miss raises
:class:`~rewear.exceptions.InsufficientPoints`.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rewear.database.models import User
from rewear.engine.ledger import level_case
from rewear.exceptions import InsufficientPoints, NotFound

logger = logging.getLogger(__name__)


def apply_delta(session: Session, user_id: int, delta: int) -> User:
    """Add signed *delta* to a member's balance and re-derive the level.

    Returns the refreshed :class:`User`.  Raises :class:`NotFound` for an
    unknown member and :class:`InsufficientPoints` when a debit would take
    the balance below zero.
    """
    stmt = update(User).where(User.id == user_id)
    if delta < 0:
        stmt = stmt.where(User.points >= -delta)
    stmt = stmt.values(
        points=User.points + delta,
        level=level_case(User.points + delta),
    ).execution_options(synchronize_session=False)

    result = session.execute(stmt)
    if result.rowcount != 1:
        current = session.scalar(select(User.points).where(User.id == user_id))
        if current is None:
            raise NotFound("User not found", user_id=user_id)
        raise InsufficientPoints(
            required=-delta,
            available=current,
            message=f"Balance of {current} points cannot cover a debit of {-delta}.",
        )

    user = session.get(User, user_id, populate_existing=True)
    logger.debug("Ledger: user %s %+d → %d (%s)", user_id, delta, user.points, user.level)
    return user


def credit(session: Session, user_id: int, amount: int) -> User:
    if amount < 0:
        raise ValueError(f"credit amount must be non-negative, got {amount}")
    return apply_delta(session, user_id, amount)


def debit(session: Session, user_id: int, amount: int) -> User:
    if amount < 0:
        raise ValueError(f"debit amount must be non-negative, got {amount}")
    return apply_delta(session, user_id, -amount)
