"""
rewear.services.item_service — Listing & Moderation
====================================================

Items enter as ``pending`` and only become swappable once an admin
approves them.  Status writes are conditional on the status read at the
start of the transaction, the same way settlement claims an item, so a
moderation action racing a settlement cannot resurrect a swapped item.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rewear.constants import (
    DESCRIPTION_MAX_LENGTH,
    ITEM_CATEGORIES,
    ITEM_CONDITIONS,
    ITEM_SIZES,
    ITEM_TYPES,
    MAX_ITEM_POINTS,
    MIN_ITEM_POINTS,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)
from rewear.database.models import (
    ActivityType,
    AdminActionType,
    Item,
    ItemStatus,
    Like,
    User,
)
from rewear.database.seed import LISTING_BONUS
from rewear.engine.states import advance_item
from rewear.exceptions import Forbidden, InvalidListing, InvalidOperation, NotFound
from rewear.services import activity_service, ledger_service, settings_service
from rewear.services.admin_service import _log_admin_action, _row_to_dict

logger = logging.getLogger(__name__)

DEFAULT_LISTING_BONUS = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _check_choice(field: str, value: str, choices: Iterable[str]) -> None:
    if value not in choices:
        raise InvalidListing(f"Invalid {field}: {value!r}", field=field)


def validate_listing(
    *,
    title: str,
    description: str | None,
    category: str,
    type_: str,
    size: str,
    condition: str,
    points: int,
) -> None:
    """Raise :class:`InvalidListing` for the first field out of range."""
    title = (title or "").strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise InvalidListing(
            f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters",
            field="title",
        )
    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidListing(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    _check_choice("category", category, ITEM_CATEGORIES)
    _check_choice("type", type_, ITEM_TYPES)
    _check_choice("size", size, ITEM_SIZES)
    _check_choice("condition", condition, ITEM_CONDITIONS)
    if not MIN_ITEM_POINTS <= points <= MAX_ITEM_POINTS:
        raise InvalidListing(
            f"Points must be between {MIN_ITEM_POINTS} and {MAX_ITEM_POINTS}",
            field="points",
        )


def _load_item(session: Session, item_id: int) -> Item:
    item = session.get(Item, item_id)
    if item is None:
        raise NotFound("Item not found", item_id=item_id)
    return item


def _transition(session: Session, item: Item, target: ItemStatus, **values) -> None:
    """Move *item* to *target*, conditional on its status being unchanged."""
    current = item.status
    advance_item(current, target)
    result = session.execute(
        update(Item)
        .where(Item.id == item.id, Item.status == current)
        .values(status=target.value, **values)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        raise InvalidOperation(
            "Item status changed concurrently; try again", item_id=item.id,
        )


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def list_item(
    engine,
    *,
    owner_id: int,
    title: str,
    category: str,
    type_: str,
    size: str,
    condition: str,
    points: int,
    description: str | None = None,
    tags: list[str] | None = None,
) -> Item:
    """Create a ``pending`` listing and credit the listing bonus."""
    validate_listing(
        title=title, description=description, category=category,
        type_=type_, size=size, condition=condition, points=points,
    )

    with Session(engine, expire_on_commit=False) as session, session.begin():
        if session.get(User, owner_id) is None:
            raise NotFound("User not found", user_id=owner_id)

        item = Item(
            owner_id=owner_id,
            title=title.strip(),
            description=description,
            category=category,
            type=type_,
            size=size,
            condition=condition,
            points=points,
            status=ItemStatus.PENDING.value,
            tags=[t.strip().lower() for t in tags or [] if t.strip()],
        )
        session.add(item)
        session.flush()

        bonus = settings_service.get_int(
            session, LISTING_BONUS, DEFAULT_LISTING_BONUS, minimum=0,
        )
        if bonus:
            ledger_service.credit(session, owner_id, bonus)
        activity_service.record(
            session,
            user_id=owner_id,
            type_=ActivityType.ITEM_LISTED,
            description=f"Listed {item.title}",
            points=bonus,
            related_item_id=item.id,
        )
        session.flush()
        session.refresh(item)

    logger.info("Item %s listed by user %s (+%d points)", item.id, owner_id, bonus)
    return item


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

def approve_item(engine, *, actor_id: int, item_id: int) -> Item:
    """``pending → available``; the item can now receive swap requests."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = _load_item(session, item_id)
        before = _row_to_dict(item)
        _transition(session, item, ItemStatus.AVAILABLE)

        activity_service.record(
            session,
            user_id=item.owner_id,
            type_=ActivityType.ITEM_APPROVED,
            description=f"{item.title} was approved",
            related_item_id=item.id,
        )
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.APPROVE,
            target_table="items",
            target_id=item.id,
            before=before,
            after=_row_to_dict(item),
        )

    logger.info("Item %s approved by admin %s", item_id, actor_id)
    return item


def reject_item(engine, *, actor_id: int, item_id: int, reason: str) -> Item:
    """``pending → removed`` with a rejection reason."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = _load_item(session, item_id)
        if item.status != ItemStatus.PENDING.value:
            raise InvalidOperation("Only pending items can be rejected", item_id=item_id)
        before = _row_to_dict(item)
        _transition(session, item, ItemStatus.REMOVED, rejection_reason=reason)

        activity_service.record(
            session,
            user_id=item.owner_id,
            type_=ActivityType.ITEM_REJECTED,
            description=f"{item.title} was rejected: {reason}",
            related_item_id=item.id,
        )
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.REJECT,
            target_table="items",
            target_id=item.id,
            before=before,
            after=_row_to_dict(item),
            reason=reason,
        )

    logger.info("Item %s rejected by admin %s: %s", item_id, actor_id, reason)
    return item


def withdraw_item(
    engine, *, actor_id: int, item_id: int, is_admin: bool = False,
    reason: str | None = None,
) -> Item:
    """Take a listing off the marketplace (owner or admin).

    A ``swapped`` item is settled and cannot be withdrawn.
    """
    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = _load_item(session, item_id)
        if item.owner_id != actor_id and not is_admin:
            raise Forbidden("Not authorized to remove this item")
        before = _row_to_dict(item)
        _transition(session, item, ItemStatus.REMOVED)

        activity_service.record(
            session,
            user_id=item.owner_id,
            type_=ActivityType.ITEM_REMOVED,
            description=f"{item.title} was removed",
            related_item_id=item.id,
        )
        if is_admin and item.owner_id != actor_id:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.REMOVE,
                target_table="items",
                target_id=item.id,
                before=before,
                after=_row_to_dict(item),
                reason=reason,
            )
        session.flush()
        session.refresh(item)

    logger.info("Item %s removed by user %s", item_id, actor_id)
    return item


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------

def _bump_likes(session: Session, item_id: int, delta: int) -> None:
    stmt = update(Item).where(Item.id == item_id)
    if delta < 0:
        stmt = stmt.where(Item.likes > 0)
    session.execute(
        stmt.values(likes=Item.likes + delta)
        .execution_options(synchronize_session=False)
    )


def like_item(engine, *, user_id: int, item_id: int) -> tuple[Item, bool]:
    """Like an item.  Returns ``(item, changed)``.

    The ``(user_id, item_id)`` unique constraint decides whether the like
    is new; a repeat like leaves the counter alone and ``changed`` is
    ``False``.
    """
    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = _load_item(session, item_id)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Like(user_id=user_id, item_id=item_id))
                session.flush()
        except IntegrityError:
            changed = False
        else:
            _bump_likes(session, item_id, 1)
            changed = True
        session.refresh(item)

    if changed:
        logger.info("Item %s liked by user %s", item_id, user_id)
    return item, changed


def unlike_item(engine, *, user_id: int, item_id: int) -> tuple[Item, bool]:
    """Remove a like.  Returns ``(item, changed)``; unliking an item the
    member never liked is a no-op."""
    with Session(engine, expire_on_commit=False) as session, session.begin():
        item = _load_item(session, item_id)
        result = session.execute(
            delete(Like).where(Like.user_id == user_id, Like.item_id == item_id)
        )
        changed = result.rowcount == 1
        if changed:
            _bump_likes(session, item_id, -1)
        session.refresh(item)

    if changed:
        logger.info("Item %s unliked by user %s", item_id, user_id)
    return item, changed


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_item(engine, item_id: int, *, count_view: bool = False) -> Item:
    """Fetch one item with its owner loaded; optionally bump ``views``."""
    if count_view:
        record_view(engine, item_id)
    with Session(engine) as session:
        item = _load_item(session, item_id)
        _ = item.owner
        session.expunge_all()
        return item


def record_view(engine, item_id: int) -> None:
    """Atomically increment the item's view counter."""
    with Session(engine) as session, session.begin():
        result = session.execute(
            update(Item)
            .where(Item.id == item_id)
            .values(views=Item.views + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("Item not found", item_id=item_id)


def list_pending(engine, *, limit: int = 100) -> list[Item]:
    """Moderation queue, oldest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Item)
            .where(Item.status == ItemStatus.PENDING.value)
            .order_by(Item.created_at.asc(), Item.id.asc())
            .limit(limit)
        ).all()
        session.expunge_all()
        return list(rows)


def list_for_owner(engine, owner_id: int) -> list[Item]:
    with Session(engine) as session:
        rows = session.scalars(
            select(Item)
            .where(Item.owner_id == owner_id)
            .order_by(Item.created_at.desc(), Item.id.desc())
        ).all()
        session.expunge_all()
        return list(rows)
