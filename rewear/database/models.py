"""
rewear.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users              — Members with points balance and derived level
- items              — Listed garments with availability status
- swaps              — Swap requests (item-for-item or item-for-points)
- likes              — One row per (member, item) like
- activities         — Append-only points/status audit trail
- settings           — Admin-configurable key-value store
- admin_log          — Append-only admin audit trail
- rate_limit_events  — Durable sliding-window counter rows
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from rewear.constants import DEFAULT_LEVEL


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all ReWear ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserRole(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"


class ItemStatus(enum.StrEnum):
    """Availability of a listed item.  Transitions live in engine.states."""
    PENDING = "pending"
    AVAILABLE = "available"
    SWAPPED = "swapped"
    REMOVED = "removed"


class SwapStatus(enum.StrEnum):
    """Lifecycle of a swap request.  Transitions live in engine.states."""
    PENDING = "pending"
    COMPLETED = "completed"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class ActivityType(enum.StrEnum):
    """Every event type written to the activity log."""
    ITEM_LISTED = "item_listed"
    ITEM_APPROVED = "item_approved"
    ITEM_REJECTED = "item_rejected"
    ITEM_REMOVED = "item_removed"
    SWAP_REQUEST = "swap_request"
    SWAP_COMPLETED = "swap_completed"
    SWAP_DECLINED = "swap_declined"
    POINT_REDEMPTION = "point_redemption"
    POINTS_ADJUSTED = "points_adjusted"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REMOVE = "REMOVE"
    BAN = "BAN"
    UNBAN = "UNBAN"
    POINTS_ADJUST = "POINTS_ADJUST"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=UserRole.USER.value)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[str] = mapped_column(String(30), nullable=False, default=DEFAULT_LEVEL)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    ban_reason: Mapped[str | None] = mapped_column(Text, default=None)
    banned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    items: Mapped[list[Item]] = relationship(back_populates="owner")

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} points={self.points}>"


# ---------------------------------------------------------------------------
# Items — one row per listed garment
# ---------------------------------------------------------------------------
class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    size: Mapped[str] = mapped_column(String(10), nullable=False)
    condition: Mapped[str] = mapped_column(String(10), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ItemStatus.PENDING.value
    )
    views: Mapped[int] = mapped_column(Integer, default=0)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    tags: Mapped[list | None] = mapped_column(JSONB, default=list)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    owner: Mapped[User] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_items_owner_status", "owner_id", "status"),
        Index("ix_items_category_status", "category", "status"),
        Index("ix_items_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} title={self.title!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Swaps — requests against an item
# ---------------------------------------------------------------------------
class Swap(Base):
    __tablename__ = "swaps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    offered_item_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapStatus.PENDING.value
    )
    points_offered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    requester: Mapped[User] = relationship(foreign_keys=[requester_id])
    item: Mapped[Item] = relationship(foreign_keys=[item_id])
    offered_item: Mapped[Item | None] = relationship(foreign_keys=[offered_item_id])

    __table_args__ = (
        # At most one pending request per (requester, item)
        Index(
            "uq_swaps_pending_requester_item",
            "requester_id",
            "item_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_swaps_requester_status", "requester_id", "status"),
        Index("ix_swaps_item_status", "item_id", "status"),
        Index("ix_swaps_offered_status", "offered_item_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Swap id={self.id} item={self.item_id} status={self.status}>"


# ---------------------------------------------------------------------------
# Likes — backs the Item.likes counter
# ---------------------------------------------------------------------------
class Like(Base):
    __tablename__ = "likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_likes_user_item"),
        Index("ix_likes_item", "item_id"),
    )

    def __repr__(self) -> str:
        return f"<Like user={self.user_id} item={self.item_id}>"


# ---------------------------------------------------------------------------
# Activity — append-only points/status journal
# ---------------------------------------------------------------------------
class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    related_item_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True
    )
    related_swap_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("swaps.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_activities_user_time", "user_id", "created_at"),
        Index("ix_activities_type_time", "type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Activity id={self.id} user={self.user_id} type={self.type} pts={self.points}>"


# ---------------------------------------------------------------------------
# Setting — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Points tuning knobs (completion bonus percent, listing bonus) live here
    so admins can adjust values without redeploying.  Values are stored as
    JSON strings; typed accessors live in
    :mod:`rewear.services.settings_service`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only admin audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"


# ---------------------------------------------------------------------------
# RateLimitEvent — durable sliding-window counter rows
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    subject: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_rate_limit_scope_subject_ts", "scope", "subject", "timestamp"),
        Index("ix_rate_limit_ts", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent {self.scope}:{self.subject} ts={self.timestamp}>"
