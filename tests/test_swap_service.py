"""
tests/test_swap_service.py — Swap Lifecycle & Settlement Integration Tests
===========================================================================
Drives rewear.services.swap_service against an in-memory SQLite database
via the shared conftest fixtures.  Covers the end-to-end scenarios
(redemption, insufficient balance, item-for-item acceptance, double
accept) plus the ordering of validation failures.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from conftest import fetch, make_item, make_user
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rewear.database.models import (
    Activity,
    ActivityType,
    Item,
    ItemStatus,
    Setting,
    Swap,
    SwapStatus,
    User,
)
from rewear.database.seed import COMPLETION_BONUS_PERCENT
from rewear.exceptions import (
    DuplicateRequest,
    Forbidden,
    InsufficientPoints,
    InvalidOffer,
    InvalidOperation,
    ItemUnavailable,
    NotFound,
)
from rewear.services import swap_service


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


def _activities(engine, **filters) -> list[Activity]:
    with Session(engine) as session:
        stmt = select(Activity).order_by(Activity.id)
        for key, value in filters.items():
            stmt = stmt.where(getattr(Activity, key) == value)
        rows = session.scalars(stmt).all()
        session.expunge_all()
        return list(rows)


def _count(engine, model) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(model))


def _total_points(engine) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.sum(User.points))) or 0


# ---------------------------------------------------------------------------
# Redemption (scenarios A and B)
# ---------------------------------------------------------------------------
class TestRedemption:
    """points_offered ≥ valuation settles immediately."""

    def test_full_offer_settles_immediately(self, engine):
        owner = make_user(engine, points=0)
        requester = make_user(engine, points=200)
        item = make_item(engine, owner, points=150)

        swap = swap_service.create_swap(
            engine, requester_id=requester.id, item_id=item.id, points_offered=150,
        )

        assert swap.status == SwapStatus.COMPLETED.value
        assert fetch(engine, User, requester.id).points == 50
        assert fetch(engine, User, owner.id).points == 150
        assert fetch(engine, User, owner.id).level == "Fashion Enthusiast"
        assert fetch(engine, Item, item.id).status == ItemStatus.SWAPPED.value

        acts = _activities(engine, related_swap_id=swap.id)
        assert [(a.type, a.user_id, a.points) for a in acts] == [
            (ActivityType.POINT_REDEMPTION.value, requester.id, -150),
        ]
        assert acts[0].description == "Redeemed Denim Jacket with 150 points"

    def test_redemption_conserves_total_points(self, engine):
        owner = make_user(engine, points=30)
        requester = make_user(engine, points=500)
        item = make_item(engine, owner, points=275)
        before = _total_points(engine)

        swap_service.create_swap(
            engine, requester_id=requester.id, item_id=item.id, points_offered=400,
        )

        assert _total_points(engine) == before
        assert fetch(engine, User, requester.id).points == 225

    def test_insufficient_balance_changes_nothing(self, engine):
        owner = make_user(engine, points=0)
        requester = make_user(engine, points=100)
        item = make_item(engine, owner, points=150)

        with pytest.raises(InsufficientPoints) as exc:
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, points_offered=150,
            )

        assert exc.value.to_dict() == {
            "type": "insufficient_points",
            "message": "You need 150 points to redeem this item. You have 100 points.",
            "required": 150,
            "available": 100,
        }
        assert fetch(engine, User, requester.id).points == 100
        assert fetch(engine, User, owner.id).points == 0
        assert fetch(engine, Item, item.id).status == ItemStatus.AVAILABLE.value
        assert _count(engine, Swap) == 0
        assert _count(engine, Activity) == 0

    def test_omitted_offer_never_redeems_free_item(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner, points=0)

        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        assert swap.status == SwapStatus.PENDING.value
        assert fetch(engine, Item, item.id).status == ItemStatus.AVAILABLE.value

    def test_partial_offer_stays_pending(self, engine):
        owner = make_user(engine)
        requester = make_user(engine, points=1000)
        item = make_item(engine, owner, points=150)

        swap = swap_service.create_swap(
            engine, requester_id=requester.id, item_id=item.id, points_offered=149,
        )

        assert swap.status == SwapStatus.PENDING.value
        assert swap.points_offered == 149
        assert fetch(engine, User, requester.id).points == 1000


# ---------------------------------------------------------------------------
# Pending requests and acceptance (scenario C)
# ---------------------------------------------------------------------------
class TestAcceptance:
    """Owner acceptance awards floor(V × 10%) to both parties."""

    def test_item_for_item_swap(self, engine):
        owner = make_user(engine, points=0)
        requester = make_user(engine, points=0)
        item = make_item(engine, owner, points=200)
        offered = make_item(engine, requester, points=50, title="Wool Scarf")

        swap = swap_service.create_swap(
            engine,
            requester_id=requester.id,
            item_id=item.id,
            offered_item_id=offered.id,
            points_offered=0,
            message="Would love this!",
        )
        assert swap.status == SwapStatus.PENDING.value
        req_acts = _activities(engine, related_swap_id=swap.id)
        assert [(a.type, a.points) for a in req_acts] == [(ActivityType.SWAP_REQUEST.value, 0)]

        result = swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        assert result.requester_delta == result.owner_delta == 20
        assert fetch(engine, Swap, swap.id).status == SwapStatus.COMPLETED.value
        assert fetch(engine, Item, item.id).status == ItemStatus.SWAPPED.value
        assert fetch(engine, User, owner.id).points == 20
        assert fetch(engine, User, requester.id).points == 20
        # The offered item is not part of settlement
        assert fetch(engine, Item, offered.id).status == ItemStatus.AVAILABLE.value

        completed = _activities(engine, type=ActivityType.SWAP_COMPLETED.value)
        assert sorted((a.user_id, a.points) for a in completed) == sorted(
            [(owner.id, 20), (requester.id, 20)]
        )

    def test_bonus_percent_read_from_settings(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner, points=200)
        with Session(engine) as session:
            row = session.get(Setting, COMPLETION_BONUS_PERCENT)
            row.value_json = "25"
            session.commit()

        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        result = swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        assert result.owner_delta == 50

    def test_only_owner_may_accept(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        with pytest.raises(Forbidden):
            swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=requester.id)
        assert fetch(engine, Swap, swap.id).status == SwapStatus.PENDING.value

    def test_unknown_swap(self, engine):
        user = make_user(engine)
        with pytest.raises(NotFound):
            swap_service.accept_swap(engine, swap_id=999, acting_user_id=user.id)


# ---------------------------------------------------------------------------
# Double settlement (scenario D, deterministic)
# ---------------------------------------------------------------------------
class TestAtMostOnce:
    """An item reaches swapped once; a swap leaves pending once."""

    def test_second_accept_is_rejected(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner, points=100)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=owner.id)
        with pytest.raises(InvalidOperation, match="no longer pending"):
            swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        assert fetch(engine, User, owner.id).points == 10
        assert len(_activities(engine, type=ActivityType.SWAP_COMPLETED.value)) == 2

    def test_competing_request_cannot_settle_swapped_item(self, engine):
        owner = make_user(engine)
        alice = make_user(engine)
        bob = make_user(engine)
        item = make_item(engine, owner, points=100)
        first = swap_service.create_swap(engine, requester_id=alice.id, item_id=item.id)
        second = swap_service.create_swap(engine, requester_id=bob.id, item_id=item.id)

        swap_service.accept_swap(engine, swap_id=first.id, acting_user_id=owner.id)
        with pytest.raises(ItemUnavailable):
            swap_service.accept_swap(engine, swap_id=second.id, acting_user_id=owner.id)

        # The losing swap stays pending and nobody is paid twice
        assert fetch(engine, Swap, second.id).status == SwapStatus.PENDING.value
        assert fetch(engine, User, bob.id).points == 0
        assert fetch(engine, User, owner.id).points == 10

    def test_redemption_after_swap_is_refused(self, engine):
        owner = make_user(engine)
        rich = make_user(engine, points=1000)
        item = make_item(engine, owner, points=100)
        swap_service.create_swap(engine, requester_id=rich.id, item_id=item.id, points_offered=100)

        other = make_user(engine, points=1000)
        with pytest.raises(ItemUnavailable):
            swap_service.create_swap(
                engine, requester_id=other.id, item_id=item.id, points_offered=100,
            )
        assert fetch(engine, User, other.id).points == 1000

    def test_failed_claim_rolls_back_swap_status(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        # Item disappears between the eligibility check and the claim
        with patch(
            "rewear.services.swap_service.can_request_swap", return_value=True,
        ):
            with Session(engine) as session:
                session.get(Item, item.id).status = ItemStatus.REMOVED.value
                session.commit()
            with pytest.raises(ItemUnavailable):
                swap_service.accept_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        assert fetch(engine, Swap, swap.id).status == SwapStatus.PENDING.value
        assert fetch(engine, User, owner.id).points == 0
        assert _activities(engine, type=ActivityType.SWAP_COMPLETED.value) == []


# ---------------------------------------------------------------------------
# Decline / cancel
# ---------------------------------------------------------------------------
class TestDeclineAndCancel:

    def test_decline_notifies_requester(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        declined = swap_service.decline_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        assert declined.status == SwapStatus.DECLINED.value
        assert fetch(engine, Item, item.id).status == ItemStatus.AVAILABLE.value
        acts = _activities(engine, type=ActivityType.SWAP_DECLINED.value)
        assert [(a.user_id, a.points) for a in acts] == [(requester.id, 0)]
        assert acts[0].description == "Swap request for Denim Jacket was declined"

    def test_requester_cannot_decline(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        with pytest.raises(Forbidden):
            swap_service.decline_swap(engine, swap_id=swap.id, acting_user_id=requester.id)

    def test_cancel_writes_no_activity(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        before = _count(engine, Activity)

        cancelled = swap_service.cancel_swap(engine, swap_id=swap.id, acting_user_id=requester.id)

        assert cancelled.status == SwapStatus.CANCELLED.value
        assert _count(engine, Activity) == before

    def test_owner_cannot_cancel(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        with pytest.raises(Forbidden):
            swap_service.cancel_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

    @pytest.mark.parametrize("action", ["accept", "decline", "cancel"])
    def test_terminal_swaps_are_frozen(self, engine, action):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        swap_service.decline_swap(engine, swap_id=swap.id, acting_user_id=owner.id)

        fn = getattr(swap_service, f"{action}_swap")
        actor = requester.id if action == "cancel" else owner.id
        with pytest.raises(InvalidOperation):
            fn(engine, swap_id=swap.id, acting_user_id=actor)
        assert fetch(engine, Swap, swap.id).status == SwapStatus.DECLINED.value

    def test_new_request_allowed_after_cancel(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        swap_service.cancel_swap(engine, swap_id=swap.id, acting_user_id=requester.id)

        again = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        assert again.status == SwapStatus.PENDING.value


# ---------------------------------------------------------------------------
# Creation guards
# ---------------------------------------------------------------------------
class TestCreateValidation:
    """Checks run in a fixed order; the first failure wins."""

    def test_unknown_item(self, engine):
        requester = make_user(engine)
        with pytest.raises(NotFound):
            swap_service.create_swap(engine, requester_id=requester.id, item_id=404)

    @pytest.mark.parametrize("status", [ItemStatus.PENDING, ItemStatus.SWAPPED, ItemStatus.REMOVED])
    def test_unavailable_item(self, engine, status):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner, status=status)
        with pytest.raises(ItemUnavailable):
            swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

    def test_self_swap(self, engine):
        owner = make_user(engine, points=1000)
        item = make_item(engine, owner)
        with pytest.raises(InvalidOperation, match="Cannot swap your own item"):
            swap_service.create_swap(
                engine, requester_id=owner.id, item_id=item.id, points_offered=100,
            )
        assert fetch(engine, User, owner.id).points == 1000

    @pytest.mark.parametrize("terms", [{"points_offered": -1}, {"message": "x" * 501}])
    def test_self_swap_wins_over_malformed_offer(self, engine, terms):
        owner = make_user(engine)
        item = make_item(engine, owner)
        with pytest.raises(InvalidOperation, match="Cannot swap your own item"):
            swap_service.create_swap(engine, requester_id=owner.id, item_id=item.id, **terms)

    def test_duplicate_pending_request(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        with pytest.raises(DuplicateRequest) as exc:
            swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        assert exc.value.message == "You already have a pending swap request for this item"
        assert _count(engine, Swap) == 1

    def test_unique_index_backs_the_duplicate_guard(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        # Simulate a racing request that passed the lookup
        with patch("rewear.services.swap_service._find_pending", return_value=None):
            with pytest.raises(DuplicateRequest):
                swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)
        assert _count(engine, Swap) == 1
        assert len(_activities(engine, type=ActivityType.SWAP_REQUEST.value)) == 1

    def test_availability_checked_before_ownership(self, engine):
        owner = make_user(engine)
        item = make_item(engine, owner, status=ItemStatus.PENDING)
        with pytest.raises(ItemUnavailable):
            swap_service.create_swap(engine, requester_id=owner.id, item_id=item.id)

    def test_offered_item_must_belong_to_requester(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        stranger = make_user(engine)
        item = make_item(engine, owner)
        not_mine = make_item(engine, stranger)

        with pytest.raises(InvalidOffer):
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, offered_item_id=not_mine.id,
            )

    def test_offered_item_must_be_available(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        pending = make_item(engine, requester, status=ItemStatus.PENDING)

        with pytest.raises(InvalidOffer):
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, offered_item_id=pending.id,
            )

    def test_offered_item_must_exist(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        with pytest.raises(InvalidOffer):
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, offered_item_id=9999,
            )

    def test_negative_offer_and_long_message(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        item = make_item(engine, owner)
        with pytest.raises(InvalidOffer):
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, points_offered=-1,
            )
        with pytest.raises(InvalidOffer):
            swap_service.create_swap(
                engine, requester_id=requester.id, item_id=item.id, message="x" * 501,
            )
        assert _count(engine, Swap) == 0


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
class TestQueries:

    def test_sent_received_and_completed(self, engine):
        owner = make_user(engine)
        requester = make_user(engine, points=500)
        jacket = make_item(engine, owner, points=100)
        boots = make_item(engine, owner, points=50, title="Boots")

        pending = swap_service.create_swap(engine, requester_id=requester.id, item_id=jacket.id)
        redeemed = swap_service.create_swap(
            engine, requester_id=requester.id, item_id=boots.id, points_offered=50,
        )

        sent = swap_service.list_sent(engine, requester.id)
        assert {s.id for s in sent} == {pending.id, redeemed.id}
        assert sent[0].item.title in {"Denim Jacket", "Boots"}

        received = swap_service.list_received(engine, owner.id, SwapStatus.PENDING)
        assert [s.id for s in received] == [pending.id]

        for user in (owner, requester):
            completed = swap_service.list_completed_for(engine, user.id)
            assert [s.id for s in completed] == [redeemed.id]

        assert [s.id for s in swap_service.list_by_status(engine, SwapStatus.PENDING)] == [pending.id]

    def test_get_swap_visibility(self, engine):
        owner = make_user(engine)
        requester = make_user(engine)
        outsider = make_user(engine)
        item = make_item(engine, owner)
        swap = swap_service.create_swap(engine, requester_id=requester.id, item_id=item.id)

        for user_id in (owner.id, requester.id):
            got = swap_service.get_swap(engine, swap_id=swap.id, acting_user_id=user_id)
            assert got.requester.id == requester.id
        with pytest.raises(Forbidden):
            swap_service.get_swap(engine, swap_id=swap.id, acting_user_id=outsider.id)
        assert swap_service.get_swap(
            engine, swap_id=swap.id, acting_user_id=outsider.id, is_admin=True,
        ).id == swap.id
