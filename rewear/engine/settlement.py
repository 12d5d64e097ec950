"""
rewear.engine.settlement — Settlement Amount Calculation
=========================================================

Pure calculation, no DB I/O.  Two distinct paths:

* **Redemption** — the requester pays the item's full valuation to the
  owner up front.  A transfer: total points are conserved.
* **Acceptance** — the owner accepts a pending request and both parties
  receive a completion bonus of ``floor(valuation × percent / 100)``.
  Not a transfer: total points grow by twice the bonus.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_COMPLETION_BONUS_PERCENT = 10


@dataclass(frozen=True, slots=True)
class SettlementResult:
    """Net balance change per party for one settlement."""

    item_id: int
    requester_id: int
    owner_id: int
    requester_delta: int
    owner_delta: int

    @property
    def net_change(self) -> int:
        """Change in total system points (0 for a redemption)."""
        return self.requester_delta + self.owner_delta


def meets_redemption_threshold(points_offered: int | None, item_points: int) -> bool:
    """True when an offer pays the full valuation up front.

    An omitted offer (``None``) never redeems; the request waits for the
    owner instead.
    """
    return points_offered is not None and points_offered >= item_points


def redemption_settlement(
    *, item_id: int, requester_id: int, owner_id: int, item_points: int
) -> SettlementResult:
    return SettlementResult(
        item_id=item_id,
        requester_id=requester_id,
        owner_id=owner_id,
        requester_delta=-item_points,
        owner_delta=item_points,
    )


def completion_bonus(item_points: int, percent: int = DEFAULT_COMPLETION_BONUS_PERCENT) -> int:
    """``floor(item_points × percent / 100)`` in integer arithmetic."""
    if percent < 0:
        raise ValueError(f"bonus percent must be non-negative, got {percent}")
    return item_points * percent // 100


def acceptance_settlement(
    *,
    item_id: int,
    requester_id: int,
    owner_id: int,
    item_points: int,
    percent: int = DEFAULT_COMPLETION_BONUS_PERCENT,
) -> SettlementResult:
    bonus = completion_bonus(item_points, percent)
    return SettlementResult(
        item_id=item_id,
        requester_id=requester_id,
        owner_id=owner_id,
        requester_delta=bonus,
        owner_delta=bonus,
    )
