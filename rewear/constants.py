"""
rewear.constants — Shared Constants & Helpers
==============================================

Single source of truth for the level tiers and the fixed item
enumerations.  Import from here instead of duplicating in services,
routes, and tests.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Level tiers — highest threshold first
# ---------------------------------------------------------------------------
LEVEL_TIERS: tuple[tuple[int, str], ...] = (
    (1000, "Swap Master"),
    (500, "Eco Champion"),
    (100, "Fashion Enthusiast"),
    (0, "Newcomer"),
)

DEFAULT_LEVEL = "Newcomer"


def level_for_points(points: int) -> str:
    """Return the level label for a balance of *points*.

    Balances below every threshold (including negative legacy balances)
    map to ``"Newcomer"``.
    """
    for threshold, label in LEVEL_TIERS:
        if points >= threshold:
            return label
    return DEFAULT_LEVEL


# ---------------------------------------------------------------------------
# Item enumerations
# ---------------------------------------------------------------------------
ITEM_CATEGORIES: tuple[str, ...] = (
    "Tops", "Bottoms", "Dresses", "Outerwear", "Shoes",
    "Accessories", "Bags", "Jewelry", "Activewear", "Formal",
)

ITEM_TYPES: tuple[str, ...] = (
    "Shirt", "T-Shirt", "Blouse", "Sweater", "Hoodie", "Jacket", "Coat",
    "Jeans", "Pants", "Shorts", "Skirt", "Dress", "Jumpsuit",
    "Sneakers", "Boots", "Sandals", "Heels", "Flats",
    "Hat", "Scarf", "Gloves", "Sunglasses", "Watch", "Necklace", "Earrings",
    "Backpack", "Handbag", "Wallet", "Tote", "Crossbody",
)

ITEM_SIZES: tuple[str, ...] = ("XS", "S", "M", "L", "XL", "XXL", "One Size")

ITEM_CONDITIONS: tuple[str, ...] = ("New", "Like New", "Good", "Fair", "Used")

# Valuation bounds (inclusive)
MIN_ITEM_POINTS = 0
MAX_ITEM_POINTS = 10_000

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
SWAP_MESSAGE_MAX_LENGTH = 500

# Dashboard estimate: kilograms of CO2 saved per completed swap
CO2_KG_PER_SWAP = 5
