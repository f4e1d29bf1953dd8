# leadbot/services/pricing_service.py
from __future__ import annotations

from typing import Dict, Optional, Tuple

from leadbot.models.lead import PriceRange

CURRENCY = "INR"
CURRENCY_SYMBOL = "₹"

# Ballpark estimates in rupees, keyed by detected purpose.
PRICING: Dict[str, Tuple[int, int]] = {
    "portfolio": (15000, 25000),
    "business": (30000, 60000),
    "ecommerce": (60000, 150000),
    "webapp": (60000, 300000),
    "mobile": (50000, 200000),
    "ai": (80000, 500000),
    "data": (50000, 200000),
    "design": (20000, 100000),
}


def price_range(purpose: Optional[str]) -> Optional[PriceRange]:
    if not purpose:
        return None
    hit = PRICING.get(purpose.strip().lower())
    if hit is None:
        return None
    lo, hi = hit
    return PriceRange(min=lo, max=hi, currency=CURRENCY)


def format_price(amount: int) -> str:
    if amount >= 100000:
        return f"{CURRENCY_SYMBOL}{amount / 100000:.1f}L"
    if amount >= 1000:
        return f"{CURRENCY_SYMBOL}{amount / 1000:.0f}k"
    return f"{CURRENCY_SYMBOL}{amount}"


def format_range(rng: PriceRange) -> str:
    return f"{format_price(rng.min)} - {format_price(rng.max)}"


def format_range_lakh(rng: PriceRange) -> str:
    """Both ends in lakh, as shown in the chat summary: ₹0.3L - ₹0.6L."""
    return f"{CURRENCY_SYMBOL}{rng.min / 100000:.1f}L - {CURRENCY_SYMBOL}{rng.max / 100000:.1f}L"
