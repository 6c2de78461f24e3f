"""
Odds & payout calculator.

Pure functions only: no storage, no randomness. Anything random arrives as a
draw in [0, 1) produced by the RNG provider and passed in by the caller.
"""

from decimal import Decimal, ROUND_DOWN
from typing import Dict, Tuple

from app.core.models import BetType
from app.core.money import Amount, quantize, to_decimal

# Multipliers below this are never quoted
MIN_MULTIPLIER = Decimal("1.01")
MULTIPLIER_PLACES = Decimal("0.0001")

# Sports odds are supplied per match; anything below evens is malformed
MIN_SPORTS_ODDS = Decimal("1.0")

# Selection keys accepted for each bet category
SPORTS_SELECTIONS: Dict[BetType, Tuple[str, ...]] = {
    BetType.MATCH_RESULT: ("home", "draw", "away"),
    BetType.OVER_UNDER: ("over15", "under15", "over25", "under25"),
    BetType.BTTS: ("btts", "no_btts"),
    BetType.VF4_RESULT: ("vf4_wins", "vf4_not_wins"),
    BetType.FIRST_GOAL: ("first_goal_home", "first_goal_away", "no_goal"),
}


def floor_multiplier(multiplier: Amount) -> Decimal:
    """Clamp to MIN_MULTIPLIER and cut to four decimal places."""
    value = max(MIN_MULTIPLIER, to_decimal(multiplier))
    return value.quantize(MULTIPLIER_PLACES, rounding=ROUND_DOWN)


def payout(stake: Amount, multiplier: Amount) -> Decimal:
    """Stake times multiplier, truncated to the cent."""
    return quantize(to_decimal(stake) * to_decimal(multiplier))


def potential_payout(stake: Amount, odds: Amount) -> Decimal:
    """What a sports bet returns on a win."""
    return payout(stake, odds)


def is_valid_selection(bet_type: BetType, selection: str) -> bool:
    return selection in SPORTS_SELECTIONS.get(bet_type, ())


def draw_to_index(draw: float, size: int) -> int:
    """Map a uniform draw in [0, 1) onto range(size)."""
    return min(int(draw * size), size - 1)
