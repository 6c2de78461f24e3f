"""
Crash - a multiplier climbs from 1.00x until the round crashes.
The player names a cash-out multiplier up front; the round is resolved in one
step by drawing the crash point. The climbing animation is a display concern.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Dict

from app.core.exceptions import InvalidSelection
from app.core.odds import MIN_MULTIPLIER, payout


class CrashGame:
    """Inverse-transform crash point with a 1% edge in the 0.99 constant."""

    name = "crash"

    HOUSE_FACTOR = Decimal("0.99")
    MAX_CASHOUT = Decimal("1000000")

    def exact_crash_point(self, draw: float) -> Decimal:
        """crash = max(1.0, 0.99 / u) where u = 1 - draw lies in (0, 1]."""
        u = 1 - Decimal(str(draw))
        return max(Decimal("1.00"), self.HOUSE_FACTOR / u)

    def crash_point(self, draw: float) -> Decimal:
        """Crash point for display, cut to the cent."""
        return self.exact_crash_point(draw).quantize(Decimal("0.01"), rounding=ROUND_DOWN)

    def parse(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Expects {"cashout": multiplier >= 1.01}."""
        raw = params.get("cashout")
        if isinstance(raw, bool) or raw is None:
            raise InvalidSelection("Cash-out multiplier is required")
        try:
            cashout = Decimal(str(raw))
        except InvalidOperation:
            raise InvalidSelection(f"Invalid cash-out multiplier: {raw!r}")
        if not cashout.is_finite() or cashout < MIN_MULTIPLIER:
            raise InvalidSelection(f"Cash-out must be at least {MIN_MULTIPLIER}x")
        if cashout > self.MAX_CASHOUT:
            raise InvalidSelection(f"Cash-out must be at most {self.MAX_CASHOUT}x")
        return {"cashout": cashout.quantize(Decimal("0.01"), rounding=ROUND_DOWN)}

    def quote(self, selection: Dict[str, Any]) -> Decimal:
        return selection["cashout"]

    def resolve(self, stake: Decimal, selection: Dict[str, Any], draw: float) -> Dict[str, Any]:
        cashout = selection["cashout"]
        win = cashout < self.exact_crash_point(draw)
        point = self.crash_point(draw)

        return {
            "win": win,
            "multiplier": cashout if win else Decimal("0"),
            "payout": payout(stake, cashout) if win else Decimal("0.00"),
            "details": {"cashout": str(cashout), "crash_point": str(point)},
        }


# Singleton instance
crash_game = CrashGame()
