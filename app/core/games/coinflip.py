from decimal import Decimal
from typing import Dict, Any

from app.core.exceptions import InvalidSelection
from app.core.odds import payout


class CoinflipGame:
    """
    Simple 50/50 coin flip with house edge.
    """

    name = "coinflip"
    SIDES = ("heads", "tails")

    # Payout multiplier (1.95x against a fair 2.0x gives 2.5% house edge)
    PAYOUT_MULTIPLIER = Decimal("1.95")

    def parse(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Validate the player's call. Expects {"choice": "heads" | "tails"}."""
        choice = str(params.get("choice", "")).lower().strip()
        if choice not in self.SIDES:
            raise InvalidSelection(f"Invalid choice: {choice!r}. Must be 'heads' or 'tails'.")
        return {"choice": choice}

    def quote(self, selection: Dict[str, Any]) -> Decimal:
        return self.PAYOUT_MULTIPLIER

    def resolve(self, stake: Decimal, selection: Dict[str, Any], draw: float) -> Dict[str, Any]:
        """
        Flip the coin and resolve the bet.

        Args:
            stake: Amount wagered
            selection: Output of parse()
            draw: Uniform draw in [0, 1); heads below 0.5

        Returns:
            Dict with result, win status, multiplier and payout
        """
        result = "heads" if draw < 0.5 else "tails"
        win = selection["choice"] == result

        return {
            "win": win,
            "multiplier": self.PAYOUT_MULTIPLIER if win else Decimal("0"),
            "payout": payout(stake, self.PAYOUT_MULTIPLIER) if win else Decimal("0.00"),
            "details": {"choice": selection["choice"], "result": result},
        }


# Singleton instance
coinflip_game = CoinflipGame()
