"""
Penalty Predictor - pick one of nine cells in the goal. The keeper dives to a
uniformly drawn cell; anything but a matching cell is a goal.
"""

from decimal import Decimal
from typing import Any, Dict, List, Tuple

from app.core.exceptions import InvalidSelection
from app.core.odds import draw_to_index, payout

DIRECTIONS = ("left", "center", "right")
HEIGHTS = ("low", "mid", "high")


class PenaltyGame:
    """Nine-cell penalty shoot-out against a randomly diving keeper."""

    name = "penalty"

    # Keepers lean to the sides, so central shots pay more
    ODDS = {
        "left": {"low": Decimal("2.5"), "mid": Decimal("3.2"), "high": Decimal("4.0")},
        "center": {"low": Decimal("3.8"), "mid": Decimal("5.0"), "high": Decimal("4.5")},
        "right": {"low": Decimal("2.5"), "mid": Decimal("3.2"), "high": Decimal("4.0")},
    }

    # Row-major by direction, then height
    CELLS: List[Tuple[str, str]] = [(d, h) for d in DIRECTIONS for h in HEIGHTS]

    def keeper_cell(self, draw: float) -> Tuple[str, str]:
        return self.CELLS[draw_to_index(draw, len(self.CELLS))]

    def parse(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Expects {"direction": left|center|right, "height": low|mid|high}."""
        direction = str(params.get("direction", "")).lower().strip()
        height = str(params.get("height", "")).lower().strip()
        if direction not in DIRECTIONS:
            raise InvalidSelection(f"Invalid direction: {direction!r}")
        if height not in HEIGHTS:
            raise InvalidSelection(f"Invalid height: {height!r}")
        return {"direction": direction, "height": height}

    def quote(self, selection: Dict[str, Any]) -> Decimal:
        return self.ODDS[selection["direction"]][selection["height"]]

    def resolve(self, stake: Decimal, selection: Dict[str, Any], draw: float) -> Dict[str, Any]:
        kick = (selection["direction"], selection["height"])
        save = self.keeper_cell(draw)
        goal = kick != save
        multiplier = self.quote(selection)

        return {
            "win": goal,
            "multiplier": multiplier if goal else Decimal("0"),
            "payout": payout(stake, multiplier) if goal else Decimal("0.00"),
            "details": {
                "kick_direction": kick[0],
                "kick_height": kick[1],
                "save_direction": save[0],
                "save_height": save[1],
                "outcome": "goal" if goal else "save",
            },
        }

    def odds_table(self) -> Dict[str, Dict[str, str]]:
        return {d: {h: str(m) for h, m in row.items()} for d, row in self.ODDS.items()}


# Singleton instance
penalty_game = PenaltyGame()
