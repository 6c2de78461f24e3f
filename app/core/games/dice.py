"""
Dice - roll a number in [0, 100) and bet whether it lands over or under a
chosen target. The quoted multiplier follows the win probability with a 3%
house edge.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Dict

from app.core.exceptions import InvalidSelection
from app.core.odds import floor_multiplier, payout


class DiceGame:
    """
    Target-threshold dice.
    over wins when roll > target, under wins when roll < target.
    """

    name = "dice"
    PREDICTIONS = ("over", "under")

    MIN_TARGET = Decimal("5")
    MAX_TARGET = Decimal("95")

    # 0.97 / p instead of 1 / p
    RETURN_TO_PLAYER = Decimal("0.97")

    def clamp_target(self, target: Decimal) -> Decimal:
        return max(self.MIN_TARGET, min(self.MAX_TARGET, target))

    def win_probability(self, prediction: str, target: Decimal) -> Decimal:
        target = self.clamp_target(target)
        if prediction == "over":
            return (100 - target) / 100
        return target / 100

    def fair_multiplier(self, prediction: str, target: Decimal) -> Decimal:
        return 1 / self.win_probability(prediction, target)

    def quoted_multiplier(self, prediction: str, target: Decimal) -> Decimal:
        return floor_multiplier(
            self.RETURN_TO_PLAYER / self.win_probability(prediction, target)
        )

    def parse(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Expects {"prediction": "over" | "under", "target": 5..95}."""
        prediction = str(params.get("prediction", "")).lower().strip()
        if prediction not in self.PREDICTIONS:
            raise InvalidSelection(
                f"Invalid prediction: {prediction!r}. Must be 'over' or 'under'."
            )

        raw_target = params.get("target")
        if isinstance(raw_target, bool) or raw_target is None:
            raise InvalidSelection("Target is required")
        try:
            target = Decimal(str(raw_target))
        except InvalidOperation:
            raise InvalidSelection(f"Invalid target: {raw_target!r}")
        if not target.is_finite() or not self.MIN_TARGET <= target <= self.MAX_TARGET:
            raise InvalidSelection(
                f"Target must be between {self.MIN_TARGET} and {self.MAX_TARGET}"
            )

        return {"prediction": prediction, "target": target}

    def quote(self, selection: Dict[str, Any]) -> Decimal:
        return self.quoted_multiplier(selection["prediction"], selection["target"])

    def resolve(self, stake: Decimal, selection: Dict[str, Any], draw: float) -> Dict[str, Any]:
        prediction = selection["prediction"]
        target = self.clamp_target(selection["target"])
        roll = Decimal(str(draw)) * 100

        if prediction == "over":
            win = roll > target
        else:
            win = roll < target

        multiplier = self.quote(selection)
        return {
            "win": win,
            "multiplier": multiplier if win else Decimal("0"),
            "payout": payout(stake, multiplier) if win else Decimal("0.00"),
            "details": {
                "prediction": prediction,
                "target": str(target),
                "roll": str(roll.quantize(Decimal("0.01"), rounding=ROUND_DOWN)),
                "quoted_multiplier": str(multiplier),
            },
        }

    def odds_table(self, target: Decimal) -> Dict[str, Any]:
        """Quoted multipliers for both directions at a target, for display."""
        target = self.clamp_target(Decimal(str(target)))
        return {
            "target": str(target),
            "over": str(self.quoted_multiplier("over", target)),
            "under": str(self.quoted_multiplier("under", target)),
            "fair_over": str(self.fair_multiplier("over", target).quantize(Decimal("0.0001"))),
            "fair_under": str(self.fair_multiplier("under", target).quantize(Decimal("0.0001"))),
        }


# Singleton instance
dice_game = DiceGame()
