"""Minigame modules. Each game parses a selection, quotes it and resolves it from one draw."""

from .coinflip import CoinflipGame, coinflip_game
from .crash import CrashGame, crash_game
from .dice import DiceGame, dice_game
from .penalty import PenaltyGame, penalty_game

GAMES = {
    "crash": crash_game,
    "coinflip": coinflip_game,
    "dice": dice_game,
    "penalty": penalty_game,
}


def get_game(kind: str):
    """Look up a minigame by name. Returns None for unknown kinds."""
    kind = getattr(kind, "value", kind)
    return GAMES.get(str(kind).lower().strip())


__all__ = [
    "CoinflipGame",
    "coinflip_game",
    "CrashGame",
    "crash_game",
    "DiceGame",
    "dice_game",
    "PenaltyGame",
    "penalty_game",
    "GAMES",
    "get_game",
]
