import secrets
from typing import Iterable, List


class TrueRNG:
    """
    A wrapper around Python's `secrets` module to provide cryptographically strong
    random numbers, suitable for wager resolution.
    """

    # secrets.randbelow(n) returns [0, n). A large integer range approximates a float.
    PRECISION = 10**12

    def draw_uniform(self) -> float:
        """Returns a random float in the range [0.0, 1.0)."""
        return secrets.randbelow(self.PRECISION) / self.PRECISION


class ScriptedRNG:
    """
    Replays a fixed sequence of draws. Used to make outcome resolution
    reproducible in tests and for replaying a recorded round.
    """

    def __init__(self, draws: Iterable[float]):
        self._draws: List[float] = []
        for value in draws:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"Draw out of range [0, 1): {value}")
            self._draws.append(value)
        self._position = 0

    @property
    def remaining(self) -> int:
        return len(self._draws) - self._position

    def draw_uniform(self) -> float:
        if self._position >= len(self._draws):
            raise IndexError("Scripted RNG exhausted")
        value = self._draws[self._position]
        self._position += 1
        return value


rng = TrueRNG()
