"""
Random source for dice rolls.

The evaluator accepts any callable that takes a die size and returns a
uniform integer in [1, size]. DiceRoller is the production implementation;
tests pass a fixed sequence instead.
"""

from typing import Callable, Optional
import logging
import random

logger = logging.getLogger(__name__)


# A random source returns a uniform integer in [1, sides]
RandomSource = Callable[[int], int]


class DiceRoller:
    """
    Seedable uniform die roller.

    One instance per session rather than a process-wide singleton, so tests
    and concurrent sessions can each hold their own seed.
    """

    def __init__(self, seed: Optional[int] = None):
        self._seed = seed
        self._rng = random.Random(seed)
        self._roll_count = 0

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @property
    def roll_count(self) -> int:
        """Number of dice rolled since creation or the last reseed."""
        return self._roll_count

    def set_seed(self, seed: int) -> None:
        """Reseed for reproducibility."""
        self._seed = seed
        self._rng.seed(seed)
        self._roll_count = 0
        logger.debug(f"DiceRoller reseeded: {seed}")

    def roll_die(self, sides: int) -> int:
        """Roll a single die with the given number of sides."""
        if sides < 1:
            raise ValueError(f"A die needs at least one side, got {sides}")
        self._roll_count += 1
        return self._rng.randint(1, sides)

    def randint(self, a: int, b: int) -> int:
        """random.Random-compatible helper for callers that need a range."""
        self._roll_count += 1
        return self._rng.randint(a, b)

    def __call__(self, sides: int) -> int:
        return self.roll_die(sides)
