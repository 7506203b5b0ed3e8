"""
Test helpers for the Sidekick test suite.

Provides:
- FixedSequenceSource, a random source that replays scripted die faces
- Character builders for the bundled classes
"""

from typing import Any, Iterable

from sidekick.data_models import Attributes, Character, HitPoints


# =============================================================================
# RANDOM SOURCES
# =============================================================================


class FixedSequenceSource:
    """
    Random source returning scripted faces in order.

    Usage:
        source = FixedSequenceSource([20, 20, 3])
        evaluate("1d20!!", random_source=source)
        assert source.requested_sides == [20, 20, 20]
    """

    def __init__(self, values: Iterable[int]):
        self._values = list(values)
        self._index = 0
        self.requested_sides: list[int] = []

    def __call__(self, sides: int) -> int:
        if self._index >= len(self._values):
            raise AssertionError(f"FixedSequenceSource exhausted after {self._index} rolls")
        value = self._values[self._index]
        self._index += 1
        self.requested_sides.append(sides)
        return value

    @property
    def remaining(self) -> int:
        return len(self._values) - self._index


class MaxFaceSource:
    """Random source that always rolls the highest face."""

    def __call__(self, sides: int) -> int:
        return sides


class MinFaceSource:
    """Random source that always rolls a 1."""

    def __call__(self, sides: int) -> int:
        return 1


# =============================================================================
# CHARACTER BUILDERS
# =============================================================================


def make_character(
    name: str = "Test Hero",
    class_id: str = "hunter",
    level: int = 1,
    strength: int = 0,
    dexterity: int = 0,
    intelligence: int = 0,
    will: int = 0,
    **fields: Any,
) -> Character:
    """Build a character with the given attributes."""
    fields.setdefault("hit_points", HitPoints(current=10, max=10))
    return Character(
        name=name,
        class_id=class_id,
        level=level,
        attributes=Attributes(
            strength=strength,
            dexterity=dexterity,
            intelligence=intelligence,
            will=will,
        ),
        **fields,
    )


def make_oathsworn(level: int = 2, will: int = 2, **fields: Any) -> Character:
    return make_character(
        name="Aldric", class_id="oathsworn", level=level, strength=3, will=will, **fields
    )


def make_hunter(level: int = 2, **fields: Any) -> Character:
    return make_character(name="Mira", class_id="hunter", level=level, dexterity=3, will=1, **fields)


def make_commander(level: int = 2, intelligence: int = 2, **fields: Any) -> Character:
    return make_character(
        name="Vex", class_id="commander", level=level, strength=2, intelligence=intelligence, **fields
    )
