"""Built-in reference content."""

from sidekick.content.builtin.ancestries import FEARLESS_DEFINITION, HUMAN_DEFINITION
from sidekick.content.builtin.commander import COMMANDER_DEFINITION
from sidekick.content.builtin.hunter import HUNTER_DEFINITION
from sidekick.content.builtin.oathsworn import OATHSWORN_DEFINITION

BUILTIN_CLASSES = [HUNTER_DEFINITION, OATHSWORN_DEFINITION, COMMANDER_DEFINITION]
BUILTIN_ANCESTRIES = [HUMAN_DEFINITION]
BUILTIN_BACKGROUNDS = [FEARLESS_DEFINITION]

__all__ = [
    "BUILTIN_ANCESTRIES",
    "BUILTIN_BACKGROUNDS",
    "BUILTIN_CLASSES",
    "COMMANDER_DEFINITION",
    "FEARLESS_DEFINITION",
    "HUMAN_DEFINITION",
    "HUNTER_DEFINITION",
    "OATHSWORN_DEFINITION",
]
