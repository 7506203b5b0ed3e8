"""Key/value storage collaborators and the character repository."""

from sidekick.storage.character_repository import CharacterRepository
from sidekick.storage.key_value import InMemoryStorage, JsonFileStorage, KeyValueStorage

__all__ = [
    "CharacterRepository",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorage",
]
