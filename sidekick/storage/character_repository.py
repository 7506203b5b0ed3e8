"""
Character repository.

Stores all characters as one JSON list under a single storage key. Reads
upgrade legacy data: records found under old keys are moved to the current
key, bare-number resource values become tagged values, and every record
runs through the migration chain before it is decoded.
"""

from dataclasses import replace
from typing import Any, Optional
import json
import logging

from sidekick.config import EngineSettings
from sidekick.data_models import Character, _now_ms
from sidekick.errors import CharacterNotFoundError
from sidekick.migration.migrations import migrate_character
from sidekick.storage.key_value import KeyValueStorage

logger = logging.getLogger(__name__)


def normalize_resource_values(record: dict[str, Any]) -> dict[str, Any]:
    """Upgrade legacy bare-number resource values to tagged values."""
    values = record.get("_resourceValues")
    if not isinstance(values, dict):
        return record

    normalized = {}
    for resource_id, value in values.items():
        if isinstance(value, dict) and value.get("type") == "numerical":
            normalized[resource_id] = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            normalized[resource_id] = {"type": "numerical", "value": int(value)}
        else:
            logger.warning(
                f"Resetting unreadable value for resource {resource_id} "
                f"on character {record.get('id')}"
            )
            normalized[resource_id] = {"type": "numerical", "value": 0}
    return {**record, "_resourceValues": normalized}


class CharacterRepository:
    """
    Load/save operations for characters over a key/value store.

    Usage:
        repo = CharacterRepository(InMemoryStorage())
        repo.save(character)
        loaded = repo.load(character.id)
    """

    def __init__(self, storage: KeyValueStorage, settings: Optional[EngineSettings] = None):
        self.storage = storage
        self.settings = settings or EngineSettings()
        self._migrate_legacy_keys()

    @property
    def storage_key(self) -> str:
        return self.settings.storage_key

    def _migrate_legacy_keys(self) -> None:
        """Move data stored under an old key to the current one."""
        if self.storage.get_item(self.storage_key) is not None:
            return
        for legacy_key in self.settings.legacy_storage_keys:
            data = self.storage.get_item(legacy_key)
            if data is None:
                continue
            self.storage.set_item(self.storage_key, data)
            self.storage.remove_item(legacy_key)
            logger.info(f"Moved characters from legacy key '{legacy_key}' to '{self.storage_key}'")
            return

    # =========================================================================
    # RAW COLLECTION
    # =========================================================================

    def _read_records(self) -> list[dict[str, Any]]:
        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse stored characters under '{self.storage_key}': {e}")
            return []
        if not isinstance(records, list):
            logger.error(f"Stored characters under '{self.storage_key}' are not a list")
            return []
        return [r for r in records if isinstance(r, dict)]

    def _write_records(self, records: list[dict[str, Any]]) -> None:
        self.storage.set_item(self.storage_key, json.dumps(records, ensure_ascii=False))

    def _decode(self, record: dict[str, Any]) -> Optional[Character]:
        try:
            migrated = migrate_character(normalize_resource_values(record))
            return Character.from_dict(migrated)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping unreadable character {record.get('id', 'unknown')}: {e}")
            return None

    # =========================================================================
    # CRUD
    # =========================================================================

    def exists(self, character_id: str) -> bool:
        return any(r.get("id") == character_id for r in self._read_records())

    def load(self, character_id: str) -> Character:
        """
        Load a character by id.

        Raises:
            CharacterNotFoundError: If no readable record has this id
        """
        for record in self._read_records():
            if record.get("id") == character_id:
                character = self._decode(record)
                if character is not None:
                    logger.info(f"Loaded character: {character.name} ({character.id})")
                    return character
        raise CharacterNotFoundError(f"Character not found: {character_id}")

    def save(self, character: Character) -> Character:
        """
        Insert or replace a character, stamping its update time.

        Returns:
            The saved character
        """
        saved = replace(character, updated_at=_now_ms())
        records = self._read_records()
        data = saved.to_dict()
        for index, record in enumerate(records):
            if record.get("id") == saved.id:
                records[index] = data
                break
        else:
            records.append(data)
        self._write_records(records)
        logger.info(f"Saved character: {saved.name} ({saved.id})")
        return saved

    def create(self, name: str, class_id: str, **fields: Any) -> Character:
        """Create and persist a new character."""
        character = Character(name=name, class_id=class_id, **fields)
        return self.save(character)

    def delete(self, character_id: str) -> bool:
        """
        Delete a character.

        Returns:
            True if a record was removed
        """
        records = self._read_records()
        remaining = [r for r in records if r.get("id") != character_id]
        if len(remaining) == len(records):
            return False
        self._write_records(remaining)
        logger.info(f"Deleted character: {character_id}")
        return True

    def replace_all(self, characters: list[Character]) -> None:
        """Overwrite the stored collection."""
        self._write_records([c.to_dict() for c in characters])

    def clear(self) -> None:
        self.storage.remove_item(self.storage_key)
        logger.info(f"Cleared stored characters under '{self.storage_key}'")

    # Defined last: the method name shadows the builtin for later annotations
    def list(self) -> list[Character]:
        """All readable characters, in storage order."""
        characters = []
        for record in self._read_records():
            character = self._decode(record)
            if character is not None:
                characters.append(character)
        return characters
