"""
Character import and export.

Exports write the persisted JSON shape. Imports run the same pipeline as a
storage read (migrate, then decode) before checking for an existing
character with the same id. Import problems are reported in ImportResult,
never raised.
"""

from dataclasses import dataclass
from typing import Optional
import json
import logging
import re

from sidekick.data_models import Character
from sidekick.errors import CharacterNotFoundError
from sidekick.migration.migrations import migrate_character
from sidekick.storage.character_repository import CharacterRepository, normalize_resource_values

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of a character import."""
    success: bool
    character: Optional[Character] = None
    error: Optional[str] = None
    needs_confirmation: bool = False
    existing_character: Optional[Character] = None


class CharacterImportExport:
    """Moves characters between JSON documents and a repository."""

    def __init__(self, repository: CharacterRepository):
        self.repository = repository

    def export_character(self, character: Character) -> str:
        """Serialize a character to an indented JSON document."""
        return json.dumps(character.to_dict(), indent=2)

    def generate_file_name(self, character: Character) -> str:
        """A filesystem-safe file name derived from the character's name."""
        safe_name = re.sub(r"[^a-zA-Z0-9\s-]", "", character.name)
        safe_name = re.sub(r"\s+", "-", safe_name).lower()
        return f"{safe_name or character.id}.json"

    def check_character_exists(self, character_id: str) -> bool:
        return self.repository.exists(character_id)

    def import_character(self, json_string: str, overwrite_existing: bool = False) -> ImportResult:
        """
        Import a character from JSON.

        Args:
            json_string: Exported character document
            overwrite_existing: Replace a stored character with the same id

        Returns:
            ImportResult. When a character with the same id exists and
            overwrite_existing is False, needs_confirmation is set and both
            characters are returned.
        """
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError:
            return ImportResult(
                success=False,
                error="Invalid JSON format. Please check your file and try again.",
            )
        if not isinstance(data, dict):
            return ImportResult(success=False, error="Character data must be a JSON object")

        try:
            data = migrate_character(normalize_resource_values(data))
        except (KeyError, ValueError, TypeError) as e:
            return ImportResult(success=False, error=f"Migration failed: {e}")

        try:
            character = Character.from_dict(data)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            return ImportResult(success=False, error=f"Character validation failed: {e}")

        try:
            existing = self.repository.load(character.id)
        except CharacterNotFoundError:
            existing = None

        if existing is not None and not overwrite_existing:
            return ImportResult(
                success=False,
                character=character,
                error=f'A character with ID "{character.id}" already exists.',
                needs_confirmation=True,
                existing_character=existing,
            )

        try:
            saved = self.repository.save(character)
        except OSError as e:
            logger.error(f"Import of {character.name} failed: {e}")
            return ImportResult(success=False, character=character, error=f"Import failed: {e}")

        logger.info(f"Imported character: {saved.name} ({saved.id})")
        return ImportResult(success=True, character=saved)
