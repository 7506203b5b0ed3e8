"""
Unit tests for character import and export.

Tests sidekick/service/import_export.py.
"""

import json
from dataclasses import replace

import pytest

from sidekick.service import CharacterImportExport
from sidekick.storage.character_repository import CharacterRepository
from sidekick.storage.key_value import InMemoryStorage

from tests.helpers import make_hunter, make_oathsworn


@pytest.fixture
def transfer(repository):
    return CharacterImportExport(repository)


class TestExport:
    """Tests for exporting characters."""

    def test_export_is_persisted_shape(self, transfer):
        character = make_hunter()
        data = json.loads(transfer.export_character(character))
        assert data == character.to_dict()

    def test_file_name_from_name(self, transfer):
        character = replace(make_hunter(), name="Mira the Swift!")
        assert transfer.generate_file_name(character) == "mira-the-swift.json"

    def test_file_name_falls_back_to_id(self, transfer):
        character = replace(make_hunter(), name="???")
        assert transfer.generate_file_name(character) == f"{character.id}.json"


class TestImport:
    """Tests for importing characters."""

    def test_import_new(self, transfer, repository):
        character = make_oathsworn()
        result = transfer.import_character(transfer.export_character(character))
        assert result.success
        assert result.character.id == character.id
        assert repository.exists(character.id)

    def test_invalid_json(self, transfer):
        result = transfer.import_character("{oops")
        assert not result.success
        assert result.error == "Invalid JSON format. Please check your file and try again."

    def test_not_an_object(self, transfer):
        result = transfer.import_character("[1, 2]")
        assert not result.success
        assert not result.needs_confirmation

    def test_missing_id(self, transfer):
        data = make_hunter().to_dict()
        del data["id"]
        result = transfer.import_character(json.dumps(data))
        assert not result.success
        assert result.error.startswith("Character validation failed")

    def test_existing_needs_confirmation(self, transfer, repository):
        original = repository.save(make_hunter())
        document = transfer.export_character(replace(original, name="Mira Reborn"))
        result = transfer.import_character(document)
        assert not result.success
        assert result.needs_confirmation
        assert result.error == f'A character with ID "{original.id}" already exists.'
        assert result.existing_character.name == "Mira"
        assert result.character.name == "Mira Reborn"
        assert repository.load(original.id).name == "Mira"

    def test_overwrite_existing(self, transfer, repository):
        original = repository.save(make_hunter())
        document = transfer.export_character(replace(original, name="Mira Reborn"))
        result = transfer.import_character(document, overwrite_existing=True)
        assert result.success
        assert repository.load(original.id).name == "Mira Reborn"
        assert len(repository.list()) == 1

    def test_legacy_document_migrated(self, transfer):
        data = make_oathsworn().to_dict()
        data["_schemaVersion"] = 2
        del data["_dicePools"]
        data["_resourceValues"] = {"mana": 2}
        result = transfer.import_character(json.dumps(data))
        assert result.success
        assert result.character.schema_version == 5
        assert result.character.get_resource_value("mana") == 2

    def test_storage_failure_reported(self):
        class ReadOnlyStorage(InMemoryStorage):
            def set_item(self, key, value):
                raise OSError("read-only")

        transfer = CharacterImportExport(CharacterRepository(ReadOnlyStorage()))
        result = transfer.import_character(transfer.export_character(make_hunter()))
        assert not result.success
        assert result.error == "Import failed: read-only"
