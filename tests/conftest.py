"""
Pytest fixtures for the Sidekick test suite.

Provides reusable fixtures for dice, content, storage, the character
service and sample characters.
"""

import pytest

from sidekick.config import EngineSettings
from sidekick.content import load_builtin_content
from sidekick.dice.dice_roller import DiceRoller
from sidekick.observability.activity_log import ActivityLog
from sidekick.service.character_service import CharacterService
from sidekick.storage.character_repository import CharacterRepository
from sidekick.storage.key_value import InMemoryStorage

from tests.helpers import make_commander, make_hunter, make_oathsworn


# =============================================================================
# DICE FIXTURES
# =============================================================================


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    return DiceRoller(seed=42)


# =============================================================================
# CONTENT AND STORAGE FIXTURES
# =============================================================================


@pytest.fixture
def catalog():
    """Catalog with the bundled classes, ancestries and backgrounds."""
    return load_builtin_content()


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def storage():
    """Empty in-memory key/value storage."""
    return InMemoryStorage()


@pytest.fixture
def repository(storage, settings):
    return CharacterRepository(storage, settings)


# =============================================================================
# CHARACTER FIXTURES
# =============================================================================


@pytest.fixture
def oathsworn():
    """Level 2 Oathsworn with WIL 2."""
    return make_oathsworn()


@pytest.fixture
def hunter():
    """Level 2 Hunter."""
    return make_hunter()


@pytest.fixture
def commander():
    """Level 2 Commander with INT 2."""
    return make_commander()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def activity_log():
    return ActivityLog(limit=50)


@pytest.fixture
def service(repository, catalog, settings, seeded_dice, activity_log):
    """CharacterService over in-memory storage with seeded dice."""
    return CharacterService(
        repository,
        catalog,
        settings=settings,
        random_source=seeded_dice,
        activity_log=activity_log,
    )


@pytest.fixture
def loaded_service(service, repository, oathsworn):
    """Service with the sample Oathsworn saved and loaded."""
    repository.save(oathsworn)
    service.load_character(oathsworn.id)
    return service
