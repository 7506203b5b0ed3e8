"""
Schema migration chain for stored character records.

Records are migrated as plain dicts before Character.from_dict sees them.
Each step copies the record, touches only its own fields and stamps its
version. Malformed sub-trees are skipped with a warning rather than
failing the whole record.
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable
import logging

logger = logging.getLogger(__name__)


CharacterRecord = dict[str, Any]

CURRENT_SCHEMA_VERSION = 5

DEFAULT_CONFIG: dict[str, Any] = {
    "maxWounds": 6,
    "maxInventorySize": 10,
    "skillPoints": {"startingPoints": 4, "pointsPerLevel": 1},
}


@dataclass(frozen=True)
class Migration:
    """One schema step: `migrate` upgrades a record to `version`."""
    version: int
    description: str
    migrate: Callable[[CharacterRecord], CharacterRecord]


# =============================================================================
# MIGRATION STEPS
# =============================================================================


def _add_selection_tracking(record: CharacterRecord) -> CharacterRecord:
    updated = dict(record)
    if not isinstance(updated.get("traitSelections"), list):
        updated["traitSelections"] = []
    if not isinstance(updated.get("_abilityUses"), dict):
        updated["_abilityUses"] = {}
    updated["_schemaVersion"] = 2
    return updated


def _add_dice_pools(record: CharacterRecord) -> CharacterRecord:
    updated = dict(record)
    updated["_dicePools"] = updated.get("_dicePools") or []
    updated["_schemaVersion"] = 3
    return updated


def _add_character_config(record: CharacterRecord) -> CharacterRecord:
    updated = dict(record)
    config = updated.get("config")
    if config is None:
        config = {}
    elif not isinstance(config, dict):
        logger.warning(f"Replacing malformed config on character {record.get('id')}")
        config = {}
    else:
        config = dict(config)

    for key, default in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = deepcopy(default)

    skill_points = config["skillPoints"]
    if isinstance(skill_points, dict):
        config["skillPoints"] = {**DEFAULT_CONFIG["skillPoints"], **skill_points}
    else:
        logger.warning(f"Replacing malformed skillPoints on character {record.get('id')}")
        config["skillPoints"] = deepcopy(DEFAULT_CONFIG["skillPoints"])

    updated["config"] = config
    updated["_schemaVersion"] = 4
    return updated


def _with_advantage(skill: dict[str, Any]) -> dict[str, Any]:
    return {**skill, "advantage": skill.get("advantage", 0) or 0}


def _add_skill_advantage(record: CharacterRecord) -> CharacterRecord:
    updated = dict(record)

    skills = updated.get("_skills")
    if isinstance(skills, dict):
        new_skills = {}
        for name, skill in skills.items():
            if isinstance(skill, dict):
                new_skills[name] = _with_advantage(skill)
            else:
                logger.warning(f"Skipping malformed skill '{name}' on character {record.get('id')}")
                new_skills[name] = skill
        updated["_skills"] = new_skills

    initiative = updated.get("_initiative")
    if isinstance(initiative, dict):
        updated["_initiative"] = _with_advantage(initiative)

    updated["_schemaVersion"] = 5
    return updated


MIGRATIONS: list[Migration] = [
    Migration(2, "Add trait selections and ability use tracking", _add_selection_tracking),
    Migration(3, "Add dice pools for pool-based resources", _add_dice_pools),
    Migration(4, "Add per-character config with wound, inventory and skill point defaults", _add_character_config),
    Migration(5, "Add advantage to skills and initiative", _add_skill_advantage),
]


# =============================================================================
# RUNNER
# =============================================================================


def get_schema_version(record: CharacterRecord) -> int:
    """Stored schema version; records without one predate versioning."""
    version = record.get("_schemaVersion")
    if isinstance(version, bool) or not isinstance(version, int):
        return 1
    return version


def needs_migration(record: CharacterRecord) -> bool:
    return get_schema_version(record) < CURRENT_SCHEMA_VERSION


def migrate(record: CharacterRecord, from_version: int) -> CharacterRecord:
    """
    Apply every migration newer than `from_version`, in order.

    Args:
        record: Stored character dict (not modified)
        from_version: Version the record is currently at

    Returns:
        The migrated record
    """
    if from_version > CURRENT_SCHEMA_VERSION:
        logger.warning(
            f"Character {record.get('id')} has schema version {from_version}, "
            f"newer than {CURRENT_SCHEMA_VERSION}; leaving it unchanged"
        )
        return record

    migrated = deepcopy(record)
    for migration in sorted(MIGRATIONS, key=lambda m: m.version):
        if migration.version > from_version:
            logger.debug(f"Migrating {record.get('id')} to v{migration.version}: {migration.description}")
            migrated = migration.migrate(migrated)
    return migrated


def migrate_character(record: CharacterRecord) -> CharacterRecord:
    """Migrate a stored record from its own schema version to the current one."""
    version = get_schema_version(record)
    if version == CURRENT_SCHEMA_VERSION:
        return record
    migrated = migrate(record, version)
    if version < CURRENT_SCHEMA_VERSION:
        logger.info(
            f"Migrated character {record.get('id')} from v{version} to v{CURRENT_SCHEMA_VERSION}"
        )
    return migrated
