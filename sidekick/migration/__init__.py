"""Schema migrations for stored character records."""

from sidekick.migration.migrations import (
    CURRENT_SCHEMA_VERSION,
    MIGRATIONS,
    Migration,
    get_schema_version,
    migrate,
    migrate_character,
    needs_migration,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "MIGRATIONS",
    "Migration",
    "get_schema_version",
    "migrate",
    "migrate_character",
    "needs_migration",
]
