"""Character mutation service and import/export."""

from sidekick.service.character_service import CharacterService
from sidekick.service.import_export import CharacterImportExport, ImportResult

__all__ = [
    "CharacterImportExport",
    "CharacterService",
    "ImportResult",
]
