"""
Engine configuration.

EngineSettings is an explicit value passed to the service, repository and
CLI. Nothing reads it from module state, so several sessions with different
settings can coexist in one process.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any


@dataclass
class EngineSettings:
    """Configuration for a rules engine session."""

    # Storage
    storage_key: str = "sheets-characters"
    legacy_storage_keys: tuple[str, ...] = ("nimble-navigator-characters",)
    data_dir: Path = field(default_factory=lambda: Path("data"))

    # Rules limits
    max_level: int = 20
    attribute_min: int = -2
    attribute_max: int = 10

    # Activity log
    activity_log_limit: int = 100

    def __post_init__(self):
        """Normalise types coming from JSON or argparse."""
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)
        if isinstance(self.legacy_storage_keys, list):
            self.legacy_storage_keys = tuple(self.legacy_storage_keys)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineSettings":
        """Build settings from a plain mapping, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known_fields})

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_key": self.storage_key,
            "legacy_storage_keys": list(self.legacy_storage_keys),
            "data_dir": str(self.data_dir),
            "max_level": self.max_level,
            "attribute_min": self.attribute_min,
            "attribute_max": self.attribute_max,
            "activity_log_limit": self.activity_log_limit,
        }
