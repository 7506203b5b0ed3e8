"""Level advancement and skill points."""

from sidekick.advancement.level_manager import (
    LevelUpResult,
    SkillPointInfo,
    calculate_allocated_skill_points,
    calculate_available_skill_points,
    compute_level_up,
    get_skill_point_info,
)

__all__ = [
    "LevelUpResult",
    "SkillPointInfo",
    "calculate_allocated_skill_points",
    "calculate_available_skill_points",
    "compute_level_up",
    "get_skill_point_info",
]
