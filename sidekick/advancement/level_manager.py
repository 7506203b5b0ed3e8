"""
Level advancement and skill points.

compute_level_up is pure: it returns the levelled character and a summary
of what changed. The service persists the result.

Skill points follow: starting_points + (level - 1) * points_per_level.
"""

from dataclasses import dataclass, field, replace
from typing import Optional
import logging

from sidekick.config import EngineSettings
from sidekick.data_models import Character, DicePoolInstance, HitPoints, ResourceValue
from sidekick.dice.dice_roller import RandomSource
from sidekick.errors import MaxLevelError
from sidekick.resources.dice_pool_manager import create_pool_instance
from sidekick.resources.resource_manager import calculate_initial_value
from sidekick.traits.trait_models import FeatureTrait
from sidekick.traits.trait_resolver import (
    ContentLookup,
    get_available_trait_selections,
    get_dice_pool_definitions,
    get_formula_variables,
    get_granted_traits,
    get_resource_definitions,
    get_selectable_traits,
)

logger = logging.getLogger(__name__)


@dataclass
class LevelUpResult:
    """Result of a level-up operation."""
    character_id: str
    character_name: str
    old_level: int
    new_level: int
    hp_gained: int = 0
    new_traits: list[FeatureTrait] = field(default_factory=list)
    new_resources: list[str] = field(default_factory=list)
    new_dice_pools: list[str] = field(default_factory=list)
    pending_selections: list[FeatureTrait] = field(default_factory=list)
    skill_points_gained: int = 0

    @property
    def needs_input(self) -> bool:
        return bool(self.pending_selections)


@dataclass
class SkillPointInfo:
    available: int
    allocated: int

    @property
    def remaining(self) -> int:
        return self.available - self.allocated


# =============================================================================
# SKILL POINTS
# =============================================================================


def calculate_available_skill_points(character: Character) -> int:
    config = character.config.skill_points
    return config.starting_points + (character.level - 1) * config.points_per_level


def calculate_allocated_skill_points(character: Character) -> int:
    """Points spent on skill modifiers."""
    return sum(max(0, skill.modifier) for skill in character.skills.values())


def get_skill_point_info(character: Character) -> SkillPointInfo:
    return SkillPointInfo(
        available=calculate_available_skill_points(character),
        allocated=calculate_allocated_skill_points(character),
    )


# =============================================================================
# LEVEL UP
# =============================================================================


def compute_level_up(
    character: Character,
    catalog: ContentLookup,
    settings: Optional[EngineSettings] = None,
    random_source: Optional[RandomSource] = None,
) -> tuple[Character, LevelUpResult]:
    """
    Advance a character one level.

    Args:
        character: Character to level (not modified)
        catalog: Content lookup for class features
        settings: Engine settings providing the level cap
        random_source: Rolls the hit die; the die's average is used if omitted

    Returns:
        (levelled character, LevelUpResult)

    Raises:
        MaxLevelError: If the character is already at the level cap
    """
    settings = settings or EngineSettings()
    if character.level >= settings.max_level:
        raise MaxLevelError(
            f"{character.name} is already at the maximum level ({settings.max_level})"
        )

    old_level = character.level
    new_level = old_level + 1
    levelled = replace(character, level=new_level)

    old_trait_ids = {t.id for t in get_granted_traits(character, catalog)}
    new_traits = [t for t in get_granted_traits(levelled, catalog) if t.id not in old_trait_ids]

    # Hit points
    class_def = catalog.get_class(character.class_id)
    hit_die = class_def.hit_die_size if class_def else 8
    hp_gained = random_source(hit_die) if random_source else hit_die // 2 + 1
    levelled = replace(
        levelled,
        hit_points=HitPoints(
            current=character.hit_points.current + hp_gained,
            max=character.hit_points.max + hp_gained,
            temporary=character.hit_points.temporary,
        ),
    )

    # Seed new resources, add new pools and refresh changed pool definitions
    variables = get_formula_variables(levelled, catalog)
    resource_values = dict(levelled.resource_values)
    new_resources = []
    for definition in get_resource_definitions(levelled, catalog):
        if definition.id not in resource_values:
            resource_values[definition.id] = ResourceValue(
                value=calculate_initial_value(definition, variables)
            )
            new_resources.append(definition.id)

    pools = list(levelled.dice_pools)
    existing = {p.definition.id: i for i, p in enumerate(pools)}
    new_pools = []
    for definition in get_dice_pool_definitions(levelled, catalog):
        if definition.id in existing:
            index = existing[definition.id]
            pools[index] = DicePoolInstance(
                definition=definition,
                current_dice=pools[index].current_dice,
                sort_order=pools[index].sort_order,
            )
        else:
            pools.append(create_pool_instance(definition, sort_order=len(pools)))
            new_pools.append(definition.id)

    levelled = replace(levelled, resource_values=resource_values, dice_pools=pools)

    pending = get_available_trait_selections(levelled, get_selectable_traits(levelled, catalog))

    result = LevelUpResult(
        character_id=character.id,
        character_name=character.name,
        old_level=old_level,
        new_level=new_level,
        hp_gained=hp_gained,
        new_traits=new_traits,
        new_resources=new_resources,
        new_dice_pools=new_pools,
        pending_selections=pending.all_traits(),
        skill_points_gained=character.config.skill_points.points_per_level,
    )
    logger.info(f"{character.name} advanced to level {new_level} (+{hp_gained} HP)")
    return levelled, result
