"""
Ability use tracking.

Character.ability_uses stores the remaining uses of limited abilities. An
ability with no entry has all of its uses left; resetting removes the entry
so it is re-seeded from max_uses the next time it is used.
"""

from typing import Optional
import logging

from sidekick.data_models import AbilityDefinition, AbilityFrequency, ResetCondition
from sidekick.errors import AbilityUnavailableError
from sidekick.resources.formula_values import resolve_value
from sidekick.resources.resource_manager import conditions_reset_by

logger = logging.getLogger(__name__)


FREQUENCY_RESET: dict[AbilityFrequency, ResetCondition] = {
    AbilityFrequency.PER_TURN: ResetCondition.TURN_END,
    AbilityFrequency.PER_ENCOUNTER: ResetCondition.ENCOUNTER_END,
    AbilityFrequency.PER_SAFE_REST: ResetCondition.SAFE_REST,
}


def is_limited(ability: AbilityDefinition) -> bool:
    return ability.frequency != AbilityFrequency.AT_WILL and ability.max_uses is not None


def get_max_uses(ability: AbilityDefinition, variables: Optional[dict[str, int]] = None) -> Optional[int]:
    """Maximum uses, or None for an unlimited ability."""
    if not is_limited(ability):
        return None
    return max(0, resolve_value(ability.max_uses, variables))


def get_remaining_uses(
    ability: AbilityDefinition,
    ability_uses: dict[str, int],
    variables: Optional[dict[str, int]] = None,
) -> Optional[int]:
    """Remaining uses, or None for an unlimited ability."""
    maximum = get_max_uses(ability, variables)
    if maximum is None:
        return None
    return ability_uses.get(ability.id, maximum)


def use_ability(
    ability: AbilityDefinition,
    ability_uses: dict[str, int],
    variables: Optional[dict[str, int]] = None,
) -> dict[str, int]:
    """
    Consume one use of an ability.

    Returns:
        A new uses dict (unchanged copy for unlimited abilities)

    Raises:
        AbilityUnavailableError: If no uses remain
    """
    remaining = get_remaining_uses(ability, ability_uses, variables)
    updated = dict(ability_uses)
    if remaining is None:
        return updated
    if remaining <= 0:
        raise AbilityUnavailableError(f"'{ability.name}' has no uses remaining")
    updated[ability.id] = remaining - 1
    logger.debug(f"Used {ability.id}: {remaining - 1} left")
    return updated


def reset_ability_uses_by_condition(
    abilities: list[AbilityDefinition],
    ability_uses: dict[str, int],
    condition: ResetCondition,
) -> dict[str, int]:
    """Drop use counters for abilities whose frequency resets at `condition`."""
    triggered = conditions_reset_by(condition)
    updated = dict(ability_uses)
    for ability in abilities:
        reset_at = FREQUENCY_RESET.get(ability.frequency)
        if reset_at in triggered:
            updated.pop(ability.id, None)
    return updated
