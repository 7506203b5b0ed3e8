"""
Dice pool manager.

A dice pool holds rolled faces (a Commander's combat dice, for example)
instead of a number. Functions here are pure: they take the character's
pool list and return a new one. Dice are rolled through the injected random
source so seeded sessions stay reproducible.
"""

from typing import Optional
import logging

from sidekick.data_models import DicePoolDefinition, DicePoolInstance, ResetCondition, ResetType
from sidekick.dice.dice_roller import RandomSource
from sidekick.errors import DicePoolError, DicePoolFullError
from sidekick.resources.formula_values import resolve_value
from sidekick.resources.resource_manager import conditions_reset_by

logger = logging.getLogger(__name__)


def create_pool_instance(definition: DicePoolDefinition, sort_order: int = 0) -> DicePoolInstance:
    """New empty pool for a definition."""
    return DicePoolInstance(definition=definition, current_dice=[], sort_order=sort_order)


def get_max_dice(definition: DicePoolDefinition, variables: Optional[dict[str, int]] = None) -> int:
    return max(0, resolve_value(definition.max_dice, variables))


def _find_pool(pools: list[DicePoolInstance], pool_id: str) -> int:
    for index, pool in enumerate(pools):
        if pool.definition.id == pool_id:
            return index
    raise DicePoolError(f"Unknown dice pool: {pool_id}")


def _replace_pool(
    pools: list[DicePoolInstance], index: int, dice: list[int]
) -> list[DicePoolInstance]:
    pool = pools[index]
    updated = list(pools)
    updated[index] = DicePoolInstance(
        definition=pool.definition, current_dice=dice, sort_order=pool.sort_order
    )
    return updated


def add_die_to_pool(
    pools: list[DicePoolInstance],
    pool_id: str,
    random_source: RandomSource,
    variables: Optional[dict[str, int]] = None,
) -> tuple[list[DicePoolInstance], int]:
    """
    Roll one die and add it to a pool.

    Returns:
        (new pool list, rolled face)

    Raises:
        DicePoolError: If the pool does not exist
        DicePoolFullError: If the pool already holds its maximum
    """
    index = _find_pool(pools, pool_id)
    pool = pools[index]
    maximum = get_max_dice(pool.definition, variables)
    if len(pool.current_dice) >= maximum:
        raise DicePoolFullError(f"Dice pool '{pool_id}' is full ({maximum} dice)")

    value = random_source(pool.definition.dice_size)
    logger.debug(f"Added d{pool.definition.dice_size}={value} to pool {pool_id}")
    return _replace_pool(pools, index, pool.current_dice + [value]), value


def use_die_from_pool(
    pools: list[DicePoolInstance],
    pool_id: str,
    die_index: int,
) -> tuple[list[DicePoolInstance], int]:
    """
    Remove a die from a pool by position.

    Returns:
        (new pool list, value of the used die)

    Raises:
        DicePoolError: If the pool does not exist or the index is out of range
    """
    index = _find_pool(pools, pool_id)
    dice = pools[index].current_dice
    if die_index < 0 or die_index >= len(dice):
        raise DicePoolError(f"No die at position {die_index} in pool '{pool_id}'")

    value = dice[die_index]
    remaining = dice[:die_index] + dice[die_index + 1:]
    return _replace_pool(pools, index, remaining), value


def reset_dice_pools_by_condition(
    pools: list[DicePoolInstance],
    condition: ResetCondition,
    random_source: RandomSource,
    variables: Optional[dict[str, int]] = None,
) -> list[DicePoolInstance]:
    """
    Reset pools whose condition is covered by `condition`.

    to_zero empties the pool; to_max and to_default fill it with fresh dice.
    """
    triggered = conditions_reset_by(condition)
    updated = []
    for pool in pools:
        definition = pool.definition
        if definition.reset_condition not in triggered:
            updated.append(pool)
            continue
        if definition.reset_type == ResetType.TO_ZERO:
            dice = []
        else:
            dice = [
                random_source(definition.dice_size)
                for _ in range(get_max_dice(definition, variables))
            ]
        updated.append(
            DicePoolInstance(definition=definition, current_dice=dice, sort_order=pool.sort_order)
        )
    return updated
