"""
Resource pool manager.

Pure functions over a character's resource values. Nothing here mutates its
arguments: every operation returns a new values dict. Spending and restoring
clamp silently; can_afford lets callers check before they spend.
"""

from typing import Optional
import logging

from sidekick.data_models import (
    ResetCondition,
    ResetType,
    ResourceDefinition,
    ResourceValue,
)
from sidekick.resources.formula_values import resolve_value

logger = logging.getLogger(__name__)


ResourceValues = dict[str, ResourceValue]


# Conditions covered by each checkpoint: a safe rest also ends the
# encounter and the turn, ending an encounter also ends the turn.
RESET_HIERARCHY: dict[ResetCondition, tuple[ResetCondition, ...]] = {
    ResetCondition.TURN_END: (ResetCondition.TURN_END,),
    ResetCondition.ENCOUNTER_END: (ResetCondition.TURN_END, ResetCondition.ENCOUNTER_END),
    ResetCondition.SAFE_REST: (
        ResetCondition.TURN_END,
        ResetCondition.ENCOUNTER_END,
        ResetCondition.SAFE_REST,
    ),
    ResetCondition.NEVER: (),
}


def conditions_reset_by(condition: ResetCondition) -> tuple[ResetCondition, ...]:
    """Reset conditions triggered when `condition` occurs."""
    return RESET_HIERARCHY[ResetCondition(condition)]


def get_resource_bounds(
    definition: ResourceDefinition,
    variables: Optional[dict[str, int]] = None,
) -> tuple[int, int]:
    """Evaluate (min, max) for a resource against the current variables."""
    return (
        resolve_value(definition.min_value, variables),
        resolve_value(definition.max_value, variables),
    )


def calculate_initial_value(
    definition: ResourceDefinition,
    variables: Optional[dict[str, int]] = None,
) -> int:
    """
    Value a resource takes when first seeded or reset.

    to_max -> max, to_zero -> min, to_default -> reset value (max if unset).
    """
    minimum, maximum = get_resource_bounds(definition, variables)
    if definition.reset_type == ResetType.TO_ZERO:
        return minimum
    if definition.reset_type == ResetType.TO_DEFAULT and definition.reset_value is not None:
        return resolve_value(definition.reset_value, variables)
    return maximum


def _current_value(
    resource_id: str,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]],
) -> int:
    stored = values.get(resource_id)
    if stored is None:
        return calculate_initial_value(definition, variables)
    return stored.value


def get_current_value(
    resource_id: str,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]] = None,
) -> int:
    """Stored value of a resource, or its initial value if never touched."""
    return _current_value(resource_id, definition, values, variables)


def spend_resource(
    resource_id: str,
    amount: int,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]] = None,
) -> ResourceValues:
    """
    Spend from a resource, clamping at its minimum.

    Never raises a value above the current one, even for a negative amount.

    Args:
        resource_id: Id of the resource to spend
        amount: Amount to subtract
        definition: Resource definition providing the bounds
        values: Current resource values
        variables: Formula variables for the bounds

    Returns:
        A new values dict with the spent resource updated
    """
    minimum, _ = get_resource_bounds(definition, variables)
    current = _current_value(resource_id, definition, values, variables)
    new_value = max(minimum, min(current, current - amount))

    updated = dict(values)
    updated[resource_id] = ResourceValue(value=new_value)
    logger.debug(f"Spent {amount} {resource_id}: {current} -> {new_value}")
    return updated


def restore_resource(
    resource_id: str,
    amount: int,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]] = None,
) -> ResourceValues:
    """
    Restore a resource, clamping at its maximum.

    Never lowers the current value: a value already above the maximum (for
    example after an attribute dropped) is left as it is.
    """
    _, maximum = get_resource_bounds(definition, variables)
    current = _current_value(resource_id, definition, values, variables)
    new_value = max(current, min(maximum, current + amount))

    updated = dict(values)
    updated[resource_id] = ResourceValue(value=new_value)
    logger.debug(f"Restored {amount} {resource_id}: {current} -> {new_value}")
    return updated


def set_resource_value(
    resource_id: str,
    value: int,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]] = None,
) -> ResourceValues:
    """Set a resource to an explicit value clamped to [min, max]."""
    minimum, maximum = get_resource_bounds(definition, variables)
    updated = dict(values)
    updated[resource_id] = ResourceValue(value=max(minimum, min(maximum, value)))
    return updated


def can_afford(
    resource_id: str,
    amount: int,
    definition: ResourceDefinition,
    values: ResourceValues,
    variables: Optional[dict[str, int]] = None,
) -> bool:
    """True if spending `amount` would not be cut short by the minimum."""
    minimum, _ = get_resource_bounds(definition, variables)
    return _current_value(resource_id, definition, values, variables) - amount >= minimum


def reset_resources_by_condition(
    definitions: list[ResourceDefinition],
    values: ResourceValues,
    condition: ResetCondition,
    variables: Optional[dict[str, int]] = None,
) -> ResourceValues:
    """
    Reset every resource whose reset condition is covered by `condition`.

    Resources with other conditions, and values without a definition, are
    carried over untouched.
    """
    triggered = conditions_reset_by(condition)
    updated = dict(values)
    for definition in definitions:
        if definition.reset_condition in triggered:
            updated[definition.id] = ResourceValue(
                value=calculate_initial_value(definition, variables)
            )
    logger.debug(
        f"Reset resources for {ResetCondition(condition).value}: "
        f"{[d.id for d in definitions if d.reset_condition in triggered]}"
    )
    return updated
