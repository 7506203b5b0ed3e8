"""Resource pools, dice pools, ability uses and bound formulas."""

from sidekick.resources.ability_uses import (
    get_max_uses,
    get_remaining_uses,
    reset_ability_uses_by_condition,
    use_ability,
)
from sidekick.resources.dice_pool_manager import (
    add_die_to_pool,
    create_pool_instance,
    get_max_dice,
    reset_dice_pools_by_condition,
    use_die_from_pool,
)
from sidekick.resources.formula_values import (
    build_variables,
    evaluate_expression,
    resolve_value,
    validate_expression,
)
from sidekick.resources.resource_manager import (
    calculate_initial_value,
    can_afford,
    conditions_reset_by,
    get_current_value,
    get_resource_bounds,
    reset_resources_by_condition,
    restore_resource,
    set_resource_value,
    spend_resource,
)

__all__ = [
    "add_die_to_pool",
    "build_variables",
    "calculate_initial_value",
    "can_afford",
    "conditions_reset_by",
    "create_pool_instance",
    "evaluate_expression",
    "get_current_value",
    "get_max_dice",
    "get_max_uses",
    "get_remaining_uses",
    "get_resource_bounds",
    "reset_ability_uses_by_condition",
    "reset_dice_pools_by_condition",
    "reset_resources_by_condition",
    "resolve_value",
    "restore_resource",
    "set_resource_value",
    "spend_resource",
    "use_ability",
    "use_die_from_pool",
    "validate_expression",
]
