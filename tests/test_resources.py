"""
Unit tests for resource pools, bound formulas and ability uses.

Tests sidekick/resources: formula_values, resource_manager and ability_uses.
"""

import pytest

from sidekick.data_models import (
    AbilityDefinition,
    AbilityFrequency,
    ResetCondition,
    ResetType,
    ResourceDefinition,
    ResourceValue,
    ValueSpec,
)
from sidekick.errors import AbilityUnavailableError, FormulaError
from sidekick.resources.ability_uses import (
    get_max_uses,
    get_remaining_uses,
    reset_ability_uses_by_condition,
    use_ability,
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
    reset_resources_by_condition,
    restore_resource,
    set_resource_value,
    spend_resource,
)


def mana_definition() -> ResourceDefinition:
    return ResourceDefinition(
        id="mana",
        name="Mana",
        reset_condition=ResetCondition.SAFE_REST,
        reset_type=ResetType.TO_MAX,
        min_value=ValueSpec.fixed(0),
        max_value=ValueSpec.formula("WIL + LVL"),
    )


def charges_definition() -> ResourceDefinition:
    return ResourceDefinition(
        id="charges",
        name="Charges",
        reset_condition=ResetCondition.ENCOUNTER_END,
        reset_type=ResetType.TO_ZERO,
        min_value=ValueSpec.fixed(0),
        max_value=ValueSpec.fixed(10),
    )


@pytest.fixture
def variables():
    """WIL 2 at level 3."""
    return build_variables({"strength": 1, "dexterity": 0, "intelligence": 0, "will": 2}, 3)


class TestFormulaValues:
    """Tests for bound expressions."""

    def test_build_variables(self, variables):
        assert variables["WIL"] == 2
        assert variables["WILL"] == 2
        assert variables["STR"] == 1
        assert variables["LVL"] == 3
        assert variables["LEVEL"] == 3

    def test_sum(self, variables):
        assert evaluate_expression("WIL + LVL", variables) == 5

    def test_product_precedence(self, variables):
        assert evaluate_expression("5 * LVL", variables) == 15
        assert evaluate_expression("1 + 2 * LVL", variables) == 7

    def test_negative_terms(self, variables):
        assert evaluate_expression("-WIL + 10", variables) == 8
        assert evaluate_expression("LVL - 1", variables) == 2

    def test_lowercase_names(self, variables):
        assert evaluate_expression("wil+lvl", variables) == 5

    def test_unknown_variable_evaluates_to_zero(self, variables):
        assert evaluate_expression("FOO + 2", variables) == 2

    def test_resolve_fixed_and_formula(self, variables):
        assert resolve_value(ValueSpec.fixed(4), variables) == 4
        assert resolve_value(ValueSpec.formula("INT + 1"), variables) == 1

    @pytest.mark.parametrize("expression", ["", "WIL +", "* 2", "WIL LVL", "2 / LVL", "WIL ++"])
    def test_invalid_syntax(self, expression):
        with pytest.raises(FormulaError):
            validate_expression(expression)

    def test_unknown_variable_rejected_at_validation(self):
        with pytest.raises(FormulaError):
            validate_expression("MANA + 1")

    def test_valid_expressions(self):
        for expression in ("WIL + LVL", "5 * LVL", "STRENGTH", "-DEX + 3", "INT * 2 + 1"):
            validate_expression(expression)


class TestResourceManager:
    """Tests for spending, restoring and resetting resources."""

    def test_initial_value_to_max(self, variables):
        """WIL + LVL with WIL 2 and level 3 seeds 5."""
        assert calculate_initial_value(mana_definition(), variables) == 5

    def test_initial_value_to_zero(self):
        assert calculate_initial_value(charges_definition()) == 0

    def test_initial_value_to_default(self):
        definition = ResourceDefinition(
            id="focus",
            name="Focus",
            reset_type=ResetType.TO_DEFAULT,
            max_value=ValueSpec.fixed(5),
            reset_value=ValueSpec.fixed(2),
        )
        assert calculate_initial_value(definition) == 2

    def test_untouched_resource_reads_initial_value(self, variables):
        assert get_current_value("mana", mana_definition(), {}, variables) == 5

    def test_spend_clamps_at_minimum(self, variables):
        """Spending 7 from 5 leaves 0."""
        values = spend_resource("mana", 7, mana_definition(), {}, variables)
        assert values["mana"].value == 0

    def test_spend_and_restore_round_trip(self, variables):
        definition = mana_definition()
        values = spend_resource("mana", 3, definition, {}, variables)
        assert values["mana"].value == 2
        values = restore_resource("mana", 3, definition, values, variables)
        assert values["mana"].value == 5

    def test_restore_clamps_at_maximum(self, variables):
        values = {"mana": ResourceValue(4)}
        values = restore_resource("mana", 10, mana_definition(), values, variables)
        assert values["mana"].value == 5

    def test_restore_never_lowers_value_above_max(self, variables):
        """A value above the max (after an attribute drop) is kept on restore."""
        values = {"mana": ResourceValue(8)}
        values = restore_resource("mana", 1, mana_definition(), values, variables)
        assert values["mana"].value == 8

    def test_negative_spend_does_not_raise_value(self, variables):
        values = {"mana": ResourceValue(2)}
        values = spend_resource("mana", -3, mana_definition(), values, variables)
        assert values["mana"].value == 2

    def test_operations_do_not_mutate_input(self, variables):
        values = {"mana": ResourceValue(4)}
        spend_resource("mana", 2, mana_definition(), values, variables)
        assert values["mana"].value == 4

    def test_set_value_clamps(self, variables):
        definition = mana_definition()
        assert set_resource_value("mana", 99, definition, {}, variables)["mana"].value == 5
        assert set_resource_value("mana", -4, definition, {}, variables)["mana"].value == 0

    def test_can_afford(self, variables):
        values = {"mana": ResourceValue(2)}
        assert can_afford("mana", 2, mana_definition(), values, variables)
        assert not can_afford("mana", 3, mana_definition(), values, variables)

    def test_reset_hierarchy(self):
        assert conditions_reset_by(ResetCondition.TURN_END) == (ResetCondition.TURN_END,)
        assert ResetCondition.ENCOUNTER_END in conditions_reset_by(ResetCondition.SAFE_REST)
        assert ResetCondition.SAFE_REST not in conditions_reset_by(ResetCondition.ENCOUNTER_END)

    def test_encounter_end_resets_only_encounter_resources(self, variables):
        values = {"mana": ResourceValue(1), "charges": ResourceValue(7)}
        values = reset_resources_by_condition(
            [mana_definition(), charges_definition()], values, ResetCondition.ENCOUNTER_END, variables
        )
        assert values["charges"].value == 0
        assert values["mana"].value == 1

    def test_safe_rest_resets_everything(self, variables):
        values = {"mana": ResourceValue(1), "charges": ResourceValue(7)}
        values = reset_resources_by_condition(
            [mana_definition(), charges_definition()], values, ResetCondition.SAFE_REST, variables
        )
        assert values["charges"].value == 0
        assert values["mana"].value == 5

    def test_reset_keeps_values_without_definition(self):
        values = {"orphan": ResourceValue(3)}
        values = reset_resources_by_condition([], values, ResetCondition.SAFE_REST)
        assert values["orphan"].value == 3


class TestAbilityUses:
    """Tests for limited ability uses."""

    def limited(self) -> AbilityDefinition:
        return AbilityDefinition(
            id="courage",
            name="Courage!",
            frequency=AbilityFrequency.PER_ENCOUNTER,
            max_uses=ValueSpec.fixed(1),
        )

    def test_unlimited_ability(self):
        ability = AbilityDefinition(id="strike", name="Strike")
        assert get_max_uses(ability) is None
        assert get_remaining_uses(ability, {}) is None
        assert use_ability(ability, {}) == {}

    def test_use_consumes(self):
        uses = use_ability(self.limited(), {})
        assert uses == {"courage": 0}

    def test_use_with_none_left_raises(self):
        with pytest.raises(AbilityUnavailableError):
            use_ability(self.limited(), {"courage": 0})

    def test_formula_max_uses(self, variables):
        ability = AbilityDefinition(
            id="rally",
            name="Rally",
            frequency=AbilityFrequency.PER_SAFE_REST,
            max_uses=ValueSpec.formula("WIL"),
        )
        assert get_remaining_uses(ability, {}, variables) == 2

    def test_reset_by_condition(self):
        uses = reset_ability_uses_by_condition(
            [self.limited()], {"courage": 0}, ResetCondition.ENCOUNTER_END
        )
        assert "courage" not in uses

    def test_turn_end_does_not_reset_encounter_ability(self):
        uses = reset_ability_uses_by_condition(
            [self.limited()], {"courage": 0}, ResetCondition.TURN_END
        )
        assert uses == {"courage": 0}
