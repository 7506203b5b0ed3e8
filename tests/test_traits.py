"""
Unit tests for trait resolution.

Tests sidekick/traits/trait_resolver.py against the bundled classes:
granted traits, choice selections, direct selections and derived values.
"""

import pytest

from sidekick.content.builtin.commander import BATTLEFIELD_CHOICE, ORDERS_POOL_ID
from sidekick.content.content_catalog import ContentCatalog
from sidekick.data_models import AttributeName, ValueSpec
from sidekick.errors import (
    ChoiceCapacityError,
    ContentValidationError,
    InvalidOptionError,
    SelectionNotFoundError,
)
from sidekick.traits.trait_models import (
    AttributeBoostSelection,
    AttributeBoostTrait,
    ChoiceTrait,
    ChoiceTraitSelection,
    ClassDefinition,
    ClassFeature,
    PoolFeatureSelection,
    StatBonusTrait,
    SubclassSelection,
    selection_from_dict,
    trait_from_dict,
)
from sidekick.traits.trait_resolver import (
    add_choice_option,
    add_choice_option_nested_selection,
    add_trait_selection,
    find_choice_selection,
    find_granted_trait,
    get_ability_definitions,
    get_available_trait_selections,
    get_computed_attributes,
    get_dice_pool_definitions,
    get_formula_variables,
    get_granted_traits,
    get_options_missing_nested_selection,
    get_remaining_choice_selections,
    get_resource_definitions,
    get_selectable_traits,
    get_stat_bonus_total,
    remove_choice_option,
    remove_trait_selections,
)

from tests.helpers import make_character, make_commander, make_hunter, make_oathsworn


def pool_pick(feature_id: str) -> PoolFeatureSelection:
    return PoolFeatureSelection(granted_by_trait_id="", pool_id=ORDERS_POOL_ID, feature_id=feature_id)


class TestGrantedTraits:
    """Tests for traits granted by level, subclass and picks."""

    def test_traits_up_to_level(self, catalog):
        traits = get_granted_traits(make_hunter(level=1), catalog)
        ids = [t.id for t in traits]
        assert ids == ["hunters-mark-0"]

    def test_higher_level_adds_traits_in_level_order(self, catalog):
        ids = [t.id for t in get_granted_traits(make_hunter(level=3), catalog)]
        assert ids.index("hunters-mark-0") < ids.index("thrill-of-the-hunt-resource-0")
        assert ids.index("thrill-of-the-hunt-1-0") < ids.index("subclass-0")

    def test_unknown_class_grants_nothing(self, catalog):
        character = make_hunter()
        character.class_id = "bard"
        assert get_granted_traits(character, catalog) == []

    def test_ancestry_and_background_traits(self, catalog):
        character = make_hunter(ancestry_id="human", background_id="fearless")
        ids = [t.id for t in get_granted_traits(character, catalog)]
        assert "human-tenacious" in ids
        assert "fearless-1" in ids

    def test_later_pool_definition_wins(self, catalog):
        """Oathsworn judgement dice become d8s at level 3."""
        assert get_dice_pool_definitions(make_oathsworn(level=2), catalog)[0].dice_size == 6
        pools = get_dice_pool_definitions(make_oathsworn(level=3), catalog)
        assert len(pools) == 1
        assert pools[0].dice_size == 8

    def test_resource_definitions(self, catalog):
        ids = {d.id for d in get_resource_definitions(make_oathsworn(level=2), catalog)}
        assert ids == {"lay-on-hands-pool", "mana"}


class TestChoiceSelections:
    """Tests for selecting options of a choice trait."""

    def test_choice_is_pending(self, catalog, commander):
        available = get_available_trait_selections(commander, get_granted_traits(commander, catalog))
        assert [t.id for t in available.choice_traits] == ["commander-battlefield-choice"]
        assert available.has_pending

    def test_add_option(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        selection = find_choice_selection(updated, BATTLEFIELD_CHOICE.id)
        assert [o.trait_id for o in selection.selected_options] == ["combat-dice-bonus"]
        assert get_remaining_choice_selections(updated, BATTLEFIELD_CHOICE) == 0
        assert commander.trait_selections == []

    def test_capacity_enforced(self, commander):
        """Once num_selections options are chosen, the next add is rejected."""
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        with pytest.raises(ChoiceCapacityError):
            add_choice_option(updated, BATTLEFIELD_CHOICE, "tactical-advantage")

    def test_duplicate_add_is_noop(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        again = add_choice_option(updated, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        assert again.trait_selections == updated.trait_selections

    def test_invalid_option(self, commander):
        with pytest.raises(InvalidOptionError):
            add_choice_option(commander, BATTLEFIELD_CHOICE, "not-an-option")

    def test_removing_last_option_deletes_record(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        removed = remove_choice_option(updated, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        assert find_choice_selection(removed, BATTLEFIELD_CHOICE.id) is None
        assert not any(isinstance(s, ChoiceTraitSelection) for s in removed.trait_selections)

    def test_remove_unselected_is_noop(self, commander):
        removed = remove_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        assert removed.trait_selections == []

    def test_nested_selection_required(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "extra-order-option")
        assert get_options_missing_nested_selection(updated, BATTLEFIELD_CHOICE) == ["extra-order-option"]

        nested = PoolFeatureSelection(
            granted_by_trait_id="extra-order-option", pool_id=ORDERS_POOL_ID, feature_id="fall-back"
        )
        updated = add_choice_option_nested_selection(
            updated, BATTLEFIELD_CHOICE, "extra-order-option", nested
        )
        assert get_options_missing_nested_selection(updated, BATTLEFIELD_CHOICE) == []

    def test_nested_selection_needs_selected_option(self, commander):
        nested = pool_pick("fall-back")
        with pytest.raises(SelectionNotFoundError):
            add_choice_option_nested_selection(
                commander, BATTLEFIELD_CHOICE, "extra-order-option", nested
            )

    def test_nested_attribute_boost_applies(self, catalog, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "attribute-boost-option")
        updated = add_choice_option_nested_selection(
            updated,
            BATTLEFIELD_CHOICE,
            "attribute-boost-option",
            AttributeBoostSelection(
                granted_by_trait_id="attribute-boost-option", attribute=AttributeName.STRENGTH
            ),
        )
        assert get_computed_attributes(updated, catalog)["strength"] == 3

    def test_selected_ability_option_is_active(self, catalog, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "tactical-advantage")
        ids = {a.id for a in get_ability_definitions(updated, catalog)}
        assert "tactical-advantage-ability" in ids
        assert find_granted_trait(updated, catalog, "tactical-advantage") is not None
        assert find_granted_trait(commander, catalog, "tactical-advantage") is None

    def test_selected_stat_bonus_option(self, catalog, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        assert get_stat_bonus_total(updated, catalog, "combatDice") == 1
        assert get_stat_bonus_total(commander, catalog, "combatDice") == 0


INNER_PATH = ChoiceTrait(
    id="inner-path",
    num_selections=1,
    options=[
        AttributeBoostTrait(id="inner-boost", allowed_attributes=[AttributeName.WILL], amount=1),
        StatBonusTrait(id="inner-bonus", stat_bonus={"will": ValueSpec.fixed(1)}),
    ],
)

WAYFARER_PATH = ChoiceTrait(
    id="wayfarer-path",
    num_selections=1,
    options=[StatBonusTrait(id="steady", stat_bonus={"strength": ValueSpec.fixed(1)}), INNER_PATH],
)


@pytest.fixture
def wayfarer_catalog():
    catalog = ContentCatalog()
    catalog.register_class(ClassDefinition(
        id="wayfarer",
        name="Wayfarer",
        features=[ClassFeature(id="paths", level=1, name="Paths", traits=[WAYFARER_PATH])],
    ))
    return catalog


@pytest.fixture
def wayfarer():
    return make_character(name="Sol", class_id="wayfarer", will=2)


def pending_choice_ids(character, catalog) -> list[str]:
    available = get_available_trait_selections(character, get_selectable_traits(character, catalog))
    return [t.id for t in available.choice_traits]


class TestNestedChoices:
    """Tests for choice options that are themselves choices."""

    def test_inner_choice_offered_once_picked(self, wayfarer_catalog, wayfarer):
        assert pending_choice_ids(wayfarer, wayfarer_catalog) == ["wayfarer-path"]

        updated = add_choice_option(wayfarer, WAYFARER_PATH, "inner-path")
        assert get_remaining_choice_selections(updated, INNER_PATH) == 1
        assert pending_choice_ids(updated, wayfarer_catalog) == ["inner-path"]

        updated = add_choice_option(updated, INNER_PATH, "inner-bonus")
        assert pending_choice_ids(updated, wayfarer_catalog) == []

    def test_inner_choice_is_found(self, wayfarer_catalog, wayfarer):
        assert find_granted_trait(wayfarer, wayfarer_catalog, "inner-path") is None
        updated = add_choice_option(wayfarer, WAYFARER_PATH, "inner-path")
        assert find_granted_trait(updated, wayfarer_catalog, "inner-path").id == "inner-path"

    def test_inner_option_is_active(self, wayfarer_catalog, wayfarer):
        updated = add_choice_option(wayfarer, WAYFARER_PATH, "inner-path")
        updated = add_choice_option(updated, INNER_PATH, "inner-bonus")
        assert get_computed_attributes(updated, wayfarer_catalog)["will"] == 3

    def test_removing_outer_option_discards_inner_picks(self, wayfarer_catalog, wayfarer):
        updated = add_choice_option(wayfarer, WAYFARER_PATH, "inner-path")
        updated = add_choice_option(updated, INNER_PATH, "inner-boost")
        updated = add_choice_option_nested_selection(
            updated, INNER_PATH, "inner-boost", AttributeBoostSelection("", AttributeName.WILL)
        )
        assert get_computed_attributes(updated, wayfarer_catalog)["will"] == 3

        removed = remove_choice_option(updated, WAYFARER_PATH, "inner-path")
        assert removed.trait_selections == []
        assert get_computed_attributes(removed, wayfarer_catalog)["will"] == 2

    def test_repicking_outer_option_starts_fresh(self, wayfarer):
        updated = add_choice_option(wayfarer, WAYFARER_PATH, "inner-path")
        updated = add_choice_option(updated, INNER_PATH, "inner-bonus")
        updated = remove_choice_option(updated, WAYFARER_PATH, "inner-path")
        updated = add_choice_option(updated, WAYFARER_PATH, "inner-path")
        assert find_choice_selection(updated, INNER_PATH.id) is None
        assert get_remaining_choice_selections(updated, INNER_PATH) == 1

    def test_option_settled_by_nested_selection_not_listed(self, catalog, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "extra-order-option")
        available = get_available_trait_selections(updated, get_selectable_traits(updated, catalog))
        ids = [t.id for t in available.all_traits()]
        assert "extra-order-option" not in ids
        assert "commanders-orders-0" in ids

    def test_removing_other_option_keeps_unrelated_picks(self, catalog, commander):
        trait = find_granted_trait(commander, catalog, "commanders-orders-0")
        updated = add_trait_selection(commander, trait, pool_pick("fall-back"))
        updated = add_choice_option(updated, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        removed = remove_choice_option(updated, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        assert [s.type for s in removed.trait_selections] == ["pool_feature"]


class TestNestedSelectionChecks:
    """Tests that a nested selection must fit the option it resolves."""

    def boost_option(self, commander):
        return add_choice_option(commander, BATTLEFIELD_CHOICE, "attribute-boost-option")

    def test_removing_option_discards_nested_boost(self, catalog, commander):
        updated = add_choice_option_nested_selection(
            self.boost_option(commander),
            BATTLEFIELD_CHOICE,
            "attribute-boost-option",
            AttributeBoostSelection("", AttributeName.STRENGTH),
        )
        assert get_computed_attributes(updated, catalog)["strength"] == 3
        removed = remove_choice_option(updated, BATTLEFIELD_CHOICE, "attribute-boost-option")
        assert get_computed_attributes(removed, catalog)["strength"] == 2

    def test_wrong_kind_rejected(self, commander):
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                self.boost_option(commander),
                BATTLEFIELD_CHOICE,
                "attribute-boost-option",
                SubclassSelection("", "nope"),
            )

    def test_disallowed_attribute_rejected(self, commander):
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                self.boost_option(commander),
                BATTLEFIELD_CHOICE,
                "attribute-boost-option",
                AttributeBoostSelection("", AttributeName.WILL),
            )

    def test_amount_above_option_rejected(self, catalog, commander):
        updated = self.boost_option(commander)
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                updated,
                BATTLEFIELD_CHOICE,
                "attribute-boost-option",
                AttributeBoostSelection("", AttributeName.STRENGTH, amount=9),
            )
        assert get_computed_attributes(updated, catalog)["strength"] == 2

    def test_option_without_follow_up_rejected(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                updated,
                BATTLEFIELD_CHOICE,
                "combat-dice-bonus",
                AttributeBoostSelection("", AttributeName.STRENGTH),
            )

    def test_pool_feature_must_be_in_pool(self, catalog, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "extra-order-option")
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                updated,
                BATTLEFIELD_CHOICE,
                "extra-order-option",
                pool_pick("charge"),
                catalog.get_class("commander"),
            )

    def test_pool_feature_from_other_pool_rejected(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "extra-order-option")
        wrong_pool = PoolFeatureSelection(granted_by_trait_id="", pool_id="spells", feature_id="fall-back")
        with pytest.raises(InvalidOptionError):
            add_choice_option_nested_selection(
                updated, BATTLEFIELD_CHOICE, "extra-order-option", wrong_pool
            )


class TestDirectSelections:
    """Tests for pool picks, subclasses and attribute boosts."""

    def orders_trait(self, catalog, character):
        return find_granted_trait(character, catalog, "commanders-orders-0")

    def test_pool_pick_stamped_with_trait(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        class_def = catalog.get_class("commander")
        updated = add_trait_selection(commander, trait, pool_pick("hold-the-line"), class_def)
        assert updated.trait_selections[0].granted_by_trait_id == "commanders-orders-0"

    def test_pool_pick_capacity(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        class_def = catalog.get_class("commander")
        updated = add_trait_selection(commander, trait, pool_pick("hold-the-line"), class_def)
        updated = add_trait_selection(updated, trait, pool_pick("fall-back"), class_def)
        with pytest.raises(ChoiceCapacityError):
            add_trait_selection(updated, trait, pool_pick("coordinated-strike"), class_def)

    def test_pool_pick_duplicate_rejected(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        updated = add_trait_selection(commander, trait, pool_pick("fall-back"))
        with pytest.raises(InvalidOptionError):
            add_trait_selection(updated, trait, pool_pick("fall-back"))

    def test_pool_pick_unknown_feature(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        with pytest.raises(InvalidOptionError):
            add_trait_selection(commander, trait, pool_pick("charge"), catalog.get_class("commander"))

    def test_wrong_selection_kind(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        with pytest.raises(InvalidOptionError):
            add_trait_selection(commander, trait, SubclassSelection("", "shadowpath"))

    def test_subclass_grants_features(self, catalog):
        hunter = make_hunter(level=3)
        trait = find_granted_trait(hunter, catalog, "subclass-0")
        class_def = catalog.get_class("hunter")
        updated = add_trait_selection(hunter, trait, SubclassSelection("", "shadowpath"), class_def)
        ids = [t.id for t in get_granted_traits(updated, catalog)]
        assert "from-the-shadows-0" in ids

    def test_unknown_subclass(self, catalog):
        hunter = make_hunter(level=3)
        trait = find_granted_trait(hunter, catalog, "subclass-0")
        with pytest.raises(InvalidOptionError):
            add_trait_selection(hunter, trait, SubclassSelection("", "nope"), catalog.get_class("hunter"))

    def test_only_one_subclass(self, catalog):
        hunter = make_hunter(level=3)
        trait = find_granted_trait(hunter, catalog, "subclass-0")
        updated = add_trait_selection(hunter, trait, SubclassSelection("", "shadowpath"))
        with pytest.raises(ChoiceCapacityError):
            add_trait_selection(updated, trait, SubclassSelection("", "keeper-of-the-wild"))

    def test_attribute_boost_allowed_attributes(self, catalog):
        hunter = make_hunter(level=4)
        trait = find_granted_trait(hunter, catalog, "key-stat-increase-1-0")
        with pytest.raises(InvalidOptionError):
            add_trait_selection(hunter, trait, AttributeBoostSelection("", AttributeName.STRENGTH))

    def test_attribute_boost_changes_variables(self, catalog):
        hunter = make_hunter(level=4)
        trait = find_granted_trait(hunter, catalog, "key-stat-increase-1-0")
        updated = add_trait_selection(hunter, trait, AttributeBoostSelection("", AttributeName.DEXTERITY))
        assert get_computed_attributes(updated, catalog)["dexterity"] == 4
        assert get_formula_variables(updated, catalog)["DEX"] == 4
        assert updated.attributes.dexterity == 3

    def test_attribute_boost_amount_capped_by_trait(self, catalog):
        hunter = make_hunter(level=4)
        trait = find_granted_trait(hunter, catalog, "key-stat-increase-1-0")
        with pytest.raises(InvalidOptionError):
            add_trait_selection(hunter, trait, AttributeBoostSelection("", AttributeName.WILL, amount=7))
        assert get_computed_attributes(hunter, catalog)["will"] == 1

    def test_attribute_boost_amount_must_be_positive(self, catalog):
        hunter = make_hunter(level=4)
        trait = find_granted_trait(hunter, catalog, "key-stat-increase-1-0")
        with pytest.raises(InvalidOptionError):
            add_trait_selection(hunter, trait, AttributeBoostSelection("", AttributeName.WILL, amount=0))

    def test_remove_trait_selections(self, catalog, commander):
        trait = self.orders_trait(catalog, commander)
        updated = add_trait_selection(commander, trait, pool_pick("fall-back"))
        updated = add_choice_option(updated, BATTLEFIELD_CHOICE, "combat-dice-bonus")
        removed = remove_trait_selections(updated, "commanders-orders-0")
        assert [s.type for s in removed.trait_selections] == ["choice"]


class TestSerialization:
    """Tests for trait and selection dict round trips."""

    def test_choice_trait_from_dict(self):
        trait = trait_from_dict(BATTLEFIELD_CHOICE.to_dict())
        assert trait.id == BATTLEFIELD_CHOICE.id
        assert [o.id for o in trait.options] == [o.id for o in BATTLEFIELD_CHOICE.options]

    def test_nested_selection_from_dict(self, commander):
        updated = add_choice_option(commander, BATTLEFIELD_CHOICE, "extra-order-option")
        updated = add_choice_option_nested_selection(
            updated, BATTLEFIELD_CHOICE, "extra-order-option", pool_pick("fall-back")
        )
        data = updated.trait_selections[0].to_dict()
        restored = selection_from_dict(data)
        assert restored == updated.trait_selections[0]

    def test_unknown_selection_type(self):
        with pytest.raises(ValueError):
            selection_from_dict({"type": "mystery"})

    def test_unknown_trait_type(self):
        with pytest.raises(ContentValidationError):
            trait_from_dict({"id": "x", "type": "telepathy"})
