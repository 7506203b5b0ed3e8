"""
Trait and feature resolution.

Works out which traits a character has been granted at their level, which
of those still need a player decision, and applies those decisions. Every
function is pure: it returns a new Character and leaves its argument alone.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Protocol
import logging

from sidekick.data_models import (
    AbilityDefinition,
    AttributeName,
    Character,
    DicePoolDefinition,
    ResourceDefinition,
)
from sidekick.errors import (
    ChoiceCapacityError,
    InvalidOptionError,
    SelectionNotFoundError,
)
from sidekick.resources.formula_values import build_variables, resolve_value
from sidekick.traits.trait_models import (
    AncestryDefinition,
    AttributeBoostSelection,
    AttributeBoostTrait,
    BackgroundDefinition,
    ChoiceTrait,
    ChoiceTraitSelection,
    ClassDefinition,
    ClassFeature,
    FeaturePool,
    FeatureTrait,
    PickFeatureFromPoolTrait,
    PoolFeatureSelection,
    SelectedOption,
    SpellSchoolChoiceTrait,
    SubclassChoiceTrait,
    SubclassSelection,
    TraitSelection,
    UtilitySpellsTrait,
)

logger = logging.getLogger(__name__)


class ContentLookup(Protocol):
    """Read access to class, ancestry and background definitions."""

    def get_class(self, class_id: str) -> Optional[ClassDefinition]:
        ...

    def get_ancestry(self, ancestry_id: str) -> Optional[AncestryDefinition]:
        ...

    def get_background(self, background_id: str) -> Optional[BackgroundDefinition]:
        ...


# Trait types whose options need a follow-up selection when picked in a choice
NESTED_SELECTION_TYPES = frozenset({
    "pick_feature_from_pool",
    "attribute_boost",
    "spell_school_choice",
    "utility_spells",
})

# Selection kind each selectable trait type accepts
SELECTION_KIND_FOR_TRAIT = {
    "pick_feature_from_pool": "pool_feature",
    "attribute_boost": "attribute_boost",
    "spell_school_choice": "spell_school",
    "utility_spells": "utility_spells",
    "subclass_choice": "subclass",
}


@dataclass
class AvailableTraitSelections:
    """Granted traits that still need player input, grouped by kind."""
    choice_traits: list[ChoiceTrait] = field(default_factory=list)
    pool_selections: list[PickFeatureFromPoolTrait] = field(default_factory=list)
    spell_school_selections: list[SpellSchoolChoiceTrait] = field(default_factory=list)
    attribute_boosts: list[AttributeBoostTrait] = field(default_factory=list)
    utility_spell_selections: list[UtilitySpellsTrait] = field(default_factory=list)
    subclass_choices: list[SubclassChoiceTrait] = field(default_factory=list)

    @property
    def has_pending(self) -> bool:
        return any([
            self.choice_traits,
            self.pool_selections,
            self.spell_school_selections,
            self.attribute_boosts,
            self.utility_spell_selections,
            self.subclass_choices,
        ])

    def all_traits(self) -> list[FeatureTrait]:
        return [
            *self.choice_traits,
            *self.pool_selections,
            *self.spell_school_selections,
            *self.attribute_boosts,
            *self.utility_spell_selections,
            *self.subclass_choices,
        ]


# =============================================================================
# GRANTED AND ACTIVE TRAITS
# =============================================================================


def _features_up_to_level(features: list[ClassFeature], level: int) -> list[ClassFeature]:
    # sorted() is stable, so declaration order holds within a level
    return sorted((f for f in features if f.level <= level), key=lambda f: f.level)


def get_chosen_subclass_id(character: Character) -> Optional[str]:
    for selection in character.trait_selections:
        if isinstance(selection, SubclassSelection):
            return selection.subclass_id
    return None


def _find_pool(class_def: Optional[ClassDefinition], pool_id: str) -> Optional[FeaturePool]:
    if class_def is None:
        return None
    return class_def.get_feature_pool(pool_id)


def get_granted_traits(character: Character, catalog: ContentLookup) -> list[FeatureTrait]:
    """
    All traits granted at the character's level.

    Order: class features by ascending level, then ancestry, then
    background, then the chosen subclass's features, then features picked
    from pools.
    """
    traits: list[FeatureTrait] = []
    class_def = catalog.get_class(character.class_id)
    if class_def is None:
        logger.warning(f"Unknown class '{character.class_id}' for {character.name}")
    else:
        for feature in _features_up_to_level(class_def.features, character.level):
            traits.extend(feature.traits)

    ancestry = catalog.get_ancestry(character.ancestry_id) if character.ancestry_id else None
    if ancestry:
        traits.extend(ancestry.traits)

    background = catalog.get_background(character.background_id) if character.background_id else None
    if background:
        traits.extend(background.traits)

    subclass_id = get_chosen_subclass_id(character)
    if class_def and subclass_id:
        subclass = class_def.get_subclass(subclass_id)
        if subclass is None:
            logger.warning(f"Unknown subclass '{subclass_id}' for class {class_def.id}")
        else:
            for feature in _features_up_to_level(subclass.features, character.level):
                traits.extend(feature.traits)

    for selection in character.trait_selections:
        if isinstance(selection, PoolFeatureSelection):
            traits.extend(_pool_feature_traits(class_def, selection))

    return traits


def _pool_feature_traits(
    class_def: Optional[ClassDefinition], selection: PoolFeatureSelection
) -> list[FeatureTrait]:
    pool = _find_pool(class_def, selection.pool_id)
    feature = pool.get_feature(selection.feature_id) if pool else None
    if feature is None:
        logger.warning(f"Picked feature '{selection.feature_id}' not found in pool {selection.pool_id}")
        return []
    return list(feature.traits)


def get_active_traits(character: Character, catalog: ContentLookup) -> list[FeatureTrait]:
    """Granted traits with choice traits replaced by their selected options."""
    class_def = catalog.get_class(character.class_id)
    return _expand_choices(character, class_def, get_granted_traits(character, catalog), set())


def _expand_choices(
    character: Character,
    class_def: Optional[ClassDefinition],
    traits: list[FeatureTrait],
    seen: set[str],
) -> list[FeatureTrait]:
    active: list[FeatureTrait] = []
    for trait in traits:
        if not isinstance(trait, ChoiceTrait):
            active.append(trait)
            continue
        if trait.id in seen:
            continue
        selection = find_choice_selection(character, trait.id)
        if selection is None:
            continue
        picked = []
        for option in selection.selected_options:
            option_trait = trait.get_option(option.trait_id)
            if option_trait is None:
                logger.warning(f"Selected option '{option.trait_id}' is not offered by {trait.id}")
                continue
            picked.append(option_trait)
            if isinstance(option.selection, PoolFeatureSelection):
                picked.extend(_pool_feature_traits(class_def, option.selection))
        active.extend(_expand_choices(character, class_def, picked, seen | {trait.id}))
    return active


# =============================================================================
# REMAINING SELECTIONS
# =============================================================================


def find_choice_selection(character: Character, choice_trait_id: str) -> Optional[ChoiceTraitSelection]:
    for selection in character.trait_selections:
        if isinstance(selection, ChoiceTraitSelection) and selection.choice_trait_id == choice_trait_id:
            return selection
    return None


def _selections_granted_by(character: Character, trait_id: str, kind: str) -> list[TraitSelection]:
    return [
        s for s in character.trait_selections
        if s.type == kind and s.granted_by_trait_id == trait_id
    ]


def get_remaining_choice_selections(character: Character, choice_trait: ChoiceTrait) -> int:
    selection = find_choice_selection(character, choice_trait.id)
    taken = len(selection.selected_options) if selection else 0
    return max(0, choice_trait.num_selections - taken)


def get_remaining_pool_selections(character: Character, trait: PickFeatureFromPoolTrait) -> int:
    taken = len(_selections_granted_by(character, trait.id, "pool_feature"))
    return max(0, trait.choices_allowed - taken)


def get_remaining_spell_school_selections(character: Character, trait: SpellSchoolChoiceTrait) -> int:
    taken = len(_selections_granted_by(character, trait.id, "spell_school"))
    return max(0, trait.number_of_schools - taken)


def get_remaining_utility_spell_selections(character: Character, trait: UtilitySpellsTrait) -> int:
    taken = sum(
        len(s.spell_ids) for s in _selections_granted_by(character, trait.id, "utility_spells")
    )
    return max(0, trait.number_of_spells - taken)


def get_remaining_selections(character: Character, trait: FeatureTrait) -> int:
    """Remaining selections for any selectable trait; 0 for passive traits."""
    if isinstance(trait, ChoiceTrait):
        return get_remaining_choice_selections(character, trait)
    if isinstance(trait, PickFeatureFromPoolTrait):
        return get_remaining_pool_selections(character, trait)
    if isinstance(trait, SpellSchoolChoiceTrait):
        return get_remaining_spell_school_selections(character, trait)
    if isinstance(trait, UtilitySpellsTrait):
        return get_remaining_utility_spell_selections(character, trait)
    if isinstance(trait, (AttributeBoostTrait, SubclassChoiceTrait)):
        kind = SELECTION_KIND_FOR_TRAIT[trait.type]
        return 0 if _selections_granted_by(character, trait.id, kind) else 1
    return 0


def get_available_trait_selections(
    character: Character, traits: list[FeatureTrait]
) -> AvailableTraitSelections:
    """Group the traits that still have remaining selections by kind."""
    available = AvailableTraitSelections()
    buckets = {
        "choice": available.choice_traits,
        "pick_feature_from_pool": available.pool_selections,
        "spell_school_choice": available.spell_school_selections,
        "attribute_boost": available.attribute_boosts,
        "utility_spells": available.utility_spell_selections,
        "subclass_choice": available.subclass_choices,
    }
    for trait in traits:
        bucket = buckets.get(trait.type)
        if bucket is not None and get_remaining_selections(character, trait) > 0:
            bucket.append(trait)
    return available


# =============================================================================
# CHOICE TRAIT SELECTIONS
# =============================================================================


def requires_nested_selection(trait: FeatureTrait) -> bool:
    """True if picking this trait as a choice option needs a follow-up selection."""
    return trait.type in NESTED_SELECTION_TYPES


def _with_selections(character: Character, selections: list[TraitSelection]) -> Character:
    return replace(character, trait_selections=selections)


def _replace_choice_selection(
    character: Character,
    choice_trait_id: str,
    new_selection: Optional[ChoiceTraitSelection],
) -> Character:
    selections: list[TraitSelection] = []
    replaced = False
    for selection in character.trait_selections:
        if isinstance(selection, ChoiceTraitSelection) and selection.choice_trait_id == choice_trait_id:
            if new_selection is not None and not replaced:
                selections.append(new_selection)
            replaced = True
            continue
        selections.append(selection)
    if not replaced and new_selection is not None:
        selections.append(new_selection)
    return _with_selections(character, selections)


def add_choice_option(character: Character, choice_trait: ChoiceTrait, option_trait_id: str) -> Character:
    """
    Select an option of a choice trait.

    Selecting an option that is already selected is a no-op.

    Raises:
        InvalidOptionError: If the id is not one of the trait's options
        ChoiceCapacityError: If num_selections options are already selected
    """
    if choice_trait.get_option(option_trait_id) is None:
        raise InvalidOptionError(
            f"'{option_trait_id}' is not an option of choice trait '{choice_trait.id}'"
        )

    existing = find_choice_selection(character, choice_trait.id)
    if existing and existing.get_option(option_trait_id):
        return _with_selections(character, list(character.trait_selections))

    options = list(existing.selected_options) if existing else []
    if len(options) >= choice_trait.num_selections:
        raise ChoiceCapacityError(choice_trait.id, choice_trait.num_selections)

    options.append(SelectedOption(trait_id=option_trait_id))
    logger.debug(f"Selected option {option_trait_id} for {choice_trait.id}")
    return _replace_choice_selection(
        character,
        choice_trait.id,
        ChoiceTraitSelection(
            granted_by_trait_id=choice_trait.id,
            choice_trait_id=choice_trait.id,
            selected_options=options,
        ),
    )


def _discard_option_selections(character: Character, option_trait: FeatureTrait) -> Character:
    # An option that is itself a choice keeps its picks in a separate record
    if isinstance(option_trait, ChoiceTrait):
        existing = find_choice_selection(character, option_trait.id)
        if existing is not None:
            for option in existing.selected_options:
                inner = option_trait.get_option(option.trait_id)
                if inner is not None:
                    character = _discard_option_selections(character, inner)
            character = _replace_choice_selection(character, option_trait.id, None)
    return remove_trait_selections(character, option_trait.id)


def remove_choice_option(character: Character, choice_trait: ChoiceTrait, option_trait_id: str) -> Character:
    """
    Deselect an option along with its nested selection.

    When the option is itself a choice trait, its own picks are discarded
    too, at any depth. The selection record is deleted when its last option
    is removed. Removing an option that is not selected is a no-op.
    """
    existing = find_choice_selection(character, choice_trait.id)
    if existing is None or existing.get_option(option_trait_id) is None:
        return _with_selections(character, list(character.trait_selections))

    options = [o for o in existing.selected_options if o.trait_id != option_trait_id]
    new_selection = replace(existing, selected_options=options) if options else None
    logger.debug(f"Removed option {option_trait_id} from {choice_trait.id}")
    updated = _replace_choice_selection(character, choice_trait.id, new_selection)

    option_trait = choice_trait.get_option(option_trait_id)
    if option_trait is not None:
        updated = _discard_option_selections(updated, option_trait)
    return updated


def add_choice_option_nested_selection(
    character: Character,
    choice_trait: ChoiceTrait,
    option_trait_id: str,
    nested_selection: TraitSelection,
    class_def: Optional[ClassDefinition] = None,
) -> Character:
    """
    Attach the follow-up selection for a selected option, replacing any earlier one.

    The nested selection must fit the option trait the same way a direct
    selection fits its granting trait.

    Raises:
        SelectionNotFoundError: If the option has not been selected
        InvalidOptionError: If the option takes no nested selection or the
            selection does not fit it
    """
    choice_trait_id = choice_trait.id
    existing = find_choice_selection(character, choice_trait_id)
    if existing is None or existing.get_option(option_trait_id) is None:
        raise SelectionNotFoundError(
            f"Option '{option_trait_id}' of '{choice_trait_id}' is not selected"
        )

    option_trait = choice_trait.get_option(option_trait_id)
    if option_trait is None or not requires_nested_selection(option_trait):
        raise InvalidOptionError(
            f"Option '{option_trait_id}' of '{choice_trait_id}' takes no nested selection"
        )
    check_selection_fits(character, option_trait, nested_selection, class_def)

    options = [
        SelectedOption(trait_id=o.trait_id, selection=nested_selection)
        if o.trait_id == option_trait_id else o
        for o in existing.selected_options
    ]
    return _replace_choice_selection(
        character, choice_trait_id, replace(existing, selected_options=options)
    )


def get_options_missing_nested_selection(character: Character, choice_trait: ChoiceTrait) -> list[str]:
    """Ids of selected options that still need their nested selection."""
    existing = find_choice_selection(character, choice_trait.id)
    if existing is None:
        return []
    missing = []
    for option in existing.selected_options:
        option_trait = choice_trait.get_option(option.trait_id)
        if option_trait and requires_nested_selection(option_trait) and option.selection is None:
            missing.append(option.trait_id)
    return missing


# =============================================================================
# DIRECT TRAIT SELECTIONS
# =============================================================================


def check_selection_fits(
    character: Character,
    trait: FeatureTrait,
    selection: TraitSelection,
    class_def: Optional[ClassDefinition] = None,
    remaining: Optional[int] = None,
) -> None:
    """
    Check that a selection's kind and values fit a trait.

    Capacity is not checked here. `remaining` bounds the number of utility
    spells and defaults to the trait's full allowance.

    Raises:
        InvalidOptionError: If the selection kind or value does not fit
        ChoiceCapacityError: If more utility spells are picked than allowed
    """
    expected_kind = SELECTION_KIND_FOR_TRAIT.get(trait.type)
    if expected_kind is None or selection.type != expected_kind:
        raise InvalidOptionError(
            f"A {selection.type} selection cannot be made for {trait.type} trait '{trait.id}'"
        )

    if isinstance(trait, AttributeBoostTrait):
        if trait.allowed_attributes and selection.attribute not in trait.allowed_attributes:
            raise InvalidOptionError(
                f"Attribute '{selection.attribute.value}' cannot be boosted by '{trait.id}'"
            )
        if not 1 <= selection.amount <= trait.amount:
            raise InvalidOptionError(
                f"'{trait.id}' raises an attribute by 1 to {trait.amount}, got {selection.amount}"
            )
    elif isinstance(trait, PickFeatureFromPoolTrait):
        if selection.pool_id != trait.pool_id:
            raise InvalidOptionError(f"'{trait.id}' picks from pool '{trait.pool_id}'")
        already = any(
            isinstance(s, PoolFeatureSelection)
            and s.pool_id == selection.pool_id
            and s.feature_id == selection.feature_id
            for s in character.trait_selections
        )
        if already:
            raise InvalidOptionError(f"Feature '{selection.feature_id}' has already been picked")
        if class_def is not None:
            pool = class_def.get_feature_pool(trait.pool_id)
            if pool is None or pool.get_feature(selection.feature_id) is None:
                raise InvalidOptionError(
                    f"Feature '{selection.feature_id}' is not in pool '{trait.pool_id}'"
                )
    elif isinstance(trait, SpellSchoolChoiceTrait):
        if trait.available_schools and selection.school_id not in trait.available_schools:
            raise InvalidOptionError(f"School '{selection.school_id}' is not available to '{trait.id}'")
    elif isinstance(trait, UtilitySpellsTrait):
        allowed = trait.number_of_spells if remaining is None else remaining
        if len(selection.spell_ids) > allowed:
            raise ChoiceCapacityError(trait.id, trait.number_of_spells)
    elif isinstance(trait, SubclassChoiceTrait):
        if class_def is not None and class_def.get_subclass(selection.subclass_id) is None:
            raise InvalidOptionError(
                f"'{selection.subclass_id}' is not a subclass of {class_def.id}"
            )


def validate_selection_for_trait(
    character: Character,
    trait: FeatureTrait,
    selection: TraitSelection,
    class_def: Optional[ClassDefinition] = None,
) -> None:
    """
    Check that a selection fits the trait that grants it.

    Raises:
        InvalidOptionError: If the selection kind or value does not fit
        ChoiceCapacityError: If the trait has no selections left
    """
    expected_kind = SELECTION_KIND_FOR_TRAIT.get(trait.type)
    if expected_kind is None or selection.type != expected_kind:
        raise InvalidOptionError(
            f"A {selection.type} selection cannot be made for {trait.type} trait '{trait.id}'"
        )

    remaining = get_remaining_selections(character, trait)
    if remaining <= 0:
        allowed = {
            "pick_feature_from_pool": getattr(trait, "choices_allowed", 1),
            "spell_school_choice": getattr(trait, "number_of_schools", 1),
            "utility_spells": getattr(trait, "number_of_spells", 1),
        }.get(trait.type, 1)
        raise ChoiceCapacityError(trait.id, allowed)

    check_selection_fits(character, trait, selection, class_def, remaining)


def add_trait_selection(
    character: Character,
    trait: FeatureTrait,
    selection: TraitSelection,
    class_def: Optional[ClassDefinition] = None,
) -> Character:
    """
    Record a selection for a non-choice selectable trait.

    The selection is stamped with the granting trait's id.
    """
    validate_selection_for_trait(character, trait, selection, class_def)
    stamped = replace(selection, granted_by_trait_id=trait.id)
    logger.debug(f"Added {stamped.type} selection for {trait.id}")
    return _with_selections(character, [*character.trait_selections, stamped])


def remove_trait_selections(character: Character, trait_id: str) -> Character:
    """Remove every non-choice selection granted by a trait."""
    selections = [
        s for s in character.trait_selections
        if isinstance(s, ChoiceTraitSelection) or s.granted_by_trait_id != trait_id
    ]
    return _with_selections(character, selections)


# =============================================================================
# DERIVED VALUES
# =============================================================================


def _attribute_boost_selections(character: Character) -> list[AttributeBoostSelection]:
    boosts = []
    for selection in character.trait_selections:
        if isinstance(selection, AttributeBoostSelection):
            boosts.append(selection)
        elif isinstance(selection, ChoiceTraitSelection):
            for option in selection.selected_options:
                if isinstance(option.selection, AttributeBoostSelection):
                    boosts.append(option.selection)
    return boosts


def get_computed_attributes(character: Character, catalog: ContentLookup) -> dict[str, int]:
    """
    Base attributes plus attribute boosts and stat bonuses.

    Computed values are not clamped to the base attribute range.
    """
    base = character.attributes.as_dict()
    computed = dict(base)
    for boost in _attribute_boost_selections(character):
        computed[boost.attribute.value] += boost.amount

    base_variables = build_variables(base, character.level)
    attribute_names = {a.value for a in AttributeName}
    for trait in get_active_traits(character, catalog):
        if trait.type != "stat_bonus":
            continue
        for key, spec in trait.stat_bonus.items():
            if key in attribute_names:
                computed[key] += resolve_value(spec, base_variables)
    return computed


def get_formula_variables(character: Character, catalog: ContentLookup) -> dict[str, int]:
    """Variables for bound formulas and dice rolls from computed attributes."""
    return build_variables(get_computed_attributes(character, catalog), character.level)


def get_stat_bonus_total(character: Character, catalog: ContentLookup, key: str) -> int:
    """Sum of a named stat bonus (maxWoundsBonus, combatDice, ...) over active traits."""
    variables = build_variables(character.attributes.as_dict(), character.level)
    return sum(
        resolve_value(trait.stat_bonus[key], variables)
        for trait in get_active_traits(character, catalog)
        if trait.type == "stat_bonus" and key in trait.stat_bonus
    )


def _collect_by_id(definitions: list) -> list:
    # Later grants of the same id replace earlier ones in place
    by_id: dict[str, object] = {}
    for definition in definitions:
        by_id[definition.id] = definition
    return list(by_id.values())


def get_resource_definitions(character: Character, catalog: ContentLookup) -> list[ResourceDefinition]:
    return _collect_by_id([
        t.resource_definition for t in get_active_traits(character, catalog) if t.type == "resource"
    ])


def get_dice_pool_definitions(character: Character, catalog: ContentLookup) -> list[DicePoolDefinition]:
    return _collect_by_id([
        t.pool_definition for t in get_active_traits(character, catalog) if t.type == "dice_pool"
    ])


def get_ability_definitions(character: Character, catalog: ContentLookup) -> list[AbilityDefinition]:
    return _collect_by_id([
        t.ability for t in get_active_traits(character, catalog) if t.type == "ability"
    ])


def get_selectable_traits(character: Character, catalog: ContentLookup) -> list[FeatureTrait]:
    """
    Granted traits followed by the selected options of granted choices.

    Options of options are included at any depth, so a choice picked as an
    option can itself be offered to the player. Options resolved by a nested
    selection are left out; they are settled inside their choice.
    """
    traits: list[FeatureTrait] = []
    seen: set[str] = set()
    pending = list(get_granted_traits(character, catalog))
    while pending:
        trait = pending.pop(0)
        if trait.id in seen:
            continue
        seen.add(trait.id)
        traits.append(trait)
        if isinstance(trait, ChoiceTrait):
            selection = find_choice_selection(character, trait.id)
            picked = {o.trait_id for o in selection.selected_options} if selection else set()
            pending.extend(
                o for o in trait.options if o.id in picked and not requires_nested_selection(o)
            )
    return traits


def find_granted_trait(character: Character, catalog: ContentLookup, trait_id: str) -> Optional[FeatureTrait]:
    """A granted trait by id, searching choice options too."""
    pending = list(get_granted_traits(character, catalog))
    while pending:
        trait = pending.pop(0)
        if trait.id == trait_id:
            return trait
        if isinstance(trait, ChoiceTrait):
            selection = find_choice_selection(character, trait.id)
            picked = {o.trait_id for o in selection.selected_options} if selection else set()
            pending.extend(o for o in trait.options if o.id in picked)
    return None
