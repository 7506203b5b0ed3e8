"""Feature traits, trait selections and their resolution."""

from sidekick.traits.trait_models import (
    AncestryDefinition,
    BackgroundDefinition,
    ChoiceTrait,
    ChoiceTraitSelection,
    ClassDefinition,
    ClassFeature,
    FeaturePool,
    FeatureTrait,
    SelectedOption,
    SubclassDefinition,
    TraitSelection,
    selection_from_dict,
    trait_from_dict,
)
from sidekick.traits.trait_resolver import (
    AvailableTraitSelections,
    add_choice_option,
    add_choice_option_nested_selection,
    add_trait_selection,
    get_active_traits,
    get_available_trait_selections,
    get_computed_attributes,
    get_formula_variables,
    get_granted_traits,
    get_options_missing_nested_selection,
    get_remaining_choice_selections,
    get_selectable_traits,
    remove_choice_option,
    remove_trait_selections,
    requires_nested_selection,
)

__all__ = [
    "AncestryDefinition",
    "AvailableTraitSelections",
    "BackgroundDefinition",
    "ChoiceTrait",
    "ChoiceTraitSelection",
    "ClassDefinition",
    "ClassFeature",
    "FeaturePool",
    "FeatureTrait",
    "SelectedOption",
    "SubclassDefinition",
    "TraitSelection",
    "add_choice_option",
    "add_choice_option_nested_selection",
    "add_trait_selection",
    "get_active_traits",
    "get_available_trait_selections",
    "get_computed_attributes",
    "get_formula_variables",
    "get_granted_traits",
    "get_options_missing_nested_selection",
    "get_remaining_choice_selections",
    "get_selectable_traits",
    "remove_choice_option",
    "remove_trait_selections",
    "requires_nested_selection",
    "selection_from_dict",
    "trait_from_dict",
]
