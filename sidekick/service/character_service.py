"""
Character mutation service.

Coordinates the pure engines for the currently loaded character. Every
mutation follows the same path: take the current character, compute the new
one with a pure function, persist it through the repository, then replace
the in-memory reference and notify subscribers. A failure anywhere before
the save leaves both storage and memory untouched; a storage error
propagates and the in-memory character is kept.
"""

from dataclasses import replace
from typing import Any, Callable, Optional
import logging

from sidekick.advancement.level_manager import LevelUpResult, compute_level_up
from sidekick.config import EngineSettings
from sidekick.data_models import (
    AbilityDefinition,
    Attributes,
    Character,
    DicePoolInstance,
    HitPoints,
    ResetCondition,
    ResourceDefinition,
)
from sidekick.dice.dice_formula import DiceFormulaEvaluator, RollResult
from sidekick.dice.dice_roller import DiceRoller, RandomSource
from sidekick.errors import (
    InsufficientResourceError,
    NoCharacterLoadedError,
    TraitNotFoundError,
    ValidationError,
)
from sidekick.observability.activity_log import ActivityLog
from sidekick.resources import ability_uses, dice_pool_manager, resource_manager
from sidekick.storage.character_repository import CharacterRepository
from sidekick.traits import trait_resolver
from sidekick.traits.trait_models import ChoiceTrait, FeatureTrait, TraitSelection
from sidekick.traits.trait_resolver import ContentLookup

logger = logging.getLogger(__name__)


CharacterCallback = Callable[[Character], None]

# Fields update_character_fields accepts
EDITABLE_FIELDS = {
    "name",
    "ancestry_id",
    "background_id",
    "level",
    "attributes",
    "skills",
    "initiative",
    "config",
    "hit_points",
    "wounds",
    "inventory",
    "notes",
    "in_encounter",
}


class CharacterService:
    """
    Owns the current character and commits changes to it.

    Usage:
        service = CharacterService(repository, load_builtin_content())
        service.load_character(character_id)
        service.spend_resource("mana", 2)
        service.end_encounter()
    """

    def __init__(
        self,
        repository: CharacterRepository,
        catalog: ContentLookup,
        settings: Optional[EngineSettings] = None,
        random_source: Optional[RandomSource] = None,
        activity_log: Optional[ActivityLog] = None,
    ):
        self.repository = repository
        self.catalog = catalog
        self.settings = settings or EngineSettings()
        self.random_source = random_source or DiceRoller()
        self.activity_log = activity_log or ActivityLog(limit=self.settings.activity_log_limit)
        self.evaluator = DiceFormulaEvaluator(self.random_source)

        self._character: Optional[Character] = None
        self._subscribers: list[CharacterCallback] = []

    # =========================================================================
    # CURRENT CHARACTER
    # =========================================================================

    def load_character(self, character_id: str) -> Character:
        """
        Load a character from storage and make it current.

        Raises:
            CharacterNotFoundError: If the id is not stored
        """
        character = self.repository.load(character_id)
        self._character = character
        self._notify(character)
        return character

    def get_current_character(self) -> Optional[Character]:
        return self._character

    def set_current_character(self, character: Optional[Character]) -> None:
        """Replace the current character without persisting it."""
        self._character = character
        if character is not None:
            self._notify(character)

    def _require_character(self) -> Character:
        if self._character is None:
            raise NoCharacterLoadedError("No character is loaded")
        return self._character

    def _commit(self, character: Character) -> Character:
        saved = self.repository.save(character)
        self._character = saved
        self._notify(saved)
        return saved

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, callback: CharacterCallback) -> None:
        """Call `callback` with the character after every committed change."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: CharacterCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, character: Character) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(character)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")

    # =========================================================================
    # FIELDS
    # =========================================================================

    def update_character_fields(self, **changes: Any) -> Character:
        """
        Update plain character fields.

        Attributes may be given as an Attributes instance or a mapping of
        attribute name to value. Raising the level goes through level_up one
        level at a time, so new resources and dice pools are seeded and each
        step is logged.

        Raises:
            ValidationError: For unknown fields, a level outside
                [1, max_level] or an attribute outside the configured range
        """
        character = self._require_character()

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if "level" in changes:
            level = changes["level"]
            if not 1 <= level <= self.settings.max_level:
                raise ValidationError(
                    f"Level must be between 1 and {self.settings.max_level}, got {level}"
                )

        if "attributes" in changes:
            attributes = changes["attributes"]
            if isinstance(attributes, dict):
                attributes = Attributes.from_dict({**character.attributes.as_dict(), **attributes})
            for name, value in attributes.as_dict().items():
                if not self.settings.attribute_min <= value <= self.settings.attribute_max:
                    raise ValidationError(
                        f"{name} must be between {self.settings.attribute_min} and "
                        f"{self.settings.attribute_max}, got {value}"
                    )
            changes["attributes"] = attributes

        target_level = changes.get("level", character.level)
        if target_level > character.level:
            del changes["level"]

        updated = character
        if changes:
            updated = self._commit(replace(character, **changes))
            logger.info(f"Updated {character.name}: {', '.join(sorted(changes))}")

        while updated.level < target_level:
            self.level_up()
            updated = self._require_character()
        return updated

    # =========================================================================
    # TRAIT SELECTIONS
    # =========================================================================

    def _granted_trait(self, character: Character, trait_id: str) -> FeatureTrait:
        trait = trait_resolver.find_granted_trait(character, self.catalog, trait_id)
        if trait is None:
            raise TraitNotFoundError(f"Trait '{trait_id}' is not granted to {character.name}")
        return trait

    def _granted_choice_trait(self, character: Character, trait_id: str) -> ChoiceTrait:
        trait = self._granted_trait(character, trait_id)
        if not isinstance(trait, ChoiceTrait):
            raise TraitNotFoundError(f"Trait '{trait_id}' is not a choice trait")
        return trait

    def get_available_trait_selections(self) -> trait_resolver.AvailableTraitSelections:
        character = self._require_character()
        traits = trait_resolver.get_selectable_traits(character, self.catalog)
        return trait_resolver.get_available_trait_selections(character, traits)

    def add_choice_option(self, choice_trait_id: str, option_id: str) -> Character:
        """
        Select an option of a granted choice trait.

        Raises:
            TraitNotFoundError: If the choice trait is not granted
            InvalidOptionError: If the option does not belong to the trait
            ChoiceCapacityError: If the trait has no selections left
        """
        character = self._require_character()
        choice_trait = self._granted_choice_trait(character, choice_trait_id)
        updated = self._commit(trait_resolver.add_choice_option(character, choice_trait, option_id))
        self.activity_log.log_selection(choice_trait_id, "add", option_id, character_id=character.id)
        return updated

    def remove_choice_option(self, choice_trait_id: str, option_id: str) -> Character:
        character = self._require_character()
        choice_trait = self._granted_choice_trait(character, choice_trait_id)
        updated = self._commit(
            trait_resolver.remove_choice_option(character, choice_trait, option_id)
        )
        self.activity_log.log_selection(choice_trait_id, "remove", option_id, character_id=character.id)
        return updated

    def add_choice_option_nested_selection(
        self,
        choice_trait_id: str,
        option_id: str,
        nested_selection: TraitSelection,
    ) -> Character:
        """
        Attach the follow-up selection for a chosen option.

        Raises:
            TraitNotFoundError: If the choice trait is not granted
            SelectionNotFoundError: If the option has not been selected
            InvalidOptionError: If the selection does not fit the option
        """
        character = self._require_character()
        choice_trait = self._granted_choice_trait(character, choice_trait_id)
        class_def = self.catalog.get_class(character.class_id)
        updated = self._commit(
            trait_resolver.add_choice_option_nested_selection(
                character, choice_trait, option_id, nested_selection, class_def
            )
        )
        self.activity_log.log_selection(choice_trait_id, "nested", option_id, character_id=character.id)
        return updated

    def add_trait_selection(self, trait_id: str, selection: TraitSelection) -> Character:
        """
        Record a selection for a granted selectable trait.

        Raises:
            TraitNotFoundError: If the trait is not granted
            InvalidOptionError: If the selection does not fit the trait
            ChoiceCapacityError: If the trait has no selections left
        """
        character = self._require_character()
        trait = self._granted_trait(character, trait_id)
        class_def = self.catalog.get_class(character.class_id)
        updated = self._commit(
            trait_resolver.add_trait_selection(character, trait, selection, class_def)
        )
        self.activity_log.log_selection(trait_id, "add", selection.type, character_id=character.id)
        return updated

    def remove_trait_selections(self, trait_id: str) -> Character:
        character = self._require_character()
        self._granted_trait(character, trait_id)
        updated = self._commit(trait_resolver.remove_trait_selections(character, trait_id))
        self.activity_log.log_selection(trait_id, "remove", character_id=character.id)
        return updated

    # =========================================================================
    # RESOURCES
    # =========================================================================

    def _variables(self, character: Character) -> dict[str, int]:
        return trait_resolver.get_formula_variables(character, self.catalog)

    def _resource_definition(self, character: Character, resource_id: str) -> ResourceDefinition:
        for definition in trait_resolver.get_resource_definitions(character, self.catalog):
            if definition.id == resource_id:
                return definition
        raise TraitNotFoundError(f"Resource '{resource_id}' is not granted to {character.name}")

    def get_resource_value(self, resource_id: str) -> int:
        """Current value of a granted resource (its initial value if never touched)."""
        character = self._require_character()
        definition = self._resource_definition(character, resource_id)
        return resource_manager.get_current_value(
            resource_id, definition, character.resource_values, self._variables(character)
        )

    def _change_resource(self, resource_id: str, amount: int, action: str) -> Character:
        character = self._require_character()
        definition = self._resource_definition(character, resource_id)
        variables = self._variables(character)
        old_value = resource_manager.get_current_value(
            resource_id, definition, character.resource_values, variables
        )

        operation = {
            "spend": resource_manager.spend_resource,
            "restore": resource_manager.restore_resource,
            "set": resource_manager.set_resource_value,
        }[action]
        values = operation(resource_id, amount, definition, character.resource_values, variables)
        updated = self._commit(replace(character, resource_values=values))

        new_value = values[resource_id].value
        self.activity_log.log_resource(
            resource_id, action, amount, old_value, new_value, character_id=character.id
        )
        logger.info(f"{character.name}: {action} {amount} {resource_id} ({old_value} -> {new_value})")
        return updated

    def spend_resource(self, resource_id: str, amount: int) -> Character:
        """Spend from a resource, clamping at its minimum."""
        return self._change_resource(resource_id, amount, "spend")

    def restore_resource(self, resource_id: str, amount: int) -> Character:
        """Restore a resource, clamping at its maximum."""
        return self._change_resource(resource_id, amount, "restore")

    def set_resource_value(self, resource_id: str, value: int) -> Character:
        return self._change_resource(resource_id, value, "set")

    # =========================================================================
    # REST AND RESET CHECKPOINTS
    # =========================================================================

    def _with_granted_pools(self, character: Character) -> list[DicePoolInstance]:
        """The character's pools plus empty instances for granted pools it lacks."""
        pools = list(character.dice_pools)
        present = {p.definition.id for p in pools}
        for definition in trait_resolver.get_dice_pool_definitions(character, self.catalog):
            if definition.id not in present:
                pools.append(dice_pool_manager.create_pool_instance(definition, sort_order=len(pools)))
        return pools

    def _reset(self, character: Character, condition: ResetCondition) -> Character:
        variables = self._variables(character)
        definitions = trait_resolver.get_resource_definitions(character, self.catalog)
        values = resource_manager.reset_resources_by_condition(
            definitions, character.resource_values, condition, variables
        )
        uses = ability_uses.reset_ability_uses_by_condition(
            trait_resolver.get_ability_definitions(character, self.catalog),
            character.ability_uses,
            condition,
        )
        pools = dice_pool_manager.reset_dice_pools_by_condition(
            self._with_granted_pools(character), condition, self.random_source, variables
        )
        return replace(character, resource_values=values, ability_uses=uses, dice_pools=pools)

    def _log_rest(self, character: Character, condition: ResetCondition) -> None:
        triggered = resource_manager.conditions_reset_by(condition)
        reset_ids = [
            d.id for d in trait_resolver.get_resource_definitions(character, self.catalog)
            if d.reset_condition in triggered
        ]
        self.activity_log.log_rest(condition.value, reset_ids, character_id=character.id)
        logger.info(f"{character.name}: {condition.value} (reset {len(reset_ids)} resources)")

    def end_turn(self) -> Character:
        character = self._require_character()
        updated = self._commit(self._reset(character, ResetCondition.TURN_END))
        self._log_rest(updated, ResetCondition.TURN_END)
        return updated

    def end_encounter(self) -> Character:
        """Reset turn and encounter scoped state and leave the encounter."""
        character = self._require_character()
        reset = self._reset(character, ResetCondition.ENCOUNTER_END)
        updated = self._commit(replace(reset, in_encounter=False))
        self._log_rest(updated, ResetCondition.ENCOUNTER_END)
        return updated

    def safe_rest(self) -> Character:
        """
        Take a safe rest.

        Resets everything scoped to turns, encounters and safe rests, restores
        hit points to maximum, clears temporary hit points and heals one wound.
        """
        character = self._require_character()
        reset = self._reset(character, ResetCondition.SAFE_REST)
        rested = replace(
            reset,
            hit_points=HitPoints(
                current=character.hit_points.max,
                max=character.hit_points.max,
                temporary=0,
            ),
            wounds=max(0, character.wounds - 1),
            in_encounter=False,
        )
        updated = self._commit(rested)
        self._log_rest(updated, ResetCondition.SAFE_REST)
        return updated

    # =========================================================================
    # ABILITIES AND DICE POOLS
    # =========================================================================

    def _ability(self, character: Character, ability_id: str) -> AbilityDefinition:
        for ability in trait_resolver.get_ability_definitions(character, self.catalog):
            if ability.id == ability_id:
                return ability
        raise TraitNotFoundError(f"Ability '{ability_id}' is not granted to {character.name}")

    def get_remaining_uses(self, ability_id: str) -> Optional[int]:
        """Remaining uses of an ability, None if it is unlimited."""
        character = self._require_character()
        ability = self._ability(character, ability_id)
        return ability_uses.get_remaining_uses(
            ability, character.ability_uses, self._variables(character)
        )

    def use_ability(self, ability_id: str) -> Optional[RollResult]:
        """
        Use an ability: consume a use, pay its resource cost and roll its dice.

        Returns:
            The roll of the ability's dice formula, or None if it has none

        Raises:
            TraitNotFoundError: If the ability is not granted
            AbilityUnavailableError: If no uses remain
            InsufficientResourceError: If the resource cost cannot be paid
        """
        character = self._require_character()
        ability = self._ability(character, ability_id)
        variables = self._variables(character)

        uses = ability_uses.use_ability(ability, character.ability_uses, variables)
        values = character.resource_values
        cost = ability.resource_cost
        old_value = 0
        if cost is not None:
            definition = self._resource_definition(character, cost.resource_id)
            if not resource_manager.can_afford(cost.resource_id, cost.amount, definition, values, variables):
                raise InsufficientResourceError(
                    f"'{ability.name}' needs {cost.amount} {cost.resource_id}"
                )
            old_value = resource_manager.get_current_value(
                cost.resource_id, definition, values, variables
            )
            values = resource_manager.spend_resource(
                cost.resource_id, cost.amount, definition, values, variables
            )

        self._commit(replace(character, ability_uses=uses, resource_values=values))
        logger.info(f"{character.name} used {ability.name}")

        if cost is not None:
            self.activity_log.log_resource(
                cost.resource_id, "spend", cost.amount, old_value,
                values[cost.resource_id].value, character_id=character.id,
            )
        if ability.dice_formula:
            return self.roll(ability.dice_formula, reason=ability.name)
        return None

    def add_die_to_pool(self, pool_id: str) -> int:
        """
        Roll a die into a pool.

        Returns:
            The rolled face

        Raises:
            DicePoolError: If the pool is not granted
            DicePoolFullError: If the pool is full
        """
        character = self._require_character()
        pools, value = dice_pool_manager.add_die_to_pool(
            self._with_granted_pools(character), pool_id, self.random_source,
            self._variables(character),
        )
        self._commit(replace(character, dice_pools=pools))
        return value

    def use_die_from_pool(self, pool_id: str, die_index: int) -> int:
        """Remove a die from a pool and return its face."""
        character = self._require_character()
        pools, value = dice_pool_manager.use_die_from_pool(character.dice_pools, pool_id, die_index)
        self._commit(replace(character, dice_pools=pools))
        return value

    # =========================================================================
    # ADVANCEMENT
    # =========================================================================

    def level_up(self) -> LevelUpResult:
        """
        Advance the current character one level.

        Raises:
            MaxLevelError: If the character is at the level cap
        """
        character = self._require_character()
        levelled, result = compute_level_up(
            character, self.catalog, self.settings, self.random_source
        )
        self._commit(levelled)
        self.activity_log.log_level_up(
            result.old_level, result.new_level, result.hp_gained, character_id=character.id
        )
        return result

    # =========================================================================
    # ROLLING
    # =========================================================================

    def roll(
        self,
        formula: str,
        allow_criticals: bool = True,
        allow_fumbles: bool = False,
        reason: str = "",
    ) -> RollResult:
        """
        Roll a formula with the current character's attributes and level.

        Works without a loaded character (variables then count as 0). The
        roll is logged to the activity log and nothing is persisted.

        Raises:
            DiceFormulaError: If the formula is malformed
        """
        character = self._character
        variables = self._variables(character) if character else {}
        result = self.evaluator.evaluate(
            formula,
            allow_criticals=allow_criticals,
            allow_fumbles=allow_fumbles,
            variables=variables,
        )
        self.activity_log.log_roll(
            formula,
            result.rolls,
            result.total,
            result.breakdown,
            is_critical=result.is_critical,
            is_fumble=result.is_fumble,
            reason=reason,
            character_id=character.id if character else "",
        )
        return result
