"""
Reference content catalog.

Registry for class, ancestry and background definitions. Every definition
is validated when it is registered: bound formulas must use the closed
formula grammar, dice formulas must parse, and pool picks must name a
pool the class defines.
"""

from pathlib import Path
from typing import Any, Iterable, Optional
import json
import logging

from sidekick.data_models import ValueSpec
from sidekick.dice.dice_formula import validate_formula
from sidekick.errors import ContentValidationError, DiceFormulaError, FormulaError
from sidekick.resources.formula_values import validate_expression
from sidekick.traits.trait_models import (
    AbilityTrait,
    AncestryDefinition,
    BackgroundDefinition,
    ChoiceTrait,
    ClassDefinition,
    ClassFeature,
    DicePoolTrait,
    FeaturePool,
    FeatureTrait,
    PickFeatureFromPoolTrait,
    ResourceTrait,
    StatBonusTrait,
    SubclassDefinition,
)

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION
# =============================================================================


def _check_value_spec(spec: Optional[ValueSpec], owner: str) -> None:
    if spec is None or not spec.is_formula:
        return
    try:
        validate_expression(spec.expression)
    except FormulaError as e:
        raise ContentValidationError(f"{owner}: {e}") from e


def _validate_trait(trait: FeatureTrait, class_def: Optional[ClassDefinition]) -> None:
    owner = f"trait '{trait.id}'"
    if isinstance(trait, ResourceTrait):
        definition = trait.resource_definition
        _check_value_spec(definition.min_value, owner)
        _check_value_spec(definition.max_value, owner)
        _check_value_spec(definition.reset_value, owner)
    elif isinstance(trait, DicePoolTrait):
        if trait.pool_definition.dice_size < 1:
            raise ContentValidationError(f"{owner}: dice pool die size must be positive")
        _check_value_spec(trait.pool_definition.max_dice, owner)
    elif isinstance(trait, AbilityTrait):
        _check_value_spec(trait.ability.max_uses, owner)
        if trait.ability.dice_formula:
            try:
                validate_formula(trait.ability.dice_formula)
            except DiceFormulaError as e:
                raise ContentValidationError(f"{owner}: {e}") from e
    elif isinstance(trait, StatBonusTrait):
        for spec in trait.stat_bonus.values():
            _check_value_spec(spec, owner)
    elif isinstance(trait, PickFeatureFromPoolTrait):
        if class_def is not None and class_def.get_feature_pool(trait.pool_id) is None:
            raise ContentValidationError(
                f"{owner}: class '{class_def.id}' has no feature pool '{trait.pool_id}'"
            )
    elif isinstance(trait, ChoiceTrait):
        if trait.num_selections < 1:
            raise ContentValidationError(f"{owner}: a choice needs at least one selection")
        if not trait.options:
            raise ContentValidationError(f"{owner}: a choice needs at least one option")
        for option in trait.options:
            _validate_trait(option, class_def)


def _validate_features(features: Iterable[ClassFeature], class_def: Optional[ClassDefinition]) -> None:
    for feature in features:
        for trait in feature.traits:
            _validate_trait(trait, class_def)


def validate_class(class_def: ClassDefinition) -> None:
    """
    Validate a class definition and everything it contains.

    Raises:
        ContentValidationError: Naming the first invalid trait
    """
    _validate_features(class_def.features, class_def)
    for pool in class_def.feature_pools:
        _validate_features(pool.features, class_def)
    for subclass in class_def.subclasses:
        _validate_features(subclass.features, class_def)


# =============================================================================
# CATALOG
# =============================================================================


class ContentCatalog:
    """
    Registry of classes, ancestries and backgrounds.

    An explicit instance is passed to the service; there is no global
    catalog.
    """

    def __init__(self) -> None:
        self._classes: dict[str, ClassDefinition] = {}
        self._ancestries: dict[str, AncestryDefinition] = {}
        self._backgrounds: dict[str, BackgroundDefinition] = {}

    def register_class(self, class_def: ClassDefinition) -> None:
        """Validate and register a class definition."""
        validate_class(class_def)
        self._classes[class_def.id] = class_def
        logger.info(f"Loaded class: {class_def.name}")

    def register_ancestry(self, ancestry: AncestryDefinition) -> None:
        for trait in ancestry.traits:
            _validate_trait(trait, None)
        self._ancestries[ancestry.id] = ancestry
        logger.info(f"Loaded ancestry: {ancestry.name}")

    def register_background(self, background: BackgroundDefinition) -> None:
        for trait in background.traits:
            _validate_trait(trait, None)
        self._backgrounds[background.id] = background
        logger.info(f"Loaded background: {background.name}")

    def get_class(self, class_id: str) -> Optional[ClassDefinition]:
        return self._classes.get(class_id)

    def get_ancestry(self, ancestry_id: str) -> Optional[AncestryDefinition]:
        return self._ancestries.get(ancestry_id)

    def get_background(self, background_id: str) -> Optional[BackgroundDefinition]:
        return self._backgrounds.get(background_id)

    def get_all_classes(self) -> list[ClassDefinition]:
        return list(self._classes.values())

    def get_all_ancestries(self) -> list[AncestryDefinition]:
        return list(self._ancestries.values())

    def get_all_backgrounds(self) -> list[BackgroundDefinition]:
        return list(self._backgrounds.values())

    def get_feature_pool(self, pool_id: str, class_id: Optional[str] = None) -> Optional[FeaturePool]:
        """Find a feature pool, searching one class or all of them."""
        classes = [self._classes[class_id]] if class_id in self._classes else self._classes.values()
        for class_def in classes:
            pool = class_def.get_feature_pool(pool_id)
            if pool:
                return pool
        return None

    def get_subclass(self, subclass_id: str, class_id: Optional[str] = None) -> Optional[SubclassDefinition]:
        classes = [self._classes[class_id]] if class_id in self._classes else self._classes.values()
        for class_def in classes:
            subclass = class_def.get_subclass(subclass_id)
            if subclass:
                return subclass
        return None

    def load_from_dict(self, data: dict[str, Any]) -> None:
        """
        Register content from a mapping with optional "classes",
        "ancestries" and "backgrounds" lists.

        Raises:
            ContentValidationError: If any entry is malformed
        """
        try:
            classes = [ClassDefinition.from_dict(c) for c in data.get("classes", [])]
            ancestries = [AncestryDefinition.from_dict(a) for a in data.get("ancestries", [])]
            backgrounds = [BackgroundDefinition.from_dict(b) for b in data.get("backgrounds", [])]
        except (KeyError, ValueError, TypeError) as e:
            raise ContentValidationError(f"Malformed content: {e}") from e

        for class_def in classes:
            self.register_class(class_def)
        for ancestry in ancestries:
            self.register_ancestry(ancestry)
        for background in backgrounds:
            self.register_background(background)

    def load_json_file(self, filepath: Path | str) -> None:
        """Register content from a JSON file."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.load_from_dict(data)
        logger.info(f"Loaded content file: {filepath}")
