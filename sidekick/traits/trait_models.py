"""
Feature traits, trait selections and class/ancestry/background content.

Traits and selections are tagged unions: each variant is a dataclass with a
`type` discriminator, and trait_from_dict / selection_from_dict dispatch on
that tag through a lookup table.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union
import logging

from sidekick.data_models import (
    AbilityDefinition,
    AttributeName,
    DicePoolDefinition,
    ResourceDefinition,
    ValueSpec,
)
from sidekick.errors import ContentValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# FEATURE TRAITS
# =============================================================================


@dataclass
class AbilityTrait:
    id: str
    ability: AbilityDefinition
    type: str = "ability"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "ability": self.ability.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AbilityTrait":
        return cls(id=data["id"], ability=AbilityDefinition.from_dict(data["ability"]))


@dataclass
class ResourceTrait:
    id: str
    resource_definition: ResourceDefinition
    type: str = "resource"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "resourceDefinition": self.resource_definition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceTrait":
        return cls(
            id=data["id"],
            resource_definition=ResourceDefinition.from_dict(data["resourceDefinition"]),
        )


@dataclass
class StatBonusTrait:
    """
    Passive numeric bonuses.

    Keys naming an attribute (strength, dexterity, ...) add to that
    attribute; other keys (maxWoundsBonus, combatDice, ...) are kept for
    the sheet to read.
    """
    id: str
    stat_bonus: dict[str, ValueSpec] = field(default_factory=dict)
    type: str = "stat_bonus"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "statBonus": {k: v.to_dict() for k, v in self.stat_bonus.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatBonusTrait":
        return cls(
            id=data["id"],
            stat_bonus={
                k: ValueSpec.from_dict(v) for k, v in (data.get("statBonus") or {}).items()
            },
        )


@dataclass
class AttributeBoostTrait:
    """Player picks one of the allowed attributes to raise by `amount`."""
    id: str
    allowed_attributes: list[AttributeName] = field(default_factory=list)
    amount: int = 1
    type: str = "attribute_boost"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "allowedAttributes": [a.value for a in self.allowed_attributes],
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttributeBoostTrait":
        return cls(
            id=data["id"],
            allowed_attributes=[AttributeName(a) for a in data.get("allowedAttributes", [])],
            amount=data.get("amount", 1),
        )


@dataclass
class ProficiencyTrait:
    id: str
    proficiencies: list[dict[str, Any]] = field(default_factory=list)
    type: str = "proficiency"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "proficiencies": list(self.proficiencies)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProficiencyTrait":
        return cls(id=data["id"], proficiencies=list(data.get("proficiencies", [])))


@dataclass
class PickFeatureFromPoolTrait:
    id: str
    pool_id: str
    choices_allowed: int = 1
    type: str = "pick_feature_from_pool"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "poolId": self.pool_id,
            "choicesAllowed": self.choices_allowed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PickFeatureFromPoolTrait":
        return cls(
            id=data["id"],
            pool_id=data["poolId"],
            choices_allowed=data.get("choicesAllowed", 1),
        )


@dataclass
class SpellSchoolChoiceTrait:
    id: str
    number_of_schools: int = 1
    available_schools: list[str] = field(default_factory=list)   # empty means any
    type: str = "spell_school_choice"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "numberOfSchools": self.number_of_schools,
            "availableSchools": list(self.available_schools),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpellSchoolChoiceTrait":
        return cls(
            id=data["id"],
            number_of_schools=data.get("numberOfSchools", 1),
            available_schools=list(data.get("availableSchools", [])),
        )


@dataclass
class UtilitySpellsTrait:
    id: str
    number_of_spells: int = 1
    selection_mode: str = "per_school"       # per_school or full_school
    schools: list[str] = field(default_factory=list)
    type: str = "utility_spells"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "numberOfSpells": self.number_of_spells,
            "selectionMode": self.selection_mode,
            "schools": list(self.schools),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UtilitySpellsTrait":
        return cls(
            id=data["id"],
            number_of_spells=data.get("numberOfSpells", 1),
            selection_mode=data.get("selectionMode", "per_school"),
            schools=list(data.get("schools", [])),
        )


@dataclass
class SubclassChoiceTrait:
    id: str
    type: str = "subclass_choice"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubclassChoiceTrait":
        return cls(id=data["id"])


@dataclass
class DicePoolTrait:
    id: str
    pool_definition: DicePoolDefinition
    type: str = "dice_pool"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "poolDefinition": self.pool_definition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DicePoolTrait":
        return cls(
            id=data["id"],
            pool_definition=DicePoolDefinition.from_dict(data["poolDefinition"]),
        )


@dataclass
class SpellSchoolTrait:
    """Grants access to a fixed spell school."""
    id: str
    school_id: str
    type: str = "spell_school"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "schoolId": self.school_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpellSchoolTrait":
        return cls(id=data["id"], school_id=data["schoolId"])


@dataclass
class SpellTierAccessTrait:
    id: str
    max_tier: int = 1
    type: str = "spell_tier_access"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "maxTier": self.max_tier}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpellTierAccessTrait":
        return cls(id=data["id"], max_tier=data.get("maxTier", 1))


@dataclass
class ChoiceTrait:
    """Player picks `num_selections` of the option traits."""
    id: str
    num_selections: int = 1
    options: list["FeatureTrait"] = field(default_factory=list)
    type: str = "choice"

    def get_option(self, option_trait_id: str) -> Optional["FeatureTrait"]:
        for option in self.options:
            if option.id == option_trait_id:
                return option
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "numSelections": self.num_selections,
            "options": [o.to_dict() for o in self.options],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChoiceTrait":
        return cls(
            id=data["id"],
            num_selections=data.get("numSelections", 1),
            options=[trait_from_dict(o) for o in data.get("options", [])],
        )


FeatureTrait = Union[
    AbilityTrait,
    ResourceTrait,
    StatBonusTrait,
    AttributeBoostTrait,
    ProficiencyTrait,
    PickFeatureFromPoolTrait,
    SpellSchoolChoiceTrait,
    UtilitySpellsTrait,
    SubclassChoiceTrait,
    DicePoolTrait,
    SpellSchoolTrait,
    SpellTierAccessTrait,
    ChoiceTrait,
]


TRAIT_TYPES: dict[str, type] = {
    "ability": AbilityTrait,
    "resource": ResourceTrait,
    "stat_bonus": StatBonusTrait,
    "attribute_boost": AttributeBoostTrait,
    "proficiency": ProficiencyTrait,
    "pick_feature_from_pool": PickFeatureFromPoolTrait,
    "spell_school_choice": SpellSchoolChoiceTrait,
    "utility_spells": UtilitySpellsTrait,
    "subclass_choice": SubclassChoiceTrait,
    "dice_pool": DicePoolTrait,
    "spell_school": SpellSchoolTrait,
    "spell_tier_access": SpellTierAccessTrait,
    "choice": ChoiceTrait,
}


def trait_from_dict(data: dict[str, Any]) -> FeatureTrait:
    """
    Build a trait variant from its JSON shape.

    Raises:
        ContentValidationError: On an unknown type or missing field
    """
    trait_type = data.get("type")
    trait_class = TRAIT_TYPES.get(trait_type)
    if trait_class is None:
        raise ContentValidationError(
            f"Unknown trait type '{trait_type}' on trait '{data.get('id')}'"
        )
    try:
        return trait_class.from_dict(data)
    except (KeyError, ValueError, TypeError) as e:
        raise ContentValidationError(f"Invalid {trait_type} trait '{data.get('id')}': {e}") from e


# =============================================================================
# TRAIT SELECTIONS
# =============================================================================


@dataclass
class AttributeBoostSelection:
    granted_by_trait_id: str
    attribute: AttributeName
    amount: int = 1
    type: str = "attribute_boost"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "attribute": self.attribute.value,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttributeBoostSelection":
        return cls(
            granted_by_trait_id=data["grantedByTraitId"],
            attribute=AttributeName(data["attribute"]),
            amount=data.get("amount", 1),
        )


@dataclass
class PoolFeatureSelection:
    granted_by_trait_id: str
    pool_id: str
    feature_id: str
    type: str = "pool_feature"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "poolId": self.pool_id,
            "featureId": self.feature_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoolFeatureSelection":
        return cls(
            granted_by_trait_id=data["grantedByTraitId"],
            pool_id=data["poolId"],
            feature_id=data["featureId"],
        )


@dataclass
class SpellSchoolSelection:
    granted_by_trait_id: str
    school_id: str
    type: str = "spell_school"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "schoolId": self.school_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpellSchoolSelection":
        return cls(granted_by_trait_id=data["grantedByTraitId"], school_id=data["schoolId"])


@dataclass
class UtilitySpellsSelection:
    granted_by_trait_id: str
    school_id: str
    spell_ids: list[str] = field(default_factory=list)
    type: str = "utility_spells"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "schoolId": self.school_id,
            "spellIds": list(self.spell_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UtilitySpellsSelection":
        return cls(
            granted_by_trait_id=data["grantedByTraitId"],
            school_id=data.get("schoolId", ""),
            spell_ids=list(data.get("spellIds", [])),
        )


@dataclass
class SubclassSelection:
    granted_by_trait_id: str
    subclass_id: str
    type: str = "subclass"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "subclassId": self.subclass_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubclassSelection":
        return cls(granted_by_trait_id=data["grantedByTraitId"], subclass_id=data["subclassId"])


@dataclass
class SelectedOption:
    """One picked option of a choice trait, with its nested selection if any."""
    trait_id: str
    selection: Optional["TraitSelection"] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"traitId": self.trait_id}
        if self.selection is not None:
            data["selection"] = self.selection.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectedOption":
        nested = data.get("selection")
        return cls(
            trait_id=data["traitId"],
            selection=selection_from_dict(nested) if nested else None,
        )


@dataclass
class ChoiceTraitSelection:
    granted_by_trait_id: str
    choice_trait_id: str
    selected_options: list[SelectedOption] = field(default_factory=list)
    type: str = "choice"

    def get_option(self, option_trait_id: str) -> Optional[SelectedOption]:
        for option in self.selected_options:
            if option.trait_id == option_trait_id:
                return option
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "grantedByTraitId": self.granted_by_trait_id,
            "choiceTraitId": self.choice_trait_id,
            "selectedOptions": [o.to_dict() for o in self.selected_options],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChoiceTraitSelection":
        return cls(
            granted_by_trait_id=data["grantedByTraitId"],
            choice_trait_id=data.get("choiceTraitId", data["grantedByTraitId"]),
            selected_options=[SelectedOption.from_dict(o) for o in data.get("selectedOptions", [])],
        )


TraitSelection = Union[
    AttributeBoostSelection,
    PoolFeatureSelection,
    SpellSchoolSelection,
    UtilitySpellsSelection,
    SubclassSelection,
    ChoiceTraitSelection,
]


SELECTION_TYPES: dict[str, type] = {
    "attribute_boost": AttributeBoostSelection,
    "pool_feature": PoolFeatureSelection,
    "spell_school": SpellSchoolSelection,
    "utility_spells": UtilitySpellsSelection,
    "subclass": SubclassSelection,
    "choice": ChoiceTraitSelection,
}


def selection_from_dict(data: dict[str, Any]) -> TraitSelection:
    """
    Build a selection variant from its JSON shape.

    Raises:
        ValueError: On an unknown selection type
    """
    selection_class = SELECTION_TYPES.get(data.get("type"))
    if selection_class is None:
        raise ValueError(f"Unknown trait selection type: {data.get('type')!r}")
    return selection_class.from_dict(data)


# =============================================================================
# REFERENCE CONTENT
# =============================================================================


@dataclass
class ClassFeature:
    """A named feature granting traits at a level."""
    id: str
    level: int
    name: str
    description: str = ""
    traits: list[FeatureTrait] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "traits": [t.to_dict() for t in self.traits],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassFeature":
        return cls(
            id=data["id"],
            level=data.get("level", 1),
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            traits=[trait_from_dict(t) for t in data.get("traits", [])],
        )


@dataclass
class FeaturePool:
    """Features a player picks from via pick_feature_from_pool traits."""
    id: str
    name: str
    description: str = ""
    features: list[ClassFeature] = field(default_factory=list)

    def get_feature(self, feature_id: str) -> Optional[ClassFeature]:
        for feature in self.features:
            if feature.id == feature_id:
                return feature
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "features": [f.to_dict() for f in self.features],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeaturePool":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            features=[ClassFeature.from_dict(f) for f in data.get("features", [])],
        )


@dataclass
class SubclassDefinition:
    id: str
    name: str
    class_id: str
    description: str = ""
    features: list[ClassFeature] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "classId": self.class_id,
            "description": self.description,
            "features": [f.to_dict() for f in self.features],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubclassDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            class_id=data.get("classId", ""),
            description=data.get("description", ""),
            features=[ClassFeature.from_dict(f) for f in data.get("features", [])],
        )


@dataclass
class ClassDefinition:
    id: str
    name: str
    description: str = ""
    hit_die_size: int = 8
    key_attributes: list[AttributeName] = field(default_factory=list)
    starting_hp: int = 10
    features: list[ClassFeature] = field(default_factory=list)
    feature_pools: list[FeaturePool] = field(default_factory=list)
    subclasses: list[SubclassDefinition] = field(default_factory=list)

    def get_feature_pool(self, pool_id: str) -> Optional[FeaturePool]:
        for pool in self.feature_pools:
            if pool.id == pool_id:
                return pool
        return None

    def get_subclass(self, subclass_id: str) -> Optional[SubclassDefinition]:
        for subclass in self.subclasses:
            if subclass.id == subclass_id:
                return subclass
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "hitDieSize": self.hit_die_size,
            "keyAttributes": [a.value for a in self.key_attributes],
            "startingHP": self.starting_hp,
            "features": [f.to_dict() for f in self.features],
            "featurePools": [p.to_dict() for p in self.feature_pools],
            "subclasses": [s.to_dict() for s in self.subclasses],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            hit_die_size=data.get("hitDieSize", 8),
            key_attributes=[AttributeName(a) for a in data.get("keyAttributes", [])],
            starting_hp=data.get("startingHP", 10),
            features=[ClassFeature.from_dict(f) for f in data.get("features", [])],
            feature_pools=[FeaturePool.from_dict(p) for p in data.get("featurePools", [])],
            subclasses=[SubclassDefinition.from_dict(s) for s in data.get("subclasses", [])],
        )


@dataclass
class AncestryDefinition:
    id: str
    name: str
    description: str = ""
    traits: list[FeatureTrait] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "traits": [t.to_dict() for t in self.traits],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AncestryDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            traits=[trait_from_dict(t) for t in data.get("traits", [])],
        )


@dataclass
class BackgroundDefinition:
    id: str
    name: str
    description: str = ""
    traits: list[FeatureTrait] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "traits": [t.to_dict() for t in self.traits],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BackgroundDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            traits=[trait_from_dict(t) for t in data.get("traits", [])],
        )
