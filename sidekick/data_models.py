"""
Shared data structures for the Sidekick rules engine.

The Character aggregate and the static definitions it references. Every
structure round-trips through to_dict()/from_dict() using the persisted
JSON shape (camelCase keys, underscore-prefixed engine fields).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING
import time
import uuid

from sidekick.migration.migrations import CURRENT_SCHEMA_VERSION

if TYPE_CHECKING:
    from sidekick.traits.trait_models import TraitSelection


# =============================================================================
# ENUMS
# =============================================================================


class AttributeName(str, Enum):
    """The four character attributes."""
    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    INTELLIGENCE = "intelligence"
    WILL = "will"


# Formula shorthands for each attribute
ATTRIBUTE_SHORTHANDS: dict[str, AttributeName] = {
    "STR": AttributeName.STRENGTH,
    "DEX": AttributeName.DEXTERITY,
    "INT": AttributeName.INTELLIGENCE,
    "WIL": AttributeName.WILL,
}


class ResetCondition(str, Enum):
    """Game-time checkpoints at which resources reset."""
    TURN_END = "turn_end"
    ENCOUNTER_END = "encounter_end"
    SAFE_REST = "safe_rest"
    NEVER = "never"


class ResetType(str, Enum):
    """What a resource resets to."""
    TO_MAX = "to_max"
    TO_ZERO = "to_zero"
    TO_DEFAULT = "to_default"


class AbilityFrequency(str, Enum):
    """How often an ability may be used."""
    AT_WILL = "at_will"
    PER_TURN = "per_turn"
    PER_ENCOUNTER = "per_encounter"
    PER_SAFE_REST = "per_safe_rest"


# =============================================================================
# VALUE SPECIFICATIONS
# =============================================================================


@dataclass
class ValueSpec:
    """
    A number that is either fixed or computed from a formula.

    Formulas reference attributes and level (e.g. "WIL + LVL") and are
    evaluated on every read, never cached.
    """
    type: str = "fixed"             # "fixed" or "formula"
    value: int = 0
    expression: str = ""

    @classmethod
    def fixed(cls, value: int) -> "ValueSpec":
        return cls(type="fixed", value=value)

    @classmethod
    def formula(cls, expression: str) -> "ValueSpec":
        return cls(type="formula", expression=expression)

    @property
    def is_formula(self) -> bool:
        return self.type == "formula"

    def to_dict(self) -> dict[str, Any]:
        if self.is_formula:
            return {"type": "formula", "expression": self.expression}
        return {"type": "fixed", "value": self.value}

    @classmethod
    def from_dict(cls, data: Any) -> "ValueSpec":
        # Content files sometimes use a bare number or a bare expression
        if isinstance(data, bool):
            raise ValueError(f"Invalid value specification: {data!r}")
        if isinstance(data, int):
            return cls.fixed(data)
        if isinstance(data, str):
            return cls.formula(data)
        if data.get("type") == "formula":
            return cls.formula(data["expression"])
        return cls.fixed(int(data.get("value", 0)))


@dataclass
class ResourceValue:
    """Runtime value of a resource. Only the numerical tag is supported."""
    value: int
    type: str = "numerical"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}

    @classmethod
    def from_dict(cls, data: Any) -> "ResourceValue":
        """Read a stored value, upgrading legacy bare numbers."""
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls(value=int(data))
        if isinstance(data, dict) and data.get("type", "numerical") == "numerical":
            return cls(value=int(data.get("value", 0)))
        raise ValueError(f"Unsupported resource value: {data!r}")


# =============================================================================
# RESOURCE AND DICE POOL DEFINITIONS
# =============================================================================


@dataclass
class ResourceDefinition:
    """Static template for a numeric resource pool (mana, charges, ...)."""
    id: str
    name: str
    description: str = ""
    color_scheme: str = ""
    icon: str = ""
    reset_condition: ResetCondition = ResetCondition.SAFE_REST
    reset_type: ResetType = ResetType.TO_MAX
    min_value: ValueSpec = field(default_factory=lambda: ValueSpec.fixed(0))
    max_value: ValueSpec = field(default_factory=lambda: ValueSpec.fixed(0))
    reset_value: Optional[ValueSpec] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "colorScheme": self.color_scheme,
            "icon": self.icon,
            "resetCondition": self.reset_condition.value,
            "resetType": self.reset_type.value,
            "minValue": self.min_value.to_dict(),
            "maxValue": self.max_value.to_dict(),
        }
        if self.reset_value is not None:
            data["resetValue"] = self.reset_value.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            color_scheme=data.get("colorScheme", ""),
            icon=data.get("icon", ""),
            reset_condition=ResetCondition(data.get("resetCondition", "safe_rest")),
            reset_type=ResetType(data.get("resetType", "to_max")),
            min_value=ValueSpec.from_dict(data.get("minValue", 0)),
            max_value=ValueSpec.from_dict(data.get("maxValue", 0)),
            reset_value=(
                ValueSpec.from_dict(data["resetValue"])
                if data.get("resetValue") is not None else None
            ),
        )


@dataclass
class DicePoolDefinition:
    """Static template for a pool whose value is a set of dice."""
    id: str
    name: str
    dice_size: int
    max_dice: ValueSpec = field(default_factory=lambda: ValueSpec.fixed(1))
    reset_condition: ResetCondition = ResetCondition.ENCOUNTER_END
    reset_type: ResetType = ResetType.TO_ZERO
    description: str = ""
    color_scheme: str = ""
    icon: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "diceSize": self.dice_size,
            "maxDice": self.max_dice.to_dict(),
            "resetCondition": self.reset_condition.value,
            "resetType": self.reset_type.value,
            "colorScheme": self.color_scheme,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DicePoolDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            dice_size=int(data["diceSize"]),
            max_dice=ValueSpec.from_dict(data.get("maxDice", 1)),
            reset_condition=ResetCondition(data.get("resetCondition", "encounter_end")),
            reset_type=ResetType(data.get("resetType", "to_zero")),
            color_scheme=data.get("colorScheme", ""),
            icon=data.get("icon", ""),
        )


@dataclass
class DicePoolInstance:
    """A dice pool owned by a character: the definition plus rolled faces."""
    definition: DicePoolDefinition
    current_dice: list[int] = field(default_factory=list)
    sort_order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "definition": self.definition.to_dict(),
            "currentDice": list(self.current_dice),
            "sortOrder": self.sort_order,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DicePoolInstance":
        return cls(
            definition=DicePoolDefinition.from_dict(data["definition"]),
            current_dice=[int(d) for d in data.get("currentDice", [])],
            sort_order=data.get("sortOrder", 0),
        )


# =============================================================================
# ABILITY DEFINITIONS
# =============================================================================


@dataclass
class ResourceCost:
    """A fixed resource cost paid when an ability is used."""
    resource_id: str
    amount: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"type": "fixed", "resourceId": self.resource_id, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceCost":
        return cls(resource_id=data["resourceId"], amount=data.get("amount", 1))


@dataclass
class AbilityDefinition:
    """An actionable ability granted by a trait."""
    id: str
    name: str
    description: str = ""
    type: str = "action"            # action, freeform, spell
    frequency: AbilityFrequency = AbilityFrequency.AT_WILL
    max_uses: Optional[ValueSpec] = None
    action_cost: int = 0
    resource_cost: Optional[ResourceCost] = None
    dice_formula: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "frequency": self.frequency.value,
            "actionCost": self.action_cost,
        }
        if self.max_uses is not None:
            data["maxUses"] = self.max_uses.to_dict()
        if self.resource_cost is not None:
            data["resourceCost"] = self.resource_cost.to_dict()
        if self.dice_formula is not None:
            data["diceFormula"] = self.dice_formula
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AbilityDefinition":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            type=data.get("type", "action"),
            frequency=AbilityFrequency(data.get("frequency", "at_will")),
            max_uses=ValueSpec.from_dict(data["maxUses"]) if "maxUses" in data else None,
            action_cost=data.get("actionCost", 0),
            resource_cost=(
                ResourceCost.from_dict(data["resourceCost"])
                if data.get("resourceCost") else None
            ),
            dice_formula=data.get("diceFormula"),
        )


# =============================================================================
# CHARACTER COMPONENTS
# =============================================================================


@dataclass
class Attributes:
    """Base attribute values. Computed values add trait bonuses on top."""
    strength: int = 0
    dexterity: int = 0
    intelligence: int = 0
    will: int = 0

    def get(self, attribute: str) -> int:
        return getattr(self, AttributeName(attribute.lower()).value)

    def as_dict(self) -> dict[str, int]:
        return {
            "strength": self.strength,
            "dexterity": self.dexterity,
            "intelligence": self.intelligence,
            "will": self.will,
        }

    def to_dict(self) -> dict[str, int]:
        return self.as_dict()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attributes":
        return cls(
            strength=data.get("strength", 0),
            dexterity=data.get("dexterity", 0),
            intelligence=data.get("intelligence", 0),
            will=data.get("will", 0),
        )


@dataclass
class Skill:
    """A skill with its allocated modifier and advantage level."""
    name: str
    associated_attribute: AttributeName
    modifier: int = 0
    advantage: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "associatedAttribute": self.associated_attribute.value,
            "modifier": self.modifier,
            "advantage": self.advantage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Skill":
        return cls(
            name=data.get("name", ""),
            associated_attribute=AttributeName(data.get("associatedAttribute", "strength")),
            modifier=data.get("modifier", 0),
            advantage=data.get("advantage", 0),
        )


def default_skills() -> dict[str, Skill]:
    """The standard skill list of a new character."""
    layout = {
        "arcana": AttributeName.INTELLIGENCE,
        "examination": AttributeName.INTELLIGENCE,
        "finesse": AttributeName.DEXTERITY,
        "influence": AttributeName.WILL,
        "insight": AttributeName.WILL,
        "lore": AttributeName.INTELLIGENCE,
        "might": AttributeName.STRENGTH,
        "naturecraft": AttributeName.WILL,
        "perception": AttributeName.WILL,
        "stealth": AttributeName.DEXTERITY,
    }
    return {
        key: Skill(name=key.capitalize(), associated_attribute=attribute)
        for key, attribute in layout.items()
    }


def default_initiative() -> Skill:
    return Skill(name="Initiative", associated_attribute=AttributeName.DEXTERITY)


@dataclass
class SkillPointConfig:
    """Skill point formula parameters."""
    starting_points: int = 4
    points_per_level: int = 1

    def to_dict(self) -> dict[str, int]:
        return {
            "startingPoints": self.starting_points,
            "pointsPerLevel": self.points_per_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SkillPointConfig":
        return cls(
            starting_points=data.get("startingPoints", 4),
            points_per_level=data.get("pointsPerLevel", 1),
        )


@dataclass
class CharacterConfig:
    """Per-character tunables. Engine code paths read limits only from here."""
    max_wounds: int = 6
    max_inventory_size: int = 10
    skill_points: SkillPointConfig = field(default_factory=SkillPointConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "maxWounds": self.max_wounds,
            "maxInventorySize": self.max_inventory_size,
            "skillPoints": self.skill_points.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CharacterConfig":
        return cls(
            max_wounds=data.get("maxWounds", 6),
            max_inventory_size=data.get("maxInventorySize", 10),
            skill_points=SkillPointConfig.from_dict(data.get("skillPoints", {})),
        )


@dataclass
class HitPoints:
    current: int = 0
    max: int = 0
    temporary: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"current": self.current, "max": self.max, "temporary": self.temporary}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HitPoints":
        return cls(
            current=data.get("current", 0),
            max=data.get("max", 0),
            temporary=data.get("temporary", 0),
        )


@dataclass
class Inventory:
    items: list[dict[str, Any]] = field(default_factory=list)
    max_size: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {"items": list(self.items), "maxSize": self.max_size}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Inventory":
        return cls(items=list(data.get("items", [])), max_size=data.get("maxSize", 10))


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# CHARACTER
# =============================================================================


@dataclass
class Character:
    """
    The central mutable aggregate.

    Mutated only through CharacterService, which replaces the whole
    aggregate on every committed change.
    """
    name: str
    class_id: str
    ancestry_id: str = ""
    background_id: str = ""
    level: int = 1
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attributes: Attributes = field(default_factory=Attributes)
    schema_version: int = CURRENT_SCHEMA_VERSION

    # Player choices
    trait_selections: list["TraitSelection"] = field(default_factory=list)

    # Runtime resource state
    resource_values: dict[str, ResourceValue] = field(default_factory=dict)
    dice_pools: list[DicePoolInstance] = field(default_factory=list)
    ability_uses: dict[str, int] = field(default_factory=dict)  # remaining uses

    # Skills
    skills: dict[str, Skill] = field(default_factory=default_skills)
    initiative: Skill = field(default_factory=default_initiative)

    config: CharacterConfig = field(default_factory=CharacterConfig)

    # Peripheral aggregates
    hit_points: HitPoints = field(default_factory=HitPoints)
    wounds: int = 0
    inventory: Inventory = field(default_factory=Inventory)
    notes: list[dict[str, Any]] = field(default_factory=list)
    in_encounter: bool = False

    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    def get_resource_value(self, resource_id: str) -> Optional[int]:
        """Current value of a resource, or None if it was never touched."""
        value = self.resource_values.get(resource_id)
        return value.value if value else None

    def get_dice_pool(self, pool_id: str) -> Optional[DicePoolInstance]:
        for pool in self.dice_pools:
            if pool.definition.id == pool_id:
                return pool
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the persisted JSON shape; maps become plain objects."""
        return {
            "id": self.id,
            "name": self.name,
            "classId": self.class_id,
            "ancestryId": self.ancestry_id,
            "backgroundId": self.background_id,
            "level": self.level,
            "_schemaVersion": self.schema_version,
            "_attributes": self.attributes.to_dict(),
            "_skills": {k: v.to_dict() for k, v in self.skills.items()},
            "_initiative": self.initiative.to_dict(),
            "traitSelections": [s.to_dict() for s in self.trait_selections],
            "_resourceValues": {k: v.to_dict() for k, v in self.resource_values.items()},
            "_dicePools": [p.to_dict() for p in self.dice_pools],
            "_abilityUses": dict(self.ability_uses),
            "config": self.config.to_dict(),
            "hitPoints": self.hit_points.to_dict(),
            "wounds": {"current": self.wounds},
            "inventory": self.inventory.to_dict(),
            "notes": list(self.notes),
            "inEncounter": self.in_encounter,
            "timestamps": {"createdAt": self.created_at, "updatedAt": self.updated_at},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Character":
        """Rebuild a character from its persisted (already migrated) shape."""
        from sidekick.traits.trait_models import selection_from_dict

        timestamps = data.get("timestamps") or {}
        ability_uses = {
            key: int(value)
            for key, value in (data.get("_abilityUses") or {}).items()
            if key and value is not None
        }
        skills_data = data.get("_skills")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            class_id=data.get("classId", ""),
            ancestry_id=data.get("ancestryId", ""),
            background_id=data.get("backgroundId", ""),
            level=data.get("level", 1),
            schema_version=data.get("_schemaVersion", 1),
            attributes=Attributes.from_dict(data.get("_attributes", {})),
            skills=(
                {k: Skill.from_dict(v) for k, v in skills_data.items()}
                if isinstance(skills_data, dict) else default_skills()
            ),
            initiative=(
                Skill.from_dict(data["_initiative"])
                if isinstance(data.get("_initiative"), dict) else default_initiative()
            ),
            trait_selections=[
                selection_from_dict(s) for s in data.get("traitSelections", [])
            ],
            resource_values={
                k: ResourceValue.from_dict(v)
                for k, v in (data.get("_resourceValues") or {}).items()
            },
            dice_pools=[DicePoolInstance.from_dict(p) for p in data.get("_dicePools", [])],
            ability_uses=ability_uses,
            config=CharacterConfig.from_dict(data.get("config", {})),
            hit_points=HitPoints.from_dict(data.get("hitPoints", {})),
            wounds=(data.get("wounds") or {}).get("current", 0),
            inventory=Inventory.from_dict(data.get("inventory", {})),
            notes=list(data.get("notes", [])),
            in_encounter=data.get("inEncounter", False),
            created_at=timestamps.get("createdAt") or _now_ms(),
            updated_at=timestamps.get("updatedAt") or _now_ms(),
        )
