"""
Hunter class definition.

A master tracker and wilderness survivor who excels at ranged combat and
fuels Thrill of the Hunt abilities with charges earned against a quarry.
"""

from typing import Optional

from sidekick.data_models import (
    AbilityDefinition,
    AbilityFrequency,
    AttributeName,
    ResetCondition,
    ResetType,
    ResourceCost,
    ResourceDefinition,
    ValueSpec,
)
from sidekick.traits.trait_models import (
    AbilityTrait,
    AttributeBoostTrait,
    ClassDefinition,
    ClassFeature,
    FeaturePool,
    PickFeatureFromPoolTrait,
    ResourceTrait,
    SubclassChoiceTrait,
    SubclassDefinition,
)


CHARGES_ID = "thrill-of-the-hunt-charges"
POOL_ID = "thrill-of-the-hunt-pool"


def _charge_ability(
    feature_id: str,
    name: str,
    description: str,
    action_cost: int = 1,
    frequency: AbilityFrequency = AbilityFrequency.AT_WILL,
    max_uses: int = 0,
    dice_formula: Optional[str] = None,
) -> ClassFeature:
    """A pool feature whose single ability costs one charge."""
    return ClassFeature(
        id=feature_id,
        level=1,
        name=name,
        description=description,
        traits=[
            AbilityTrait(
                id=f"{feature_id}-0",
                ability=AbilityDefinition(
                    id=feature_id,
                    name=name,
                    description=description,
                    frequency=frequency,
                    max_uses=ValueSpec.fixed(max_uses) if max_uses else None,
                    action_cost=action_cost,
                    resource_cost=ResourceCost(resource_id=CHARGES_ID, amount=1),
                    dice_formula=dice_formula,
                ),
            )
        ],
    )


# =============================================================================
# THRILL OF THE HUNT POOL
# =============================================================================

THRILL_OF_THE_HUNT_FEATURES = [
    _charge_ability(
        "addling-arrow",
        "Addling Arrow",
        "Attack with a ranged weapon. The next attack the target makes must be "
        "against the closest other creature, chosen at random.",
    ),
    _charge_ability(
        "come-get-some",
        "Come Get Some!",
        "Attack a target. It is Taunted by you until the end of their next turn.",
    ),
    ClassFeature(
        id="decoy",
        level=1,
        name="Decoy",
        description="When you Defend: the attack misses instead, and you can move "
                    "up to half your speed away.",
    ),
    _charge_ability(
        "fleet-feet",
        "Fleet Feet",
        "Move up to your speed for free, ignoring difficult terrain.",
        action_cost=0,
    ),
    _charge_ability(
        "grease-trap",
        "Grease Trap",
        "Reaction: the target falls Prone and is vulnerable to the next fire damage it takes.",
        action_cost=0,
        frequency=AbilityFrequency.PER_ENCOUNTER,
        max_uses=1,
    ),
    _charge_ability(
        "hail-of-arrows",
        "Hail of Arrows",
        "Shoot all creatures within a 3x3 area. Their speed is halved until the "
        "end of their next turn.",
        action_cost=2,
    ),
    _charge_ability(
        "incendiary-shot",
        "Incendiary Shot",
        "Attack with a ranged weapon, add WIL d8 fire damage.",
        dice_formula="WILd8",
    ),
]


# =============================================================================
# CLASS FEATURES
# =============================================================================

def _key_stat_increase(feature_id: str, level: int, allowed: list[AttributeName]) -> ClassFeature:
    return ClassFeature(
        id=feature_id,
        level=level,
        name="Key Stat Increase",
        description=f"+1 {' or '.join(a.value.upper()[:3] for a in allowed)}.",
        traits=[AttributeBoostTrait(id=f"{feature_id}-0", allowed_attributes=allowed, amount=1)],
    )


def _thrill_pick(feature_id: str, level: int, count: int) -> ClassFeature:
    return ClassFeature(
        id=feature_id,
        level=level,
        name="Thrill of the Hunt",
        description=f"Choose {count} Thrill of the Hunt abilit{'ies' if count > 1 else 'y'}.",
        traits=[
            PickFeatureFromPoolTrait(id=f"{feature_id}-0", pool_id=POOL_ID, choices_allowed=count)
        ],
    )


HUNTER_FEATURES = [
    ClassFeature(
        id="hunters-mark",
        level=1,
        name="Hunter's Mark",
        description="Action: Mark a creature as your quarry. Deal an extra 1d8 damage to it.",
        traits=[
            AbilityTrait(
                id="hunters-mark-0",
                ability=AbilityDefinition(
                    id="hunters-mark",
                    name="Hunter's Mark",
                    description="Mark a creature as your quarry.",
                    action_cost=1,
                    dice_formula="1d8",
                ),
            )
        ],
    ),
    ClassFeature(
        id="forager",
        level=1,
        name="Forager",
        description="Gain advantage on skill checks to find food and water in the wild.",
    ),
    ClassFeature(
        id="thrill-of-the-hunt-resource",
        level=2,
        name="Thrill of the Hunt Charges",
        description="Charges used to fuel Thrill of the Hunt abilities.",
        traits=[
            ResourceTrait(
                id="thrill-of-the-hunt-resource-0",
                resource_definition=ResourceDefinition(
                    id=CHARGES_ID,
                    name="Thrill of the Hunt",
                    description="Charges used to fuel Hunter abilities",
                    color_scheme="green-nature",
                    icon="zap",
                    reset_condition=ResetCondition.ENCOUNTER_END,
                    reset_type=ResetType.TO_ZERO,
                    min_value=ValueSpec.fixed(0),
                    max_value=ValueSpec.fixed(10),
                ),
            )
        ],
    ),
    _thrill_pick("thrill-of-the-hunt-1", 2, 2),
    ClassFeature(
        id="subclass",
        level=3,
        name="Hunter Subclass",
        description="Choose a Hunter subclass.",
        traits=[SubclassChoiceTrait(id="subclass-0")],
    ),
    _thrill_pick("thrill-of-the-hunt-2", 4, 1),
    _key_stat_increase("key-stat-increase-1", 4, [AttributeName.DEXTERITY, AttributeName.WILL]),
    _key_stat_increase("secondary-stat-increase-1", 5, [AttributeName.STRENGTH, AttributeName.DEXTERITY]),
    _thrill_pick("thrill-of-the-hunt-3", 6, 1),
    _key_stat_increase("key-stat-increase-2", 8, [AttributeName.DEXTERITY, AttributeName.WILL]),
]


HUNTER_SUBCLASSES = [
    SubclassDefinition(
        id="keeper-of-the-wild",
        name="Keeper of the Wild",
        class_id="hunter",
        description="A hunter bonded to an animal companion.",
        features=[
            ClassFeature(
                id="wild-companion",
                level=3,
                name="Wild Companion",
                description="Your companion can attack a creature you hit.",
                traits=[
                    AbilityTrait(
                        id="wild-companion-0",
                        ability=AbilityDefinition(
                            id="wild-companion",
                            name="Companion Strike",
                            description="Your companion attacks a creature you hit.",
                            frequency=AbilityFrequency.PER_TURN,
                            max_uses=ValueSpec.fixed(1),
                            dice_formula="1d6+WIL",
                        ),
                    )
                ],
            ),
        ],
    ),
    SubclassDefinition(
        id="shadowpath",
        name="Shadowpath",
        class_id="hunter",
        description="A hunter who strikes from concealment.",
        features=[
            ClassFeature(
                id="from-the-shadows",
                level=3,
                name="From the Shadows",
                description="Your first attack each encounter deals an extra DEX d6 damage.",
                traits=[
                    AbilityTrait(
                        id="from-the-shadows-0",
                        ability=AbilityDefinition(
                            id="from-the-shadows",
                            name="From the Shadows",
                            description="Extra damage on your first attack.",
                            frequency=AbilityFrequency.PER_ENCOUNTER,
                            max_uses=ValueSpec.fixed(1),
                            dice_formula="DEXd6",
                        ),
                    )
                ],
            ),
        ],
    ),
]


HUNTER_DEFINITION = ClassDefinition(
    id="hunter",
    name="Hunter",
    description="A master tracker and wilderness survivor who forms a bond with "
                "nature and excels at ranged combat.",
    hit_die_size=8,
    key_attributes=[AttributeName.DEXTERITY, AttributeName.WILL],
    starting_hp=13,
    features=HUNTER_FEATURES,
    feature_pools=[
        FeaturePool(
            id=POOL_ID,
            name="Thrill of the Hunt",
            description="Abilities fuelled by Thrill of the Hunt charges.",
            features=THRILL_OF_THE_HUNT_FEATURES,
        )
    ],
    subclasses=HUNTER_SUBCLASSES,
)
