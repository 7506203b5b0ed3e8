"""
Commander class definition.

A battlefield tactician who rolls Combat Dice at the start of each
encounter and spends them on orders for allies.
"""

from sidekick.data_models import (
    AbilityDefinition,
    AttributeName,
    DicePoolDefinition,
    ResetCondition,
    ResetType,
    ValueSpec,
)
from sidekick.traits.trait_models import (
    AbilityTrait,
    AttributeBoostTrait,
    ChoiceTrait,
    ClassDefinition,
    ClassFeature,
    DicePoolTrait,
    FeaturePool,
    PickFeatureFromPoolTrait,
    StatBonusTrait,
)


ORDERS_POOL_ID = "commanders-orders-pool"

COMBAT_DICE = DicePoolDefinition(
    id="combat-dice",
    name="Combat Dice",
    description="Dice spent to issue orders during an encounter.",
    dice_size=6,
    max_dice=ValueSpec.formula("INT + 1"),
    reset_condition=ResetCondition.ENCOUNTER_END,
    reset_type=ResetType.TO_MAX,
    color_scheme="steel-blue",
    icon="flag",
)


ORDER_FEATURES = [
    ClassFeature(
        id="coordinated-strike",
        level=1,
        name="Coordinated Strike",
        description="Spend a Combat Die: an ally attacks, adding the die to the damage.",
    ),
    ClassFeature(
        id="hold-the-line",
        level=1,
        name="Hold the Line!",
        description="Spend a Combat Die: an ally reduces incoming damage by the die.",
    ),
    ClassFeature(
        id="fall-back",
        level=1,
        name="Fall Back!",
        description="Spend a Combat Die: allies move up to the die's value in spaces.",
    ),
]


BATTLEFIELD_CHOICE = ChoiceTrait(
    id="commander-battlefield-choice",
    num_selections=1,
    options=[
        StatBonusTrait(id="combat-dice-bonus", stat_bonus={"combatDice": ValueSpec.fixed(1)}),
        AbilityTrait(
            id="tactical-advantage",
            ability=AbilityDefinition(
                id="tactical-advantage-ability",
                name="Tactical Advantage",
                type="freeform",
                description="Grant advantage to an ally within 6 spaces.",
            ),
        ),
        AttributeBoostTrait(
            id="attribute-boost-option",
            allowed_attributes=[AttributeName.STRENGTH, AttributeName.INTELLIGENCE],
            amount=1,
        ),
        PickFeatureFromPoolTrait(id="extra-order-option", pool_id=ORDERS_POOL_ID, choices_allowed=1),
    ],
)


COMMANDER_FEATURES = [
    ClassFeature(
        id="combat-dice",
        level=1,
        name="Combat Dice",
        description="At the start of each encounter, roll INT + 1 Combat Dice (d6).",
        traits=[DicePoolTrait(id="commander-combat-dice-0", pool_definition=COMBAT_DICE)],
    ),
    ClassFeature(
        id="commanders-orders",
        level=1,
        name="Commander's Orders",
        description="Learn 2 Orders.",
        traits=[
            PickFeatureFromPoolTrait(
                id="commanders-orders-0", pool_id=ORDERS_POOL_ID, choices_allowed=2
            )
        ],
    ),
    ClassFeature(
        id="battlefield-expertise",
        level=2,
        name="Battlefield Expertise",
        description="Choose one battlefield specialty.",
        traits=[BATTLEFIELD_CHOICE],
    ),
]


COMMANDER_DEFINITION = ClassDefinition(
    id="commander",
    name="Commander",
    description="A battlefield tactician who leads allies with orders.",
    hit_die_size=10,
    key_attributes=[AttributeName.STRENGTH, AttributeName.INTELLIGENCE],
    starting_hp=17,
    features=COMMANDER_FEATURES,
    feature_pools=[
        FeaturePool(
            id=ORDERS_POOL_ID,
            name="Orders",
            description="Orders a Commander can issue by spending Combat Dice.",
            features=ORDER_FEATURES,
        )
    ],
)
