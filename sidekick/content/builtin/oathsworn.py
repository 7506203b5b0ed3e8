"""
Oathsworn class definition.

A holy warrior bound by a sacred oath: Judgment Dice answer enemy attacks,
Lay on Hands heals from a pool of 5 x LVL, and radiant spells draw on a
mana pool of WIL + LVL.
"""

from dataclasses import replace

from sidekick.data_models import (
    AbilityDefinition,
    AbilityFrequency,
    AttributeName,
    DicePoolDefinition,
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
    DicePoolTrait,
    FeaturePool,
    PickFeatureFromPoolTrait,
    ResourceTrait,
    SpellSchoolTrait,
    SpellTierAccessTrait,
    StatBonusTrait,
    SubclassChoiceTrait,
    SubclassDefinition,
)


DECREE_POOL_ID = "sacred-decree-pool"

JUDGEMENT_DICE = DicePoolDefinition(
    id="judgement-dice",
    name="Judgement Dice",
    description="Judgment Dice granted by the Radiant Judgment ability.",
    dice_size=6,
    max_dice=ValueSpec.fixed(2),
    reset_condition=ResetCondition.ENCOUNTER_END,
    reset_type=ResetType.TO_ZERO,
    color_scheme="divine-light",
    icon="shield",
)


SACRED_DECREE_FEATURES = [
    ClassFeature(
        id="courage",
        level=1,
        name="Courage!",
        description="(1/encounter) When you or an ally in your aura would drop to 0 HP, "
                    "set their HP to 1 instead.",
        traits=[
            AbilityTrait(
                id="courage-0",
                ability=AbilityDefinition(
                    id="courage",
                    name="Courage!",
                    description="Set an ally's HP to 1 instead of 0.",
                    frequency=AbilityFrequency.PER_ENCOUNTER,
                    max_uses=ValueSpec.fixed(1),
                ),
            )
        ],
    ),
    ClassFeature(
        id="blinding-aura",
        level=1,
        name="Blinding Aura",
        description="(1/Safe Rest) Enemies in your aura are Blinded until the end of their next turn.",
        traits=[
            AbilityTrait(
                id="blinding-aura-0",
                ability=AbilityDefinition(
                    id="blinding-aura",
                    name="Blinding Aura",
                    description="Enemies in your aura are Blinded.",
                    frequency=AbilityFrequency.PER_SAFE_REST,
                    max_uses=ValueSpec.fixed(1),
                    action_cost=1,
                ),
            )
        ],
    ),
]


OATHSWORN_FEATURES = [
    ClassFeature(
        id="radiant-judgment",
        level=1,
        name="Radiant Judgment",
        description="Whenever an enemy attacks you, if you have no Judgment Dice, roll "
                    "your Judgment Dice (2d6).",
        traits=[DicePoolTrait(id="oathsworn-judgement-dice-0", pool_definition=JUDGEMENT_DICE)],
    ),
    ClassFeature(
        id="lay-on-hands",
        level=1,
        name="Lay on Hands",
        description="A pool of healing power equal to 5 x LVL, recharging on a Safe Rest.",
        traits=[
            ResourceTrait(
                id="lay-on-hands-pool-0",
                resource_definition=ResourceDefinition(
                    id="lay-on-hands-pool",
                    name="Lay on Hands",
                    description="Healing power to restore HP",
                    color_scheme="yellow-radiant",
                    icon="heart",
                    reset_condition=ResetCondition.SAFE_REST,
                    reset_type=ResetType.TO_MAX,
                    min_value=ValueSpec.fixed(0),
                    max_value=ValueSpec.formula("5 * LVL"),
                ),
            ),
        ],
    ),
    ClassFeature(
        id="mighty-endurance",
        level=1,
        name="Mighty Endurance",
        description="You can survive an additional 4 Wounds before death.",
        traits=[
            StatBonusTrait(
                id="mighty-endurance-0",
                stat_bonus={"maxWoundsBonus": ValueSpec.fixed(4)},
            )
        ],
    ),
    ClassFeature(
        id="mana-and-radiant-spellcasting",
        level=2,
        name="Mana Pool",
        description="You know Radiant spells and gain a mana pool equal to WIL + LVL.",
        traits=[
            SpellSchoolTrait(id="radiant-spellcasting", school_id="radiant"),
            ResourceTrait(
                id="mana-and-radiant-spellcasting-0",
                resource_definition=ResourceDefinition(
                    id="mana",
                    name="Mana",
                    description="Divine energy used to cast spells",
                    color_scheme="yellow-radiant",
                    icon="sun",
                    reset_condition=ResetCondition.SAFE_REST,
                    reset_type=ResetType.TO_MAX,
                    min_value=ValueSpec.fixed(0),
                    max_value=ValueSpec.formula("WIL + LVL"),
                ),
            ),
            SpellTierAccessTrait(id="mana-and-radiant-spellcasting-1", max_tier=1),
        ],
    ),
    ClassFeature(
        id="subclass",
        level=3,
        name="Sacred Oath",
        description="Commit yourself to an Oath and gain its benefits.",
        traits=[SubclassChoiceTrait(id="subclass-0")],
    ),
    ClassFeature(
        id="radiant-judgment-2",
        level=3,
        name="Radiant Judgment (2)",
        description="Your Judgment Dice are d8s.",
        traits=[
            DicePoolTrait(
                id="oathsworn-judgement-dice-2-0",
                pool_definition=replace(JUDGEMENT_DICE, dice_size=8),
            )
        ],
    ),
    ClassFeature(
        id="sacred-decree-1",
        level=3,
        name="Sacred Decree",
        description="Learn 1 Sacred Decree.",
        traits=[
            PickFeatureFromPoolTrait(
                id="sacred-decree-1-0", pool_id=DECREE_POOL_ID, choices_allowed=1
            )
        ],
    ),
    ClassFeature(
        id="tier-2-spells",
        level=4,
        name="Tier 2 Spells",
        description="You may now cast tier 2 spells.",
        traits=[SpellTierAccessTrait(id="tier-2-spells-0", max_tier=2)],
    ),
    ClassFeature(
        id="key-stat-increase-1",
        level=4,
        name="Key Stat Increase",
        description="+1 STR or WIL.",
        traits=[
            AttributeBoostTrait(
                id="key-stat-increase-1-0",
                allowed_attributes=[AttributeName.STRENGTH, AttributeName.WILL],
                amount=1,
            )
        ],
    ),
]


OATHSWORN_SUBCLASSES = [
    SubclassDefinition(
        id="oath-of-vengeance",
        name="Oath of Vengeance",
        class_id="oathsworn",
        description="Hunt down those who wrong the innocent.",
        features=[
            ClassFeature(
                id="vengeful-smite",
                level=3,
                name="Vengeful Smite",
                description="Spend mana to add radiant damage to a melee hit.",
                traits=[
                    AbilityTrait(
                        id="vengeful-smite-0",
                        ability=AbilityDefinition(
                            id="vengeful-smite",
                            name="Vengeful Smite",
                            description="Add 2d6 radiant damage to a melee hit.",
                            dice_formula="2d6",
                            resource_cost=ResourceCost(resource_id="mana", amount=2),
                        ),
                    )
                ],
            ),
        ],
    ),
    SubclassDefinition(
        id="oath-of-refuge",
        name="Oath of Refuge",
        class_id="oathsworn",
        description="Shield the weak from harm.",
        features=[
            ClassFeature(
                id="bulwark",
                level=3,
                name="Bulwark",
                description="Your armor is increased by your WIL.",
                traits=[
                    StatBonusTrait(id="bulwark-0", stat_bonus={"armor": ValueSpec.formula("WIL")})
                ],
            ),
        ],
    ),
]


OATHSWORN_DEFINITION = ClassDefinition(
    id="oathsworn",
    name="Oathsworn",
    description="A holy warrior bound by a sacred oath.",
    hit_die_size=10,
    key_attributes=[AttributeName.STRENGTH, AttributeName.WILL],
    starting_hp=17,
    features=OATHSWORN_FEATURES,
    feature_pools=[
        FeaturePool(
            id=DECREE_POOL_ID,
            name="Sacred Decrees",
            description="Oaths an Oathsworn may swear.",
            features=SACRED_DECREE_FEATURES,
        )
    ],
    subclasses=OATHSWORN_SUBCLASSES,
)
