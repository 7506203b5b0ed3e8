"""Built-in ancestry and background definitions."""

from sidekick.data_models import AbilityDefinition, ValueSpec
from sidekick.traits.trait_models import (
    AbilityTrait,
    AncestryDefinition,
    BackgroundDefinition,
    ProficiencyTrait,
    StatBonusTrait,
)


HUMAN_DEFINITION = AncestryDefinition(
    id="human",
    name="Human",
    description="Adaptable and driven, humans gain a bonus to initiative and skills.",
    traits=[
        StatBonusTrait(
            id="human-tenacious",
            stat_bonus={
                "initiativeBonus": ValueSpec.fixed(1),
                "skillBonus": ValueSpec.fixed(1),
            },
        ),
    ],
)


FEARLESS_DEFINITION = BackgroundDefinition(
    id="fearless",
    name="Fearless",
    description="You have stared down horrors and no longer flinch.",
    traits=[
        ProficiencyTrait(
            id="fearless-0",
            proficiencies=[{"type": "condition_immunity", "condition": "frightened"}],
        ),
        AbilityTrait(
            id="fearless-1",
            ability=AbilityDefinition(
                id="steady-nerves",
                name="Steady Nerves",
                type="freeform",
                description="Ignore the Frightened condition.",
            ),
        ),
    ],
)
