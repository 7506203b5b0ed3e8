"""
Unit tests for dice pools.

Tests sidekick/resources/dice_pool_manager.py against the bundled
Commander combat dice and Oathsworn judgement dice.
"""

import pytest

from sidekick.content.builtin.commander import COMBAT_DICE
from sidekick.content.builtin.oathsworn import JUDGEMENT_DICE
from sidekick.data_models import ResetCondition
from sidekick.errors import DicePoolError, DicePoolFullError
from sidekick.resources.dice_pool_manager import (
    add_die_to_pool,
    create_pool_instance,
    get_max_dice,
    reset_dice_pools_by_condition,
    use_die_from_pool,
)

from tests.helpers import FixedSequenceSource


@pytest.fixture
def pools():
    return [create_pool_instance(JUDGEMENT_DICE), create_pool_instance(COMBAT_DICE, sort_order=1)]


class TestDicePools:
    """Tests for adding, using and resetting pool dice."""

    def test_new_pool_is_empty(self):
        pool = create_pool_instance(JUDGEMENT_DICE)
        assert pool.current_dice == []
        assert pool.definition.id == "judgement-dice"

    def test_formula_max_dice(self):
        assert get_max_dice(COMBAT_DICE, {"INT": 2}) == 3
        assert get_max_dice(JUDGEMENT_DICE) == 2

    def test_add_die(self, pools):
        updated, value = add_die_to_pool(pools, "judgement-dice", FixedSequenceSource([4]))
        assert value == 4
        assert updated[0].current_dice == [4]
        assert pools[0].current_dice == []

    def test_add_rolls_pool_die_size(self, pools):
        source = FixedSequenceSource([3])
        add_die_to_pool(pools, "judgement-dice", source)
        assert source.requested_sides == [6]

    def test_full_pool_rejects_die(self, pools):
        source = FixedSequenceSource([1, 2, 3])
        pools, _ = add_die_to_pool(pools, "judgement-dice", source)
        pools, _ = add_die_to_pool(pools, "judgement-dice", source)
        with pytest.raises(DicePoolFullError):
            add_die_to_pool(pools, "judgement-dice", source)

    def test_unknown_pool(self, pools):
        with pytest.raises(DicePoolError):
            add_die_to_pool(pools, "nope", FixedSequenceSource([1]))

    def test_use_die(self, pools):
        source = FixedSequenceSource([2, 5])
        pools, _ = add_die_to_pool(pools, "judgement-dice", source)
        pools, _ = add_die_to_pool(pools, "judgement-dice", source)
        pools, value = use_die_from_pool(pools, "judgement-dice", 1)
        assert value == 5
        assert pools[0].current_dice == [2]

    def test_use_die_bad_index(self, pools):
        with pytest.raises(DicePoolError):
            use_die_from_pool(pools, "judgement-dice", 0)

    def test_encounter_end_empties_to_zero_pool(self, pools):
        pools, _ = add_die_to_pool(pools, "judgement-dice", FixedSequenceSource([6]))
        source = FixedSequenceSource([1, 2, 3])
        pools = reset_dice_pools_by_condition(
            pools, ResetCondition.ENCOUNTER_END, source, {"INT": 2}
        )
        assert pools[0].current_dice == []
        # Combat dice reset to max: INT + 1 fresh dice
        assert pools[1].current_dice == [1, 2, 3]

    def test_turn_end_leaves_encounter_pools(self, pools):
        pools, _ = add_die_to_pool(pools, "judgement-dice", FixedSequenceSource([6]))
        pools = reset_dice_pools_by_condition(
            pools, ResetCondition.TURN_END, FixedSequenceSource([]), {"INT": 2}
        )
        assert pools[0].current_dice == [6]
        assert pools[1].current_dice == []

    def test_reset_keeps_sort_order(self, pools):
        pools = reset_dice_pools_by_condition(
            pools, ResetCondition.SAFE_REST, FixedSequenceSource([1, 1, 1]), {"INT": 2}
        )
        assert [p.sort_order for p in pools] == [0, 1]
