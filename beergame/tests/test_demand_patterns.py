import random

import pytest

from beergame.core.demand_patterns import DemandGenerator, DemandPatternType, describe_pattern


@pytest.mark.parametrize("pattern", list(DemandPatternType))
@pytest.mark.parametrize("num_rounds", [1, 4, 5, 24, 52])
def test_schedule_length_and_non_negative(pattern, num_rounds):
    demand = DemandGenerator.generate(pattern, num_rounds, custom_demand=[3, 0, 9], rng=random.Random(1))
    assert len(demand) == num_rounds
    assert all(isinstance(value, int) and value >= 0 for value in demand)


@pytest.mark.parametrize("num_rounds", [0, -3])
def test_non_positive_rounds_yield_empty_schedule(num_rounds):
    assert DemandGenerator.generate(DemandPatternType.STABLE, num_rounds) == []
    assert DemandGenerator.generate(DemandPatternType.RANDOM, num_rounds) == []


def test_stable_pattern_steps_from_four_to_eight():
    demand = DemandGenerator.generate("stable", 24)
    assert demand[:4] == [4, 4, 4, 4]
    assert demand[4:] == [8] * 20


def test_increasing_pattern_steps_every_four_rounds():
    demand = DemandGenerator.generate(DemandPatternType.INCREASING, 30)
    assert demand[:4] == [4] * 4
    assert demand[4:8] == [8] * 4
    assert demand[8:12] == [12] * 4
    # 70% of 30 rounds is round 21
    assert demand[12:21] == [16] * 9
    assert demand[21:] == [20] * 9


def test_increasing_pattern_short_game_jumps_to_twenty_after_round_twelve():
    demand = DemandGenerator.generate(DemandPatternType.INCREASING, 14)
    assert demand[12:] == [20, 20]


def test_random_pattern_keeps_warmup_and_stays_in_range():
    demand = DemandGenerator.generate(DemandPatternType.RANDOM, 200, rng=random.Random(42))
    assert demand[:4] == [4, 4, 4, 4]
    assert all(2 <= value <= 12 for value in demand[4:])
    assert len(set(demand[4:])) > 1


def test_random_pattern_is_reproducible_with_seeded_rng():
    first = DemandGenerator.generate(DemandPatternType.RANDOM, 30, rng=random.Random(5))
    second = DemandGenerator.generate(DemandPatternType.RANDOM, 30, rng=random.Random(5))
    assert first == second


def test_custom_pattern_repeats_last_value():
    demand = DemandGenerator.generate(DemandPatternType.CUSTOM, 6, custom_demand=[5, 7, 9])
    assert demand == [5, 7, 9, 9, 9, 9]


def test_custom_pattern_without_values_uses_baseline():
    assert DemandGenerator.generate(DemandPatternType.CUSTOM, 3) == [4, 4, 4]


def test_custom_pattern_clamps_negative_values():
    assert DemandGenerator.generate(DemandPatternType.CUSTOM, 3, custom_demand=[-2, 6]) == [0, 6, 6]


def test_unknown_selector_falls_back_to_stable():
    assert DemandGenerator.generate("sawtooth", 6) == DemandGenerator.generate("stable", 6)


def test_describe_pattern():
    assert describe_pattern("random")["params"] == {"min_demand": 2, "max_demand": 12}
    assert describe_pattern("custom", [1, 2])["params"] == {"custom_demand": [1, 2]}
    assert describe_pattern("stable") == {"type": "stable", "params": {}}
