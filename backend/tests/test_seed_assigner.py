"""
Tests for seed assignment: random shuffle and manual seeds.
"""
import random

import pytest

from tourney.services.errors import InvalidSeeding
from tourney.services.seed_assigner import (
    SEEDING_MANUAL,
    SEEDING_RANDOM,
    Entrant,
    apply_manual_seeds,
    assign_seeds,
    seed_entrants,
)


def _make_entrants(n: int, seeds=None):
    seeds = seeds or [None] * n
    return [Entrant(user_id=f"u{i}", seed=seeds[i - 1]) for i in range(1, n + 1)]


class TestAssignSeeds:
    def test_seeds_are_one_to_n(self):
        seeded = assign_seeds(_make_entrants(7), rng=random.Random(3))
        assert [e.seed for e in seeded] == list(range(1, 8))
        assert {e.user_id for e in seeded} == {f"u{i}" for i in range(1, 8)}

    def test_same_rng_same_draw(self):
        a = assign_seeds(_make_entrants(10), rng=random.Random(42))
        b = assign_seeds(_make_entrants(10), rng=random.Random(42))
        assert [e.user_id for e in a] == [e.user_id for e in b]

    def test_input_is_not_mutated(self):
        entrants = _make_entrants(4)
        assign_seeds(entrants, rng=random.Random(1))
        assert [e.seed for e in entrants] == [None] * 4
        assert [e.user_id for e in entrants] == ["u1", "u2", "u3", "u4"]

    def test_every_order_reachable(self):
        seen = set()
        rng = random.Random(7)
        for _ in range(200):
            seen.add(tuple(e.user_id for e in assign_seeds(_make_entrants(3), rng=rng)))
        assert len(seen) == 6


class TestManualSeeds:
    def test_orders_by_seed(self):
        seeded = apply_manual_seeds(_make_entrants(3, seeds=[2, 3, 1]))
        assert [e.user_id for e in seeded] == ["u3", "u1", "u2"]

    def test_missing_seed(self):
        with pytest.raises(InvalidSeeding):
            apply_manual_seeds(_make_entrants(3, seeds=[1, None, 2]))

    def test_gap_in_seeds(self):
        with pytest.raises(InvalidSeeding):
            apply_manual_seeds(_make_entrants(3, seeds=[1, 2, 4]))

    def test_duplicate_seeds(self):
        with pytest.raises(InvalidSeeding):
            apply_manual_seeds(_make_entrants(3, seeds=[1, 1, 2]))


class TestPolicyDispatch:
    def test_random(self):
        seeded = seed_entrants(_make_entrants(4), SEEDING_RANDOM, rng=random.Random(0))
        assert sorted(e.seed for e in seeded) == [1, 2, 3, 4]

    def test_manual(self):
        seeded = seed_entrants(_make_entrants(2, seeds=[2, 1]), SEEDING_MANUAL)
        assert [e.user_id for e in seeded] == ["u2", "u1"]

    def test_unknown_policy(self):
        with pytest.raises(InvalidSeeding):
            seed_entrants(_make_entrants(2), "elo")


def test_empty_input():
    assert assign_seeds([]) == []
