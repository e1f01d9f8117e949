"""
Seed assignment: turns confirmed participants into an ordered seed list.

Two policies:
- random (default): uniform shuffle, seeds 1..N in shuffled order. Not
  idempotent; run it exactly once per tournament, right before generation.
- manual: keep seeds the organiser already entered, provided they form 1..N.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from tourney.services.errors import InvalidSeeding

SEEDING_RANDOM = "random"
SEEDING_MANUAL = "manual"


@dataclass(frozen=True)
class Entrant:
    """Lightweight participant struct for seeding and bracket generation."""
    user_id: str
    seed: Optional[int] = None
    display_name: Optional[str] = None


def assign_seeds(entrants: Sequence[Entrant], rng: Optional[random.Random] = None) -> List[Entrant]:
    """Shuffle (Fisher-Yates) and number the result 1..N.

    Pass *rng* for reproducible draws in tests; defaults to the module RNG.
    """
    shuffled = list(entrants)
    (rng or random).shuffle(shuffled)
    return [replace(e, seed=i) for i, e in enumerate(shuffled, start=1)]


def apply_manual_seeds(entrants: Sequence[Entrant]) -> List[Entrant]:
    """Order entrants by their pre-assigned seeds.

    Raises:
        InvalidSeeding if any seed is missing or the seeds are not exactly 1..N
    """
    missing = [e.user_id for e in entrants if e.seed is None]
    if missing:
        raise InvalidSeeding(f"Entrants without a seed: {', '.join(missing)}")

    seeds = sorted(e.seed for e in entrants)
    if seeds != list(range(1, len(entrants) + 1)):
        raise InvalidSeeding(f"Seeds must be exactly 1..{len(entrants)}, got {seeds}")

    return sorted(entrants, key=lambda e: e.seed)


def seed_entrants(entrants: Sequence[Entrant], policy: str = SEEDING_RANDOM,
                  rng: Optional[random.Random] = None) -> List[Entrant]:
    """Dispatch to the requested seeding policy."""
    if policy == SEEDING_RANDOM:
        return assign_seeds(entrants, rng=rng)
    if policy == SEEDING_MANUAL:
        return apply_manual_seeds(entrants)
    raise InvalidSeeding(f"Unknown seeding policy: {policy}")
