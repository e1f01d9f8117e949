"""
Bracket Rules: shared arithmetic for every format (Single Source of Truth)

Bracket sizing, seed placement, round-robin rotation, per-format statistics and
display names live here. The generator and the progress tracker import from
this module; do NOT duplicate these rules elsewhere.
"""

from typing import Dict, List, Tuple

from tourney.models.match import BracketType
from tourney.models.tournament import TournamentFormat

# =============================================================================
# Fixed double elimination topology
# =============================================================================

DOUBLE_ELIM_PARTICIPANTS = 16
DOUBLE_ELIM_TOTAL_MATCHES = 27
DOUBLE_ELIM_TOTAL_ROUNDS = 5


# =============================================================================
# Sizing
# =============================================================================

def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def round_count(bracket_size: int) -> int:
    """Number of elimination rounds for a power-of-two bracket: log2(size)."""
    if bracket_size <= 1:
        return 0
    return bracket_size.bit_length() - 1


# =============================================================================
# Seed placement
# =============================================================================

def seed_positions(bracket_size: int) -> List[int]:
    """Standard mirrored seed order for a power-of-two bracket.

    Consecutive pairs are the round-1 matchups; seeds 1 and 2 can only meet in
    the final, seeds 1 and 3/4 only in the semifinal, and so on:
      2  -> [1, 2]
      4  -> [1, 4, 2, 3]
      8  -> [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if bracket_size < 2:
        return [1]
    if bracket_size == 2:
        return [1, 2]

    half = seed_positions(bracket_size // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(bracket_size + 1 - s)
    return expanded


# =============================================================================
# Round robin
# =============================================================================

def round_robin_round_count(n: int) -> int:
    """Even n: n-1 rounds. Odd n: n rounds (one player sits out each round)."""
    if n < 2:
        return 0
    if n % 2 == 0:
        return n - 1
    return n


def round_robin_pairings(n: int) -> List[Tuple[int, int, int]]:
    """
    Circle-method pairings. Returns list of (round_index, idx_a, idx_b) where
    idx_a, idx_b are 0-based indexes into the seeded entrant list.

    Odd n gets a BYE slot appended (index n); any pairing with it is skipped.
    Index 0 stays fixed, the remainder rotates by one place after each round,
    and each round pairs position i with position (size - 1 - i).
    """
    if n < 2:
        return []

    size = n + 1 if n % 2 == 1 else n
    bye_idx = n if n % 2 == 1 else -1
    half = size // 2

    result: List[Tuple[int, int, int]] = []
    positions = list(range(size))

    for round_num in range(1, size):
        for i in range(half):
            a, b = positions[i], positions[size - 1 - i]
            if a == bye_idx or b == bye_idx:
                continue
            result.append((round_num, a, b))
        # Rotate: keep first, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return result


# =============================================================================
# Statistics and display
# =============================================================================

def bracket_stats(fmt: str, participant_count: int) -> Dict[str, int]:
    """Expected match and round totals for a format and entrant count."""
    if fmt == TournamentFormat.single_elimination:
        size = next_power_of_two(participant_count)
        return {"total_matches": size - 1, "total_rounds": round_count(size)}
    if fmt == TournamentFormat.double_elimination:
        return {"total_matches": DOUBLE_ELIM_TOTAL_MATCHES, "total_rounds": DOUBLE_ELIM_TOTAL_ROUNDS}
    if fmt == TournamentFormat.round_robin:
        n = participant_count
        return {"total_matches": n * (n - 1) // 2, "total_rounds": round_robin_round_count(n)}
    return {"total_matches": 0, "total_rounds": 0}


_DOUBLE_ELIM_ROUND_NAMES = {
    1: "Round of 16",
    2: "Quarterfinal",
    3: "Merge round",
    4: "Semifinal",
    5: "Grand final",
}

_ROUNDS_FROM_END_NAMES = {
    0: "Final",
    1: "Semifinal",
    2: "Quarterfinal",
    3: "Round of 16",
    4: "Round of 32",
}


def round_name(round_no: int, total_rounds: int, fmt: str, bracket_type: str = BracketType.winners.value) -> str:
    """Human-readable round label for bots and dashboards."""
    if fmt == TournamentFormat.round_robin:
        return f"Round {round_no}"

    if bracket_type == BracketType.losers:
        return f"Lower bracket, round {round_no}"

    if fmt == TournamentFormat.double_elimination:
        return _DOUBLE_ELIM_ROUND_NAMES.get(round_no, f"Round {round_no}")

    if bracket_type == BracketType.grand_final:
        return "Grand final"

    return _ROUNDS_FROM_END_NAMES.get(total_rounds - round_no, f"Round {round_no}")
