"""
Bracket Generation: seeded entrants in, complete match graph out.

Pure functions; nothing here touches the database. Matches are addressed by
`position` (1..N, unique per tournament) and link to each other by position.
The persistence layer swaps positions for row ids when it inserts the graph.

Formats:
- single elimination: any N >= 2, padded to the next power of two with byes
- double elimination: exactly 16 entrants, fixed 27-match topology
- round robin: circle method, no advancement links
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from tourney.models.match import BracketType, MatchStatus, Slot
from tourney.models.tournament import TournamentFormat
from tourney.services.bracket_rules import (
    DOUBLE_ELIM_PARTICIPANTS,
    DOUBLE_ELIM_TOTAL_ROUNDS,
    next_power_of_two,
    round_count,
    round_robin_pairings,
    round_robin_round_count,
    seed_positions,
)
from tourney.services.errors import InsufficientParticipants, InvalidScore, UnsupportedParticipantCount
from tourney.services.seed_assigner import Entrant

logger = logging.getLogger(__name__)

W = BracketType.winners.value
L = BracketType.losers.value
GF = BracketType.grand_final.value
S1 = Slot.slot1.value
S2 = Slot.slot2.value


# =============================================================================
# Graph types
# =============================================================================

@dataclass
class BracketMatch:
    """Match skeleton produced at generation time."""
    round: int
    position: int
    bracket_type: str = W
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    next_position: Optional[int] = None
    next_slot: Optional[str] = None
    loser_next_position: Optional[int] = None
    loser_next_slot: Optional[str] = None
    status: str = MatchStatus.scheduled.value
    winner_id: Optional[str] = None
    is_bye: bool = False

    @property
    def players(self) -> List[str]:
        return [p for p in (self.player1_id, self.player2_id) if p is not None]

    def place(self, slot: str, user_id: str) -> None:
        if slot == S1:
            self.player1_id = user_id
        else:
            self.player2_id = user_id


@dataclass(frozen=True)
class Advancement:
    """Where a match's winner (and, in double elimination, loser) goes."""
    next_position: Optional[int]
    next_slot: Optional[str]
    loser_next_position: Optional[int] = None
    loser_next_slot: Optional[str] = None


@dataclass
class BracketGraph:
    format: str
    win_score: int
    total_rounds: int
    matches: List[BracketMatch] = field(default_factory=list)

    def by_position(self) -> Dict[int, BracketMatch]:
        return {m.position: m for m in self.matches}

    def advancement_table(self) -> Dict[int, Advancement]:
        """position -> routing for every match that feeds another one."""
        return {
            m.position: Advancement(m.next_position, m.next_slot, m.loser_next_position, m.loser_next_slot)
            for m in self.matches
            if m.next_position is not None or m.loser_next_position is not None
        }

    def round_matches(self, round_no: int, bracket_type: Optional[str] = None) -> List[BracketMatch]:
        return [
            m for m in self.matches
            if m.round == round_no and (bracket_type is None or m.bracket_type == bracket_type)
        ]

    def sinks(self) -> List[BracketMatch]:
        """Matches whose winner goes nowhere (the final / grand final)."""
        if self.format == TournamentFormat.round_robin:
            return []
        return [m for m in self.matches if m.next_position is None]

    def topology_violations(self) -> List[str]:
        """Check the forward-only DAG shape. Empty list means the graph is sound."""
        violations: List[str] = []
        index = self.by_position()
        if len(index) != len(self.matches):
            violations.append("duplicate match positions")

        for m in self.matches:
            for target_pos, label in ((m.next_position, "winner"), (m.loser_next_position, "loser")):
                if target_pos is None:
                    continue
                target = index.get(target_pos)
                if target is None:
                    violations.append(f"match {m.position}: {label} route to unknown position {target_pos}")
                elif target_pos == m.position:
                    violations.append(f"match {m.position}: {label} route points to itself")
                elif label == "winner" and target.round <= m.round:
                    violations.append(f"match {m.position}: winner route goes back to round {target.round}")
                elif label == "loser" and target.round < m.round:
                    violations.append(f"match {m.position}: loser route goes back to round {target.round}")

        if self.format != TournamentFormat.round_robin and len(self.sinks()) != 1:
            violations.append(f"expected exactly one sink, found {len(self.sinks())}")
        return violations


# =============================================================================
# Entry point
# =============================================================================

def generate_bracket(fmt: str, entrants: Sequence[Entrant], win_score: int) -> BracketGraph:
    """
    Build the full match graph for a tournament.

    *entrants* must already be seeded (see seed_assigner); they are ordered by
    seed here, or taken in the given order when seeds are absent.

    Raises:
        InsufficientParticipants if fewer than 2 entrants
        UnsupportedParticipantCount if double elimination gets anything but 16
        InvalidScore if win_score is not positive
        ValueError for an unknown format
    """
    if win_score < 1:
        raise InvalidScore(f"win_score must be a positive integer, got {win_score}")
    if len(entrants) < 2:
        raise InsufficientParticipants(f"At least 2 participants required, got {len(entrants)}")

    ordered = _in_seed_order(entrants)

    if fmt == TournamentFormat.single_elimination:
        graph = generate_single_elimination(ordered, win_score)
    elif fmt == TournamentFormat.double_elimination:
        graph = generate_double_elimination(ordered, win_score)
    elif fmt == TournamentFormat.round_robin:
        graph = generate_round_robin(ordered, win_score)
    else:
        raise ValueError(f"Unsupported tournament format: {fmt}")

    logger.debug(
        "Generated %s bracket: %d entrants, %d matches, %d rounds",
        fmt, len(ordered), len(graph.matches), graph.total_rounds,
    )
    return graph


def _in_seed_order(entrants: Sequence[Entrant]) -> List[Entrant]:
    if all(e.seed is not None for e in entrants):
        return sorted(entrants, key=lambda e: e.seed)
    return list(entrants)


# =============================================================================
# Single elimination
# =============================================================================

def generate_single_elimination(ordered: List[Entrant], win_score: int) -> BracketGraph:
    """
    Round 1 pairs slot 2i with 2i+1 of the mirrored seed order; slots beyond N
    are byes. Match i of a round feeds match i // 2 of the next round, top of
    the pair into slot1, bottom into slot2. Byes are resolved before returning.
    """
    n = len(ordered)
    bracket_size = next_power_of_two(n)
    total_rounds = round_count(bracket_size)

    slots: List[Optional[str]] = [
        ordered[s - 1].user_id if s <= n else None
        for s in seed_positions(bracket_size)
    ]

    matches: List[BracketMatch] = []
    position = 1
    round_start = 1
    matches_in_round = bracket_size // 2

    for round_no in range(1, total_rounds + 1):
        is_final = round_no == total_rounds
        for i in range(matches_in_round):
            match = BracketMatch(round=round_no, position=position)
            if round_no == 1:
                match.player1_id = slots[2 * i]
                match.player2_id = slots[2 * i + 1]
            if not is_final:
                match.next_position = round_start + matches_in_round + i // 2
                match.next_slot = S1 if i % 2 == 0 else S2
            matches.append(match)
            position += 1
        round_start += matches_in_round
        matches_in_round //= 2

    _resolve_byes(matches)

    return BracketGraph(
        format=TournamentFormat.single_elimination.value,
        win_score=win_score,
        total_rounds=total_rounds,
        matches=matches,
    )


def _resolve_byes(matches: List[BracketMatch]) -> None:
    """
    Auto-complete every match that is decided without play.

    A match is decided at generation when all of its feeders were (round 1
    has none). If such a match has a single player, that player wins by bye
    and moves on; an empty match produces nobody. Walking in position order
    visits feeders first, so chains of byes collapse in one pass.
    """
    index = {m.position: m for m in matches}
    feeders: Dict[int, List[BracketMatch]] = defaultdict(list)
    for m in matches:
        if m.next_position is not None:
            feeders[m.next_position].append(m)

    settled: Set[int] = set()
    for match in sorted(matches, key=lambda m: m.position):
        if not all(f.position in settled for f in feeders[match.position]):
            continue
        players = match.players
        if len(players) == 2:
            continue

        match.is_bye = True
        match.status = MatchStatus.completed.value
        match.winner_id = players[0] if players else None
        settled.add(match.position)

        if match.winner_id is not None and match.next_position is not None:
            index[match.next_position].place(match.next_slot, match.winner_id)


# =============================================================================
# Double elimination (16 entrants)
# =============================================================================

# (position, round, bracket_type, next_position, next_slot, loser_next_position, loser_next_slot)
# Losers of the lower bracket and of round 3+ are eliminated (no loser route).
DOUBLE_ELIM_16: Tuple[Tuple[int, int, str, Optional[int], Optional[str], Optional[int], Optional[str]], ...] = (
    # Round 1 upper: winners pair into round 2 upper, losers pair into round 1 lower
    (1, 1, W, 13, S1, 9, S1),
    (2, 1, W, 13, S2, 9, S2),
    (3, 1, W, 14, S1, 10, S1),
    (4, 1, W, 14, S2, 10, S2),
    (5, 1, W, 15, S1, 11, S1),
    (6, 1, W, 15, S2, 11, S2),
    (7, 1, W, 16, S1, 12, S1),
    (8, 1, W, 16, S2, 12, S2),
    # Round 1 lower
    (9, 1, L, 17, S1, None, None),
    (10, 1, L, 18, S1, None, None),
    (11, 1, L, 19, S1, None, None),
    (12, 1, L, 20, S1, None, None),
    # Round 2 upper: losers drop 1:1 into round 2 lower
    (13, 2, W, 21, S1, 17, S2),
    (14, 2, W, 22, S1, 18, S2),
    (15, 2, W, 23, S1, 19, S2),
    (16, 2, W, 24, S1, 20, S2),
    # Round 2 lower
    (17, 2, L, 21, S2, None, None),
    (18, 2, L, 22, S2, None, None),
    (19, 2, L, 23, S2, None, None),
    (20, 2, L, 24, S2, None, None),
    # Round 3 merge
    (21, 3, W, 25, S1, None, None),
    (22, 3, W, 25, S2, None, None),
    (23, 3, W, 26, S1, None, None),
    (24, 3, W, 26, S2, None, None),
    # Round 4 semifinals
    (25, 4, W, 27, S1, None, None),
    (26, 4, W, 27, S2, None, None),
    # Round 5 grand final
    (27, 5, GF, None, None, None, None),
)


def generate_double_elimination(ordered: List[Entrant], win_score: int) -> BracketGraph:
    """
    Fixed 16-entrant topology (DOUBLE_ELIM_16). Round 1 upper pairs entrants
    by the mirrored seed order; every other slot starts empty.
    """
    if len(ordered) != DOUBLE_ELIM_PARTICIPANTS:
        raise UnsupportedParticipantCount(
            f"Double elimination supports exactly {DOUBLE_ELIM_PARTICIPANTS} participants, "
            f"got {len(ordered)}"
        )

    slots = [ordered[s - 1].user_id for s in seed_positions(DOUBLE_ELIM_PARTICIPANTS)]

    matches: List[BracketMatch] = []
    for position, round_no, bracket_type, nxt, nxt_slot, loser_nxt, loser_slot in DOUBLE_ELIM_16:
        match = BracketMatch(
            round=round_no,
            position=position,
            bracket_type=bracket_type,
            next_position=nxt,
            next_slot=nxt_slot,
            loser_next_position=loser_nxt,
            loser_next_slot=loser_slot,
        )
        if round_no == 1 and bracket_type == W:
            idx = (position - 1) * 2
            match.player1_id = slots[idx]
            match.player2_id = slots[idx + 1]
        matches.append(match)

    return BracketGraph(
        format=TournamentFormat.double_elimination.value,
        win_score=win_score,
        total_rounds=DOUBLE_ELIM_TOTAL_ROUNDS,
        matches=matches,
    )


# =============================================================================
# Round robin
# =============================================================================

def generate_round_robin(ordered: List[Entrant], win_score: int) -> BracketGraph:
    """Every entrant meets every other once; pairings that hit the BYE slot are dropped."""
    matches = [
        BracketMatch(
            round=round_no,
            position=position,
            player1_id=ordered[a].user_id,
            player2_id=ordered[b].user_id,
        )
        for position, (round_no, a, b) in enumerate(round_robin_pairings(len(ordered)), start=1)
    ]

    return BracketGraph(
        format=TournamentFormat.round_robin.value,
        win_score=win_score,
        total_rounds=round_robin_round_count(len(ordered)),
        matches=matches,
    )
