"""
Tournament Progress: read-only queries over a tournament's matches.

Nothing in this module mutates data. Completion rules per format:
- single elimination: the winners-bracket sink (the final) is completed
- double elimination: the grand final is completed
- round robin: every match is completed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlmodel import Session, or_, select

from tourney.models.match import OPEN_MATCH_STATUSES, BracketType, Match, MatchStatus
from tourney.models.participant import TournamentParticipant
from tourney.models.tournament import Tournament, TournamentFormat
from tourney.services.bracket_rules import bracket_stats, round_name
from tourney.utils.guards import require_tournament


@dataclass
class StandingRow:
    user_id: str
    seed: Optional[int] = None
    played: int = 0
    wins: int = 0
    losses: int = 0
    games_won: int = 0
    games_lost: int = 0

    @property
    def game_difference(self) -> int:
        return self.games_won - self.games_lost


def list_matches(
    session: Session,
    tournament_id: int,
    round_no: Optional[int] = None,
    bracket_type: Optional[str] = None,
) -> List[Match]:
    """Matches of a tournament in bracket order (round, then position)."""
    query = select(Match).where(Match.tournament_id == tournament_id)
    if round_no is not None:
        query = query.where(Match.round == round_no)
    if bracket_type is not None:
        query = query.where(Match.bracket_type == bracket_type)
    return list(session.exec(query.order_by(Match.round, Match.position)).all())


def is_tournament_finished(session: Session, tournament_id: int) -> bool:
    tournament = require_tournament(session, tournament_id)
    matches = list_matches(session, tournament_id)
    if not matches:
        return False

    if tournament.format == TournamentFormat.round_robin:
        return all(m.status == MatchStatus.completed for m in matches)

    if tournament.format == TournamentFormat.double_elimination:
        grand_final = next((m for m in matches if m.bracket_type == BracketType.grand_final), None)
        return grand_final is not None and grand_final.status == MatchStatus.completed

    final = next(
        (m for m in matches if m.next_match_id is None and m.bracket_type == BracketType.winners),
        None,
    )
    return final is not None and final.status == MatchStatus.completed


def match_stats(session: Session, tournament_id: int) -> Dict[str, int]:
    """Counts by status; in_progress includes matches awaiting confirmation."""
    matches = list_matches(session, tournament_id)
    return {
        "total": len(matches),
        "completed": sum(1 for m in matches if m.status == MatchStatus.completed),
        "in_progress": sum(
            1 for m in matches
            if m.status in (MatchStatus.in_progress, MatchStatus.pending_confirmation)
        ),
        "scheduled": sum(1 for m in matches if m.status == MatchStatus.scheduled),
        "cancelled": sum(1 for m in matches if m.status == MatchStatus.cancelled),
    }


def player_current_match(session: Session, tournament_id: int, user_id: str) -> Optional[Match]:
    """The player's earliest open match, if any."""
    return session.exec(
        select(Match)
        .where(
            Match.tournament_id == tournament_id,
            or_(Match.player1_id == user_id, Match.player2_id == user_id),
            Match.status.in_(OPEN_MATCH_STATUSES),
        )
        .order_by(Match.round, Match.position)
    ).first()


def round_robin_standings(session: Session, tournament_id: int) -> List[StandingRow]:
    """
    Table built from completed matches.

    Order: wins desc, game difference desc, games won desc, seed asc.
    """
    participants = session.exec(
        select(TournamentParticipant).where(TournamentParticipant.tournament_id == tournament_id)
    ).all()
    rows: Dict[str, StandingRow] = {p.user_id: StandingRow(user_id=p.user_id, seed=p.seed) for p in participants}

    for m in list_matches(session, tournament_id):
        if m.status != MatchStatus.completed or m.player1_id is None or m.player2_id is None:
            continue
        p1 = rows.setdefault(m.player1_id, StandingRow(user_id=m.player1_id))
        p2 = rows.setdefault(m.player2_id, StandingRow(user_id=m.player2_id))
        s1, s2 = m.player1_score or 0, m.player2_score or 0
        for row, won, lost in ((p1, s1, s2), (p2, s2, s1)):
            row.played += 1
            row.games_won += won
            row.games_lost += lost
        if m.winner_id == m.player1_id:
            p1.wins += 1
            p2.losses += 1
        elif m.winner_id == m.player2_id:
            p2.wins += 1
            p1.losses += 1

    def sort_key(row: StandingRow):
        return (
            -row.wins,
            -row.game_difference,
            -row.games_won,
            # seed: nulls last, ascending
            (row.seed is None, row.seed if row.seed is not None else 0),
            row.user_id,
        )

    return sorted(rows.values(), key=sort_key)


def tournament_progress(session: Session, tournament_id: int) -> Dict:
    """Summary used by dashboards: status, champion, match counts, round labels."""
    tournament: Tournament = require_tournament(session, tournament_id)
    participant_count = tournament.confirmed_participants or len(tournament.participants)
    expected = bracket_stats(tournament.format, participant_count)
    matches = list_matches(session, tournament_id)

    total_rounds = max((m.round for m in matches), default=expected["total_rounds"])
    rounds = sorted({(m.round, m.bracket_type) for m in matches})

    return {
        "tournament_id": tournament.id,
        "format": tournament.format,
        "status": tournament.status,
        "champion_id": tournament.champion_id,
        "finished": is_tournament_finished(session, tournament_id),
        "total_rounds": total_rounds,
        "expected_matches": expected["total_matches"],
        "matches": match_stats(session, tournament_id),
        "rounds": [
            {
                "round": r,
                "bracket_type": bt,
                "name": round_name(r, total_rounds, tournament.format, bt),
            }
            for r, bt in rounds
        ],
    }
