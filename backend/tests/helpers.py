"""Shared helpers for service and route tests."""
from sqlmodel import Session, select

from tourney.models.match import Match
from tourney.services import match_lifecycle


def match_at(session: Session, tournament_id: int, position: int) -> Match:
    """Fresh copy of the match at *position*."""
    match = session.exec(
        select(Match).where(Match.tournament_id == tournament_id, Match.position == position)
    ).one()
    session.refresh(match)
    return match


def play(session: Session, match_id: int, winner: int = 1, loser_score: int = 1, win_score: int = 3):
    """Start, report (by player1) and confirm (by player2) a match. Returns the confirm result."""
    match_lifecycle.start_match(session, match_id)
    match = session.get(Match, match_id)
    reporter, confirmer = match.player1_id, match.player2_id
    scores = (win_score, loser_score) if winner == 1 else (loser_score, win_score)
    match_lifecycle.report_result(session, match_id, reporter, *scores)
    return match_lifecycle.confirm_result(session, match_id, confirmer)
