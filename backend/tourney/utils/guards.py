"""
Row guards for tournament and match mutations.

Provides reusable loaders that fail with NotFound and, for matches, take a
row lock so concurrent transitions on the same match are serialized:
- SELECT ... FOR UPDATE on PostgreSQL (plain SELECT on SQLite)
- populate_existing, so a second writer sees the status the first one committed
- claim_match: a conditional UPDATE on the status that was read, so the
  loser of a race gets InvalidState even where FOR UPDATE is a no-op
"""

from sqlalchemy import update
from sqlmodel import Session, select

from tourney.models.match import Match
from tourney.models.tournament import Tournament
from tourney.services.errors import InvalidState, NotFound


def require_tournament(session: Session, tournament_id: int) -> Tournament:
    """
    Load a tournament or raise.

    Raises:
        NotFound: Tournament does not exist
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFound(f"Tournament {tournament_id} not found")
    return tournament


def lock_match(session: Session, match_id: int) -> Match:
    """
    Load a match for update.

    Raises:
        NotFound: Match does not exist
    """
    match = session.exec(
        select(Match)
        .where(Match.id == match_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not match:
        raise NotFound(f"Match {match_id} not found")
    return match


def claim_match(session: Session, match: Match, to_status: str) -> None:
    """
    Move a locked match from the status it was read with to to_status.

    UPDATE ... WHERE id = ? AND status = <status read>; zero rows means another
    transaction moved the match first.

    Raises:
        InvalidState: The match changed status since it was read
    """
    result = session.connection().execute(
        update(Match)
        .where(Match.id == match.id, Match.status == match.status)
        .values(status=to_status)
    )
    if result.rowcount != 1:
        raise InvalidState(f"Match {match.id} is no longer {match.status}")
    match.status = to_status


def lock_tournament(session: Session, tournament_id: int) -> Tournament:
    """
    Load a tournament for update.

    Raises:
        NotFound: Tournament does not exist
    """
    tournament = session.exec(
        select(Tournament)
        .where(Tournament.id == tournament_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not tournament:
        raise NotFound(f"Tournament {tournament_id} not found")
    return tournament
