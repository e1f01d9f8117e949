"""
Match lifecycle: the per-match state machine.

    scheduled -> in_progress -> pending_confirmation -> completed
    pending_confirmation -> in_progress            (dispute)
    scheduled | in_progress | pending_confirmation -> completed  (technical result)
    scheduled | in_progress | pending_confirmation -> cancelled  (tournament cancelled)

completed and cancelled are terminal. Each operation runs in one transaction:
the match row is locked, validated, claimed with a status-guarded UPDATE,
mutated and (for terminal transitions) advanced before a single commit. Of two
racing transitions only one claim succeeds; the other raises InvalidState.
Any failure leaves the match as it was.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from tourney.database import transaction
from tourney.models.match import OPEN_MATCH_STATUSES, Match, MatchStatus
from tourney.services.advancement_service import advance
from tourney.services.errors import InvalidScore, InvalidState, NotParticipant, SelfConfirmation
from tourney.services.events import TransitionResult
from tourney.utils.guards import claim_match, lock_match, require_tournament

logger = logging.getLogger(__name__)


def winning_side(player1_score: int, player2_score: int, win_score: int) -> int:
    """
    Validate a reported score line and return the winning side (1 or 2).

    Exactly one side must have reached win_score; the other must be below it.

    Raises:
        InvalidScore
    """
    for score in (player1_score, player2_score):
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise InvalidScore(f"Scores must be non-negative integers, got {player1_score}:{player2_score}")

    p1_won = player1_score == win_score
    p2_won = player2_score == win_score
    if p1_won and p2_won:
        raise InvalidScore("Both players cannot win")
    if not p1_won and not p2_won:
        raise InvalidScore(f"One player must reach {win_score} wins")
    loser_score = player2_score if p1_won else player1_score
    if loser_score >= win_score:
        raise InvalidScore(f"Losing score must be below {win_score}, got {loser_score}")
    return 1 if p1_won else 2


def _require_participant(match: Match, user_id: Optional[str]) -> None:
    if not match.has_player(user_id):
        raise NotParticipant(f"User {user_id} is not a participant of match {match.id}")


def _require_status(match: Match, *allowed: str) -> None:
    if match.status not in allowed:
        raise InvalidState(
            f"Match {match.id} is {match.status}; expected {' or '.join(allowed)}"
        )


def start_match(session: Session, match_id: int) -> TransitionResult:
    """scheduled -> in_progress. Both players must be assigned."""
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, MatchStatus.scheduled.value)
        if match.player1_id is None or match.player2_id is None:
            raise InvalidState(f"Match {match.id} is waiting for players")

        now = datetime.utcnow()
        claim_match(session, match, MatchStatus.in_progress.value)
        match.started_at = now
        match.updated_at = now
        session.add(match)

    logger.info("Match %s started", match_id)
    return TransitionResult(match=match)


def report_result(
    session: Session,
    match_id: int,
    reporter_id: str,
    player1_score: int,
    player2_score: int,
) -> TransitionResult:
    """in_progress -> pending_confirmation. Stores the scores; no advancement yet."""
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, MatchStatus.in_progress.value)
        _require_participant(match, reporter_id)

        tournament = require_tournament(session, match.tournament_id)
        side = winning_side(player1_score, player2_score, tournament.win_score)

        match.player1_score = player1_score
        match.player2_score = player2_score
        match.winner_id = match.player1_id if side == 1 else match.player2_id
        match.reported_by = reporter_id
        claim_match(session, match, MatchStatus.pending_confirmation.value)
        match.updated_at = datetime.utcnow()
        session.add(match)

    logger.info("Match %s reported %d:%d by %s", match_id, player1_score, player2_score, reporter_id)
    return TransitionResult(match=match)


def confirm_result(session: Session, match_id: int, confirmer_id: str) -> TransitionResult:
    """pending_confirmation -> completed, by the opponent of the reporter, then advance."""
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, MatchStatus.pending_confirmation.value)
        _require_participant(match, confirmer_id)
        if confirmer_id == match.reported_by:
            raise SelfConfirmation(f"User {confirmer_id} cannot confirm their own report")

        now = datetime.utcnow()
        claim_match(session, match, MatchStatus.completed.value)
        match.confirmed_by = confirmer_id
        match.completed_at = now
        match.updated_at = now
        session.add(match)

        events = advance(session, match)

    logger.info("Match %s confirmed by %s, winner %s", match_id, confirmer_id, match.winner_id)
    return TransitionResult(match=match, events=events)


def dispute_result(session: Session, match_id: int, user_id: str) -> TransitionResult:
    """
    pending_confirmation -> in_progress. Clears the reported result; the match
    is replayed or settled with a technical result. started_at is kept.
    """
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, MatchStatus.pending_confirmation.value)
        _require_participant(match, user_id)

        claim_match(session, match, MatchStatus.in_progress.value)
        match.player1_score = None
        match.player2_score = None
        match.winner_id = None
        match.reported_by = None
        match.updated_at = datetime.utcnow()
        session.add(match)

    logger.info("Match %s disputed by %s", match_id, user_id)
    return TransitionResult(match=match)


def set_technical_result(
    session: Session,
    match_id: int,
    winner_id: str,
    reason: str,
    adjudicator_id: str,
) -> TransitionResult:
    """
    Any open status -> completed by administrative decision (forfeit, no-show).
    Winner gets win_score, loser 0; no opponent confirmation. Then advance.

    Narrower than "any open match": both slots must be filled. A match still
    waiting on a feeder has no opponent to forfeit against, and completing it
    would push a winner downstream while the feeder's winner has nowhere to go.

    Raises:
        InvalidState: terminal status, or a slot is still empty
        NotParticipant: winner_id is not in this match
    """
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, *OPEN_MATCH_STATUSES)
        if match.player1_id is None or match.player2_id is None:
            raise InvalidState(f"Match {match.id} is waiting for players")
        _require_participant(match, winner_id)

        tournament = require_tournament(session, match.tournament_id)
        now = datetime.utcnow()
        match.player1_score = tournament.win_score if winner_id == match.player1_id else 0
        match.player2_score = tournament.win_score if winner_id == match.player2_id else 0
        match.winner_id = winner_id
        match.is_technical_result = True
        match.technical_reason = reason
        match.confirmed_by = adjudicator_id
        claim_match(session, match, MatchStatus.completed.value)
        match.completed_at = now
        match.updated_at = now
        session.add(match)

        events = advance(session, match)

    logger.info("Match %s technical result for %s by %s: %s", match_id, winner_id, adjudicator_id, reason)
    return TransitionResult(match=match, events=events)


def cancel_match(session: Session, match_id: int) -> TransitionResult:
    """Any open status -> cancelled. Triggered by tournament cancellation."""
    with transaction(session):
        match = lock_match(session, match_id)
        _require_status(match, *OPEN_MATCH_STATUSES)
        claim_match(session, match, MatchStatus.cancelled.value)
        match.updated_at = datetime.utcnow()
        session.add(match)

    logger.info("Match %s cancelled", match_id)
    return TransitionResult(match=match)
