"""
Advancement: when a match is completed, fill the downstream slots it feeds.

- winner -> next_match_id / next_slot
- double elimination, winners bracket: loser -> loser_next_match_id / loser_next_slot
  (no loser route = eliminated)
- no next_match_id -> bracket sink: the tournament is completed with the winner as champion
- round robin has no routes: the tournament completes when every match is completed

Targets stay "scheduled" whether or not both slots are now filled; starting a
match is a separate operation. Callers own the transaction: advancement only
flushes, so a failure here rolls back the completing transition as well.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from tourney.models.match import BracketType, Match, MatchStatus, Slot
from tourney.models.tournament import Tournament, TournamentFormat, TournamentStatus
from tourney.services.errors import InvalidState
from tourney.services.events import LifecycleEvent, TournamentCompleted, match_ready_for
from tourney.services.progress_tracker import round_robin_standings
from tourney.utils.guards import lock_match, lock_tournament

logger = logging.getLogger(__name__)


def advance(session: Session, match: Match) -> List[LifecycleEvent]:
    """
    Propagate a completed match through the bracket.

    Returns the advisory events produced (MatchReady for targets whose slots are
    both filled now, TournamentCompleted when the sink completes).

    Raises:
        InvalidState if the match is not completed, has no winner, or a target
        slot already holds a different player
    """
    if match.status != MatchStatus.completed:
        raise InvalidState(f"Match {match.id} must be completed before advancing")
    if match.winner_id is None:
        raise InvalidState(f"Match {match.id} has no winner to advance")

    tournament = lock_tournament(session, match.tournament_id)

    if tournament.format == TournamentFormat.round_robin:
        return _complete_round_robin_if_done(session, tournament)

    if match.next_match_id is None:
        return [_complete_tournament(session, tournament, match.winner_id)]

    events: List[LifecycleEvent] = []

    target = lock_match(session, match.next_match_id)
    if _place(session, target, match.next_slot, match.winner_id):
        ready = match_ready_for(target)
        if ready:
            events.append(ready)

    if (
        tournament.format == TournamentFormat.double_elimination
        and match.bracket_type == BracketType.winners
        and match.loser_next_match_id is not None
    ):
        loser_id = match.opponent_of(match.winner_id)
        if loser_id is not None:
            loser_target = lock_match(session, match.loser_next_match_id)
            if _place(session, loser_target, match.loser_next_slot, loser_id):
                ready = match_ready_for(loser_target)
                if ready:
                    events.append(ready)

    session.flush()
    for event in events:
        logger.info("Match %s ready: %s vs %s", event.match_id, event.player1_id, event.player2_id)
    return events


def _place(session: Session, target: Match, slot: Optional[str], user_id: str) -> bool:
    """
    Write user_id into target's slot. Returns True if the row changed.
    Idempotent: writing the same player again is a no-op.
    """
    field = "player1_id" if slot == Slot.slot1 else "player2_id"
    current = getattr(target, field)
    if current == user_id:
        return False
    if current is not None:
        raise InvalidState(
            f"Match {target.id} {slot} already holds {current}; cannot advance {user_id}"
        )
    if target.status != MatchStatus.scheduled:
        raise InvalidState(f"Match {target.id} is {target.status}; cannot receive players")

    setattr(target, field, user_id)
    target.updated_at = datetime.utcnow()
    session.add(target)
    logger.info("Advanced %s into match %s (%s)", user_id, target.id, slot)
    return True


def _complete_tournament(session: Session, tournament: Tournament, champion_id: Optional[str]) -> TournamentCompleted:
    now = datetime.utcnow()
    tournament.status = TournamentStatus.completed.value
    tournament.champion_id = champion_id
    tournament.completed_at = now
    tournament.updated_at = now
    session.add(tournament)
    session.flush()
    logger.info("Tournament %s completed, champion %s", tournament.id, champion_id)
    return TournamentCompleted(tournament_id=tournament.id, champion_id=champion_id)


def _complete_round_robin_if_done(session: Session, tournament: Tournament) -> List[LifecycleEvent]:
    session.flush()
    open_match = session.exec(
        select(Match).where(
            Match.tournament_id == tournament.id,
            Match.status != MatchStatus.completed,
        )
    ).first()
    if open_match is not None:
        return []

    standings = round_robin_standings(session, tournament.id)
    champion_id = standings[0].user_id if standings else None
    return [_complete_tournament(session, tournament, champion_id)]


def resolve_all_advancements(session: Session, tournament_id: int) -> Dict[str, int]:
    """
    Re-run advancement for every completed, played match of a tournament.

    Repair tool for imported results or interrupted writes. Idempotent:
    slots already holding the right player are left alone, and a completed
    tournament is not completed twice.

    Returns:
        Dict with:
        - matches_processed: completed matches visited
        - unknown_before: matches with an empty slot before
        - unknown_after: matches with an empty slot after
    """
    tournament = lock_tournament(session, tournament_id)
    matches = session.exec(
        select(Match).where(Match.tournament_id == tournament_id).order_by(Match.position)
    ).all()
    unknown_before = sum(1 for m in matches if m.player1_id is None or m.player2_id is None)

    processed = 0
    for match in matches:
        if match.status != MatchStatus.completed or match.is_bye or match.winner_id is None:
            continue
        if tournament.status == TournamentStatus.completed and (
            match.next_match_id is None or tournament.format == TournamentFormat.round_robin
        ):
            continue
        advance(session, match)
        processed += 1

    session.commit()

    matches_after = session.exec(select(Match).where(Match.tournament_id == tournament_id)).all()
    unknown_after = sum(1 for m in matches_after if m.player1_id is None or m.player2_id is None)

    return {
        "matches_processed": processed,
        "unknown_before": unknown_before,
        "unknown_after": unknown_after,
    }
