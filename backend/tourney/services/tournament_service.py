"""
Tournament orchestration around the bracket core.

Status progression:
  draft -> registration_open -> registration_closed -> in_progress -> completed
                                                                  \-> cancelled

start_tournament is the only caller of seeding and bracket generation. It must
run at most once per tournament: seeding reshuffles and generation would
duplicate every match, so it refuses to run when matches already exist.
"""
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from tourney.database import transaction
from tourney.models.match import OPEN_MATCH_STATUSES, Match, MatchStatus
from tourney.models.participant import ACTIVE_PARTICIPANT_STATUSES, TournamentParticipant
from tourney.models.tournament import Tournament, TournamentFormat, TournamentStatus
from tourney.services.bracket_generator import BracketGraph, generate_bracket
from tourney.services.errors import InsufficientParticipants, InvalidScore, InvalidSeeding, InvalidState
from tourney.services.events import MatchReady, match_ready_for
from tourney.services.seed_assigner import SEEDING_RANDOM, Entrant, seed_entrants
from tourney.utils.guards import lock_tournament, require_tournament

logger = logging.getLogger(__name__)

REGISTRATION_STATUSES = (TournamentStatus.draft.value, TournamentStatus.registration_open.value)
DELETABLE_STATUSES = (TournamentStatus.draft.value, TournamentStatus.cancelled.value)
FINISHED_STATUSES = (TournamentStatus.completed.value, TournamentStatus.cancelled.value)


@dataclass
class StartResult:
    tournament_id: int
    participants_count: int
    matches_created: int
    events: List[MatchReady] = field(default_factory=list)


def create_tournament(
    session: Session,
    name: str,
    format: str,
    win_score: int = 3,
    max_participants: int = 16,
) -> Tournament:
    if win_score < 1:
        raise InvalidScore(f"win_score must be a positive integer, got {win_score}")
    if max_participants < 2:
        raise InsufficientParticipants(f"max_participants must be at least 2, got {max_participants}")
    tournament = Tournament(
        name=name,
        format=TournamentFormat(format).value,
        win_score=win_score,
        max_participants=max_participants,
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def _set_status(session: Session, tournament_id: int, expected: str, new: str) -> Tournament:
    with transaction(session):
        tournament = lock_tournament(session, tournament_id)
        if tournament.status != expected:
            raise InvalidState(f"Tournament {tournament_id} is {tournament.status}; expected {expected}")
        tournament.status = new
        tournament.updated_at = datetime.utcnow()
        if new == TournamentStatus.registration_closed:
            tournament.confirmed_participants = len(get_active_participants(session, tournament_id))
        session.add(tournament)
    return tournament


def open_registration(session: Session, tournament_id: int) -> Tournament:
    return _set_status(
        session, tournament_id, TournamentStatus.draft.value, TournamentStatus.registration_open.value
    )


def close_registration(session: Session, tournament_id: int) -> Tournament:
    """Close registration and snapshot the confirmed participant count."""
    return _set_status(
        session,
        tournament_id,
        TournamentStatus.registration_open.value,
        TournamentStatus.registration_closed.value,
    )


def get_active_participants(session: Session, tournament_id: int) -> List[TournamentParticipant]:
    """Pending and confirmed participants in registration order."""
    return list(session.exec(
        select(TournamentParticipant)
        .where(
            TournamentParticipant.tournament_id == tournament_id,
            TournamentParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES),
        )
        .order_by(TournamentParticipant.created_at, TournamentParticipant.id)
    ).all())


def register_participant(
    session: Session,
    tournament_id: int,
    user_id: str,
    display_name: Optional[str] = None,
    seed: Optional[int] = None,
) -> TournamentParticipant:
    """
    Add a participant while registration is possible.

    Raises:
        NotFound: Tournament does not exist
        InvalidState: registration is over, the tournament is full, or the user is already in
        InvalidSeeding: seed is not positive or already taken
    """
    with transaction(session):
        tournament = lock_tournament(session, tournament_id)
        if tournament.status not in REGISTRATION_STATUSES:
            raise InvalidState(f"Tournament {tournament_id} is {tournament.status}; registration is closed")

        existing = session.exec(
            select(TournamentParticipant).where(
                TournamentParticipant.tournament_id == tournament_id,
                TournamentParticipant.user_id == user_id,
            )
        ).first()
        if existing:
            raise InvalidState(f"User {user_id} is already registered")

        if len(get_active_participants(session, tournament_id)) >= tournament.max_participants:
            raise InvalidState(f"Tournament {tournament_id} is full ({tournament.max_participants})")

        if seed is not None:
            if seed < 1:
                raise InvalidSeeding(f"Seed must be a positive integer, got {seed}")
            taken = session.exec(
                select(TournamentParticipant.id).where(
                    TournamentParticipant.tournament_id == tournament_id,
                    TournamentParticipant.seed == seed,
                )
            ).first()
            if taken is not None:
                raise InvalidSeeding(f"Seed {seed} is already taken")

        participant = TournamentParticipant(
            tournament_id=tournament_id,
            user_id=user_id,
            display_name=display_name,
            seed=seed,
        )
        session.add(participant)

    session.refresh(participant)
    return participant


def persist_bracket(session: Session, tournament: Tournament, graph: BracketGraph) -> Dict[int, int]:
    """
    Two-phase insert of a generated graph.

    Phase 1 inserts every match and flushes to obtain ids; phase 2 resolves
    position-based routes into next_match_id / loser_next_match_id.
    Runs inside the caller's transaction. Returns the position -> id map.
    """
    rows: Dict[int, Match] = {}
    for bm in graph.matches:
        row = Match(
            tournament_id=tournament.id,
            round=bm.round,
            position=bm.position,
            bracket_type=bm.bracket_type,
            player1_id=bm.player1_id,
            player2_id=bm.player2_id,
            next_slot=bm.next_slot,
            loser_next_slot=bm.loser_next_slot,
            status=bm.status,
            winner_id=bm.winner_id,
            is_bye=bm.is_bye,
        )
        if bm.is_bye:
            row.completed_at = datetime.utcnow()
        session.add(row)
        rows[bm.position] = row
    session.flush()

    position_to_id = {position: row.id for position, row in rows.items()}
    for bm in graph.matches:
        row = rows[bm.position]
        if bm.next_position is not None:
            row.next_match_id = position_to_id[bm.next_position]
        if bm.loser_next_position is not None:
            row.loser_next_match_id = position_to_id[bm.loser_next_position]
        session.add(row)
    session.flush()
    return position_to_id


def start_tournament(
    session: Session,
    tournament_id: int,
    seeding: str = SEEDING_RANDOM,
    rng: Optional[random.Random] = None,
) -> StartResult:
    """
    Seed participants, generate the bracket and materialize every match.

    All-or-nothing: a seeding or generation error leaves no seeds and no matches.

    Raises:
        NotFound, InvalidState, InvalidSeeding, InsufficientParticipants,
        UnsupportedParticipantCount
    """
    with transaction(session):
        tournament = lock_tournament(session, tournament_id)
        if tournament.status != TournamentStatus.registration_closed:
            raise InvalidState(
                f"Tournament {tournament_id} is {tournament.status}; close registration before starting"
            )
        already = session.exec(select(Match.id).where(Match.tournament_id == tournament_id)).first()
        if already is not None:
            raise InvalidState(f"Tournament {tournament_id} already has a bracket")

        participants = get_active_participants(session, tournament_id)
        entrants = [
            Entrant(user_id=p.user_id, seed=p.seed, display_name=p.display_name)
            for p in participants
        ]
        seeded = seed_entrants(entrants, policy=seeding, rng=rng)
        graph = generate_bracket(tournament.format, seeded, tournament.win_score)

        by_user = {p.user_id: p for p in participants}
        # Clear first so the (tournament_id, seed) constraint holds while reseeding
        for p in participants:
            p.seed = None
            session.add(p)
        session.flush()
        for entrant in seeded:
            participant = by_user[entrant.user_id]
            participant.seed = entrant.seed
            session.add(participant)

        persist_bracket(session, tournament, graph)

        now = datetime.utcnow()
        tournament.status = TournamentStatus.in_progress.value
        tournament.confirmed_participants = len(participants)
        tournament.started_at = now
        tournament.updated_at = now
        session.add(tournament)

    round_one = session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id, Match.status == MatchStatus.scheduled)
        .order_by(Match.position)
    ).all()
    events = [e for e in (match_ready_for(m) for m in round_one) if e is not None]

    logger.info(
        "Tournament %s started: %s, %d participants, %d matches",
        tournament_id, tournament.format, len(participants), len(graph.matches),
    )
    return StartResult(
        tournament_id=tournament_id,
        participants_count=len(participants),
        matches_created=len(graph.matches),
        events=events,
    )


def cancel_tournament(session: Session, tournament_id: int) -> int:
    """
    Cancel a tournament and every open match. Returns the number of matches cancelled.

    Raises:
        InvalidState if the tournament is already completed or cancelled
    """
    with transaction(session):
        tournament = lock_tournament(session, tournament_id)
        if tournament.status in FINISHED_STATUSES:
            raise InvalidState(f"Tournament {tournament_id} is already {tournament.status}")

        open_matches = session.exec(
            select(Match).where(
                Match.tournament_id == tournament_id,
                Match.status.in_(OPEN_MATCH_STATUSES),
            )
        ).all()
        now = datetime.utcnow()
        for match in open_matches:
            match.status = MatchStatus.cancelled.value
            match.updated_at = now
            session.add(match)

        tournament.status = TournamentStatus.cancelled.value
        tournament.updated_at = now
        session.add(tournament)

    logger.info("Tournament %s cancelled, %d matches cancelled", tournament_id, len(open_matches))
    return len(open_matches)


def delete_tournament(session: Session, tournament_id: int) -> None:
    """Delete a draft or cancelled tournament together with its participants and matches."""
    tournament = require_tournament(session, tournament_id)
    if tournament.status not in DELETABLE_STATUSES:
        raise InvalidState(f"Tournament {tournament_id} is {tournament.status}; only draft or cancelled can be deleted")
    session.delete(tournament)
    session.commit()

