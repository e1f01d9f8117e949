from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session, select

from tourney.database import get_session
from tourney.models.match import BracketType
from tourney.models.participant import TournamentParticipant
from tourney.models.tournament import Tournament, TournamentFormat
from tourney.routes.runtime import MatchState, match_to_state
from tourney.services import tournament_service
from tourney.services.errors import InvalidState, TournamentCoreError
from tourney.services.events import event_to_dict
from tourney.services.progress_tracker import list_matches, round_robin_standings, tournament_progress
from tourney.services.seed_assigner import SEEDING_MANUAL, SEEDING_RANDOM
from tourney.utils.guards import require_tournament
from tourney.utils.http_errors import to_http_exception

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    format: TournamentFormat
    win_score: int = Field(default=3, ge=1)
    max_participants: int = Field(default=16, ge=2)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    id: int
    name: str
    format: str
    status: str
    win_score: int
    max_participants: int
    confirmed_participants: Optional[int] = None
    champion_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    seed: Optional[int] = None


class ParticipantResponse(BaseModel):
    id: int
    tournament_id: int
    user_id: str
    display_name: Optional[str] = None
    status: str
    seed: Optional[int] = None

    class Config:
        from_attributes = True


class StartRequest(BaseModel):
    seeding: str = SEEDING_RANDOM

    @field_validator("seeding")
    @classmethod
    def validate_seeding(cls, v):
        if v not in (SEEDING_RANDOM, SEEDING_MANUAL):
            raise ValueError(f"seeding must be '{SEEDING_RANDOM}' or '{SEEDING_MANUAL}'")
        return v


class StartResponse(BaseModel):
    tournament_id: int
    participants_count: int
    matches_created: int
    events: List[Dict[str, Any]] = []


class CancelResponse(BaseModel):
    tournament_id: int
    matches_cancelled: int


class StandingResponse(BaseModel):
    user_id: str
    seed: Optional[int] = None
    played: int
    wins: int
    losses: int
    games_won: int
    games_lost: int
    game_difference: int


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    """Create a draft tournament"""
    try:
        return tournament_service.create_tournament(
            session,
            name=payload.name,
            format=payload.format.value,
            win_score=payload.win_score,
            max_participants=payload.max_participants,
        )
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a draft or cancelled tournament (cascades to participants and matches)"""
    try:
        tournament_service.delete_tournament(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.post("/tournaments/{tournament_id}/open-registration", response_model=TournamentResponse)
def open_registration(tournament_id: int, session: Session = Depends(get_session)):
    try:
        return tournament_service.open_registration(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/close-registration", response_model=TournamentResponse)
def close_registration(tournament_id: int, session: Session = Depends(get_session)):
    try:
        return tournament_service.close_registration(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/participants", response_model=List[ParticipantResponse])
def list_participants(tournament_id: int, session: Session = Depends(get_session)):
    try:
        require_tournament(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return session.exec(
        select(TournamentParticipant)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .order_by(TournamentParticipant.id)
    ).all()


@router.post("/tournaments/{tournament_id}/participants", response_model=ParticipantResponse, status_code=201)
def register_participant(
    tournament_id: int,
    payload: ParticipantCreate,
    session: Session = Depends(get_session),
):
    try:
        return tournament_service.register_participant(
            session,
            tournament_id,
            user_id=payload.user_id,
            display_name=payload.display_name,
            seed=payload.seed,
        )
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/start", response_model=StartResponse)
def start_tournament(
    tournament_id: int,
    payload: Optional[StartRequest] = None,
    session: Session = Depends(get_session),
):
    """Seed participants, generate the bracket and open round 1"""
    seeding = payload.seeding if payload else SEEDING_RANDOM
    try:
        result = tournament_service.start_tournament(session, tournament_id, seeding=seeding)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return StartResponse(
        tournament_id=result.tournament_id,
        participants_count=result.participants_count,
        matches_created=result.matches_created,
        events=[event_to_dict(e) for e in result.events],
    )


@router.post("/tournaments/{tournament_id}/cancel", response_model=CancelResponse)
def cancel_tournament(tournament_id: int, session: Session = Depends(get_session)):
    try:
        cancelled = tournament_service.cancel_tournament(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return CancelResponse(tournament_id=tournament_id, matches_cancelled=cancelled)


@router.get("/tournaments/{tournament_id}/progress")
def get_progress(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        return tournament_progress(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchState])
def get_matches(
    tournament_id: int,
    round: Optional[int] = None,
    bracket_type: Optional[BracketType] = None,
    session: Session = Depends(get_session),
):
    """List matches in bracket order, optionally filtered by round and bracket"""
    try:
        require_tournament(session, tournament_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    matches = list_matches(
        session,
        tournament_id,
        round_no=round,
        bracket_type=bracket_type.value if bracket_type else None,
    )
    return [match_to_state(m) for m in matches]


@router.get("/tournaments/{tournament_id}/standings", response_model=List[StandingResponse])
def get_standings(tournament_id: int, session: Session = Depends(get_session)):
    """Round-robin table"""
    try:
        tournament = require_tournament(session, tournament_id)
        if tournament.format != TournamentFormat.round_robin:
            raise InvalidState(f"Tournament {tournament_id} is not a round robin")
    except TournamentCoreError as e:
        raise to_http_exception(e)

    return [
        StandingResponse(
            user_id=row.user_id,
            seed=row.seed,
            played=row.played,
            wins=row.wins,
            losses=row.losses,
            games_won=row.games_won,
            games_lost=row.games_lost,
            game_difference=row.game_difference,
        )
        for row in round_robin_standings(session, tournament_id)
    ]
