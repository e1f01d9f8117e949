"""
Runtime: match lifecycle over HTTP (start, report, confirm, dispute, technical result).
Completing a match runs advancement in the same transaction; the response carries
the advisory events it produced.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from tourney.database import get_session
from tourney.models.match import Match
from tourney.services import match_lifecycle
from tourney.services.errors import TournamentCoreError
from tourney.services.events import TransitionResult, event_to_dict
from tourney.utils.http_errors import to_http_exception

router = APIRouter()


class MatchState(BaseModel):
    id: int
    tournament_id: int
    round: int
    position: int
    bracket_type: str
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None
    next_match_id: Optional[int] = None
    next_slot: Optional[str] = None
    loser_next_match_id: Optional[int] = None
    loser_next_slot: Optional[str] = None
    player1_score: Optional[int] = None
    player2_score: Optional[int] = None
    winner_id: Optional[str] = None
    reported_by: Optional[str] = None
    confirmed_by: Optional[str] = None
    is_technical_result: bool = False
    technical_reason: Optional[str] = None
    is_bye: bool = False
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchTransitionResponse(BaseModel):
    match: MatchState
    events: List[Dict[str, Any]] = []


class ReportRequest(BaseModel):
    reporter_id: str
    player1_score: int
    player2_score: int


class ActorRequest(BaseModel):
    user_id: str


class TechnicalResultRequest(BaseModel):
    winner_id: str
    reason: str = Field(min_length=1)
    adjudicator_id: str


def match_to_state(m: Match) -> MatchState:
    return MatchState.model_validate(m, from_attributes=True)


def _to_response(result: TransitionResult) -> MatchTransitionResponse:
    return MatchTransitionResponse(
        match=match_to_state(result.match),
        events=[event_to_dict(e) for e in result.events],
    )


@router.get("/matches/{match_id}", response_model=MatchState)
def get_match(match_id: int, session: Session = Depends(get_session)) -> MatchState:
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match_to_state(match)


@router.post("/matches/{match_id}/start", response_model=MatchTransitionResponse)
def start_match(match_id: int, session: Session = Depends(get_session)) -> MatchTransitionResponse:
    try:
        return _to_response(match_lifecycle.start_match(session, match_id))
    except TournamentCoreError as e:
        raise to_http_exception(e)


@router.post("/matches/{match_id}/report", response_model=MatchTransitionResponse)
def report_result(
    match_id: int,
    payload: ReportRequest,
    session: Session = Depends(get_session),
) -> MatchTransitionResponse:
    """A participant reports the score; the opponent must confirm it."""
    try:
        result = match_lifecycle.report_result(
            session, match_id, payload.reporter_id, payload.player1_score, payload.player2_score
        )
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return _to_response(result)


@router.post("/matches/{match_id}/confirm", response_model=MatchTransitionResponse)
def confirm_result(
    match_id: int,
    payload: ActorRequest,
    session: Session = Depends(get_session),
) -> MatchTransitionResponse:
    """The reporter's opponent accepts the result. Runs advancement."""
    try:
        result = match_lifecycle.confirm_result(session, match_id, payload.user_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return _to_response(result)


@router.post("/matches/{match_id}/dispute", response_model=MatchTransitionResponse)
def dispute_result(
    match_id: int,
    payload: ActorRequest,
    session: Session = Depends(get_session),
) -> MatchTransitionResponse:
    try:
        result = match_lifecycle.dispute_result(session, match_id, payload.user_id)
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return _to_response(result)


@router.post("/matches/{match_id}/technical-result", response_model=MatchTransitionResponse)
def set_technical_result(
    match_id: int,
    payload: TechnicalResultRequest,
    session: Session = Depends(get_session),
) -> MatchTransitionResponse:
    """Administrative decision (forfeit, no-show). Authorization is the caller's concern."""
    try:
        result = match_lifecycle.set_technical_result(
            session, match_id, payload.winner_id, payload.reason, payload.adjudicator_id
        )
    except TournamentCoreError as e:
        raise to_http_exception(e)
    return _to_response(result)


# ============================================================================
# Bulk Advancement Repair
# ============================================================================

class ResolveAdvancementsResponse(BaseModel):
    matches_processed: int
    unknown_before: int
    unknown_after: int


@router.post(
    "/tournaments/{tournament_id}/resolve-advancements",
    response_model=ResolveAdvancementsResponse,
)
def resolve_advancements(tournament_id: int, session: Session = Depends(get_session)) -> ResolveAdvancementsResponse:
    """Re-run advancement for every completed match (repair tool). Idempotent."""
    from tourney.services.advancement_service import resolve_all_advancements

    try:
        result = resolve_all_advancements(session, tournament_id)
    except TournamentCoreError as e:
        session.rollback()
        raise to_http_exception(e)
    return ResolveAdvancementsResponse(**result)
