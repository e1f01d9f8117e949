from fastapi import HTTPException

from tourney.services.errors import (
    InvalidState,
    NotFound,
    NotParticipant,
    SelfConfirmation,
    TournamentCoreError,
)


def to_http_exception(exc: TournamentCoreError) -> HTTPException:
    """Map a service error onto the status code the API promises for it."""
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (NotParticipant, SelfConfirmation)):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, InvalidState):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))
