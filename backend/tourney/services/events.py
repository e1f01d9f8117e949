"""
Advisory signals for the notification layer.

Lifecycle operations return these alongside the mutated match; delivering
them (chat message, push) happens outside this package.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from tourney.models.match import Match

EVENT_MATCH_READY = "match_ready"
EVENT_TOURNAMENT_COMPLETED = "tournament_completed"


@dataclass(frozen=True)
class MatchReady:
    """Both slots of a match are filled; it can be started."""
    tournament_id: int
    match_id: int
    player1_id: str
    player2_id: str
    kind: str = EVENT_MATCH_READY


@dataclass(frozen=True)
class TournamentCompleted:
    tournament_id: int
    champion_id: Optional[str]
    kind: str = EVENT_TOURNAMENT_COMPLETED


LifecycleEvent = Union[MatchReady, TournamentCompleted]


@dataclass
class TransitionResult:
    match: Match
    events: List[LifecycleEvent] = field(default_factory=list)


def match_ready_for(match: Match) -> Optional[MatchReady]:
    """MatchReady for *match* if both players are known, else None."""
    if match.player1_id is None or match.player2_id is None:
        return None
    return MatchReady(
        tournament_id=match.tournament_id,
        match_id=match.id,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
    )


def event_to_dict(event: LifecycleEvent) -> Dict[str, Any]:
    return asdict(event)
