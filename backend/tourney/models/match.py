from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.tournament import Tournament


class MatchStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    pending_confirmation = "pending_confirmation"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_MATCH_STATUSES = (MatchStatus.completed.value, MatchStatus.cancelled.value)
OPEN_MATCH_STATUSES = (
    MatchStatus.scheduled.value,
    MatchStatus.in_progress.value,
    MatchStatus.pending_confirmation.value,
)


class BracketType(str, Enum):
    winners = "winners"
    losers = "losers"
    grand_final = "grand_final"


class Slot(str, Enum):
    slot1 = "slot1"
    slot2 = "slot2"


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "position", name="uq_match_tournament_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(
        sa_column=Column(Integer, ForeignKey("tournament.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    round: int  # 1-based
    position: int  # generation-time address, unique per tournament

    # Participants (null = not yet determined, or bye in round 1)
    player1_id: Optional[str] = Field(default=None, index=True)
    player2_id: Optional[str] = Field(default=None, index=True)

    # Bracket topology
    bracket_type: str = Field(default=BracketType.winners.value)
    next_match_id: Optional[int] = Field(
        default=None, sa_column=Column(Integer, ForeignKey("match.id", ondelete="SET NULL"), nullable=True)
    )
    next_slot: Optional[str] = Field(default=None)  # Slot value
    # Double elimination only: where the loser goes (null = eliminated)
    loser_next_match_id: Optional[int] = Field(
        default=None, sa_column=Column(Integer, ForeignKey("match.id", ondelete="SET NULL"), nullable=True)
    )
    loser_next_slot: Optional[str] = Field(default=None)

    # Result
    player1_score: Optional[int] = Field(default=None)
    player2_score: Optional[int] = Field(default=None)
    winner_id: Optional[str] = Field(default=None)
    reported_by: Optional[str] = Field(default=None)
    confirmed_by: Optional[str] = Field(default=None)
    is_technical_result: bool = Field(default=False)
    technical_reason: Optional[str] = Field(default=None)
    is_bye: bool = Field(default=False)  # resolved automatically at generation

    status: str = Field(default=MatchStatus.scheduled.value)
    scheduled_at: Optional[datetime] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    tournament: "Tournament" = Relationship(back_populates="matches")

    def has_player(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id in (self.player1_id, self.player2_id)

    def opponent_of(self, user_id: str) -> Optional[str]:
        if user_id == self.player1_id:
            return self.player2_id
        if user_id == self.player2_id:
            return self.player1_id
        return None
