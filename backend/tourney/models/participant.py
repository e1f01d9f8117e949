from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.tournament import Tournament


class ParticipantStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    disqualified = "disqualified"


# Statuses that take part in the draw
ACTIVE_PARTICIPANT_STATUSES = (ParticipantStatus.pending.value, ParticipantStatus.confirmed.value)


class TournamentParticipant(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "user_id", name="uq_tournament_participant"),
        # Seeds are unique within a tournament (where seed is not null)
        SAUniqueConstraint("tournament_id", "seed", name="uq_tournament_seed"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(
        sa_column=Column(Integer, ForeignKey("tournament.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    user_id: str = Field(index=True)  # opaque id owned by the user directory
    display_name: Optional[str] = None
    status: str = Field(default=ParticipantStatus.confirmed.value)
    seed: Optional[int] = Field(default=None)  # 1-based, assigned once when the tournament starts
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="participants")
