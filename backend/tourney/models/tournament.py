from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tourney.models.match import Match
    from tourney.models.participant import TournamentParticipant


class TournamentFormat(str, Enum):
    single_elimination = "single_elimination"
    double_elimination = "double_elimination"
    round_robin = "round_robin"


class TournamentStatus(str, Enum):
    draft = "draft"
    registration_open = "registration_open"
    registration_closed = "registration_closed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    format: str  # TournamentFormat value
    status: str = Field(default=TournamentStatus.draft.value)
    win_score: int = Field(default=3)  # game wins required to take a match
    max_participants: int = Field(default=16)
    confirmed_participants: Optional[int] = Field(default=None)  # snapshot taken when registration closes

    # Set once the bracket sink (or the last round-robin match) completes
    champion_id: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    # Relationships (tournament owns both; deleting it removes them)
    participants: List["TournamentParticipant"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    matches: List["Match"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
