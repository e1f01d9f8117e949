from tourney.models.match import BracketType, Match, MatchStatus, Slot
from tourney.models.participant import ParticipantStatus, TournamentParticipant
from tourney.models.tournament import Tournament, TournamentFormat, TournamentStatus

__all__ = [
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "TournamentParticipant",
    "ParticipantStatus",
    "Match",
    "MatchStatus",
    "BracketType",
    "Slot",
]
