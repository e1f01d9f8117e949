# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from tourney.models.match import Match  # noqa: F401
from tourney.models.participant import TournamentParticipant  # noqa: F401
from tourney.models.tournament import Tournament  # noqa: F401
