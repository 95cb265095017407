# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from scoreboard.models.board import Board  # noqa: F401
from scoreboard.models.match import Match  # noqa: F401
from scoreboard.models.participant import Participant  # noqa: F401
from scoreboard.models.tournament import Tournament  # noqa: F401
from scoreboard.models.tournament_group import TournamentGroup  # noqa: F401
from scoreboard.models.tournament_participant import TournamentParticipant  # noqa: F401
