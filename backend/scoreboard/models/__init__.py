from scoreboard.models.board import Board, BoardType
from scoreboard.models.match import Match, MatchRound, MatchStatus
from scoreboard.models.participant import Participant
from scoreboard.models.tournament import Tournament, TournamentPhase, TournamentStatus
from scoreboard.models.tournament_group import TournamentGroup
from scoreboard.models.tournament_participant import TournamentParticipant

__all__ = [
    "Board",
    "BoardType",
    "Participant",
    "Tournament",
    "TournamentPhase",
    "TournamentStatus",
    "TournamentGroup",
    "TournamentParticipant",
    "Match",
    "MatchRound",
    "MatchStatus",
]
