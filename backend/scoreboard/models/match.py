from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from scoreboard.models.participant import Participant
    from scoreboard.models.tournament import Tournament
    from scoreboard.models.tournament_group import TournamentGroup


class MatchStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MatchRound(str, Enum):
    GROUP = "GROUP"
    SEMIFINAL = "SEMIFINAL"
    FINAL = "FINAL"


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("group_id", "match_number", name="uq_match_group_number"),
        SAUniqueConstraint("tournament_id", "round", "match_number", name="uq_match_knockout_number"),
        CheckConstraint("player1_id <> player2_id", name="ck_match_distinct_players"),
        CheckConstraint(
            "(group_id IS NULL AND tournament_id IS NOT NULL) OR (group_id IS NOT NULL AND tournament_id IS NULL)",
            name="ck_match_single_scope",
        ),
        CheckConstraint("player1_score >= 0 AND player2_score >= 0", name="ck_match_scores_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # Exactly one scope: group fixtures carry group_id, knockout fixtures carry tournament_id
    group_id: Optional[int] = Field(default=None, foreign_key="tournamentgroup.id", index=True)
    tournament_id: Optional[int] = Field(default=None, foreign_key="tournament.id", index=True)

    player1_id: int = Field(foreign_key="participant.id")
    player2_id: int = Field(foreign_key="participant.id")
    player1_score: int = Field(default=0)
    player2_score: int = Field(default=0)

    status: MatchStatus = Field(default=MatchStatus.PENDING, sa_column=Column(String, nullable=False))
    round: MatchRound = Field(default=MatchRound.GROUP, sa_column=Column(String, nullable=False))
    match_number: int  # 1-based within its group or knockout round
    winner_id: Optional[int] = Field(default=None, foreign_key="participant.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    # Relationships
    group: Optional["TournamentGroup"] = Relationship(back_populates="matches")
    tournament: Optional["Tournament"] = Relationship(back_populates="knockout_matches")
    player1: "Participant" = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.player1_id"})
    player2: "Participant" = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.player2_id"})
