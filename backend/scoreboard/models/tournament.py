from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from scoreboard.models.board import Board
    from scoreboard.models.match import Match
    from scoreboard.models.tournament_group import TournamentGroup
    from scoreboard.models.tournament_participant import TournamentParticipant


class TournamentPhase(str, Enum):
    SETUP = "SETUP"
    GROUP_DRAW = "GROUP_DRAW"
    GROUP_STAGE = "GROUP_STAGE"
    KNOCKOUT = "KNOCKOUT"
    COMPLETED = "COMPLETED"


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    board_id: int = Field(foreign_key="board.id", index=True)
    name: str
    description: Optional[str] = None
    phase: TournamentPhase = Field(default=TournamentPhase.SETUP, sa_column=Column(String, nullable=False))
    status: TournamentStatus = Field(default=TournamentStatus.DRAFT, sa_column=Column(String, nullable=False))
    group_sizes: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Scoring configuration used by group standings
    win_points: int = Field(default=3)
    draw_points: int = Field(default=1)
    loss_points: int = Field(default=0)

    # Bumped by every phase-machine write (compare-and-set guard)
    revision: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    board: "Board" = Relationship(back_populates="tournaments")
    participants: List["TournamentParticipant"] = Relationship(back_populates="tournament")
    groups: List["TournamentGroup"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"order_by": "TournamentGroup.position"}
    )
    knockout_matches: List["Match"] = Relationship(back_populates="tournament")
