from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from scoreboard.models.participant import Participant
    from scoreboard.models.tournament import Tournament


class BoardType(str, Enum):
    LEADERBOARD = "LEADERBOARD"
    MULTISCORE = "MULTISCORE"


class Board(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: BoardType = Field(default=BoardType.LEADERBOARD, sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    participants: List["Participant"] = Relationship(back_populates="board")
    tournaments: List["Tournament"] = Relationship(back_populates="board")
