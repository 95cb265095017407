from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from scoreboard.models.match import Match
    from scoreboard.models.tournament import Tournament
    from scoreboard.models.tournament_participant import TournamentParticipant


class TournamentGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "position", name="uq_tournament_group_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str  # "Group A", "Group B", ...
    position: int  # 0-based, follows Tournament.group_sizes order
    capacity: int
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="groups")
    members: List["TournamentParticipant"] = Relationship(
        back_populates="group", sa_relationship_kwargs={"order_by": "TournamentParticipant.group_position"}
    )
    matches: List["Match"] = Relationship(
        back_populates="group", sa_relationship_kwargs={"order_by": "Match.match_number"}
    )
