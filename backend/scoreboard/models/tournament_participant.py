from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from scoreboard.models.participant import Participant
    from scoreboard.models.tournament import Tournament
    from scoreboard.models.tournament_group import TournamentGroup


class TournamentParticipant(SQLModel, table=True):
    __table_args__ = (
        # A participant is enrolled once per tournament; group_id keeps it in at most one group
        SAUniqueConstraint("tournament_id", "participant_id", name="uq_tournament_participant"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    participant_id: int = Field(foreign_key="participant.id", index=True)
    group_id: Optional[int] = Field(default=None, foreign_key="tournamentgroup.id", index=True)
    group_position: Optional[int] = Field(default=None)  # 0-based draw order inside the group
    seed: Optional[int] = Field(default=None)  # Final group rank, written on advance to knockout
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="participants")
    group: Optional["TournamentGroup"] = Relationship(back_populates="members")
    participant: "Participant" = Relationship()
