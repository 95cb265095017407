"""
Match runtime: start and score fixtures.

Group fixtures are scored during GROUP_STAGE and knockout fixtures during KNOCKOUT.
Completing the second semifinal creates the final; completing the final completes
the tournament.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlmodel import Session, select

from scoreboard.database import get_session
from scoreboard.models.match import Match, MatchRound, MatchStatus
from scoreboard.models.tournament import Tournament
from scoreboard.models.tournament_group import TournamentGroup
from scoreboard.services import tournament_engine
from scoreboard.services.tournament_errors import TournamentError
from scoreboard.utils.http_errors import http_error

router = APIRouter()


class MatchComplete(BaseModel):
    player1_score: int = Field(ge=0)
    player2_score: int = Field(ge=0)


class MatchState(BaseModel):
    id: int
    group_id: Optional[int] = None
    tournament_id: Optional[int] = None
    player1_id: int
    player2_id: int
    player1_score: int
    player2_score: int
    status: str
    round: str
    match_number: int
    winner_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatchCompleteResponse(BaseModel):
    match: MatchState
    final_match: Optional[MatchState] = None
    tournament_phase: str


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchState])
def list_matches(
    tournament_id: int,
    round: Optional[MatchRound] = None,
    status: Optional[MatchStatus] = None,
    session: Session = Depends(get_session),
) -> List[MatchState]:
    """All fixtures of a tournament: group fixtures first (by group, match number), then knockout."""
    if not session.get(Tournament, tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")

    group_ids = select(TournamentGroup.id).where(TournamentGroup.tournament_id == tournament_id)
    query = select(Match).where(or_(Match.tournament_id == tournament_id, Match.group_id.in_(group_ids)))
    if round is not None:
        query = query.where(Match.round == round.value)
    if status is not None:
        query = query.where(Match.status == status.value)

    matches = session.exec(query.order_by(Match.id)).all()

    # Knockout order: semifinals before the final
    round_order = {MatchRound.GROUP.value: 0, MatchRound.SEMIFINAL.value: 1, MatchRound.FINAL.value: 2}
    matches = sorted(matches, key=lambda m: (round_order[m.round], m.group_id or 0, m.match_number))
    return [MatchState.model_validate(m) for m in matches]


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchState)
def start_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)) -> MatchState:
    """PENDING -> IN_PROGRESS"""
    try:
        match = tournament_engine.start_match(session, tournament_id, match_id)
    except TournamentError as e:
        raise http_error(session, e)
    return MatchState.model_validate(match)


@router.put("/tournaments/{tournament_id}/matches/{match_id}/complete", response_model=MatchCompleteResponse)
def complete_match(
    tournament_id: int,
    match_id: int,
    payload: MatchComplete,
    session: Session = Depends(get_session),
) -> MatchCompleteResponse:
    """Record the final score of a fixture."""
    try:
        result = tournament_engine.complete_match(
            session, tournament_id, match_id, payload.player1_score, payload.player2_score
        )
    except TournamentError as e:
        raise http_error(session, e)

    return MatchCompleteResponse(
        match=MatchState.model_validate(result.match),
        final_match=MatchState.model_validate(result.final_match) if result.final_match else None,
        tournament_phase=result.tournament_phase.value,
    )
