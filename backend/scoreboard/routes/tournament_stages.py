"""
Tournament phase machine endpoints.

Enrollment (SETUP) -> draw (GROUP_DRAW) -> schedule (GROUP_STAGE) -> advance (KNOCKOUT).
Each POST runs one engine operation; a request made in the wrong phase gets 409.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlmodel import Session

from scoreboard.database import get_session
from scoreboard.routes.runtime import MatchState
from scoreboard.services import tournament_engine
from scoreboard.services.tournament_errors import TournamentError
from scoreboard.utils.http_errors import http_error

router = APIRouter()


class PlayersAdd(BaseModel):
    participant_ids: List[int] = Field(min_length=1)


class EnrollmentResponse(BaseModel):
    id: int
    tournament_id: int
    participant_id: int
    group_id: Optional[int] = None
    seed: Optional[int] = None

    class Config:
        from_attributes = True


class DrawRequest(BaseModel):
    # participant_id -> 0-based group index; omitted for a random draw
    assignments: Optional[Dict[int, int]] = None


class GroupResponse(BaseModel):
    id: int
    name: str
    position: int
    capacity: int
    member_ids: List[int]


class StandingRow(BaseModel):
    participant_id: int
    participant_name: Optional[str] = None
    rank: int
    played: int
    wins: int
    draws: int
    losses: int
    points_for: int
    points_against: int
    point_difference: int
    total_points: int


class GroupStandingsResponse(BaseModel):
    group_id: int
    name: str
    position: int
    standings: List[StandingRow]


class KnockoutResponse(BaseModel):
    semifinals: List[MatchState]
    finals: List[MatchState]


def _group_response(group) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        position=group.position,
        capacity=group.capacity,
        member_ids=[m.participant_id for m in group.members],
    )


@router.post("/tournaments/{tournament_id}/players", response_model=List[EnrollmentResponse], status_code=201)
def add_players(tournament_id: int, payload: PlayersAdd, session: Session = Depends(get_session)):
    """Enroll board participants (SETUP only)"""
    try:
        enrollments = tournament_engine.add_participants(session, tournament_id, payload.participant_ids)
    except TournamentError as e:
        raise http_error(session, e)
    return [EnrollmentResponse.model_validate(tp) for tp in enrollments]


@router.delete("/tournaments/{tournament_id}/players/{participant_id}", status_code=204)
def remove_player(tournament_id: int, participant_id: int, session: Session = Depends(get_session)):
    """Withdraw an enrolled participant (SETUP only)"""
    try:
        tournament_engine.remove_participant(session, tournament_id, participant_id)
    except TournamentError as e:
        raise http_error(session, e)
    return Response(status_code=204)


@router.post("/tournaments/{tournament_id}/draw", response_model=List[GroupResponse])
def draw(tournament_id: int, payload: Optional[DrawRequest] = None, session: Session = Depends(get_session)):
    """Draw enrolled participants into groups: random, or manual when assignments are given"""
    assignments = payload.assignments if payload else None
    try:
        groups = tournament_engine.draw_groups(session, tournament_id, assignments=assignments)
    except TournamentError as e:
        raise http_error(session, e)
    return [_group_response(g) for g in groups]


@router.post("/tournaments/{tournament_id}/schedule", response_model=List[MatchState])
def schedule(tournament_id: int, session: Session = Depends(get_session)):
    """Generate round-robin fixtures for every group and start the group stage"""
    try:
        matches = tournament_engine.generate_schedule(session, tournament_id)
    except TournamentError as e:
        raise http_error(session, e)
    return [MatchState.model_validate(m) for m in matches]


@router.post("/tournaments/{tournament_id}/advance", response_model=List[MatchState])
def advance(tournament_id: int, session: Session = Depends(get_session)):
    """Close the group stage and create the semifinals"""
    try:
        semifinals = tournament_engine.advance_to_knockout(session, tournament_id)
    except TournamentError as e:
        raise http_error(session, e)
    return [MatchState.model_validate(m) for m in semifinals]


@router.get("/tournaments/{tournament_id}/groups", response_model=List[GroupStandingsResponse])
def group_standings(tournament_id: int, session: Session = Depends(get_session)):
    """Current standings of every group"""
    try:
        result = tournament_engine.get_group_standings(session, tournament_id)
    except TournamentError as e:
        raise http_error(session, e)

    return [
        GroupStandingsResponse(
            group_id=gs.group.id,
            name=gs.group.name,
            position=gs.group.position,
            standings=[StandingRow(played=s.played, **s.to_dict()) for s in gs.standings],
        )
        for gs in result
    ]


@router.get("/tournaments/{tournament_id}/knockout", response_model=KnockoutResponse)
def knockout(tournament_id: int, session: Session = Depends(get_session)):
    """Semifinals and final"""
    try:
        bracket = tournament_engine.get_bracket(session, tournament_id)
    except TournamentError as e:
        raise http_error(session, e)
    return KnockoutResponse(
        semifinals=[MatchState.model_validate(m) for m in bracket.semifinals],
        finals=[MatchState.model_validate(m) for m in bracket.finals],
    )
