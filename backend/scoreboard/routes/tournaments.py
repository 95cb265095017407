from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_
from sqlmodel import Session, func, select

from scoreboard.database import get_session
from scoreboard.models.board import Board
from scoreboard.models.match import Match, MatchStatus
from scoreboard.models.participant import Participant
from scoreboard.models.tournament import Tournament, TournamentStatus
from scoreboard.models.tournament_group import TournamentGroup
from scoreboard.models.tournament_participant import TournamentParticipant
from scoreboard.routes.runtime import MatchState
from scoreboard.services import tournament_engine
from scoreboard.services.tournament_cleanup import delete_tournament_rows
from scoreboard.services.tournament_errors import TournamentError
from scoreboard.services.tournament_rules import DEFAULT_DRAW_POINTS, DEFAULT_LOSS_POINTS, DEFAULT_WIN_POINTS
from scoreboard.utils.group_draw import validate_group_plan
from scoreboard.utils.http_errors import http_error
from scoreboard.utils.ranking import PointsScheme

router = APIRouter()


class PointsConfig(BaseModel):
    win: int = DEFAULT_WIN_POINTS
    draw: int = DEFAULT_DRAW_POINTS
    loss: int = DEFAULT_LOSS_POINTS


class TournamentCreate(BaseModel):
    board_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    group_sizes: List[int]
    points: Optional[PointsConfig] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[TournamentStatus] = None
    group_sizes: Optional[List[int]] = None
    points: Optional[PointsConfig] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        # DRAFT -> ACTIVE -> COMPLETED is driven by the phase machine
        if v is not None and v != TournamentStatus.CANCELLED:
            raise ValueError("status can only be set to CANCELLED")
        return v


class TournamentResponse(BaseModel):
    id: int
    board_id: int
    name: str
    description: Optional[str] = None
    phase: str
    status: str
    group_sizes: List[int]
    win_points: int
    draw_points: int
    loss_points: int
    revision: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TournamentListItem(TournamentResponse):
    player_count: int = 0
    total_matches: int = 0
    completed_matches: int = 0


class EnrolledParticipant(BaseModel):
    participant_id: int
    name: str
    group_id: Optional[int] = None
    seed: Optional[int] = None


class GroupDetail(BaseModel):
    id: int
    name: str
    position: int
    capacity: int
    member_ids: List[int]
    matches: List[MatchState]


class TournamentDetail(TournamentResponse):
    participants: List[EnrolledParticipant]
    groups: List[GroupDetail]
    knockout_matches: List[MatchState]


def _match_counts(session: Session, tournament_ids: List[int]) -> Dict[int, Dict[str, int]]:
    """tournament_id -> {total, completed} over group and knockout fixtures."""
    counts = {tid: {"total": 0, "completed": 0} for tid in tournament_ids}
    if not tournament_ids:
        return counts

    group_owner = dict(
        session.exec(
            select(TournamentGroup.id, TournamentGroup.tournament_id).where(
                TournamentGroup.tournament_id.in_(tournament_ids)
            )
        ).all()
    )
    matches = session.exec(
        select(Match).where(
            or_(Match.tournament_id.in_(tournament_ids), Match.group_id.in_(list(group_owner) or [-1]))
        )
    ).all()
    for m in matches:
        owner = m.tournament_id if m.tournament_id is not None else group_owner[m.group_id]
        counts[owner]["total"] += 1
        if m.status == MatchStatus.COMPLETED:
            counts[owner]["completed"] += 1
    return counts


@router.get("/tournaments", response_model=List[TournamentListItem])
def list_tournaments(
    board_id: Optional[int] = None,
    status: Optional[TournamentStatus] = None,
    session: Session = Depends(get_session),
):
    """List tournaments, newest first, with player and match counts"""
    query = select(Tournament)
    if board_id is not None:
        query = query.where(Tournament.board_id == board_id)
    if status is not None:
        query = query.where(Tournament.status == status.value)
    tournaments = session.exec(query.order_by(Tournament.created_at.desc(), Tournament.id.desc())).all()

    ids = [t.id for t in tournaments]
    player_counts = dict(
        session.exec(
            select(TournamentParticipant.tournament_id, func.count(TournamentParticipant.id))
            .where(TournamentParticipant.tournament_id.in_(ids or [-1]))
            .group_by(TournamentParticipant.tournament_id)
        ).all()
    )
    match_counts = _match_counts(session, ids)

    items = []
    for t in tournaments:
        item = TournamentListItem.model_validate(t)
        item.player_count = player_counts.get(t.id, 0)
        item.total_matches = match_counts[t.id]["total"]
        item.completed_matches = match_counts[t.id]["completed"]
        items.append(item)
    return items


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament in SETUP phase"""
    if not session.get(Board, tournament_data.board_id):
        raise HTTPException(status_code=404, detail="Board not found")
    try:
        validate_group_plan(tournament_data.group_sizes)
    except TournamentError as e:
        raise http_error(session, e)

    points = tournament_data.points or PointsConfig()
    tournament = Tournament(
        board_id=tournament_data.board_id,
        name=tournament_data.name,
        description=tournament_data.description,
        group_sizes=list(tournament_data.group_sizes),
        win_points=points.win,
        draw_points=points.draw,
        loss_points=points.loss,
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentDetail)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament with enrollments, groups, fixtures and knockout fixtures"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    rows = session.exec(
        select(TournamentParticipant, Participant)
        .join(Participant, Participant.id == TournamentParticipant.participant_id)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .order_by(TournamentParticipant.id)
    ).all()
    participants = [
        EnrolledParticipant(participant_id=p.id, name=p.name, group_id=tp.group_id, seed=tp.seed) for tp, p in rows
    ]

    groups = [
        GroupDetail(
            id=g.id,
            name=g.name,
            position=g.position,
            capacity=g.capacity,
            member_ids=[m.participant_id for m in g.members],
            matches=[MatchState.model_validate(m) for m in g.matches],
        )
        for g in tournament.groups
    ]

    bracket = tournament_engine.get_bracket(session, tournament_id)
    knockout = [MatchState.model_validate(m) for m in bracket.semifinals + bracket.finals]

    return TournamentDetail(
        **TournamentResponse.model_validate(tournament).model_dump(),
        participants=participants,
        groups=groups,
        knockout_matches=knockout,
    )


@router.patch("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update a tournament. Group sizes and points can only change during SETUP."""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    try:
        if tournament_data.group_sizes is not None or tournament_data.points is not None:
            points = tournament_data.points
            tournament = tournament_engine.configure_tournament(
                session,
                tournament_id,
                group_sizes=tournament_data.group_sizes,
                points=PointsScheme(win=points.win, draw=points.draw, loss=points.loss) if points else None,
            )
        if tournament_data.status == TournamentStatus.CANCELLED:
            tournament = tournament_engine.cancel_tournament(session, tournament_id)
    except TournamentError as e:
        raise http_error(session, e)

    update_data = tournament_data.model_dump(exclude_unset=True, include={"name", "description"})
    if update_data:
        for field, value in update_data.items():
            setattr(tournament, field, value)
        tournament.updated_at = datetime.utcnow()
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

    return tournament


@router.post("/tournaments/{tournament_id}/duplicate", response_model=TournamentResponse, status_code=201)
def duplicate_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Duplicate a tournament's configuration and enrollments into a new SETUP tournament"""
    try:
        source = session.get(Tournament, tournament_id)
        if not source:
            raise HTTPException(status_code=404, detail="Tournament not found")

        new_tournament = Tournament(
            board_id=source.board_id,
            name=f"{source.name} (Copy)",
            description=source.description,
            group_sizes=list(source.group_sizes or []),
            win_points=source.win_points,
            draw_points=source.draw_points,
            loss_points=source.loss_points,
        )
        session.add(new_tournament)
        session.flush()  # Get the ID

        source_enrollments = session.exec(
            select(TournamentParticipant)
            .where(TournamentParticipant.tournament_id == tournament_id)
            .order_by(TournamentParticipant.id)
        ).all()
        for enrollment in source_enrollments:
            session.add(TournamentParticipant(tournament_id=new_tournament.id, participant_id=enrollment.participant_id))

        session.commit()
        session.refresh(new_tournament)
        return new_tournament
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to duplicate tournament: {str(e)}")


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its groups, fixtures and enrollments"""
    try:
        tournament_exists = session.exec(select(func.count(Tournament.id)).where(Tournament.id == tournament_id)).one()
        if tournament_exists == 0:
            raise HTTPException(status_code=404, detail="Tournament not found")

        delete_tournament_rows(session, tournament_id)
        session.commit()
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete tournament: {str(e)}")
