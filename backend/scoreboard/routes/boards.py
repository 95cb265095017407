"""
Boards and their participants.

A board owns the participant pool that tournaments enroll from.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session, select

from scoreboard.database import get_session
from scoreboard.models.board import Board, BoardType
from scoreboard.models.participant import Participant
from scoreboard.services.tournament_cleanup import delete_board_rows

router = APIRouter()


class BoardCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: BoardType = BoardType.LEADERBOARD
    participants: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("participants")
    @classmethod
    def validate_participant_names(cls, v):
        cleaned = [name.strip() for name in v]
        if any(not name or len(name) > 50 for name in cleaned):
            raise ValueError("participant names must be 1-50 characters")
        return cleaned


class BoardResponse(BaseModel):
    id: int
    name: str
    type: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class ParticipantResponse(BaseModel):
    id: int
    board_id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


def _get_board(session: Session, board_id: int) -> Board:
    board = session.get(Board, board_id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    return board


@router.get("/boards", response_model=List[BoardResponse])
def list_boards(session: Session = Depends(get_session)):
    """List all boards"""
    return session.exec(select(Board).order_by(Board.id)).all()


@router.post("/boards", response_model=BoardResponse, status_code=201)
def create_board(board_data: BoardCreate, session: Session = Depends(get_session)):
    """Create a board, optionally with its initial participants"""
    board = Board(name=board_data.name, type=board_data.type)
    session.add(board)
    session.flush()

    for name in board_data.participants:
        session.add(Participant(board_id=board.id, name=name))

    session.commit()
    session.refresh(board)
    return board


@router.get("/boards/{board_id}", response_model=BoardResponse)
def get_board(board_id: int, session: Session = Depends(get_session)):
    """Get a board by ID"""
    return _get_board(session, board_id)


@router.delete("/boards/{board_id}", status_code=204)
def delete_board(board_id: int, session: Session = Depends(get_session)):
    """Delete a board with its participants and tournaments"""
    _get_board(session, board_id)
    try:
        delete_board_rows(session, board_id)
        session.commit()
    except Exception as e:
        session.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to delete board: {str(e)}")
    return Response(status_code=204)


@router.get("/boards/{board_id}/participants", response_model=List[ParticipantResponse])
def list_participants(board_id: int, session: Session = Depends(get_session)):
    """List a board's participants in creation order"""
    _get_board(session, board_id)
    return session.exec(select(Participant).where(Participant.board_id == board_id).order_by(Participant.id)).all()


@router.post("/boards/{board_id}/participants", response_model=ParticipantResponse, status_code=201)
def create_participant(board_id: int, participant_data: ParticipantCreate, session: Session = Depends(get_session)):
    """Add a participant to a board"""
    _get_board(session, board_id)
    name = participant_data.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="name is required")

    participant = Participant(board_id=board_id, name=name)
    session.add(participant)
    session.commit()
    session.refresh(participant)
    return participant
