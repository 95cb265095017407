"""
Translate tournament engine errors into HTTP errors.

Status codes come from the error class (404 not found, 409 phase/duplicate conflicts,
400 validation). The detail keeps the machine-readable code prefix, e.g.
"INVALID_PHASE: Draw can only be performed during SETUP phase ...".
"""

from fastapi import HTTPException
from sqlmodel import Session

from scoreboard.services.tournament_errors import TournamentError


def http_error(session: Session, exc: TournamentError) -> HTTPException:
    """Roll back anything the failed operation staged and build the HTTPException to raise."""
    session.rollback()
    return HTTPException(status_code=exc.status_code, detail=str(exc))
