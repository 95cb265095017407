"""
Cascading deletes for tournaments and boards.

Child rows are removed before parents with plain SQL so the ORM never tries to
null out foreign keys on rows it is about to delete.
"""

import logging

from sqlmodel import Session, select, text

from scoreboard.models import Tournament

logger = logging.getLogger(__name__)


def delete_tournament_rows(session: Session, tournament_id: int) -> None:
    """Delete a tournament with its fixtures, groups and enrollments. Caller commits."""
    params = {"tournament_id": tournament_id}

    # 1. Group fixtures, then knockout fixtures
    session.execute(
        text("DELETE FROM match WHERE group_id IN (SELECT id FROM tournamentgroup WHERE tournament_id = :tournament_id)"),
        params,
    )
    session.execute(text("DELETE FROM match WHERE tournament_id = :tournament_id"), params)

    # 2. Enrollments reference groups
    session.execute(text("DELETE FROM tournamentparticipant WHERE tournament_id = :tournament_id"), params)
    session.execute(text("DELETE FROM tournamentgroup WHERE tournament_id = :tournament_id"), params)

    # 3. The tournament itself
    session.execute(text("DELETE FROM tournament WHERE id = :tournament_id"), params)
    logger.info("Deleted tournament %d", tournament_id)


def delete_board_rows(session: Session, board_id: int) -> None:
    """Delete a board with its tournaments and participants. Caller commits."""
    tournament_ids = session.exec(select(Tournament.id).where(Tournament.board_id == board_id)).all()
    for tournament_id in tournament_ids:
        delete_tournament_rows(session, tournament_id)

    session.execute(text("DELETE FROM participant WHERE board_id = :board_id"), {"board_id": board_id})
    session.execute(text("DELETE FROM board WHERE id = :board_id"), {"board_id": board_id})
    logger.info("Deleted board %d (%d tournaments)", board_id, len(tournament_ids))
