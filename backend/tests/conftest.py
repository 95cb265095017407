from typing import Callable, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from scoreboard.database import enable_sqlite_foreign_keys, get_session
from scoreboard.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Foreign keys switched on, as on the application engine
# 4. Tables created before and dropped after every test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from scoreboard.models.board import Board  # noqa: F401
    from scoreboard.models.match import Match  # noqa: F401
    from scoreboard.models.participant import Participant  # noqa: F401
    from scoreboard.models.tournament import Tournament  # noqa: F401
    from scoreboard.models.tournament_group import TournamentGroup  # noqa: F401
    from scoreboard.models.tournament_participant import TournamentParticipant  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_board(session: Session) -> Callable[..., Tuple[int, List[int]]]:
    """Factory: create a board with `count` participants, return (board_id, participant_ids)."""
    from scoreboard.models.board import Board
    from scoreboard.models.participant import Participant

    def _make(count: int, prefix: str = "Player") -> Tuple[int, List[int]]:
        board = Board(name=f"{prefix} board")
        session.add(board)
        session.commit()
        session.refresh(board)

        participants = [Participant(board_id=board.id, name=f"{prefix} {i + 1}") for i in range(count)]
        session.add_all(participants)
        session.commit()
        ids = []
        for p in participants:
            session.refresh(p)
            ids.append(p.id)
        return board.id, ids

    return _make


@pytest.fixture
def make_tournament(session: Session, make_board) -> Callable[..., Tuple[int, List[int]]]:
    """Factory: SETUP tournament with every board participant enrolled, return (tournament_id, participant_ids)."""
    from scoreboard.models.tournament import Tournament
    from scoreboard.services import tournament_engine

    def _make(group_sizes: List[int], name: str = "Cup", enroll: bool = True) -> Tuple[int, List[int]]:
        board_id, participant_ids = make_board(sum(group_sizes))
        tournament = Tournament(board_id=board_id, name=name, group_sizes=list(group_sizes))
        session.add(tournament)
        session.commit()
        session.refresh(tournament)
        if enroll:
            tournament_engine.add_participants(session, tournament.id, participant_ids)
        return tournament.id, participant_ids

    return _make
