"""
Tests for the tournament phase machine, driven through a database session.
"""

import random

import pytest
from sqlmodel import Session, func, select

from scoreboard.models import (
    Match,
    MatchRound,
    MatchStatus,
    Tournament,
    TournamentGroup,
    TournamentParticipant,
    TournamentPhase,
    TournamentStatus,
)
from scoreboard.services import tournament_engine
from scoreboard.services.tournament_errors import (
    DuplicateParticipantError,
    GroupCapacityMismatchError,
    IncompleteAssignmentError,
    IncompleteGroupStageError,
    InvalidConfigurationError,
    InvalidPhaseError,
    NotFoundError,
)
from scoreboard.utils.ranking import PointsScheme
from tests.conftest import test_engine as shared_engine


def _phase(session: Session, tournament_id: int) -> str:
    session.expire_all()
    return session.get(Tournament, tournament_id).phase


def _match_count(session: Session, tournament_id: int) -> int:
    group_ids = select(TournamentGroup.id).where(TournamentGroup.tournament_id == tournament_id)
    group_matches = session.exec(select(func.count(Match.id)).where(Match.group_id.in_(group_ids))).one()
    knockout = session.exec(select(func.count(Match.id)).where(Match.tournament_id == tournament_id)).one()
    return group_matches + knockout


def _to_group_stage(session: Session, tournament_id: int, seed: int = 1):
    tournament_engine.draw_groups(session, tournament_id, rng=random.Random(seed))
    return tournament_engine.generate_schedule(session, tournament_id)


def _play_group_stage(session: Session, tournament_id: int):
    """Player 1 wins every fixture 2-1, so group rank follows draw order."""
    for group in tournament_engine.get_group_standings(session, tournament_id):
        for match in group.group.matches:
            if match.status != MatchStatus.COMPLETED:
                tournament_engine.complete_match(session, tournament_id, match.id, 2, 1)


def _members(session: Session, tournament_id: int):
    groups = session.exec(
        select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id).order_by(TournamentGroup.position)
    ).all()
    return [[m.participant_id for m in g.members] for g in groups]


# ============================================================================
# Enrollment
# ============================================================================


def test_add_participants_enrolls_board_members(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2], enroll=False)

    created = tournament_engine.add_participants(session, tournament_id, participant_ids)

    assert [tp.participant_id for tp in created] == participant_ids
    assert all(tp.group_id is None for tp in created)
    tournament = session.get(Tournament, tournament_id)
    assert tournament.phase == TournamentPhase.SETUP
    assert tournament.revision == 1


def test_add_participants_rejects_other_boards(session: Session, make_tournament, make_board):
    tournament_id, _ = make_tournament([2, 2], enroll=False)
    _, foreign_ids = make_board(1, prefix="Other")

    with pytest.raises(NotFoundError):
        tournament_engine.add_participants(session, tournament_id, foreign_ids)


def test_add_participants_rejects_duplicates(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2])

    with pytest.raises(DuplicateParticipantError):
        tournament_engine.add_participants(session, tournament_id, participant_ids[:1])


def test_add_participants_rejects_repeated_ids_in_request(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2], enroll=False)

    with pytest.raises(DuplicateParticipantError):
        tournament_engine.add_participants(session, tournament_id, [participant_ids[0], participant_ids[0]])

    count = session.exec(
        select(func.count(TournamentParticipant.id)).where(TournamentParticipant.tournament_id == tournament_id)
    ).one()
    assert count == 0


def test_remove_participant(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2])

    tournament_engine.remove_participant(session, tournament_id, participant_ids[0])

    remaining = session.exec(
        select(TournamentParticipant.participant_id).where(TournamentParticipant.tournament_id == tournament_id)
    ).all()
    assert sorted(remaining) == sorted(participant_ids[1:])

    with pytest.raises(NotFoundError):
        tournament_engine.remove_participant(session, tournament_id, participant_ids[0])


def test_enrollment_closed_after_draw(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2])
    tournament_engine.draw_groups(session, tournament_id)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.remove_participant(session, tournament_id, participant_ids[0])
    with pytest.raises(InvalidPhaseError):
        tournament_engine.configure_tournament(session, tournament_id, group_sizes=[4])


def test_missing_tournament(session: Session):
    with pytest.raises(NotFoundError):
        tournament_engine.draw_groups(session, 999)


# ============================================================================
# Draw
# ============================================================================


def test_random_draw_creates_named_groups(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([6, 5])

    groups = tournament_engine.draw_groups(session, tournament_id, rng=random.Random(5))

    assert [(g.name, g.position, g.capacity) for g in groups] == [("Group A", 0, 6), ("Group B", 1, 5)]
    members = _members(session, tournament_id)
    assert [len(m) for m in members] == [6, 5]
    assert sorted(members[0] + members[1]) == sorted(participant_ids)
    assert _phase(session, tournament_id) == TournamentPhase.GROUP_DRAW


def test_draw_with_wrong_participant_count_changes_nothing(session: Session, make_tournament):
    tournament_id, participant_ids = make_tournament([2, 2])
    tournament_engine.remove_participant(session, tournament_id, participant_ids[0])

    with pytest.raises(InvalidConfigurationError):
        tournament_engine.draw_groups(session, tournament_id)

    assert _phase(session, tournament_id) == TournamentPhase.SETUP
    assert session.exec(select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id)).all() == []


def test_manual_draw(session: Session, make_tournament):
    tournament_id, (p1, p2, p3, p4) = make_tournament([2, 2])

    tournament_engine.draw_groups(session, tournament_id, assignments={p1: 1, p2: 0, p3: 1, p4: 0})

    assert _members(session, tournament_id) == [[p2, p4], [p1, p3]]


def test_manual_draw_validation(session: Session, make_tournament):
    tournament_id, (p1, p2, p3, p4) = make_tournament([2, 2])

    with pytest.raises(IncompleteAssignmentError):
        tournament_engine.draw_groups(session, tournament_id, assignments={p1: 0, p2: 0, p3: 1})
    with pytest.raises(GroupCapacityMismatchError):
        tournament_engine.draw_groups(session, tournament_id, assignments={p1: 0, p2: 0, p3: 0, p4: 1})

    assert _phase(session, tournament_id) == TournamentPhase.SETUP


def test_draw_runs_once(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    tournament_engine.draw_groups(session, tournament_id)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.draw_groups(session, tournament_id)


# ============================================================================
# Schedule
# ============================================================================


def test_schedule_in_setup_creates_no_fixtures(session: Session, make_tournament):
    tournament_id, _ = make_tournament([4, 4])

    with pytest.raises(InvalidPhaseError):
        tournament_engine.generate_schedule(session, tournament_id)

    assert _match_count(session, tournament_id) == 0
    assert _phase(session, tournament_id) == TournamentPhase.SETUP


def test_schedule_creates_round_robin_per_group(session: Session, make_tournament):
    tournament_id, _ = make_tournament([4, 3])

    matches = _to_group_stage(session, tournament_id)

    assert len(matches) == 6 + 3
    assert all(m.status == MatchStatus.PENDING and m.round == MatchRound.GROUP for m in matches)
    by_group = {}
    for m in matches:
        by_group.setdefault(m.group_id, []).append(m.match_number)
    assert sorted(sorted(numbers) for numbers in by_group.values()) == [[1, 2, 3], [1, 2, 3, 4, 5, 6]]

    tournament = session.get(Tournament, tournament_id)
    assert tournament.phase == TournamentPhase.GROUP_STAGE
    assert tournament.status == TournamentStatus.ACTIVE


def test_schedule_runs_once(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    _to_group_stage(session, tournament_id)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.generate_schedule(session, tournament_id)
    assert _match_count(session, tournament_id) == 2


# ============================================================================
# Match runtime
# ============================================================================


def test_start_then_complete_group_match(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    match = _to_group_stage(session, tournament_id)[0]

    started = tournament_engine.start_match(session, tournament_id, match.id)
    assert started.status == MatchStatus.IN_PROGRESS
    assert started.started_at is not None

    with pytest.raises(InvalidPhaseError):
        tournament_engine.start_match(session, tournament_id, match.id)

    result = tournament_engine.complete_match(session, tournament_id, match.id, 1, 1)
    assert result.match.status == MatchStatus.COMPLETED
    assert result.match.winner_id is None
    assert result.final_match is None
    assert result.tournament_phase == TournamentPhase.GROUP_STAGE

    with pytest.raises(InvalidPhaseError):
        tournament_engine.complete_match(session, tournament_id, match.id, 2, 0)


def test_complete_match_validation(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    match = _to_group_stage(session, tournament_id)[0]

    with pytest.raises(InvalidConfigurationError):
        tournament_engine.complete_match(session, tournament_id, match.id, -1, 0)
    with pytest.raises(NotFoundError):
        tournament_engine.complete_match(session, tournament_id, 9999, 1, 0)


def test_match_of_another_tournament_is_not_found(session: Session, make_tournament):
    first_id, _ = make_tournament([2, 2], name="First")
    second_id, _ = make_tournament([2, 2], name="Second")
    match = _to_group_stage(session, first_id)[0]
    _to_group_stage(session, second_id)

    with pytest.raises(NotFoundError):
        tournament_engine.complete_match(session, second_id, match.id, 1, 0)


# ============================================================================
# Advance to knockout
# ============================================================================


def test_advance_with_pending_fixture_keeps_phase(session: Session, make_tournament):
    tournament_id, _ = make_tournament([4, 4])
    matches = _to_group_stage(session, tournament_id)
    for match in matches[1:]:
        tournament_engine.complete_match(session, tournament_id, match.id, 2, 1)
    pending_group = session.get(TournamentGroup, matches[0].group_id)

    with pytest.raises(IncompleteGroupStageError) as exc_info:
        tournament_engine.advance_to_knockout(session, tournament_id)

    assert exc_info.value.group_name == pending_group.name
    assert _phase(session, tournament_id) == TournamentPhase.GROUP_STAGE
    assert session.exec(select(Match).where(Match.tournament_id == tournament_id)).all() == []


def test_advance_requires_two_groups(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2, 2])
    _to_group_stage(session, tournament_id)
    _play_group_stage(session, tournament_id)

    with pytest.raises(InvalidConfigurationError):
        tournament_engine.advance_to_knockout(session, tournament_id)
    assert _phase(session, tournament_id) == TournamentPhase.GROUP_STAGE


def test_advance_creates_cross_group_semifinals_and_seeds(session: Session, make_tournament):
    tournament_id, _ = make_tournament([4, 4])
    _to_group_stage(session, tournament_id)
    _play_group_stage(session, tournament_id)
    group_a, group_b = _members(session, tournament_id)

    semifinals = tournament_engine.advance_to_knockout(session, tournament_id)

    assert [(m.match_number, m.player1_id, m.player2_id) for m in semifinals] == [
        (1, group_a[0], group_b[1]),
        (2, group_b[0], group_a[1]),
    ]
    assert all(m.round == MatchRound.SEMIFINAL and m.group_id is None for m in semifinals)
    assert _phase(session, tournament_id) == TournamentPhase.KNOCKOUT

    seeds = dict(
        session.exec(
            select(TournamentParticipant.participant_id, TournamentParticipant.seed).where(
                TournamentParticipant.tournament_id == tournament_id
            )
        ).all()
    )
    assert [seeds[pid] for pid in group_a] == [1, 2, 3, 4]
    assert [seeds[pid] for pid in group_b] == [1, 2, 3, 4]

    with pytest.raises(InvalidPhaseError):
        tournament_engine.advance_to_knockout(session, tournament_id)


def test_custom_points_drive_standings(session: Session, make_tournament):
    tournament_id, _ = make_tournament([3, 3])
    tournament_engine.configure_tournament(session, tournament_id, points=PointsScheme(win=2, draw=1, loss=0))
    _to_group_stage(session, tournament_id)
    _play_group_stage(session, tournament_id)

    standings = tournament_engine.get_group_standings(session, tournament_id)
    assert [s.total_points for s in standings[0].standings] == [4, 2, 0]
    assert standings[0].standings[0].participant_name is not None


# ============================================================================
# Knockout
# ============================================================================


def test_knockout_to_completion(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    _to_group_stage(session, tournament_id)
    _play_group_stage(session, tournament_id)
    sf1, sf2 = tournament_engine.advance_to_knockout(session, tournament_id)

    # Group fixtures are closed once the knockout starts
    group_match = session.exec(select(Match).where(Match.group_id.is_not(None))).first()
    with pytest.raises(InvalidPhaseError):
        tournament_engine.complete_match(session, tournament_id, group_match.id, 1, 0)

    with pytest.raises(InvalidConfigurationError):
        tournament_engine.complete_match(session, tournament_id, sf1.id, 2, 2)

    first = tournament_engine.complete_match(session, tournament_id, sf1.id, 3, 0)
    assert first.final_match is None
    assert tournament_engine.get_bracket(session, tournament_id).finals == []

    second = tournament_engine.complete_match(session, tournament_id, sf2.id, 0, 3)
    final = second.final_match
    assert final is not None
    assert (final.round, final.match_number) == (MatchRound.FINAL, 1)
    assert (final.player1_id, final.player2_id) == (sf1.player1_id, sf2.player2_id)

    result = tournament_engine.complete_match(session, tournament_id, final.id, 1, 4)
    assert result.match.winner_id == sf2.player2_id
    assert result.tournament_phase == TournamentPhase.COMPLETED

    tournament = session.get(Tournament, tournament_id)
    assert tournament.status == TournamentStatus.COMPLETED
    bracket = tournament_engine.get_bracket(session, tournament_id)
    assert len(bracket.semifinals) == 2
    assert len(bracket.finals) == 1

    with pytest.raises(InvalidPhaseError):
        tournament_engine.cancel_tournament(session, tournament_id)


# ============================================================================
# Concurrency
# ============================================================================


def test_stale_revision_is_refused(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    stale = session.get(Tournament, tournament_id)
    assert stale.revision == 1

    with Session(shared_engine) as other:
        tournament_engine.configure_tournament(other, tournament_id, group_sizes=[1, 3])

    with pytest.raises(InvalidPhaseError):
        tournament_engine.commit_transition(session, stale, TournamentPhase.GROUP_DRAW)

    session.expire_all()
    tournament = session.get(Tournament, tournament_id)
    assert tournament.phase == TournamentPhase.SETUP
    assert tournament.group_sizes == [1, 3]
    assert tournament.revision == 2


def test_concurrent_draw_is_refused(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    # Load the tournament in this session before the other request draws
    session.get(Tournament, tournament_id)

    with Session(shared_engine) as other:
        tournament_engine.draw_groups(other, tournament_id, rng=random.Random(1))

    with pytest.raises(InvalidPhaseError):
        tournament_engine.draw_groups(session, tournament_id, rng=random.Random(2))

    groups = session.exec(select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id)).all()
    assert len(groups) == 2
    assert _phase(session, tournament_id) == TournamentPhase.GROUP_DRAW


def test_stale_start_does_not_reopen_completed_match(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    match_id = _to_group_stage(session, tournament_id)[0].id
    # This session still sees the fixture as PENDING
    assert session.get(Match, match_id).status == MatchStatus.PENDING

    with Session(shared_engine) as other:
        tournament_engine.complete_match(other, tournament_id, match_id, 3, 1)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.start_match(session, tournament_id, match_id)

    session.expire_all()
    match = session.get(Match, match_id)
    assert match.status == MatchStatus.COMPLETED
    assert (match.player1_score, match.player2_score) == (3, 1)
    assert match.winner_id == match.player1_id


def test_concurrent_completion_keeps_first_result(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    match_id = _to_group_stage(session, tournament_id)[0].id
    assert session.get(Match, match_id).status == MatchStatus.PENDING

    with Session(shared_engine) as other:
        tournament_engine.complete_match(other, tournament_id, match_id, 2, 0)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.complete_match(session, tournament_id, match_id, 0, 5)

    session.expire_all()
    match = session.get(Match, match_id)
    assert match.status == MatchStatus.COMPLETED
    assert (match.player1_score, match.player2_score) == (2, 0)


def test_forward_only_transitions(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])
    tournament = session.get(Tournament, tournament_id)

    with pytest.raises(InvalidPhaseError):
        tournament_engine.commit_transition(session, tournament, TournamentPhase.KNOCKOUT)
    assert _phase(session, tournament_id) == TournamentPhase.SETUP


def test_cancel_tournament(session: Session, make_tournament):
    tournament_id, _ = make_tournament([2, 2])

    tournament = tournament_engine.cancel_tournament(session, tournament_id)

    assert tournament.status == TournamentStatus.CANCELLED
    assert tournament.phase == TournamentPhase.SETUP

    with pytest.raises(InvalidPhaseError):
        tournament_engine.draw_groups(session, tournament_id)
