"""
Tournament Phase Machine

SETUP -> GROUP_DRAW -> GROUP_STAGE -> KNOCKOUT -> COMPLETED, strictly forward.

Every mutating operation:
1. Loads the tournament and checks its phase (and any other precondition)
2. Stages all new/changed rows in the session
3. Finishes with a compare-and-set UPDATE on the tournament row
   (WHERE phase = expected [AND revision = expected]) in the same transaction

If the compare-and-set matches no row, another request changed the tournament first:
the transaction is rolled back and InvalidPhaseError is raised. Either all rows of a
step are committed together with the phase change, or none are.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from scoreboard.models import (
    Match,
    MatchRound,
    MatchStatus,
    Participant,
    Tournament,
    TournamentGroup,
    TournamentParticipant,
    TournamentPhase,
    TournamentStatus,
)
from scoreboard.services.tournament_errors import (
    DuplicateParticipantError,
    IncompleteGroupStageError,
    InvalidConfigurationError,
    InvalidPhaseError,
    NotFoundError,
)
from scoreboard.services.tournament_rules import group_name, is_forward_transition
from scoreboard.utils.group_draw import assign_manual_groups, draw_random_groups, validate_group_plan
from scoreboard.utils.knockout import select_final, select_semifinals
from scoreboard.utils.ranking import PointsScheme, Standing, calculate_standings
from scoreboard.utils.round_robin import generate_round_robin

logger = logging.getLogger(__name__)

KNOCKOUT_ROUNDS = (MatchRound.SEMIFINAL, MatchRound.FINAL)


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class GroupStandings:
    group: TournamentGroup
    standings: List[Standing]


@dataclass
class Bracket:
    semifinals: List[Match] = field(default_factory=list)
    finals: List[Match] = field(default_factory=list)


@dataclass
class MatchCompletion:
    match: Match
    final_match: Optional[Match] = None
    tournament_phase: TournamentPhase = TournamentPhase.GROUP_STAGE


# ============================================================================
# Loading & Guards
# ============================================================================


def load_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def _require_not_cancelled(tournament: Tournament) -> None:
    if tournament.status == TournamentStatus.CANCELLED:
        raise InvalidPhaseError(f"Tournament {tournament.id} is cancelled")


def require_phase(tournament: Tournament, phase: TournamentPhase, action: str) -> None:
    _require_not_cancelled(tournament)
    if tournament.phase != phase:
        current = TournamentPhase(tournament.phase).value
        raise InvalidPhaseError(
            f"{action} can only be performed during {phase.value} phase (tournament {tournament.id} is {current})"
        )


def points_scheme(tournament: Tournament) -> PointsScheme:
    return PointsScheme(win=tournament.win_points, draw=tournament.draw_points, loss=tournament.loss_points)


def commit_transition(
    session: Session,
    tournament: Tournament,
    new_phase: Optional[TournamentPhase] = None,
    check_revision: bool = True,
    **values,
) -> None:
    """
    Commit staged rows together with a guarded tournament update.

    Args:
        session: Session holding the staged rows
        tournament: Tournament as loaded at the start of the operation
        new_phase: Next phase, or None to keep the current one
        check_revision: Also require the revision to be unchanged since loading
        **values: Extra tournament columns to set (e.g. status)

    Raises:
        InvalidPhaseError: the tournament changed concurrently (nothing is committed)
    """
    expected_phase = TournamentPhase(tournament.phase)
    expected_revision = tournament.revision
    target_phase = new_phase or expected_phase

    if target_phase != expected_phase and not is_forward_transition(expected_phase, target_phase):
        raise InvalidPhaseError(f"Cannot move tournament {tournament.id} from {expected_phase.value} to {target_phase.value}")

    statement = (
        update(Tournament)
        .where(Tournament.id == tournament.id, Tournament.phase == expected_phase.value)
        .values(
            phase=target_phase.value,
            revision=Tournament.revision + 1,
            updated_at=datetime.utcnow(),
            **values,
        )
        .execution_options(synchronize_session=False)
    )
    if check_revision:
        statement = statement.where(Tournament.revision == expected_revision)

    try:
        session.flush()
        result = session.execute(statement)
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Tournament %d write conflicted with an existing row: %s", tournament.id, exc.orig)
        raise InvalidPhaseError(f"Tournament {tournament.id} was modified concurrently; retry the operation")

    if result.rowcount != 1:
        session.rollback()
        logger.warning(
            "Compare-and-set refused for tournament %d (expected phase=%s revision=%d)",
            tournament.id,
            expected_phase.value,
            expected_revision,
        )
        raise InvalidPhaseError(f"Tournament {tournament.id} was modified concurrently; retry the operation")

    session.commit()
    session.refresh(tournament)

    if target_phase != expected_phase:
        logger.info("Tournament %d phase %s -> %s", tournament.id, expected_phase.value, target_phase.value)


def stage_match_update(session: Session, match: Match, **values) -> None:
    """
    Write fixture columns only if the fixture still has the status it was loaded with.

    The write joins the open transaction; `commit_transition` commits it. On a lost
    race the transaction is rolled back and InvalidPhaseError raised.
    """
    expected_status = MatchStatus(match.status)
    result = session.execute(
        update(Match)
        .where(Match.id == match.id, Match.status == expected_status.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning("Compare-and-set refused for match %d (expected status=%s)", match.id, expected_status.value)
        raise InvalidPhaseError(f"Match {match.id} was modified concurrently; retry the operation")

    session.refresh(match)


def _enrollments(session: Session, tournament_id: int) -> List[TournamentParticipant]:
    return session.exec(
        select(TournamentParticipant)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .order_by(TournamentParticipant.id)
    ).all()


def _groups(session: Session, tournament_id: int) -> List[TournamentGroup]:
    return session.exec(
        select(TournamentGroup)
        .where(TournamentGroup.tournament_id == tournament_id)
        .order_by(TournamentGroup.position)
    ).all()


def _group_members(session: Session, group_id: int) -> List[int]:
    members = session.exec(
        select(TournamentParticipant)
        .where(TournamentParticipant.group_id == group_id)
        .order_by(TournamentParticipant.group_position)
    ).all()
    return [m.participant_id for m in members]


def _group_matches(session: Session, group_id: int) -> List[Match]:
    return session.exec(select(Match).where(Match.group_id == group_id).order_by(Match.match_number)).all()


def _knockout_matches(session: Session, tournament_id: int, round_: MatchRound) -> List[Match]:
    return session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id, Match.round == round_.value)
        .order_by(Match.match_number)
    ).all()


def _participant_names(session: Session, participant_ids: Sequence[int]) -> Dict[int, str]:
    if not participant_ids:
        return {}
    rows = session.exec(select(Participant).where(Participant.id.in_(participant_ids))).all()
    return {p.id: p.name for p in rows}


# ============================================================================
# SETUP: Enrollment
# ============================================================================


def add_participants(session: Session, tournament_id: int, participant_ids: Sequence[int]) -> List[TournamentParticipant]:
    """
    Enroll board participants in a tournament (SETUP only).

    Raises:
        NotFoundError: tournament missing, or a participant not on the tournament's board
        InvalidPhaseError: tournament past SETUP
        DuplicateParticipantError: repeated ID in the request, or already enrolled
    """
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.SETUP, "Adding players")

    if not participant_ids:
        raise InvalidConfigurationError("At least one participant is required")
    if len(set(participant_ids)) != len(participant_ids):
        raise DuplicateParticipantError("Participant IDs in the request must be unique")

    on_board = set(
        session.exec(
            select(Participant.id).where(Participant.board_id == tournament.board_id, Participant.id.in_(participant_ids))
        ).all()
    )
    missing = sorted(pid for pid in participant_ids if pid not in on_board)
    if missing:
        raise NotFoundError(f"Participants {missing} do not exist on board {tournament.board_id}")

    enrolled = {tp.participant_id for tp in _enrollments(session, tournament_id)}
    duplicates = sorted(pid for pid in participant_ids if pid in enrolled)
    if duplicates:
        raise DuplicateParticipantError(f"Participants {duplicates} are already in the tournament")

    created = [TournamentParticipant(tournament_id=tournament_id, participant_id=pid) for pid in participant_ids]
    session.add_all(created)
    commit_transition(session, tournament)

    for tp in created:
        session.refresh(tp)
    logger.info("Tournament %d: enrolled %d participants", tournament_id, len(created))
    return created


def remove_participant(session: Session, tournament_id: int, participant_id: int) -> None:
    """Withdraw an enrolled participant (SETUP only)."""
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.SETUP, "Removing players")

    enrollment = session.exec(
        select(TournamentParticipant).where(
            TournamentParticipant.tournament_id == tournament_id,
            TournamentParticipant.participant_id == participant_id,
        )
    ).first()
    if not enrollment:
        raise NotFoundError(f"Participant {participant_id} is not enrolled in tournament {tournament_id}")

    session.delete(enrollment)
    commit_transition(session, tournament)
    logger.info("Tournament %d: removed participant %d", tournament_id, participant_id)


# ============================================================================
# SETUP: Configuration
# ============================================================================


def configure_tournament(
    session: Session,
    tournament_id: int,
    group_sizes: Optional[Sequence[int]] = None,
    points: Optional[PointsScheme] = None,
) -> Tournament:
    """Change the group-size plan and/or points scheme (SETUP only)."""
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.SETUP, "Changing group sizes or points")

    values = {}
    if group_sizes is not None:
        validate_group_plan(group_sizes)
        values["group_sizes"] = list(group_sizes)
    if points is not None:
        values.update(win_points=points.win, draw_points=points.draw, loss_points=points.loss)

    commit_transition(session, tournament, **values)
    logger.info("Tournament %d: configuration updated (%s)", tournament_id, sorted(values))
    return tournament


def cancel_tournament(session: Session, tournament_id: int) -> Tournament:
    """Mark a tournament CANCELLED. The phase is left as it was; a completed tournament stays completed."""
    tournament = load_tournament(session, tournament_id)
    if tournament.status == TournamentStatus.COMPLETED or tournament.phase == TournamentPhase.COMPLETED:
        raise InvalidPhaseError(f"Tournament {tournament_id} is already completed")
    if tournament.status == TournamentStatus.CANCELLED:
        return tournament

    commit_transition(session, tournament, status=TournamentStatus.CANCELLED.value)
    logger.info("Tournament %d cancelled", tournament_id)
    return tournament


# ============================================================================
# SETUP -> GROUP_DRAW: Draw
# ============================================================================


def draw_groups(
    session: Session,
    tournament_id: int,
    assignments: Optional[Dict[int, int]] = None,
    rng: Optional[random.Random] = None,
) -> List[TournamentGroup]:
    """
    Partition enrolled participants into groups and move to GROUP_DRAW.

    Args:
        assignments: participant_id -> group index for a manual draw; None draws randomly
        rng: Random source for the random draw

    Returns:
        Created groups in position order
    """
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.SETUP, "Draw")

    enrollments = _enrollments(session, tournament_id)
    participant_ids = [tp.participant_id for tp in enrollments]
    group_sizes = list(tournament.group_sizes or [])

    if assignments is not None:
        membership = assign_manual_groups(participant_ids, group_sizes, assignments)
        mode = "manual"
    else:
        membership = draw_random_groups(participant_ids, group_sizes, rng=rng)
        mode = "random"

    groups: List[TournamentGroup] = []
    for position, size in enumerate(group_sizes):
        group = TournamentGroup(
            tournament_id=tournament_id,
            name=group_name(position),
            position=position,
            capacity=size,
        )
        session.add(group)
        groups.append(group)

    by_participant = {tp.participant_id: tp for tp in enrollments}
    for group, members in zip(groups, membership):
        for position_in_group, pid in enumerate(members):
            enrollment = by_participant[pid]
            enrollment.group = group
            enrollment.group_position = position_in_group
            session.add(enrollment)

    commit_transition(session, tournament, TournamentPhase.GROUP_DRAW)

    for group in groups:
        session.refresh(group)
    logger.info(
        "Tournament %d: %s draw into %d groups (sizes %s)", tournament_id, mode, len(groups), group_sizes
    )
    return groups


# ============================================================================
# GROUP_DRAW -> GROUP_STAGE: Schedule
# ============================================================================


def generate_schedule(session: Session, tournament_id: int) -> List[Match]:
    """
    Create the round-robin fixtures of every group and move to GROUP_STAGE (status ACTIVE).

    Runs at most once per tournament: the phase change is committed with the fixtures.
    """
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.GROUP_DRAW, "Schedule generation")

    created: List[Match] = []
    for group in _groups(session, tournament_id):
        members = _group_members(session, group.id)
        for fixture in generate_round_robin(members):
            match = Match(
                group_id=group.id,
                player1_id=fixture.player1_id,
                player2_id=fixture.player2_id,
                player1_score=0,
                player2_score=0,
                status=MatchStatus.PENDING,
                round=MatchRound.GROUP,
                match_number=fixture.match_number,
            )
            session.add(match)
            created.append(match)

    commit_transition(session, tournament, TournamentPhase.GROUP_STAGE, status=TournamentStatus.ACTIVE.value)

    for match in created:
        session.refresh(match)
    logger.info("Tournament %d: generated %d group fixtures", tournament_id, len(created))
    return created


# ============================================================================
# Standings (read-only)
# ============================================================================


def get_group_standings(session: Session, tournament_id: int) -> List[GroupStandings]:
    """Current standings of every group, in group position order."""
    tournament = load_tournament(session, tournament_id)
    scheme = points_scheme(tournament)

    result: List[GroupStandings] = []
    for group in _groups(session, tournament_id):
        members = _group_members(session, group.id)
        standings = calculate_standings(
            members,
            _group_matches(session, group.id),
            points=scheme,
            names=_participant_names(session, members),
        )
        result.append(GroupStandings(group=group, standings=standings))
    return result


# ============================================================================
# GROUP_STAGE -> KNOCKOUT: Advance
# ============================================================================


def advance_to_knockout(session: Session, tournament_id: int) -> List[Match]:
    """
    Rank every group, write seeds, create the two semifinals and move to KNOCKOUT.

    Raises:
        InvalidPhaseError: not in GROUP_STAGE
        IncompleteGroupStageError: a group fixture is not COMPLETED (names the group)
        InvalidConfigurationError: not a two-group layout with two participants per group
    """
    tournament = load_tournament(session, tournament_id)
    require_phase(tournament, TournamentPhase.GROUP_STAGE, "Advancing to knockout")

    groups = _groups(session, tournament_id)
    for group in groups:
        unfinished = [m for m in _group_matches(session, group.id) if m.status != MatchStatus.COMPLETED]
        if unfinished:
            raise IncompleteGroupStageError(
                f"Not all matches in {group.name} are completed ({len(unfinished)} remaining)",
                group_name=group.name,
            )

    standings_by_group = [s.standings for s in get_group_standings(session, tournament_id)]
    pairings = select_semifinals(standings_by_group)

    enrollments = {tp.participant_id: tp for tp in _enrollments(session, tournament_id)}
    for standings in standings_by_group:
        for standing in standings:
            enrollment = enrollments[standing.participant_id]
            enrollment.seed = standing.rank
            session.add(enrollment)

    semifinals: List[Match] = []
    for pairing in pairings:
        match = Match(
            tournament_id=tournament_id,
            player1_id=pairing.player1_id,
            player2_id=pairing.player2_id,
            player1_score=0,
            player2_score=0,
            status=MatchStatus.PENDING,
            round=MatchRound.SEMIFINAL,
            match_number=pairing.match_number,
        )
        session.add(match)
        semifinals.append(match)

    commit_transition(session, tournament, TournamentPhase.KNOCKOUT)

    for match in semifinals:
        session.refresh(match)
    logger.info(
        "Tournament %d: semifinals %s",
        tournament_id,
        [(m.player1_id, m.player2_id) for m in semifinals],
    )
    return semifinals


# ============================================================================
# Match Runtime (GROUP_STAGE / KNOCKOUT)
# ============================================================================


def load_match(session: Session, tournament_id: int, match_id: int) -> Match:
    """Load a fixture that belongs to the tournament (group or knockout)."""
    match = session.get(Match, match_id)
    if match is not None:
        if match.tournament_id == tournament_id:
            return match
        if match.group_id is not None:
            group = session.get(TournamentGroup, match.group_id)
            if group and group.tournament_id == tournament_id:
                return match
    raise NotFoundError(f"Match {match_id} not found in tournament {tournament_id}")


def _require_scoring_phase(tournament: Tournament, match: Match) -> None:
    _require_not_cancelled(tournament)
    expected = TournamentPhase.GROUP_STAGE if match.round == MatchRound.GROUP else TournamentPhase.KNOCKOUT
    if tournament.phase != expected:
        raise InvalidPhaseError(
            f"{MatchRound(match.round).value} matches can only be played during {expected.value} phase"
        )


def start_match(session: Session, tournament_id: int, match_id: int) -> Match:
    """PENDING -> IN_PROGRESS."""
    tournament = load_tournament(session, tournament_id)
    match = load_match(session, tournament_id, match_id)
    _require_scoring_phase(tournament, match)

    if match.status != MatchStatus.PENDING:
        raise InvalidPhaseError(
            f"Match {match_id} is {MatchStatus(match.status).value}; only PENDING matches can be started"
        )

    stage_match_update(session, match, status=MatchStatus.IN_PROGRESS.value, started_at=datetime.utcnow())
    commit_transition(session, tournament, check_revision=False)
    session.refresh(match)
    return match


def complete_match(
    session: Session,
    tournament_id: int,
    match_id: int,
    player1_score: int,
    player2_score: int,
) -> MatchCompletion:
    """
    Record a fixture result.

    Group fixtures are accepted during GROUP_STAGE, knockout fixtures during KNOCKOUT.
    Completing the second semifinal creates the final; completing the final completes
    the tournament. Knockout fixtures cannot end level.
    """
    tournament = load_tournament(session, tournament_id)
    match = load_match(session, tournament_id, match_id)
    _require_scoring_phase(tournament, match)

    if match.status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED):
        raise InvalidPhaseError(f"Match {match_id} is already {MatchStatus(match.status).value}")
    if player1_score < 0 or player2_score < 0:
        raise InvalidConfigurationError("Scores must be non-negative")

    is_knockout = match.round in KNOCKOUT_ROUNDS
    if is_knockout and player1_score == player2_score:
        raise InvalidConfigurationError("Knockout matches cannot end in a draw")

    other_semifinals: List[Match] = []
    existing_finals: List[Match] = []
    if match.round == MatchRound.SEMIFINAL:
        other_semifinals = [m for m in _knockout_matches(session, tournament_id, MatchRound.SEMIFINAL) if m.id != match.id]
        existing_finals = _knockout_matches(session, tournament_id, MatchRound.FINAL)

    if player1_score > player2_score:
        winner_id = match.player1_id
    elif player2_score > player1_score:
        winner_id = match.player2_id
    else:
        winner_id = None

    completed_at = datetime.utcnow()
    stage_match_update(
        session,
        match,
        player1_score=player1_score,
        player2_score=player2_score,
        winner_id=winner_id,
        status=MatchStatus.COMPLETED.value,
        completed_at=completed_at,
        started_at=match.started_at or completed_at,
    )

    final_match: Optional[Match] = None
    if match.round == MatchRound.SEMIFINAL and not existing_finals:
        pairing = select_final([match] + other_semifinals)
        if pairing:
            final_match = Match(
                tournament_id=tournament_id,
                player1_id=pairing.player1_id,
                player2_id=pairing.player2_id,
                player1_score=0,
                player2_score=0,
                status=MatchStatus.PENDING,
                round=MatchRound.FINAL,
                match_number=pairing.match_number,
            )
            session.add(final_match)

    if match.round == MatchRound.FINAL:
        commit_transition(session, tournament, TournamentPhase.COMPLETED, status=TournamentStatus.COMPLETED.value)
    else:
        # Knockout writes must not race each other (final creation); group results only need the phase
        commit_transition(session, tournament, check_revision=is_knockout)

    session.refresh(match)
    if final_match is not None:
        session.refresh(final_match)
        logger.info(
            "Tournament %d: final created (%d vs %d)", tournament_id, final_match.player1_id, final_match.player2_id
        )
    logger.info(
        "Tournament %d: match %d (%s) completed %d-%d",
        tournament_id,
        match.id,
        MatchRound(match.round).value,
        player1_score,
        player2_score,
    )
    return MatchCompletion(match=match, final_match=final_match, tournament_phase=TournamentPhase(tournament.phase))


# ============================================================================
# Bracket (read-only)
# ============================================================================


def get_bracket(session: Session, tournament_id: int) -> Bracket:
    load_tournament(session, tournament_id)
    return Bracket(
        semifinals=_knockout_matches(session, tournament_id, MatchRound.SEMIFINAL),
        finals=_knockout_matches(session, tournament_id, MatchRound.FINAL),
    )
