"""
Knockout Selection

Two-group bracket, top two of each group advance:
- Semifinal 1: Group A 1st vs Group B 2nd
- Semifinal 2: Group B 1st vs Group A 2nd
- Final: winner of semifinal 1 vs winner of semifinal 2
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from scoreboard.models.match import MatchStatus
from scoreboard.services.tournament_errors import InvalidConfigurationError
from scoreboard.services.tournament_rules import ADVANCING_PER_GROUP, KNOCKOUT_GROUP_COUNT, SEMIFINAL_COUNT
from scoreboard.utils.ranking import Standing


@dataclass(frozen=True)
class Pairing:
    match_number: int
    player1_id: int
    player2_id: int


def _by_rank(standings: Sequence[Standing], rank: int) -> Optional[Standing]:
    for standing in standings:
        if standing.rank == rank:
            return standing
    return None


def select_semifinals(group_standings: Sequence[Sequence[Standing]]) -> List[Pairing]:
    """
    Cross-pair the top two of two groups.

    Args:
        group_standings: Ranked standings per group, in group position order

    Returns:
        [semifinal 1, semifinal 2]

    Raises:
        InvalidConfigurationError: not exactly two groups, or a group with fewer than
            two ranked participants
    """
    if len(group_standings) != KNOCKOUT_GROUP_COUNT:
        raise InvalidConfigurationError(
            f"Semifinals require exactly {KNOCKOUT_GROUP_COUNT} groups, tournament has {len(group_standings)}"
        )

    group_a, group_b = group_standings
    a_first, a_second = _by_rank(group_a, 1), _by_rank(group_a, ADVANCING_PER_GROUP)
    b_first, b_second = _by_rank(group_b, 1), _by_rank(group_b, ADVANCING_PER_GROUP)

    if not all((a_first, a_second, b_first, b_second)):
        raise InvalidConfigurationError("Not enough participants in groups to advance to semifinals")

    return [
        Pairing(match_number=1, player1_id=a_first.participant_id, player2_id=b_second.participant_id),
        Pairing(match_number=2, player1_id=b_first.participant_id, player2_id=a_second.participant_id),
    ]


def select_final(semifinals: Sequence[Any]) -> Optional[Pairing]:
    """
    Pair the semifinal winners once both semifinals are completed.

    Args:
        semifinals: Semifinal fixtures (match_number, status, winner_id)

    Returns:
        Final pairing, or None while a semifinal is unfinished or has no winner
    """
    if len(semifinals) != SEMIFINAL_COUNT:
        return None

    ordered = sorted(semifinals, key=lambda m: m.match_number)
    if any(m.status != MatchStatus.COMPLETED or m.winner_id is None for m in ordered):
        return None

    first, second = ordered
    if first.winner_id == second.winner_id:
        raise InvalidConfigurationError("Semifinal winners must be different participants")

    return Pairing(match_number=1, player1_id=first.winner_id, player2_id=second.winner_id)
