"""
Group Standings and Ranking

Accumulates each participant's record from completed fixtures and orders the table:

1. total_points DESC
2. point_difference DESC
3. points_for DESC
4. wins DESC

Full ties keep participant enumeration order (stable sort). Ranks are strict
ordinals 1..n; two participants never share a rank.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from scoreboard.models.match import MatchStatus
from scoreboard.services.tournament_rules import DEFAULT_DRAW_POINTS, DEFAULT_LOSS_POINTS, DEFAULT_WIN_POINTS


@dataclass(frozen=True)
class PointsScheme:
    win: int = DEFAULT_WIN_POINTS
    draw: int = DEFAULT_DRAW_POINTS
    loss: int = DEFAULT_LOSS_POINTS


@dataclass
class Standing:
    participant_id: int
    participant_name: Optional[str] = None
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0
    point_difference: int = 0
    total_points: int = 0
    rank: int = 0

    @property
    def played(self) -> int:
        return self.wins + self.losses + self.draws

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def ranking_key(standing: Standing):
    """Sort key implementing the tie-break chain (ascending sort puts rank 1 first)."""
    return (
        -standing.total_points,
        -standing.point_difference,
        -standing.points_for,
        -standing.wins,
    )


def _record_result(standing: Standing, own_score: int, opponent_score: int) -> None:
    standing.points_for += own_score
    standing.points_against += opponent_score
    if own_score > opponent_score:
        standing.wins += 1
    elif own_score < opponent_score:
        standing.losses += 1
    else:
        standing.draws += 1


def calculate_standings(
    participant_ids: Sequence[int],
    matches: Iterable[Any],
    points: Optional[PointsScheme] = None,
    names: Optional[Dict[int, str]] = None,
) -> List[Standing]:
    """
    Compute ranked standings for one participant pool.

    Args:
        participant_ids: Pool members in enumeration order (the final tie-break)
        matches: Fixture-shaped objects with player1_id, player2_id, player1_score,
                 player2_score and status (Match rows work directly)
        points: Win/draw/loss point values (defaults 3/1/0)
        names: Optional participant_id -> display name

    Returns:
        Standings ordered best-first with rank 1..n assigned.

    Only COMPLETED fixtures are counted. Fixtures involving a participant outside the
    pool are skipped.
    """
    points = points or PointsScheme()
    names = names or {}

    table: Dict[int, Standing] = {}
    for pid in participant_ids:
        table[pid] = Standing(participant_id=pid, participant_name=names.get(pid))

    for match in matches:
        if match.status != MatchStatus.COMPLETED:
            continue
        first = table.get(match.player1_id)
        second = table.get(match.player2_id)
        if first is None or second is None:
            continue
        _record_result(first, match.player1_score, match.player2_score)
        _record_result(second, match.player2_score, match.player1_score)

    standings = list(table.values())
    for standing in standings:
        standing.point_difference = standing.points_for - standing.points_against
        standing.total_points = standing.wins * points.win + standing.draws * points.draw + standing.losses * points.loss

    standings.sort(key=ranking_key)
    for index, standing in enumerate(standings):
        standing.rank = index + 1

    return standings
