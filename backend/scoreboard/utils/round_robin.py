"""
Round Robin Scheduling

Single round robin within one group: every unordered pair meets exactly once.
Pairs are generated by a nested pass over membership order (i vs j for i < j),
and match numbers are the 1-based position in that order.
"""

from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class Fixture:
    match_number: int
    player1_id: int
    player2_id: int


def rr_fixture_count(n: int) -> int:
    """Round robin fixture count: n * (n-1) / 2 (0 for n < 2)."""
    if n < 2:
        return 0
    return (n * (n - 1)) // 2


def generate_round_robin(member_ids: Sequence[int]) -> List[Fixture]:
    """
    Generate the full single round-robin fixture list for one group.

    Args:
        member_ids: Group membership in draw order

    Returns:
        Fixtures in generation order, match_number 1..n(n-1)/2.
        Groups of size 0 or 1 yield an empty list.
    """
    if len(set(member_ids)) != len(member_ids):
        raise ValueError("Group membership contains duplicate participants")

    fixtures: List[Fixture] = []
    for i in range(len(member_ids)):
        for j in range(i + 1, len(member_ids)):
            fixtures.append(
                Fixture(
                    match_number=len(fixtures) + 1,
                    player1_id=member_ids[i],
                    player2_id=member_ids[j],
                )
            )
    return fixtures
