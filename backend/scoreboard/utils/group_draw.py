"""
Group Draw - partition enrolled participants into fixed-size groups

Two modes:
1. Random: uniform shuffle, then contiguous slices in group-size order
2. Manual: explicit participant -> group index map, validated all-or-nothing

Both return membership as a list of groups, each an ordered list of participant IDs.
Membership order is the order the round-robin scheduler pairs participants in.
"""

import random
from typing import Dict, List, Optional, Sequence

from scoreboard.services.tournament_errors import (
    DuplicateParticipantError,
    GroupCapacityMismatchError,
    IncompleteAssignmentError,
    InvalidConfigurationError,
)
from scoreboard.services.tournament_rules import MAX_GROUPS, group_name


def validate_group_plan(group_sizes: Sequence[int]) -> None:
    """Check a plan on its own, before any participant is enrolled: 1..26 groups of at least one."""
    if not group_sizes:
        raise InvalidConfigurationError("At least one group is required")
    if len(group_sizes) > MAX_GROUPS:
        raise InvalidConfigurationError(f"At most {MAX_GROUPS} groups are supported, got {len(group_sizes)}")
    if any(size < 1 for size in group_sizes):
        raise InvalidConfigurationError(f"Every group needs at least one participant, got {list(group_sizes)}")


def validate_group_sizes(participant_count: int, group_sizes: Sequence[int]) -> None:
    """
    Check that a group-size plan can hold exactly `participant_count` participants.

    Raises:
        InvalidConfigurationError: empty plan, too many groups, negative size,
            or sum(group_sizes) != participant_count
    """
    if not group_sizes:
        raise InvalidConfigurationError("No group sizes provided")
    if len(group_sizes) > MAX_GROUPS:
        raise InvalidConfigurationError(f"At most {MAX_GROUPS} groups are supported, got {len(group_sizes)}")
    if any(size < 0 for size in group_sizes):
        raise InvalidConfigurationError(f"Group sizes must be non-negative, got {list(group_sizes)}")

    total = sum(group_sizes)
    if total != participant_count:
        raise InvalidConfigurationError(
            f"Participant count ({participant_count}) does not match sum of group sizes ({total})"
        )


def _require_unique(participant_ids: Sequence[int]) -> None:
    if len(set(participant_ids)) != len(participant_ids):
        raise DuplicateParticipantError("Participant list contains duplicates")


def draw_random_groups(
    participant_ids: Sequence[int],
    group_sizes: Sequence[int],
    rng: Optional[random.Random] = None,
) -> List[List[int]]:
    """
    Randomly draw participants into groups.

    Args:
        participant_ids: Enrolled participant IDs
        group_sizes: Target size per group, in group order (e.g. [6, 5])
        rng: Random source; defaults to a fresh SystemRandom-seeded Random

    Returns:
        One list per group; group 0 receives the first s0 shuffled participants, etc.

    Raises:
        InvalidConfigurationError: no participants or sizes inconsistent with the count
    """
    if not participant_ids:
        raise InvalidConfigurationError("No participants provided")
    _require_unique(participant_ids)
    validate_group_sizes(len(participant_ids), group_sizes)

    rng = rng or random.Random()
    shuffled = list(participant_ids)
    rng.shuffle(shuffled)

    groups: List[List[int]] = []
    start = 0
    for size in group_sizes:
        groups.append(shuffled[start : start + size])
        start += size

    return groups


def assign_manual_groups(
    participant_ids: Sequence[int],
    group_sizes: Sequence[int],
    assignments: Dict[int, int],
) -> List[List[int]]:
    """
    Build group membership from an explicit participant -> group index map.

    Validation (all-or-nothing; nothing is returned unless every check passes):
    1. every assigned participant is enrolled, and every enrolled participant is assigned
    2. every group index is in [0, len(group_sizes))
    3. each group receives exactly its target size

    Membership order inside a group follows `participant_ids` (enrollment order).

    Raises:
        InvalidConfigurationError: sizes inconsistent with the participant count
        IncompleteAssignmentError: unknown or unassigned participants
        GroupCapacityMismatchError: bad index, or a group over- or under-filled
    """
    _require_unique(participant_ids)
    validate_group_sizes(len(participant_ids), group_sizes)

    enrolled = set(participant_ids)
    unknown = sorted(pid for pid in assignments if pid not in enrolled)
    if unknown:
        raise IncompleteAssignmentError(f"Participants are not enrolled in this tournament: {unknown}")

    missing = [pid for pid in participant_ids if pid not in assignments]
    if missing:
        raise IncompleteAssignmentError(
            f"All participants must be assigned to a group; unassigned: {sorted(missing)}"
        )

    group_count = len(group_sizes)
    for pid, index in assignments.items():
        if index < 0 or index >= group_count:
            raise GroupCapacityMismatchError(
                f"Invalid group index {index} for participant {pid}; expected 0..{group_count - 1}"
            )

    groups: List[List[int]] = [[] for _ in range(group_count)]
    for pid in participant_ids:
        groups[assignments[pid]].append(pid)

    for index, (members, size) in enumerate(zip(groups, group_sizes)):
        if len(members) != size:
            raise GroupCapacityMismatchError(
                f"{group_name(index)} should have {size} participants, but has {len(members)}"
            )

    return groups
