"""
Tournament Rules (Single Source of Truth)

Constants shared by the draw, ranking and knockout code. Import from here; do not
duplicate these values elsewhere.
"""

from typing import Dict

from scoreboard.models.tournament import TournamentPhase

# =============================================================================
# Scoring defaults (win / draw / loss)
# =============================================================================

DEFAULT_WIN_POINTS = 3
DEFAULT_DRAW_POINTS = 1
DEFAULT_LOSS_POINTS = 0

# =============================================================================
# Group layout
# =============================================================================

GROUP_NAME_PREFIX = "Group"
MAX_GROUPS = 26  # Group A .. Group Z

# Knockout is a two-group bracket: top two of each group reach the semifinals
KNOCKOUT_GROUP_COUNT = 2
ADVANCING_PER_GROUP = 2
SEMIFINAL_COUNT = 2

# =============================================================================
# Phase ordering
# =============================================================================

PHASE_ORDER: Dict[TournamentPhase, int] = {
    TournamentPhase.SETUP: 0,
    TournamentPhase.GROUP_DRAW: 1,
    TournamentPhase.GROUP_STAGE: 2,
    TournamentPhase.KNOCKOUT: 3,
    TournamentPhase.COMPLETED: 4,
}


def group_name(position: int) -> str:
    """Display name for a 0-based group position: 0 -> 'Group A', 1 -> 'Group B', ..."""
    if position < 0 or position >= MAX_GROUPS:
        raise ValueError(f"Group position must be in [0, {MAX_GROUPS}), got {position}")
    return f"{GROUP_NAME_PREFIX} {chr(ord('A') + position)}"


def is_forward_transition(current: TournamentPhase, new: TournamentPhase) -> bool:
    """True when `new` is the phase immediately after `current`."""
    return PHASE_ORDER[TournamentPhase(new)] == PHASE_ORDER[TournamentPhase(current)] + 1
