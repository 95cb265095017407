"""
Tournament engine error taxonomy.

Errors are raised by precondition checks or by a refused compare-and-set write; a failed
operation is rolled back and leaves the tournament exactly as it was.
"""

from typing import Optional


class TournamentError(Exception):
    """Base exception for tournament engine errors"""

    code = "TOURNAMENT_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class InvalidPhaseError(TournamentError):
    """Operation is not legal in the tournament's current phase"""

    code = "INVALID_PHASE"
    status_code = 409


class InvalidConfigurationError(TournamentError):
    """Group-size plan or knockout layout is inconsistent with the participants"""

    code = "INVALID_CONFIGURATION"


class IncompleteAssignmentError(TournamentError):
    """Manual draw leaves an enrolled participant without a group"""

    code = "INCOMPLETE_ASSIGNMENT"


class GroupCapacityMismatchError(TournamentError):
    """Manual draw over- or under-fills a group, or names a group that does not exist"""

    code = "GROUP_CAPACITY_MISMATCH"


class IncompleteGroupStageError(TournamentError):
    """Advancement attempted while a group fixture is not completed"""

    code = "INCOMPLETE_GROUP_STAGE"

    def __init__(self, message: str, group_name: Optional[str] = None):
        super().__init__(message)
        self.group_name = group_name


class NotFoundError(TournamentError):
    """Tournament, group, fixture or participant does not exist"""

    code = "NOT_FOUND"
    status_code = 404


class DuplicateParticipantError(TournamentError):
    """Enrollment or pairing would repeat a participant"""

    code = "DUPLICATE_PARTICIPANT"
    status_code = 409
