"""
Domain errors raised by the launch ledger services.

Each error carries an error_kind used by the routes to pick an HTTP status
and a machine-readable code clients can branch on. Store failures are not
domain errors: see DatabaseError and CounterStoreError.
"""


class LaunchLedgerError(Exception):
    """Base exception for launch ledger domain failures."""

    error_kind = "conflict"
    code = "LAUNCH_LEDGER_ERROR"

    def __init__(self, message: str, *, launch_date: str | None = None):
        super().__init__(message)
        self.launch_date = launch_date


# Conflict


class LaunchAlreadyExists(LaunchLedgerError):
    code = "LAUNCH_ALREADY_EXISTS"


class ConflictingActiveLaunch(LaunchLedgerError):
    code = "CONFLICTING_ACTIVE_LAUNCH"


class FlushInProgress(LaunchLedgerError):
    code = "FLUSH_IN_PROGRESS"


class VoteConflict(LaunchLedgerError):
    """Conflict that still reports the current counter value."""

    def __init__(self, message: str, *, count: int):
        super().__init__(message)
        self.count = count


class AlreadyVoted(VoteConflict):
    code = "ALREADY_VOTED"


class NotVoted(VoteConflict):
    code = "NOT_VOTED"


# Precondition failed


class NoActiveLaunch(LaunchLedgerError):
    error_kind = "precondition"
    code = "NO_ACTIVE_LAUNCH"


class VotingClosed(LaunchLedgerError):
    error_kind = "precondition"
    code = "VOTING_CLOSED"


class AppNotEligible(LaunchLedgerError):
    error_kind = "precondition"
    code = "APP_NOT_ELIGIBLE"


class LaunchNotActive(LaunchLedgerError):
    error_kind = "precondition"
    code = "LAUNCH_NOT_ACTIVE"


class InvalidLaunchInput(LaunchLedgerError):
    error_kind = "precondition"
    code = "INVALID_INPUT"


# Not found


class LaunchNotFound(LaunchLedgerError):
    error_kind = "not_found"
    code = "LAUNCH_NOT_FOUND"
