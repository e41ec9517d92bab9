"""
Typed Redis keys for the fast counter store.

Layout:
    launch:apps                    eligibility set of the active launch
    votes:<appId>                  vote counter for the current window
    user:<voterId>:vote:<appId>    voter marker (existence only, TTL bound)
    lock:<name>                    advisory lock
"""

from dataclasses import dataclass

from launch_ledger.models.domain.launch_domain import validate_app_id

ELIGIBILITY_SET_KEY = "launch:apps"
LOCK_KEY_PREFIX = "lock"


@dataclass(frozen=True, slots=True)
class VoteCounterKey:
    """Key of the per-app counter for the current launch window."""

    app_id: str

    def __post_init__(self):
        validate_app_id(self.app_id)

    @property
    def key(self) -> str:
        return f"votes:{self.app_id}"


@dataclass(frozen=True, slots=True)
class VoterMarkerKey:
    """Key encoding "this voter has voted for this app in the current window"."""

    voter_id: str
    app_id: str

    def __post_init__(self):
        if not isinstance(self.voter_id, str) or not self.voter_id.strip():
            raise ValueError("Voter id must be a non-empty string")
        validate_app_id(self.app_id)

    @property
    def key(self) -> str:
        return f"user:{self.voter_id}:vote:{self.app_id}"

    @staticmethod
    def pattern_for_app(app_id: str) -> str:
        """SCAN pattern matching every voter marker for one app."""
        return f"user:*:vote:{validate_app_id(app_id)}"


def lock_key(name: str) -> str:
    return f"{LOCK_KEY_PREFIX}:{name}"
