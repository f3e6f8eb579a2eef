"""Access failure taxonomy and decision outcomes.

Decision functions return a Decision instead of raising, so callers (and
tests) can inspect the outcome. Decision.enforce() raises the matching
AccessError, which main.py maps to an RFC 9457 problem+json response.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AccessError(Exception):
    """Base class for authorization failures surfaced to the client."""

    status_code = 500
    title = "Internal Server Error"
    problem_type = "about:blank"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.title)
        self.detail = detail or self.title


class BadRequest(AccessError):
    status_code = 400
    title = "Bad Request"
    problem_type = "https://tally.dev/problems/bad-request"


class Unauthenticated(AccessError):
    status_code = 401
    title = "Unauthorized"
    problem_type = "https://tally.dev/problems/unauthenticated"


class Forbidden(AccessError):
    status_code = 403
    title = "Forbidden"
    problem_type = "https://tally.dev/problems/forbidden"


class NotFound(AccessError):
    status_code = 404
    title = "Not Found"
    problem_type = "https://tally.dev/problems/not-found"


class Conflict(AccessError):
    status_code = 409
    title = "Conflict"
    problem_type = "https://tally.dev/problems/conflict"


class Expired(AccessError):
    status_code = 410
    title = "Gone"
    problem_type = "https://tally.dev/problems/expired"


class Outcome(str, Enum):
    ALLOWED = "ALLOWED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    EXPIRED = "EXPIRED"


_OUTCOME_ERRORS: dict[Outcome, type[AccessError]] = {
    Outcome.FORBIDDEN: Forbidden,
    Outcome.NOT_FOUND: NotFound,
    Outcome.CONFLICT: Conflict,
    Outcome.EXPIRED: Expired,
}


@dataclass(frozen=True)
class Decision:
    """Result of an authorization check."""

    outcome: Outcome
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(Outcome.ALLOWED)

    @classmethod
    def forbid(cls, reason: str) -> "Decision":
        return cls(Outcome.FORBIDDEN, reason)

    @classmethod
    def not_found(cls, reason: str) -> "Decision":
        return cls(Outcome.NOT_FOUND, reason)

    @classmethod
    def conflict(cls, reason: str) -> "Decision":
        return cls(Outcome.CONFLICT, reason)

    @classmethod
    def expired(cls, reason: str) -> "Decision":
        return cls(Outcome.EXPIRED, reason)

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        """Raise the AccessError matching this outcome; no-op when allowed."""
        if self.allowed:
            return
        raise _OUTCOME_ERRORS[self.outcome](self.reason or "")


def reject_nulls(changes: dict, required: tuple[str, ...]) -> None:
    """Raise BadRequest when a partial update sets a required field to null."""
    nulls = [name for name in required if name in changes and changes[name] is None]
    if nulls:
        raise BadRequest(f"{', '.join(nulls)} cannot be null")
