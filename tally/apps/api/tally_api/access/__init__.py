"""Authorization and data-visibility core.

Every function takes the acting user id explicitly.
"""

from tally_api.access.errors import (
    AccessError,
    BadRequest,
    Conflict,
    Decision,
    Expired,
    Forbidden,
    NotFound,
    Outcome,
    Unauthenticated,
)
from tally_api.access.roles import Standing, has_authority_over

__all__ = [
    "AccessError",
    "BadRequest",
    "Conflict",
    "Decision",
    "Expired",
    "Forbidden",
    "NotFound",
    "Outcome",
    "Standing",
    "Unauthenticated",
    "has_authority_over",
]
