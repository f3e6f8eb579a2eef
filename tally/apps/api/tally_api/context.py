"""Request context management for observability.

Context variables for request tracking across async boundaries.
The authenticated user and organization are attached by session auth so
every log line emitted while handling a request carries them.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated user for the current request
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Organization of the authenticated user (empty when the user has none)
org_id_var: ContextVar[str] = ContextVar("org_id", default="")
