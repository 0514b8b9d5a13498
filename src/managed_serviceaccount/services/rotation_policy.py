"""
Token rotation policy.

Decides from the recorded status alone whether a new token must be issued.
There is no separate rotation schedule; the live expiration timestamp is the
only input besides the clock.
"""

from datetime import UTC, datetime, timedelta

from ..constants import DEFAULT_REFRESH_THRESHOLD_SECONDS
from ..models import ManagedServiceAccountStatus

DEFAULT_REFRESH_THRESHOLD = timedelta(seconds=DEFAULT_REFRESH_THRESHOLD_SECONDS)


def should_issue_token(
    status: ManagedServiceAccountStatus,
    now: datetime | None = None,
    refresh_threshold: timedelta = DEFAULT_REFRESH_THRESHOLD,
) -> bool:
    """
    Decide whether a token must be issued in this pass.

    Args:
        status: Currently published status
        now: Current time (defaults to the wall clock, UTC)
        refresh_threshold: Remaining lifetime below which tokens are rotated

    Returns:
        True if no token is recorded or the recorded one expires within
        the threshold (already expired included)
    """
    if not status.token:
        return True

    # A token without a recorded expiry cannot be trusted to be fresh
    if status.expiration_timestamp is None:
        return True

    if now is None:
        now = datetime.now(UTC)

    expiration = status.expiration_timestamp
    if expiration.tzinfo is None:
        expiration = expiration.replace(tzinfo=UTC)

    return expiration - now < refresh_threshold
