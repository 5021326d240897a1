"""Error taxonomy for the synchronization core."""


class SyncError(Exception):
    """Base exception for synchronization failures."""

    terminal = False


class StoreUnavailable(SyncError):
    """The initial load from the remote store failed.

    Terminal for the session: nothing else syncs until activation is retried.
    """

    terminal = True


class SubscriptionError(SyncError):
    """A push subscription reported an error; cached data stays visible."""


class WriteRejected(SyncError):
    """A remote write issued for a mutation intent failed."""


class InvalidInput(SyncError):
    """A mutation intent was rejected locally before reaching the store."""
