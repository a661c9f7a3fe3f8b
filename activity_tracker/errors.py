"""
Errors Module

Exception types shared by the storage, import and query layers.
"""


class ActivityTrackerError(Exception):
    """Base class for all activity tracker errors."""


class ValidationError(ActivityTrackerError):
    """A record or legacy line is malformed. Never retried."""


class TransientStoreError(ActivityTrackerError):
    """A save failed for a reason that may go away (connection, timeout, contention)."""


class InitializationError(ActivityTrackerError):
    """A storage backend could not be brought up."""


class QueryError(ActivityTrackerError):
    """A read could not be served."""


class InvalidFilterError(QueryError):
    """The query filter itself is malformed."""


class StoreUnavailableError(QueryError):
    """Reads need the primary store and it is not active."""
