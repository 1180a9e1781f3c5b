from sqlalchemy import Column, DateTime, event, inspect

from mordomozap.core.time import utcnow


class ConnectionTimestampsMixin:
    """
    Row timestamps for integration records.

    ``status_changed_at`` moves only when the connection status column
    actually changes, so repeated status polls that confirm the same state
    do not reset it. ``updated_at`` moves on every flushed change.
    """

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    status_changed_at = Column(DateTime, default=utcnow, nullable=True)

    @staticmethod
    def _stamp_update(mapper, connection, target) -> None:
        now = utcnow()
        target.updated_at = now
        if inspect(target).attrs.status.history.has_changes():
            target.status_changed_at = now

    @classmethod
    def __declare_last__(cls) -> None:
        event.listen(cls, "before_update", cls._stamp_update)
