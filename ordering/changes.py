"""
Row-level change notifications.

The service publishes a ChangeEvent after every successful write.  List views
subscribe and either merge the event into the rows they already hold
(apply_change) or refetch the views named by affected_views().
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

EventType = Literal["INSERT", "UPDATE", "DELETE"]

# table → views whose cached data is stale after a change to that table
_VIEWS_BY_TABLE: dict[str, tuple[str, ...]] = {
    "purchase_orders":           ("purchase_orders", "dashboard_stats"),
    "suppliers":                 ("suppliers", "dashboard_stats"),
    "supplier_contacts":         ("suppliers",),
    "purchase_order_line_items": ("purchase_orders",),
}


class ChangeEvent(BaseModel):
    """One insert, update or delete on a table."""
    table: str
    event_type: EventType
    record: dict = Field(default_factory=dict)       # new row (empty for DELETE)
    old_record: dict = Field(default_factory=dict)   # previous row (empty for INSERT)
    occurred_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def record_id(self) -> Optional[str]:
        return self.record.get("id") or self.old_record.get("id")


def affected_views(table: str) -> tuple[str, ...]:
    """Return the views to refresh after a change to *table*."""
    return _VIEWS_BY_TABLE.get(table, ())


def apply_change(rows: list[dict], event: ChangeEvent, key: str = "id") -> list[dict]:
    """
    Merge *event* into a list of rows and return the new list.

    INSERT puts the row first (lists are newest-first); an INSERT for a row
    that is already present replaces it, so replaying an event is harmless.
    UPDATE replaces the matching row, DELETE removes it.  *rows* is never
    mutated.
    """
    row_id = event.record.get(key) if event.record else event.old_record.get(key)
    if row_id is None:
        return list(rows)

    if event.event_type == "DELETE":
        return [r for r in rows if r.get(key) != row_id]

    present = any(r.get(key) == row_id for r in rows)
    if present:
        return [dict(event.record) if r.get(key) == row_id else r for r in rows]
    if event.event_type == "INSERT":
        return [dict(event.record)] + list(rows)
    # UPDATE for a row this view never loaded (e.g. filtered out): leave it alone
    return list(rows)


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed:
    """
    In-process publish/subscribe registry for ChangeEvents.

    Subscribers run synchronously on the publishing thread after the write
    has committed.  A failing subscriber is logged and does not stop the
    others from being notified.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[Optional[str], Subscriber]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber, table: Optional[str] = None) -> Callable[[], None]:
        """Register *callback* (for one table, or all when None).  Returns an unsubscribe function."""
        entry = (table, callback)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [cb for table, cb in self._subscribers if table in (None, event.table)]
        logger.debug(
            "Change %s %s id=%s → %d subscriber(s)",
            event.table, event.event_type, event.record_id, len(targets),
        )
        for callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed for %s %s", event.table, event.event_type)
