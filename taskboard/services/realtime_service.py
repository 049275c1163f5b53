"""Realtime service — row-change notifications streamed over SSE.

Rows written through the ORM session become change events:

    {"table": "cards", "event": "INSERT|UPDATE|DELETE", "id": "...", "board_id": "...|None"}

Events are collected after each flush, published to the app's ChangeHub
after the transaction commits, and dropped on rollback. Subscribers
register (table, board_id|None) filters and read from their own queue;
the browser refetches the whole board on every event.

The hub is in-process: it sees commits made by this app instance only.
"""

import json
import logging
import queue
import threading

from flask import current_app, has_app_context
from sqlalchemy import event as sa_event

from taskboard.extensions import db

logger = logging.getLogger(__name__)

_PENDING_KEY = "taskboard_pending_changes"

SUBSCRIBER_QUEUE_SIZE = 100

# Tables a board page listens to; None means every row of the table
BOARD_TABLES_SCOPED = ("columns", "labels")
BOARD_TABLES_ALL = ("cards", "card_labels", "subtasks", "attachments", "comments", "activities")

DASHBOARD_FILTERS = [("boards", None), ("cards", None)]


def board_filters(board_id):
    return (
        [(table, board_id) for table in BOARD_TABLES_SCOPED]
        + [(table, None) for table in BOARD_TABLES_ALL]
    )


class Subscription:
    """One listener: a set of (table, board_id) filters plus a bounded queue."""

    def __init__(self, filters):
        self.filters = list(filters)
        self._queue = queue.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)

    def matches(self, change):
        for table, board_id in self.filters:
            if table != change["table"]:
                continue
            if board_id is None or board_id == change.get("board_id"):
                return True
        return False

    def put(self, change):
        try:
            self._queue.put_nowait(change)
        except queue.Full:
            # The client refetches everything on the next event anyway
            logger.warning(f"Subscriber queue full, dropping {change['table']} event")

    def get(self, timeout=None):
        """Next event, or None if nothing arrived within `timeout` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class ChangeHub:
    """Thread-safe fan-out of change events to subscriptions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions = set()

    def subscribe(self, filters):
        sub = Subscription(filters)
        with self._lock:
            self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, sub):
        with self._lock:
            self._subscriptions.discard(sub)

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change):
        """Deliver to every matching subscription. Returns the delivery count."""
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]
        for sub in targets:
            sub.put(change)
        return len(targets)


def get_hub():
    return current_app.extensions["realtime"]


# ──────────────────────────────────────────────
# Session hooks
# ──────────────────────────────────────────────

def _change_for(obj, kind):
    table = getattr(obj, "__tablename__", None)
    if table is None:
        return None
    if table == "boards":
        board_id = obj.id
    else:
        board_id = getattr(obj, "board_id", None)
    row_id = getattr(obj, "id", None) or getattr(obj, "card_id", None)
    return {"table": table, "event": kind, "id": row_id, "board_id": board_id}


def _after_flush(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in session.new:
        change = _change_for(obj, "INSERT")
        if change:
            pending.append(change)
    for obj in session.dirty:
        if not session.is_modified(obj, include_collections=False):
            continue
        change = _change_for(obj, "UPDATE")
        if change:
            pending.append(change)
    for obj in session.deleted:
        change = _change_for(obj, "DELETE")
        if change:
            pending.append(change)


def _after_commit(session):
    # Savepoint releases land here too; publish on the outer commit only
    if session.in_nested_transaction():
        return

    pending = session.info.pop(_PENDING_KEY, [])
    if not pending or not has_app_context():
        return

    hub = current_app.extensions.get("realtime")
    if hub is None:
        return

    seen = set()
    for change in pending:
        key = (change["table"], change["event"], change["id"])
        if key in seen:
            continue
        seen.add(key)
        hub.publish(change)


def _after_soft_rollback(session, previous_transaction):
    # Savepoint rollbacks keep the outer transaction's changes
    if not previous_transaction.nested:
        session.info.pop(_PENDING_KEY, None)


def init_realtime(app):
    """Attach a ChangeHub to the app and hook the ORM session once."""
    app.extensions["realtime"] = ChangeHub()

    if not sa_event.contains(db.session, "after_flush", _after_flush):
        sa_event.listen(db.session, "after_flush", _after_flush)
        sa_event.listen(db.session, "after_commit", _after_commit)
        sa_event.listen(db.session, "after_soft_rollback", _after_soft_rollback)


# ──────────────────────────────────────────────
# SSE
# ──────────────────────────────────────────────

def format_sse(change):
    return f"event: change\ndata: {json.dumps(change)}\n\n"


def event_stream(hub, sub, heartbeat=30):
    """Yield SSE frames for `sub` until the client goes away.

    Emits a `: heartbeat` comment whenever `heartbeat` seconds pass
    without an event.
    """
    try:
        yield ": connected\n\n"
        while True:
            change = sub.get(timeout=heartbeat)
            if change is None:
                yield ": heartbeat\n\n"
                continue
            yield format_sse(change)
    finally:
        hub.unsubscribe(sub)
        logger.debug("SSE subscriber disconnected")
