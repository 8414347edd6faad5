"""
notifier.py
Fire-and-forget member notifications, written to the notifications table
from a background worker.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor

import db
from models import NOTIFICATION_KINDS

log = logging.getLogger(__name__)


def insert_notification(member_id: int, title: str, message: str, kind: str = "info") -> int:
    if kind not in NOTIFICATION_KINDS:
        raise ValueError(f"Unknown notification kind: {kind}")
    return db.execute(
        "INSERT INTO notifications(user_id, title, message, kind, created_at) VALUES(?,?,?,?,?)",
        (member_id, title, message, kind, db.now_iso()),
    )


class DbNotifier:
    def __init__(self):
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notifier")

    def notify(self, member_id: int, title: str, message: str, kind: str = "info") -> Future:
        future = self._pool.submit(insert_notification, member_id, title, message, kind)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            log.warning("Notification delivery failed: %s", exc)

    def close(self) -> None:
        self._pool.shutdown(wait=True)
