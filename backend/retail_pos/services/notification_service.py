# Overview: Post-commit notification contract for sales reaching a terminal status.

"""
The engine hands the dispatcher a read-only snapshot of the committed sale
and moves on. Delivery channels (email, SMS, WhatsApp) live outside this
service; the default sender only writes a log line.

Failures are logged and dropped. The dispatcher never retries and the
engine never inspects its outcome.
"""

from __future__ import annotations

import atexit
import copy
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from types import MappingProxyType
from typing import Any, Callable, Mapping

from flask import Flask, current_app

logger = logging.getLogger(__name__)

# payment_status -> event name sent to the dispatcher
SALE_EVENTS = {
    "completed": "sale.completed",
    "cancelled": "sale.cancelled",
    "refunded": "sale.refunded",
    "partially_refunded": "sale.partially_refunded",
}

Sender = Callable[[str, Mapping[str, Any]], None]


def log_sender(event: str, snapshot: Mapping[str, Any]) -> None:
    customer = snapshot.get("customer") or {}
    logger.info(
        "Notification %s sale_number=%s customer=%s total_cents=%s",
        event,
        snapshot.get("sale_number"),
        customer.get("id"),
        snapshot.get("total_cents"),
    )


def freeze_snapshot(data: dict) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(data))


class NotificationDispatcher:
    """Fire-and-forget dispatch, optionally on a worker pool."""

    def __init__(self, sender: Sender | None = None, executor: Executor | None = None):
        self.sender = sender or log_sender
        self.executor = executor

    def dispatch(self, event: str, snapshot: Mapping[str, Any]) -> None:
        if self.executor is None:
            self._deliver(event, snapshot)
            return
        self.executor.submit(self._deliver, event, snapshot)

    def _deliver(self, event: str, snapshot: Mapping[str, Any]) -> None:
        try:
            self.sender(event, snapshot)
        except Exception:
            logger.exception("Notification %s for sale %s failed", event, snapshot.get("id"))


def init_app(app: Flask) -> NotificationDispatcher:
    executor = None
    if app.config.get("NOTIFICATIONS_ASYNC", True):
        executor = ThreadPoolExecutor(
            max_workers=app.config.get("NOTIFICATION_WORKERS", 2),
            thread_name_prefix="sale-notify",
        )
        # Drain queued notifications at interpreter exit
        atexit.register(executor.shutdown, wait=True)
    dispatcher = NotificationDispatcher(
        sender=app.config.get("NOTIFICATION_SENDER"),
        executor=executor,
    )
    app.extensions["notifications"] = dispatcher
    return dispatcher


def get_dispatcher() -> NotificationDispatcher | None:
    return current_app.extensions.get("notifications")
