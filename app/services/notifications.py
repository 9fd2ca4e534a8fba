"""
Partner notifications.

Delivery (push, email) is an external service; the engine only decides
*whether* to notify and hands the event to a Notifier.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class NotificationEvent:
    PARTNER_ANSWERED = "partner_answered"
    PARTNER_JOINED = "partner_joined"


class Notifier(Protocol):
    def notify(self, user_id: str, event: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: records the decision, delivers nothing."""

    def notify(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        logger.info("notify user=%s event=%s payload=%s", user_id, event, payload)


default_notifier: Notifier = LoggingNotifier()
