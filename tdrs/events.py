from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol


logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    TRAIT_ADDED = "trait_added"
    TRAIT_REMOVED = "trait_removed"
    STAT_CHANGED = "stat_changed"
    TICK_COMPLETED = "tick_completed"
    SOCIAL_RULE_ADDED = "social_rule_added"
    SOCIAL_RULE_REMOVED = "social_rule_removed"
    SOCIAL_EVENT_DISPATCHED = "social_event_dispatched"


@dataclass(frozen=True)
class Notification:
    """A (subject, payload) event delivered to host subscribers.

    ``subject`` is the uid of the entity (``"alice"``) or relationship
    (``"alice->bob"``) the notification is about.
    """

    kind: NotificationKind
    subject: str
    payload: object = None


class NotificationHandler(Protocol):
    def __call__(self, notification: Notification) -> None:
        ...


class NotificationBus:
    """Synchronous in-process dispatch. Handlers run in subscription order."""

    def __init__(self) -> None:
        self._handlers: Dict[Optional[NotificationKind], List[NotificationHandler]] = {}

    def subscribe(self, kind: Optional[NotificationKind], handler: NotificationHandler) -> Callable[[], None]:
        """Register ``handler`` for ``kind`` (``None`` means every kind).

        Returns a callable that removes the subscription.
        """
        handlers = self._handlers.setdefault(kind, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: NotificationHandler) -> Callable[[], None]:
        return self.subscribe(None, handler)

    def publish(self, notification: Notification) -> None:
        logger.debug(
            "tdrs.notification",
            extra={"kind": notification.kind.value, "subject": notification.subject},
        )
        for handler in list(self._handlers.get(notification.kind, ())):
            handler(notification)
        for handler in list(self._handlers.get(None, ())):
            handler(notification)

    def emit(self, kind: NotificationKind, subject: str, payload: object = None) -> None:
        self.publish(Notification(kind=kind, subject=subject, payload=payload))


__all__ = ["NotificationKind", "Notification", "NotificationHandler", "NotificationBus"]
