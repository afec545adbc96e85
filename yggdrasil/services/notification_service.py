# yggdrasil/services/notification_service.py
"""Outbound attendance notifications.

Delivery is not wired to any channel yet: notifications are logged and held
in a bounded in-process outbox until the alert-processing job flushes them.
"""
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional
import logging

from ..utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class AttendanceNotification:
    recipient_id: Optional[str]
    recipient_type: str  # student | teacher | coordinator | admin
    subject: str
    message: str
    priority: str = "medium"
    channels: List[str] = field(default_factory=lambda: ["email", "dashboard"])
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        return payload


class NotificationDispatcher:
    def __init__(self, max_pending: int = 1000):
        self._outbox: Deque[AttendanceNotification] = deque(maxlen=max_pending)
        self.delivered_count = 0
        self.dropped_count = 0

    @property
    def pending(self) -> int:
        return len(self._outbox)

    def dispatch(self, notification: AttendanceNotification):
        if self._outbox.maxlen is not None and len(self._outbox) == self._outbox.maxlen:
            # deque drops the oldest entry on append
            self.dropped_count += 1
            logger.warning(f"Notification outbox full ({self._outbox.maxlen}), dropping oldest entry")

        logger.info(
            f"Queued {notification.priority} priority notification for "
            f"{notification.recipient_type} {notification.recipient_id}: {notification.subject}"
        )
        self._outbox.append(notification)

    def flush(self) -> List[AttendanceNotification]:
        """Hand every queued notification to its channels and empty the outbox."""
        sent = []
        while self._outbox:
            notification = self._outbox.popleft()
            logger.info(
                f"Delivering notification via {', '.join(notification.channels)} to "
                f"{notification.recipient_type} {notification.recipient_id}: {notification.message}"
            )
            sent.append(notification)

        self.delivered_count += len(sent)
        if sent:
            logger.info(f"Flushed {len(sent)} notification(s)")
        return sent

    def peek(self) -> List[AttendanceNotification]:
        return list(self._outbox)
