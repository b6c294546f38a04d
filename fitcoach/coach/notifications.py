"""Notification sinks.

Presentation is out of scope: the assistant hands structured notifications to
a sink and moves on.
"""

from typing import Protocol

from loguru import logger

from fitcoach.coach.schemas.notifications import Notification, NotificationType


class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    """Sink that only records notifications in the log."""

    def notify(self, notification: Notification) -> None:
        logger.info(
            "Notification emitted",
            notification_type=notification.type,
            title=notification.title,
        )


class CollectingNotificationSink:
    """Sink that keeps notifications in memory until drained (used by the API and tests)."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        logger.debug("Notification collected", notification_type=notification.type, title=notification.title)

    def drain(self) -> list[Notification]:
        drained, self.notifications = self.notifications, []
        return drained


def notify(sink: NotificationSink, type_: NotificationType, title: str, message: str) -> None:
    sink.notify(Notification(type=type_, title=title, message=message))
