"""Default policy for repeating a notification of the same type on the same post."""

from datetime import datetime, timedelta
from typing import Callable

from .collaborators import RenotifyPolicy
from .models import utcnow
from .notification_types import LikeNotificationFrequency, NotificationType

RENOTIFY_WINDOW = timedelta(days=1)


class DefaultRenotifyPolicy(RenotifyPolicy):
    """Edits and likes may notify again; everything else is notified once.

    - edited: after a day, or when someone else edited the post
    - liked: always, or daily when the user asked for "first time and daily"
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow, window: timedelta = RENOTIFY_WINDOW):
        self.clock = clock
        self.window = window

    def should_notify_again(self, user, post, notification, options) -> bool:
        if notification.notification_type == NotificationType.EDITED:
            return self._should_notify_edit(post, notification, options)
        if notification.notification_type == NotificationType.LIKED:
            return self._should_notify_like(user, notification)
        return False

    def _is_stale(self, notification) -> bool:
        return notification.created_at < self.clock() - self.window

    def _should_notify_edit(self, post, notification, options) -> bool:
        editor = options.display_username or post.username
        return self._is_stale(notification) or notification.data_hash.get("display_username") != editor

    def _should_notify_like(self, user, notification) -> bool:
        frequency = user.like_notification_frequency
        if frequency == LikeNotificationFrequency.ALWAYS:
            return True
        if frequency == LikeNotificationFrequency.FIRST_TIME_AND_DAILY:
            return self._is_stale(notification)
        return False
