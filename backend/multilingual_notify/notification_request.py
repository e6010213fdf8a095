"""Request data classes for the post alerter."""

from dataclasses import dataclass, fields
from typing import Any, Optional

from .notification_types import NotificationType


@dataclass(frozen=True)
class NotificationOptions:
    """Caller options for a single notification.

    Attributes:
        user_id: Acting user; defaults to the post author
        display_username: Username shown in the notification
        group: Group the notification was sent through (needs id and name)
        revision_number: Post revision that triggered the notification
        custom_data: Extra key/value pairs merged into the payload
        skip_send_email_to: Emails that must not receive an email for it
        skip_send_email: Fallback email suppression flag
        post_action_id: Post action (like, flag, ...) that caused it
    """

    user_id: Optional[int] = None
    display_username: Optional[str] = None
    group: Optional[Any] = None
    revision_number: Optional[int] = None
    custom_data: Optional[dict] = None
    skip_send_email_to: Optional[tuple] = None
    skip_send_email: Optional[bool] = None
    post_action_id: Optional[int] = None

    def merged_with(self, defaults: Optional["NotificationOptions"]) -> "NotificationOptions":
        """Fill unset fields from defaults."""
        if defaults is None:
            return self
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            values[f.name] = value if value is not None else getattr(defaults, f.name)
        return NotificationOptions(**values)


@dataclass(frozen=True)
class NotificationRequest:
    """A candidate notification, as seen by the guard chain."""

    user: Any
    notification_type: NotificationType
    post: Any
    options: NotificationOptions

    @property
    def topic(self):
        return self.post.topic if self.post is not None else None

    @property
    def acting_user_id(self) -> Optional[int]:
        if self.options.user_id is not None:
            return self.options.user_id
        return self.post.user_id if self.post is not None else None
