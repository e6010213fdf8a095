"""Base classes for the collaborators the post alerter depends on."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from .notification_types import NotificationType


@dataclass(frozen=True)
class NotificationKey:
    """Uniqueness key of a live notification."""

    user_id: int
    notification_type: NotificationType
    topic_id: int
    post_number: int


@dataclass
class ConsolidateResult:
    """Result of a consolidate-or-create write.

    Attributes:
        notification: The row that now holds the payload
        created: True if a new row was inserted, False if an existing one was
            consolidated
    """

    notification: Any
    created: bool


# Externally registered payload transform, applied before persisting
PayloadModifier = Callable[[dict], dict]


def identity_modifier(payload: dict) -> dict:
    return payload


class AuthorizationGate(ABC):
    """Answers whether a user may be notified about a post."""

    @abstractmethod
    def can_receive_post_notifications(self, user, post) -> bool:
        pass


class MuteIgnoreChecker(ABC):
    """Actor mute/ignore state between two users."""

    @abstractmethod
    def is_actor_muted_or_ignored_by(self, actor_id: int, target_id: int) -> bool:
        """Check whether target_id has muted or is ignoring actor_id."""
        pass


class MembershipChecker(ABC):
    """Topic and group notification levels."""

    @abstractmethod
    def topic_muted(self, user, topic) -> bool:
        pass

    @abstractmethod
    def group_muted(self, user, group_id: int) -> bool:
        pass


class ReadStateProvider(ABC):
    """Per-user read position on a topic."""

    @abstractmethod
    def first_unread_post(self, user, topic) -> Optional[Any]:
        """First post after the user's last read post, or None."""
        pass

    @abstractmethod
    def unread_count(self, user, topic) -> int:
        pass


class NotificationStore(ABC):
    """Durable notification records."""

    @abstractmethod
    def recent_for_topic_post(
        self, user, topic_id: int, post_number: int, limit: int = 10
    ) -> list:
        """Most recent notifications for a (topic, post number), newest first."""
        pass

    @abstractmethod
    def delete_by_types_and_topic(
        self, user, types: Iterable[NotificationType], topic
    ) -> int:
        """Delete the user's notifications of the given types on a topic.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    def consolidate_or_create(
        self,
        key: NotificationKey,
        data: str,
        post_action_id: Optional[int] = None,
        skip_send_email: bool = False,
    ) -> ConsolidateResult:
        """Atomically insert the notification or consolidate into the existing one.

        Raises:
            NotificationPersistenceError: If the write fails
        """
        pass


class AlertDispatcher(ABC):
    """Out-of-band alert delivery (push, email, ...)."""

    @abstractmethod
    def fire(
        self,
        user,
        post,
        notification_type: NotificationType,
        display_username: Optional[str],
        group_name: Optional[str] = None,
    ) -> None:
        pass


class RenotifyPolicy(ABC):
    """Decides whether an existing notification of the same type may be repeated."""

    @abstractmethod
    def should_notify_again(self, user, post, notification, options) -> bool:
        pass
