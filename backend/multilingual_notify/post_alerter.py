"""Post alerter - decides whether, and in what form, a user is notified about a post.

Flow for one (user, type, post) candidate:
- Guard chain (bots, likes off, permissions, mutes, content languages)
- Dedupe against the user's recent notifications on the same post
- Collapse replies/posts on a topic into a single notification
- Build and persist the payload, then fire an alert for first notifications
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .collaborators import (
    AlertDispatcher,
    AuthorizationGate,
    MembershipChecker,
    MuteIgnoreChecker,
    NotificationKey,
    NotificationStore,
    PayloadModifier,
    ReadStateProvider,
    RenotifyPolicy,
    identity_modifier,
)
from .content_language import ContentLanguageFilter
from .errors import InvalidPayloadError
from .notification_data import build_notification_data, should_skip_email
from .notification_filter import NotificationFilter
from .notification_request import NotificationOptions, NotificationRequest
from .notification_store import SqlNotificationStore
from .notification_types import (
    ALERTABLE_TYPES,
    COLLAPSIBLE_TYPES,
    REPLY_SUPERSEDED_TYPES,
    NotificationType,
)
from .renotify_policy import DefaultRenotifyPolicy
from .translations import Translations, get_translations

logger = logging.getLogger(__name__)

RECENT_NOTIFICATION_LIMIT = 10
REPLIES_KEY = "embed.replies"


@dataclass
class NotificationOutcome:
    """Result of create_notification.

    Attributes:
        created: Whether a notification row was written
        notification_id: ID of the written row
        alerted: Whether an out-of-band alert was fired
        reason: Why nothing was written, when created is False
    """

    created: bool
    notification_id: Optional[int] = None
    alerted: bool = False
    reason: Optional[str] = None


class PostAlerter:
    """Creates, collapses and alerts post notifications."""

    def __init__(
        self,
        store: NotificationStore,
        authorization: AuthorizationGate,
        mute_checker: MuteIgnoreChecker,
        membership: MembershipChecker,
        read_state: ReadStateProvider,
        alert_dispatcher: AlertDispatcher,
        renotify_policy: Optional[RenotifyPolicy] = None,
        content_languages: Optional[ContentLanguageFilter] = None,
        translations: Optional[Translations] = None,
        payload_modifier: PayloadModifier = identity_modifier,
        default_options: Optional[NotificationOptions] = None,
    ):
        self.store = store
        self.read_state = read_state
        self.alert_dispatcher = alert_dispatcher
        self.renotify_policy = renotify_policy or DefaultRenotifyPolicy()
        self.content_languages = content_languages or ContentLanguageFilter()
        self.translations = translations or get_translations()
        self.payload_modifier = payload_modifier
        self.default_options = default_options
        self.filter = NotificationFilter(
            authorization, mute_checker, membership, self.content_languages
        )

    @classmethod
    def for_session(
        cls,
        db: Session,
        authorization: AuthorizationGate,
        alert_dispatcher: AlertDispatcher,
        **kwargs,
    ) -> "PostAlerter":
        """Build an alerter whose store, mutes and read state come from one session."""
        store = SqlNotificationStore(db)
        return cls(
            store=store,
            authorization=authorization,
            mute_checker=store,
            membership=store,
            read_state=store,
            alert_dispatcher=alert_dispatcher,
            **kwargs,
        )

    def _skip(self, notification_type: NotificationType, reason: str) -> NotificationOutcome:
        logger.debug(f"Blocked {notification_type.name.lower()}: {reason}")
        return NotificationOutcome(created=False, reason=reason)

    def create_notification(
        self,
        user,
        notification_type,
        post,
        options: Optional[NotificationOptions] = None,
    ) -> NotificationOutcome:
        """Create (or consolidate) a notification for user about post.

        Args:
            user: Recipient
            notification_type: NotificationType (or its integer value)
            post: Post the notification is about
            options: Caller options, merged over the alerter's defaults

        Returns:
            NotificationOutcome; created is False when a rule suppressed it

        Raises:
            NotificationPersistenceError: If the store fails
            InvalidPayloadError: If the payload is not JSON-serializable
        """
        notification_type = NotificationType(notification_type)
        options = (options or NotificationOptions()).merged_with(self.default_options)
        request = NotificationRequest(user, notification_type, post, options)

        reason = self.filter.check(request)
        if reason:
            return NotificationOutcome(created=False, reason=reason)

        topic = request.topic
        existing = list(
            self.store.recent_for_topic_post(
                user, post.topic_id, post.post_number, limit=RECENT_NOTIFICATION_LIMIT
            )
        )

        # Don't notify the same user about the same type on the same post
        same_type = next(
            (n for n in existing if n.notification_type == notification_type), None
        )
        if same_type is not None and not self.renotify_policy.should_notify_again(
            user, post, same_type, options
        ):
            return self._skip(notification_type, "already_notified")

        if notification_type in REPLY_SUPERSEDED_TYPES and any(
            n.notification_type == NotificationType.REPLIED for n in existing
        ):
            return self._skip(notification_type, "reply_exists")

        original_post = post
        original_username = options.display_username or post.username
        display_username = options.display_username

        if notification_type in COLLAPSIBLE_TYPES:
            self.store.delete_by_types_and_topic(user, COLLAPSIBLE_TYPES, topic)
            post = self.read_state.first_unread_post(user, topic) or post
            count = self.read_state.unread_count(user, topic)
            if count > 1:
                display_username = self.translations.t(
                    REPLIES_KEY, user.effective_locale, count=count
                )

        data = build_notification_data(
            topic, post, original_post, original_username, display_username, options
        )
        data = self.payload_modifier(data)
        try:
            serialized = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(
                f"Notification payload for user {user.id} is not serializable: {e}"
            ) from e

        result = self.store.consolidate_or_create(
            NotificationKey(
                user_id=user.id,
                notification_type=notification_type,
                topic_id=post.topic_id,
                post_number=post.post_number,
            ),
            serialized,
            post_action_id=options.post_action_id,
            skip_send_email=should_skip_email(user, original_post, options),
        )
        notification = result.notification
        logger.info(
            f"{'Created' if result.created else 'Consolidated'} {notification_type.name.lower()} "
            f"notification {notification.id} for user {user.id}"
        )

        alerted = False
        if result.created and not existing and notification_type in ALERTABLE_TYPES:
            group = options.group
            alerted = self._fire_alert(
                user,
                original_post,
                notification_type,
                original_username,
                group.name if group is not None else None,
            )

        return NotificationOutcome(
            created=True, notification_id=notification.id, alerted=alerted
        )

    def _fire_alert(
        self,
        user,
        post,
        notification_type: NotificationType,
        username: Optional[str],
        group_name: Optional[str],
    ) -> bool:
        """Fire the out-of-band alert. Failures never undo the notification."""
        try:
            self.alert_dispatcher.fire(user, post, notification_type, username, group_name)
        except Exception:
            logger.warning(
                f"Failed to fire {notification_type.name.lower()} alert for user {user.id}",
                exc_info=True,
            )
            return False
        return True
