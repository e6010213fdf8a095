"""Notification filter - decides whether a notification may be created at all."""

import logging
from typing import Optional

from .collaborators import AuthorizationGate, MembershipChecker, MuteIgnoreChecker
from .content_language import ContentLanguageFilter
from .notification_request import NotificationRequest
from .notification_types import LikeNotificationFrequency, NotificationType

logger = logging.getLogger(__name__)


class NotificationFilter:
    """Ordered guard chain. The first guard that matches blocks the notification."""

    def __init__(
        self,
        authorization: AuthorizationGate,
        mute_checker: MuteIgnoreChecker,
        membership: MembershipChecker,
        content_languages: ContentLanguageFilter,
    ):
        self.authorization = authorization
        self.mute_checker = mute_checker
        self.membership = membership
        self.content_languages = content_languages

        # (reason, guard) pairs; a guard returns True to block
        self.guards = [
            ("missing_target", self._missing_target),
            ("likes_disabled", self._likes_disabled),
            ("not_authorized", self._not_authorized),
            ("staged_mailinglist", self._staged_mailinglist),
            ("actor_muted", self._actor_muted),
            ("topic_muted", self._topic_muted),
            ("group_muted", self._group_muted),
            ("content_language", self._outside_content_languages),
        ]

    def check(self, request: NotificationRequest) -> Optional[str]:
        """Run the guard chain.

        Args:
            request: The candidate notification

        Returns:
            Reason of the first guard that blocked, or None if all passed
        """
        trigger = request.notification_type.name.lower()

        for reason, guard in self.guards:
            if guard(request):
                logger.debug(f"Blocked {trigger}: {reason}")
                return reason

        return None

    def _missing_target(self, request: NotificationRequest) -> bool:
        user, post = request.user, request.post
        if user is None or user.bot or post is None:
            return True
        return request.topic is None

    def _likes_disabled(self, request: NotificationRequest) -> bool:
        return (
            request.notification_type == NotificationType.LIKED
            and request.user.like_notification_frequency == LikeNotificationFrequency.NEVER
        )

    def _not_authorized(self, request: NotificationRequest) -> bool:
        return not self.authorization.can_receive_post_notifications(
            request.user, request.post
        )

    def _staged_mailinglist(self, request: NotificationRequest) -> bool:
        category = request.topic.category
        return bool(request.user.staged and category is not None and category.mailinglist_mirror)

    def _actor_muted(self, request: NotificationRequest) -> bool:
        actor_id = request.acting_user_id
        if actor_id is None:
            return False

        target_id = request.user.id
        return self.mute_checker.is_actor_muted_or_ignored_by(
            actor_id, target_id
        ) or self.mute_checker.is_actor_muted_or_ignored_by(target_id, actor_id)

    def _topic_muted(self, request: NotificationRequest) -> bool:
        return self.membership.topic_muted(request.user, request.topic)

    def _group_muted(self, request: NotificationRequest) -> bool:
        group = request.options.group
        if group is None:
            return False
        return self.membership.group_muted(request.user, group.id)

    def _outside_content_languages(self, request: NotificationRequest) -> bool:
        return not self.content_languages.topic_allowed(request.user, request.topic)
