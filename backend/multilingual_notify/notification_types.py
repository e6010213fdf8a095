"""Notification type and level enums shared by the alerter and tracking query."""

from enum import IntEnum


class NotificationType(IntEnum):
    """Types of notifications a user can receive about a post."""

    MENTIONED = 1
    REPLIED = 2
    QUOTED = 3
    EDITED = 4
    LIKED = 5
    PRIVATE_MESSAGE = 6
    POSTED = 9
    LINKED = 11
    GROUP_MENTIONED = 15
    WATCHING_FIRST_POST = 17
    EVENT_REMINDER = 27
    EVENT_INVITATION = 28
    CHAT_QUOTED = 33
    WATCHING_CATEGORY_OR_TAG = 36


class NotificationLevel(IntEnum):
    """Per-user notification level on a topic, category or group."""

    MUTED = 0
    REGULAR = 1
    TRACKING = 2
    WATCHING = 3


class LikeNotificationFrequency(IntEnum):
    """User preference for how often likes notify."""

    ALWAYS = 1
    FIRST_TIME_AND_DAILY = 2
    FIRST_TIME = 3
    NEVER = 4


class NewTopicDuration(IntEnum):
    """Special values of the new-topic-duration preference (minutes otherwise)."""

    ALWAYS = -1
    LAST_VISIT = -2


# Merged into a single notification per topic
COLLAPSIBLE_TYPES = frozenset(
    {
        NotificationType.REPLIED,
        NotificationType.POSTED,
        NotificationType.PRIVATE_MESSAGE,
        NotificationType.WATCHING_CATEGORY_OR_TAG,
    }
)

# Suppressed when a reply notification already exists for the post
REPLY_SUPERSEDED_TYPES = frozenset(
    {
        NotificationType.QUOTED,
        NotificationType.LINKED,
        NotificationType.MENTIONED,
        NotificationType.CHAT_QUOTED,
    }
)

# Types that fire an out-of-band alert when first created
ALERTABLE_TYPES = frozenset(
    {
        NotificationType.MENTIONED,
        NotificationType.REPLIED,
        NotificationType.QUOTED,
        NotificationType.POSTED,
        NotificationType.LINKED,
        NotificationType.PRIVATE_MESSAGE,
        NotificationType.GROUP_MENTIONED,
        NotificationType.WATCHING_FIRST_POST,
        NotificationType.WATCHING_CATEGORY_OR_TAG,
        NotificationType.EVENT_REMINDER,
        NotificationType.EVENT_INVITATION,
    }
)

PRIVATE_MESSAGE_ARCHETYPE = "private_message"
REGULAR_ARCHETYPE = "regular"
