"""Tests for the default renotify policy."""

import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from conftest import make_post, make_user
from multilingual_notify.models import Notification
from multilingual_notify.notification_request import NotificationOptions
from multilingual_notify.notification_types import LikeNotificationFrequency, NotificationType
from multilingual_notify.renotify_policy import DefaultRenotifyPolicy

NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def policy():
    return DefaultRenotifyPolicy(clock=lambda: NOW)


def existing(notification_type, age=timedelta(hours=1), display_username="bob"):
    return Notification(
        user_id=1,
        notification_type=notification_type,
        topic_id=10,
        post_number=2,
        data=json.dumps({"display_username": display_username}),
        created_at=NOW - age,
    )


class TestEdits:
    """Tests for repeated edit notifications."""

    def test_same_editor_recent_edit_suppressed(self, policy):
        notification = existing(NotificationType.EDITED)
        assert policy.should_notify_again(make_user(), make_post(), notification, NotificationOptions()) is False

    def test_different_editor_notifies(self, policy):
        notification = existing(NotificationType.EDITED)
        options = NotificationOptions(display_username="carol")
        assert policy.should_notify_again(make_user(), make_post(), notification, options) is True

    def test_old_edit_notifies(self, policy):
        notification = existing(NotificationType.EDITED, age=timedelta(days=2))
        assert policy.should_notify_again(make_user(), make_post(), notification, NotificationOptions()) is True


class TestLikes:
    """Tests for repeated like notifications."""

    def test_always(self, policy):
        user = make_user(like_notification_frequency=LikeNotificationFrequency.ALWAYS)
        notification = existing(NotificationType.LIKED)
        assert policy.should_notify_again(user, make_post(), notification, NotificationOptions()) is True

    def test_first_time_and_daily_within_a_day(self, policy):
        user = make_user(like_notification_frequency=LikeNotificationFrequency.FIRST_TIME_AND_DAILY)
        notification = existing(NotificationType.LIKED)
        assert policy.should_notify_again(user, make_post(), notification, NotificationOptions()) is False

    def test_first_time_and_daily_after_a_day(self, policy):
        user = make_user(like_notification_frequency=LikeNotificationFrequency.FIRST_TIME_AND_DAILY)
        notification = existing(NotificationType.LIKED, age=timedelta(days=1, minutes=1))
        assert policy.should_notify_again(user, make_post(), notification, NotificationOptions()) is True

    def test_first_time_only(self, policy):
        user = make_user(like_notification_frequency=LikeNotificationFrequency.FIRST_TIME)
        notification = existing(NotificationType.LIKED, age=timedelta(days=30))
        assert policy.should_notify_again(user, make_post(), notification, NotificationOptions()) is False


@pytest.mark.parametrize(
    "notification_type",
    [NotificationType.MENTIONED, NotificationType.QUOTED, NotificationType.REPLIED],
)
def test_other_types_never_repeat(policy, notification_type):
    notification = existing(notification_type, age=timedelta(days=30))
    assert policy.should_notify_again(make_user(), make_post(), notification, NotificationOptions()) is False


def test_custom_window():
    policy = DefaultRenotifyPolicy(clock=lambda: NOW, window=timedelta(minutes=30))
    user = SimpleNamespace(like_notification_frequency=LikeNotificationFrequency.FIRST_TIME_AND_DAILY)
    notification = existing(NotificationType.LIKED, age=timedelta(hours=1))

    assert policy.should_notify_again(user, make_post(), notification, NotificationOptions()) is True
