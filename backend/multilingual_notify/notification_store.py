"""SQLAlchemy-backed notification store.

Also answers the membership, read-state and mute/ignore questions the post
alerter asks, since they are all reads over the same session.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .collaborators import (
    ConsolidateResult,
    MembershipChecker,
    MuteIgnoreChecker,
    NotificationKey,
    NotificationStore,
    ReadStateProvider,
)
from .errors import NotificationPersistenceError
from .models import (
    GroupUser,
    IgnoredUser,
    MutedUser,
    Notification,
    Post,
    TopicUser,
    utcnow,
)
from .notification_types import NotificationLevel, NotificationType

logger = logging.getLogger(__name__)

KEY_COLUMNS = ["user_id", "notification_type", "topic_id", "post_number"]


class SqlNotificationStore(
    NotificationStore, MembershipChecker, ReadStateProvider, MuteIgnoreChecker
):
    """Notification store over a SQLAlchemy session (PostgreSQL or SQLite)."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # NotificationStore
    # -------------------------------------------------------------------------

    def recent_for_topic_post(
        self, user, topic_id: int, post_number: int, limit: int = 10
    ) -> list[Notification]:
        return (
            self.db.query(Notification)
            .filter(
                Notification.user_id == user.id,
                Notification.topic_id == topic_id,
                Notification.post_number == post_number,
            )
            .order_by(Notification.id.desc())
            .limit(limit)
            .all()
        )

    def delete_by_types_and_topic(
        self, user, types: Iterable[NotificationType], topic
    ) -> int:
        type_values = sorted(int(t) for t in types)
        try:
            deleted = (
                self.db.query(Notification)
                .filter(
                    Notification.user_id == user.id,
                    Notification.topic_id == topic.id,
                    Notification.notification_type.in_(type_values),
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise NotificationPersistenceError(
                f"Failed to delete notifications for user {user.id} on topic {topic.id}"
            ) from e

        if deleted:
            logger.debug(f"Deleted {deleted} collapsible notifications for user {user.id} on topic {topic.id}")
        return deleted

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(Notification.__table__)
        if dialect == "sqlite":
            return sqlite.insert(Notification.__table__)
        raise NotificationPersistenceError(f"Unsupported database dialect: {dialect}")

    def consolidate_or_create(
        self,
        key: NotificationKey,
        data: str,
        post_action_id: Optional[int] = None,
        skip_send_email: bool = False,
    ) -> ConsolidateResult:
        table = Notification.__table__
        values = {
            "user_id": key.user_id,
            "notification_type": int(key.notification_type),
            "topic_id": key.topic_id,
            "post_number": key.post_number,
            "post_action_id": post_action_id,
            "data": data,
            "read": False,
            "skip_send_email": bool(skip_send_email),
            "created_at": utcnow(),
        }

        try:
            stmt = (
                self._insert()
                .values(**values)
                .on_conflict_do_nothing(index_elements=KEY_COLUMNS)
                .returning(table.c.id)
            )
            notification_id = self.db.execute(stmt).scalar_one_or_none()
            created = notification_id is not None

            if created:
                self.db.commit()
                notification = self.db.get(Notification, notification_id)
            else:
                # A row with this key already exists: consolidate into it
                notification = (
                    self.db.query(Notification)
                    .filter(
                        Notification.user_id == key.user_id,
                        Notification.notification_type == int(key.notification_type),
                        Notification.topic_id == key.topic_id,
                        Notification.post_number == key.post_number,
                    )
                    .one()
                )
                notification.data = data
                notification.read = False
                notification.skip_send_email = bool(skip_send_email)
                if post_action_id is not None:
                    notification.post_action_id = post_action_id
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise NotificationPersistenceError(
                f"Failed to write notification {key.notification_type.name.lower()} "
                f"for user {key.user_id} on topic {key.topic_id}#{key.post_number}"
            ) from e

        return ConsolidateResult(notification=notification, created=created)

    # -------------------------------------------------------------------------
    # MembershipChecker
    # -------------------------------------------------------------------------

    def topic_muted(self, user, topic) -> bool:
        return (
            self.db.query(TopicUser.id)
            .filter(
                TopicUser.topic_id == topic.id,
                TopicUser.user_id == user.id,
                TopicUser.notification_level == NotificationLevel.MUTED,
            )
            .first()
            is not None
        )

    def group_muted(self, user, group_id: int) -> bool:
        return (
            self.db.query(GroupUser.id)
            .filter(
                GroupUser.group_id == group_id,
                GroupUser.user_id == user.id,
                GroupUser.notification_level == NotificationLevel.MUTED,
            )
            .first()
            is not None
        )

    # -------------------------------------------------------------------------
    # ReadStateProvider
    # -------------------------------------------------------------------------

    def _last_read_post_number(self, user, topic) -> int:
        last_read = (
            self.db.query(TopicUser.last_read_post_number)
            .filter(TopicUser.topic_id == topic.id, TopicUser.user_id == user.id)
            .scalar()
        )
        return last_read or 0

    def first_unread_post(self, user, topic) -> Optional[Post]:
        return (
            self.db.query(Post)
            .filter(
                Post.topic_id == topic.id,
                Post.post_number > self._last_read_post_number(user, topic),
                Post.user_id != user.id,
            )
            .order_by(Post.post_number)
            .first()
        )

    def unread_count(self, user, topic) -> int:
        return (
            self.db.query(func.count(Post.id))
            .filter(
                Post.topic_id == topic.id,
                Post.post_number > self._last_read_post_number(user, topic),
                Post.user_id != user.id,
            )
            .scalar()
        )

    # -------------------------------------------------------------------------
    # MuteIgnoreChecker
    # -------------------------------------------------------------------------

    def is_actor_muted_or_ignored_by(self, actor_id: int, target_id: int) -> bool:
        muted = (
            self.db.query(MutedUser.id)
            .filter(MutedUser.user_id == target_id, MutedUser.muted_user_id == actor_id)
            .first()
        )
        if muted is not None:
            return True

        ignored = (
            self.db.query(IgnoredUser.id)
            .filter(IgnoredUser.user_id == target_id, IgnoredUser.ignored_user_id == actor_id)
            .first()
        )
        return ignored is not None
