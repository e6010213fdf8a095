"""SQLAlchemy models for the forum tables read and written by the notification core."""

import json
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine,
    Column,
    String,
    Boolean,
    Integer,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from .config import get_settings
from .notification_types import (
    LikeNotificationFrequency,
    NotificationLevel,
    PRIVATE_MESSAGE_ARCHETYPE,
    REGULAR_ARCHETYPE,
)

settings = get_settings()
engine = create_engine(settings.database_url, echo=settings.env == "development")
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

CONTENT_LANGUAGES_FIELD = "content_languages"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the forum stores times."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Forum user that can receive notifications."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)  # system and bot users are <= 0
    username = Column(String, nullable=False)
    email = Column(String, nullable=True)
    admin = Column(Boolean, default=False)
    moderator = Column(Boolean, default=False)
    staged = Column(Boolean, default=False)
    locale = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    previous_visit_at = Column(DateTime, nullable=True)

    user_option = relationship("UserOption", uselist=False, back_populates="user")
    custom_fields = relationship("UserCustomField", back_populates="user")

    @property
    def bot(self) -> bool:
        return self.id is not None and self.id <= 0

    @property
    def content_languages(self) -> list[str]:
        return [
            field.value
            for field in self.custom_fields
            if field.name == CONTENT_LANGUAGES_FIELD and field.value
        ]

    @property
    def effective_locale(self) -> str:
        return self.locale or get_settings().default_locale

    @property
    def like_notification_frequency(self) -> int:
        if self.user_option is None or self.user_option.like_notification_frequency is None:
            return LikeNotificationFrequency.FIRST_TIME_AND_DAILY
        return self.user_option.like_notification_frequency


class UserOption(Base):
    """Per-user preferences."""

    __tablename__ = "user_options"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    like_notification_frequency = Column(
        Integer, default=LikeNotificationFrequency.FIRST_TIME_AND_DAILY
    )
    # minutes, or -1 (always) / -2 (since last visit); NULL uses the site default
    new_topic_duration_minutes = Column(Integer, nullable=True)

    user = relationship("User", back_populates="user_option")


class UserCustomField(Base):
    """Free-form user field. Content languages are stored one row per language."""

    __tablename__ = "user_custom_fields"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    value = Column(Text, nullable=True)

    user = relationship("User", back_populates="custom_fields")


class MutedUser(Base):
    """user_id has muted muted_user_id."""

    __tablename__ = "muted_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    muted_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)


class IgnoredUser(Base):
    """user_id is ignoring ignored_user_id."""

    __tablename__ = "ignored_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    ignored_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)


class Group(Base):
    """User group that can be mentioned or granted category access."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class GroupUser(Base):
    """Group membership with a notification level."""

    __tablename__ = "group_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notification_level = Column(Integer, default=NotificationLevel.REGULAR)


class Category(Base):
    """Topic category."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    topic_id = Column(Integer, nullable=True)  # category definition topic
    read_restricted = Column(Boolean, default=False)
    mailinglist_mirror = Column(Boolean, default=False)


class CategoryGroup(Base):
    """Grants a group access to a read-restricted category."""

    __tablename__ = "category_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)


class CategoryUser(Base):
    """Per-user notification level on a category."""

    __tablename__ = "category_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notification_level = Column(Integer, nullable=False)


class Tag(Base):
    """Topic tag. Content languages are tags named after the language."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


class TopicTag(Base):
    """Topic to tag link."""

    __tablename__ = "topic_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False)


class Topic(Base):
    """Forum topic (ordinary or private message)."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    archetype = Column(String, nullable=False, default=REGULAR_ARCHETYPE)
    visible = Column(Boolean, default=True)
    deleted_at = Column(DateTime, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    highest_post_number = Column(Integer, default=0)
    highest_staff_post_number = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    bumped_at = Column(DateTime, default=utcnow)

    category = relationship("Category")
    tags = relationship("Tag", secondary="topic_tags", viewonly=True)

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    @property
    def private_message(self) -> bool:
        return self.archetype == PRIVATE_MESSAGE_ARCHETYPE


class TopicUser(Base):
    """Per-user state on a topic: notification level and read position."""

    __tablename__ = "topic_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    notification_level = Column(Integer, default=NotificationLevel.REGULAR)
    last_read_post_number = Column(Integer, nullable=True)


class DismissedTopicUser(Base):
    """Topic a user dismissed from their "new" list."""

    __tablename__ = "dismissed_topic_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class Post(Base):
    """Post within a topic."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    post_number = Column(Integer, nullable=False)
    post_type = Column(Integer, default=1)
    via_email = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    topic = relationship("Topic")
    user = relationship("User")
    revisions = relationship("PostRevision", order_by="PostRevision.number")
    incoming_email = relationship("IncomingEmail", uselist=False)

    @property
    def username(self) -> str:
        return self.user.username if self.user else None


class PostRevision(Base):
    """Recorded edit of a post. modifications maps field -> [before, after]."""

    __tablename__ = "post_revisions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    number = Column(Integer, nullable=False)
    modifications = Column(JSON, default=dict)


class IncomingEmail(Base):
    """Inbound mail a post was created from."""

    __tablename__ = "incoming_emails"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    to_addresses = Column(Text, nullable=True)  # ";"-separated
    cc_addresses = Column(Text, nullable=True)

    @staticmethod
    def _split(addresses):
        if not addresses:
            return []
        return [a.strip() for a in addresses.split(";") if a.strip()]

    @property
    def to_addresses_split(self) -> list[str]:
        return self._split(self.to_addresses)

    @property
    def cc_addresses_split(self) -> list[str]:
        return self._split(self.cc_addresses)


class Notification(Base):
    """Notification shown to a user, at most one per (user, type, topic, post)."""

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "notification_type",
            "topic_id",
            "post_number",
            name="idx_notifications_unique_key",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notification_type = Column(Integer, nullable=False)
    topic_id = Column(Integer, nullable=True)
    post_number = Column(Integer, nullable=True)
    post_action_id = Column(Integer, nullable=True)
    data = Column(Text, nullable=False, default="{}")  # JSON payload
    read = Column(Boolean, default=False)
    skip_send_email = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    @property
    def data_hash(self) -> dict:
        return json.loads(self.data) if self.data else {}


def init_db(bind=None):
    """Initialize database tables."""
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
