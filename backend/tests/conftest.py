"""Pytest configuration and fixtures."""

from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from multilingual_notify.config import Settings
from multilingual_notify.models import (
    Category,
    Post,
    Tag,
    Topic,
    TopicTag,
    TopicUser,
    User,
    UserCustomField,
    UserOption,
    init_db,
)
from multilingual_notify.notification_types import LikeNotificationFrequency


@pytest.fixture
def db_session():
    """Create an in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def settings():
    """Settings with content-language filtering switched on."""
    return Settings(
        content_language_topic_filtering_enabled=True,
        remove_muted_tags_from_latest="always",
        default_other_new_topic_duration_minutes=2880,
        min_new_topics_time=0,
        show_category_definitions_in_topic_lists=True,
    )


@pytest.fixture
def disabled_settings():
    """Settings with content-language filtering switched off."""
    return Settings(content_language_topic_filtering_enabled=False)


def make_user(**overrides):
    """Plain user object with the attributes the alerter reads."""
    values = dict(
        id=1,
        username="alice",
        email="alice@example.com",
        bot=False,
        staged=False,
        admin=False,
        moderator=False,
        content_languages=[],
        like_notification_frequency=LikeNotificationFrequency.ALWAYS,
        effective_locale="en",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_topic(**overrides):
    """Plain topic object."""
    values = dict(
        id=10,
        title="Bonjour tout le monde",
        private_message=False,
        category=SimpleNamespace(id=1, mailinglist_mirror=False),
        tag_names=["fr"],
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_post(topic=None, **overrides):
    """Plain post object belonging to topic."""
    topic = topic if topic is not None else make_topic()
    values = dict(
        id=101,
        topic=topic,
        topic_id=topic.id,
        post_number=2,
        post_type=1,
        user_id=2,
        username="bob",
        revisions=[],
        via_email=False,
        incoming_email=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def forum(db_session):
    """Seed a French-tagged topic with three posts read up to #1 by alice."""
    alice = User(id=1, username="alice", email="alice@example.com", created_at=datetime(2024, 1, 1))
    bob = User(id=2, username="bob", email="bob@example.com")
    carol = User(id=3, username="carol", email="carol@example.com")
    alice.user_option = UserOption(
        like_notification_frequency=LikeNotificationFrequency.ALWAYS
    )
    alice.custom_fields = [UserCustomField(name="content_languages", value="fr")]

    category = Category(id=1, name="General")
    en = Tag(id=1, name="en")
    fr = Tag(id=2, name="fr")
    de = Tag(id=3, name="de")

    topic = Topic(
        id=10,
        title="Bonjour tout le monde",
        category_id=1,
        user_id=1,
        highest_post_number=3,
    )
    english_topic = Topic(id=11, title="Hello world", category_id=1, user_id=2, highest_post_number=1)

    posts = [
        Post(id=100, topic_id=10, user_id=1, post_number=1),
        Post(id=101, topic_id=10, user_id=2, post_number=2),
        Post(id=102, topic_id=10, user_id=3, post_number=3),
        Post(id=110, topic_id=11, user_id=2, post_number=1),
    ]

    db_session.add_all([alice, bob, carol, category, en, fr, de, topic, english_topic, *posts])
    db_session.flush()
    db_session.add_all(
        [
            TopicTag(topic_id=10, tag_id=2),
            TopicTag(topic_id=11, tag_id=1),
            TopicUser(user_id=1, topic_id=10, last_read_post_number=1),
        ]
    )
    db_session.commit()

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        carol=carol,
        category=category,
        topic=topic,
        english_topic=english_topic,
        posts={p.id: p for p in posts},
    )
