"""Content-language filter.

A topic is visible to a user's language filter when it carries at least one
tag named after one of the user's content languages. Users without content
languages see everything, as does everyone while the filter is disabled.

The same predicate is used by the post alerter (in memory), the tracking
query (SQL) and the search, digest and email pass-through filters.
"""

import logging
import re
from typing import Optional

from sqlalchemy import any_, bindparam, select, String
from sqlalchemy.dialects.postgresql import ARRAY

from .config import Settings, get_settings
from .errors import InvalidLocaleError
from .models import Post, Tag, Topic, TopicTag

logger = logging.getLogger(__name__)

LOCALE_PATTERN = re.compile(r"[a-z]{2}(_[A-Z]{2})?")
CHINESE_LOCALE_PATTERN = re.compile(r"zh(_[A-Z]+)?")
FALLBACK_LANGUAGE = "en"


def validate_locale(locale: str) -> str:
    """Return the locale unchanged, or raise InvalidLocaleError.

    Locales end up in queries, so anything other than "xx" or "xx_YY" is
    rejected instead of being silently replaced.
    """
    if not isinstance(locale, str) or not LOCALE_PATTERN.fullmatch(locale):
        raise InvalidLocaleError(locale)
    return locale


class ContentLanguageFilter:
    """Restricts topics to those tagged with one of a user's content languages."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def enabled(self) -> bool:
        """Check whether topic filtering by content language is switched on."""
        return self.settings.content_language_topic_filtering_enabled

    def languages_for(self, user=None, locale: Optional[str] = None) -> list[str]:
        """Resolve the content languages to filter by.

        Args:
            user: User whose content languages apply. Takes precedence.
            locale: Used when there is no user. Chinese locales match only
                themselves; every other locale also accepts English.

        Returns:
            Language (tag) names, possibly empty

        Raises:
            InvalidLocaleError: If the locale is malformed
        """
        if user is not None:
            return list(user.content_languages or [])

        if locale is None:
            locale = self.settings.default_locale
        locale = validate_locale(locale)
        if CHINESE_LOCALE_PATTERN.fullmatch(locale):
            return [locale]
        return list(dict.fromkeys([locale, FALLBACK_LANGUAGE]))

    def topic_allowed(self, user, topic) -> bool:
        """Check a loaded topic against the user's content languages."""
        if not self.enabled():
            return True

        languages = user.content_languages
        if not languages:
            return True

        return not set(languages).isdisjoint(topic.tag_names)

    def should_send_posted_email(self, user, topic) -> bool:
        """Gate for "user posted" emails about topics outside the user's languages."""
        allowed = self.topic_allowed(user, topic)
        if not allowed:
            logger.debug(f"Skipping posted email to user {user.id} for topic {topic.id}")
        return allowed

    def tag_clause(self, topic_id_column, languages, bind_name: Optional[str] = None):
        """SQL predicate: the topic has a tag named after one of the languages.

        Args:
            topic_id_column: Column holding the topic id in the outer query
            languages: Language (tag) names
            bind_name: When given, languages are sent as a single named array
                parameter (PostgreSQL ``= ANY``); otherwise as an IN list.
        """
        if bind_name:
            name_match = Tag.name == any_(
                bindparam(bind_name, list(languages), type_=ARRAY(String))
            )
        else:
            name_match = Tag.name.in_(list(languages))

        return (
            select(TopicTag.id)
            .join(Tag, Tag.id == TopicTag.tag_id)
            .where(TopicTag.topic_id == topic_id_column, name_match)
            .exists()
        )

    def predicate_for(
        self,
        user=None,
        locale: Optional[str] = None,
        topic_id_column=Topic.id,
        bind_name: Optional[str] = None,
    ):
        """Predicate for a user (or a locale when there is none).

        Returns:
            A SQL clause, or None when no filtering applies
        """
        if not self.enabled():
            return None

        languages = self.languages_for(user, locale)
        if not languages:
            return None

        return self.tag_clause(topic_id_column, languages, bind_name=bind_name)

    def filter_posts(self, stmt, user):
        """Restrict a search query over posts to the searcher's languages."""
        if user is None:
            return stmt

        clause = self.predicate_for(user, topic_id_column=Post.topic_id)
        return stmt if clause is None else stmt.where(clause)

    def filter_digest_topics(
        self, stmt, user=None, locale: Optional[str] = None, limit: Optional[int] = None
    ):
        """Restrict a digest topic query to the recipient's languages."""
        clause = self.predicate_for(user, locale, topic_id_column=Topic.id)
        if clause is not None:
            stmt = stmt.where(clause)
        if limit:
            stmt = stmt.limit(limit)
        return stmt
