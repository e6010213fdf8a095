"""Tracking query compiler.

Builds the "which topics are unread or new for this user" query as a
SQLAlchemy Core select and compiles it for PostgreSQL. Each filter is a
separate clause builder that returns either a real condition or ``true()``
/ ``false()``; SQLAlchemy folds the constants when they are combined, so
``skip_new`` together with ``skip_unread`` collapses the whole WHERE clause to
``false``.

Every value reaches the query as a named bound parameter. The compiler does
no I/O; the caller executes the result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    DateTime,
    Integer,
    Interval,
    String,
    and_,
    bindparam,
    case,
    false,
    func,
    literal_column,
    not_,
    or_,
    select,
    true,
    type_coerce,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import ARRAY, array_agg

from .config import Settings, get_settings
from .content_language import ContentLanguageFilter
from .models import (
    Category,
    CategoryGroup,
    CategoryUser,
    DismissedTopicUser,
    GroupUser,
    Topic,
    TopicTag,
    TopicUser,
    User,
    UserOption,
    utcnow,
)
from .notification_types import (
    NewTopicDuration,
    NotificationLevel,
    PRIVATE_MESSAGE_ARCHETYPE,
)

topics = Topic.__table__
u = User.__table__.alias("u")
uo = UserOption.__table__.alias("uo")
c = Category.__table__.alias("c")
tu = TopicUser.__table__.alias("tu")
dismissed = DismissedTopicUser.__table__
topic_tags = TopicTag.__table__
category_users = CategoryUser.__table__

MUTED_TAG_MODES = ("always", "only_muted")


@dataclass(frozen=True)
class JoinFragment:
    """Extra join appended to the FROM clause as given."""

    target: Any
    onclause: Any
    outer: bool = False


@dataclass(frozen=True)
class TrackingRequest:
    """Input of the tracking query.

    Attributes:
        user: User the state is computed for (needs id and content_languages)
        muted_tag_ids: Tag ids the user muted
        topic_id: Restrict to a single topic
        filter_old_unread: Only topics updated since user_first_unread_at
        user_first_unread_at: Cutoff for filter_old_unread
        skip_new: Don't report new topics
        skip_unread: Don't report unread topics
        skip_order: Don't order by bump time
        staff: Caller is staff (sees invisible topics)
        admin: Caller is admin (sees restricted categories)
        whisperer: Caller can see whispers (uses the staff post count)
        select: Columns replacing the default select list
        custom_state_filter: Condition replacing "(unread OR new)"
        additional_join: Extra join fragment
        now: Reference time for rolling "new" windows
    """

    user: Any
    muted_tag_ids: tuple = ()
    topic_id: Optional[int] = None
    filter_old_unread: bool = False
    user_first_unread_at: Optional[datetime] = None
    skip_new: bool = False
    skip_unread: bool = False
    skip_order: bool = False
    staff: bool = False
    admin: bool = False
    whisperer: bool = False
    select: Optional[tuple] = None
    custom_state_filter: Any = None
    additional_join: Optional[JoinFragment] = None
    now: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        object.__setattr__(
            self, "muted_tag_ids", tuple(int(tag_id) for tag_id in self.muted_tag_ids or ())
        )


@dataclass(frozen=True)
class CompiledQuery:
    """Query text plus its bound parameters."""

    sql: str
    params: dict


class _Binds:
    """Named bound parameters of one tracking query."""

    def __init__(self, request: TrackingRequest, settings: Settings):
        self.user_id = bindparam("user_id", request.user.id, type_=Integer)
        self.now = bindparam("now", request.now, type_=DateTime)
        self.default_duration = bindparam(
            "default_duration", settings.default_other_new_topic_duration_minutes, type_=Integer
        )
        self.always = bindparam("always", int(NewTopicDuration.ALWAYS), type_=Integer)
        self.last_visit = bindparam("last_visit", int(NewTopicDuration.LAST_VISIT), type_=Integer)
        self.min_date = bindparam(
            "min_date",
            datetime.fromtimestamp(settings.min_new_topics_time, tz=timezone.utc).replace(tzinfo=None),
            type_=DateTime,
        )
        self.muted = bindparam("muted", int(NotificationLevel.MUTED), type_=Integer)
        self.regular = bindparam("regular", int(NotificationLevel.REGULAR), type_=Integer)
        self.tracking = bindparam("tracking", int(NotificationLevel.TRACKING), type_=Integer)
        self.private_message = bindparam("private_message", PRIVATE_MESSAGE_ARCHETYPE, type_=String)
        self.muted_tag_ids = bindparam(
            "muted_tag_ids", list(request.muted_tag_ids), type_=ARRAY(Integer)
        )
        self.topic_id = bindparam("topic_id", request.topic_id, type_=Integer)
        self.user_first_unread_at = bindparam(
            "user_first_unread_at", request.user_first_unread_at, type_=DateTime
        )


def treat_as_new_topic_start_date(binds: _Binds):
    """Cutoff after which a topic counts as new for the user."""
    duration = func.coalesce(uo.c.new_topic_duration_minutes, binds.default_duration)
    # make_interval(years, months, weeks, days, hours, mins)
    mode_start = case(
        (duration == binds.always, u.c.created_at),
        (duration == binds.last_visit, func.coalesce(u.c.previous_visit_at, u.c.created_at)),
        else_=binds.now - func.make_interval(0, 0, 0, 0, 0, duration, type_=Interval),
    )
    return func.greatest(mode_start, u.c.created_at, binds.min_date)


def unread_clause(request: TrackingRequest, binds: _Binds):
    if request.skip_unread:
        return false()

    highest = topics.c.highest_staff_post_number if request.whisperer else topics.c.highest_post_number
    return and_(
        tu.c.last_read_post_number < highest,
        func.coalesce(tu.c.notification_level, binds.regular) >= binds.tracking,
    )


def new_clause(request: TrackingRequest, binds: _Binds):
    if request.skip_new:
        return false()

    return and_(
        topics.c.created_at >= treat_as_new_topic_start_date(binds),
        tu.c.last_read_post_number.is_(None),
        func.coalesce(tu.c.notification_level, binds.tracking) >= binds.tracking,
        dismissed.c.id.is_(None),
    )


def state_clause(request: TrackingRequest, binds: _Binds):
    """Unread-or-new condition, unless the caller supplied its own."""
    if request.custom_state_filter is not None:
        return request.custom_state_filter
    return or_(unread_clause(request, binds), new_clause(request, binds))


def category_clause(request: TrackingRequest, binds: _Binds):
    if request.admin:
        return true()

    c2 = Category.__table__.alias("c2")
    cg = CategoryGroup.__table__.alias("cg")
    gu = GroupUser.__table__.alias("gu")
    group_readable = (
        select(c2.c.id)
        .join(cg, cg.c.category_id == c2.c.id)
        .join(gu, and_(gu.c.user_id == binds.user_id, cg.c.group_id == gu.c.group_id))
        .where(c2.c.read_restricted)
    )
    return or_(not_(c.c.read_restricted), u.c.admin, c.c.id.in_(group_readable))


def visibility_clause(request: TrackingRequest, binds: _Binds):
    if request.staff:
        return true()
    return or_(topics.c.visible, u.c.admin, u.c.moderator)


def muted_tags_clause(request: TrackingRequest, binds: _Binds, mode: str):
    if not request.muted_tag_ids or mode not in MUTED_TAG_MODES:
        return true()

    existing_tags = (
        select(array_agg(topic_tags.c.tag_id))
        .where(topic_tags.c.topic_id == topics.c.id)
        .scalar_subquery()
    )

    if mode == "always":
        tag_ids = type_coerce(
            func.coalesce(existing_tags, literal_column("ARRAY[]::int[]")), ARRAY(Integer)
        )
        return not_(tag_ids.overlap(binds.muted_tag_ids))

    # only_muted: drop topics whose tags are all muted
    tag_ids = type_coerce(
        func.coalesce(existing_tags, literal_column("ARRAY[-999]")), ARRAY(Integer)
    )
    return not_(tag_ids.contained_by(binds.muted_tag_ids))


def content_language_clause(request: TrackingRequest, binds: _Binds, languages: ContentLanguageFilter):
    clause = languages.predicate_for(
        request.user, topic_id_column=topics.c.id, bind_name="content_languages"
    )
    return true() if clause is None else clause


def muted_category_clause(request: TrackingRequest, binds: _Binds):
    muted_category_ids = select(category_users.c.category_id).where(
        category_users.c.user_id == binds.user_id,
        category_users.c.notification_level == binds.muted,
    )
    muted = and_(
        topics.c.category_id.in_(muted_category_ids),
        tu.c.notification_level <= binds.regular,
    )
    if not (request.skip_new and request.skip_unread):
        muted = and_(tu.c.last_read_post_number.is_(None), muted)
    return not_(muted)


def _default_columns(request: TrackingRequest, binds: _Binds, settings: Settings) -> list:
    if request.whisperer:
        highest = topics.c.highest_staff_post_number.label("highest_post_number")
    else:
        highest = topics.c.highest_post_number

    columns = [
        topics.c.id.label("topic_id"),
        u.c.id.label("user_id"),
        topics.c.created_at,
        topics.c.updated_at,
        topics.c.bumped_at,
        highest,
        tu.c.last_read_post_number,
        c.c.id.label("category_id"),
    ]
    if not settings.show_category_definitions_in_topic_lists:
        columns.append(c.c.topic_id.label("category_topic_id"))
    columns += [
        tu.c.notification_level,
        treat_as_new_topic_start_date(binds).label("treat_as_new_topic_start_date"),
    ]
    return columns


def build_tracking_query(request: TrackingRequest, settings: Optional[Settings] = None):
    """Build the tracking select for a request.

    Args:
        request: The tracking request
        settings: Site settings (defaults to the cached settings)

    Returns:
        A SQLAlchemy Select
    """
    settings = settings or get_settings()
    binds = _Binds(request, settings)

    if request.select:
        stmt = select(*request.select)
    else:
        stmt = select(*_default_columns(request, binds, settings)).distinct()

    from_clause = (
        topics.join(u, u.c.id == binds.user_id)
        .join(uo, uo.c.user_id == u.c.id)
        .join(c, c.c.id == topics.c.category_id)
        .outerjoin(tu, and_(tu.c.topic_id == topics.c.id, tu.c.user_id == u.c.id))
    )
    if not request.skip_new:
        from_clause = from_clause.outerjoin(
            dismissed,
            and_(dismissed.c.topic_id == topics.c.id, dismissed.c.user_id == binds.user_id),
        )
    if request.additional_join is not None:
        join = request.additional_join
        from_clause = from_clause.join(join.target, join.onclause, isouter=join.outer)
    stmt = stmt.select_from(from_clause)

    conditions = [u.c.id == binds.user_id]
    if request.filter_old_unread:
        conditions.append(topics.c.updated_at >= binds.user_first_unread_at)
    conditions += [
        topics.c.archetype != binds.private_message,
        state_clause(request, binds),
        visibility_clause(request, binds),
        muted_tags_clause(request, binds, settings.remove_muted_tags_from_latest),
        topics.c.deleted_at.is_(None),
        category_clause(request, binds),
        content_language_clause(request, binds, ContentLanguageFilter(settings)),
        muted_category_clause(request, binds),
    ]
    if request.topic_id is not None:
        conditions.append(topics.c.id == binds.topic_id)

    stmt = stmt.where(and_(*conditions))

    if not request.skip_order:
        stmt = stmt.order_by(topics.c.bumped_at.desc())

    return stmt


def compile_tracking_query(
    request: TrackingRequest, settings: Optional[Settings] = None
) -> CompiledQuery:
    """Compile the tracking query for PostgreSQL.

    Pure: the same request and settings always give the same text and params.
    """
    compiled = build_tracking_query(request, settings).compile(dialect=postgresql.dialect())
    return CompiledQuery(sql=str(compiled), params=dict(compiled.params))
