"""Notification payload assembly and email suppression."""

from typing import Optional

from .notification_request import NotificationOptions


def topic_title_for(topic, post) -> str:
    """Title stored in the payload.

    Private messages keep the title they were sent with: if any revision of
    the post recorded a title change, the first recorded prior title wins.
    """
    if topic.private_message:
        for revision in post.revisions or []:
            modifications = revision.modifications or {}
            if "title" in modifications:
                return modifications["title"][0]
    return topic.title


def build_notification_data(
    topic,
    post,
    original_post,
    original_username: Optional[str],
    display_username: Optional[str],
    options: NotificationOptions,
) -> dict:
    """Build the JSON payload of a notification.

    Args:
        topic: Topic the notification is about
        post: Post the notification points at (after collapsing)
        original_post: Post that triggered the notification
        original_username: Username before collapsing rewrote it
        display_username: Username (or "N replies") to show; defaults to the
            author of post
        options: Caller options

    Returns:
        Payload dict
    """
    data = {
        "topic_title": topic_title_for(topic, post),
        "original_post_id": original_post.id,
        "original_post_type": original_post.post_type,
        "original_username": original_username,
        "display_username": display_username or post.username,
    }
    if options.revision_number is not None:
        data["revision_number"] = options.revision_number

    if isinstance(options.custom_data, dict):
        data.update(options.custom_data)

    group = options.group
    if group is not None:
        data["group_id"] = group.id
        data["group_name"] = group.name

    return data


def should_skip_email(user, original_post, options: NotificationOptions) -> bool:
    """Decide the notification's skip_send_email flag.

    Explicit skip list first. Posts that came in by email skip recipients that
    were already on the To/Cc lines. Otherwise the caller's flag applies.
    """
    if options.skip_send_email_to and user.email in options.skip_send_email_to:
        return True

    incoming_email = original_post.incoming_email if original_post.via_email else None
    if incoming_email is not None:
        return (
            user.email in incoming_email.to_addresses_split
            or user.email in incoming_email.cc_addresses_split
        )

    return bool(options.skip_send_email)
