"""Exceptions raised by the notification core."""


class MultilingualNotifyError(Exception):
    """Base class for errors raised by this package."""


class InvalidLocaleError(MultilingualNotifyError, ValueError):
    """A locale string did not match the accepted pattern."""

    def __init__(self, locale):
        self.locale = locale
        super().__init__(f"Invalid locale: {locale!r}")


class NotificationPersistenceError(MultilingualNotifyError):
    """The notification store failed to write or delete rows."""


class InvalidPayloadError(MultilingualNotifyError):
    """A notification payload could not be serialized to JSON."""
