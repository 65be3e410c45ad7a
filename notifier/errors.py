"""Error taxonomy for the notification loops."""


class NotifierError(Exception):
    """Base class for notifier errors."""


class SourceUnavailable(NotifierError):
    """An external source could not be fetched or its response parsed."""


class StoreUnavailable(NotifierError):
    """The notification store could not be read or written."""


class SinkNotFound(NotifierError):
    """The outward message referenced by a record no longer exists."""


class SinkDeliveryFailed(NotifierError):
    """The sink refused delivery (DMs closed, missing permissions).

    Records that hit this are marked failed and not retried.
    """


class ConfigurationMissing(NotifierError):
    """A required setting (channel id, interval) is absent or invalid."""

    def __init__(self, name: str, detail: str = "not set"):
        self.name = name
        super().__init__(f"{name}: {detail}")
