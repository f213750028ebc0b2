"""Error hierarchy for schedule, attendance and notification failures.

Schedule mutations raise a ScheduleError subclass *before* any write, so a
rejected call never leaves a partially applied change behind. HTTP clients
classify failures as transient (worth retrying) or permanent, the same split
tenacity uses to decide whether to try again:

    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def list_cities(self) -> list[City]:
        ...
"""


class DojoError(Exception):
    """Base exception for all engine errors."""

    pass


class ScheduleError(DojoError):
    """A schedule or attendance mutation was rejected."""

    pass


class ConflictError(ScheduleError):
    """A class overlaps an existing one, or the date is already cancelled.

    Also raised for duplicate class type names.
    """

    pass


class EmptyDayError(ScheduleError):
    """Attempted to cancel a date with no scheduled class."""

    pass


class PastDateError(ScheduleError):
    """Attempted to schedule or cancel a date earlier than today."""

    pass


class NotFoundError(ScheduleError):
    """Edit or delete referencing an id that does not exist."""

    pass


class NotificationDeliveryError(DojoError):
    """The messaging API did not accept a notification.

    Never propagated to the caller of the state-changing operation: the
    dispatcher logs it and moves on.
    """

    pass


class TransientError(DojoError):
    """Temporary HTTP failure that may succeed on retry.

    Examples: connection errors, timeouts, 5xx responses.
    """

    pass


class PermanentError(DojoError):
    """HTTP failure that won't succeed on retry (4xx, malformed payload)."""

    pass
