"""Domain exceptions shared across the alerting core.

The API layer maps these to HTTP status codes:
``ReadingValidationError`` → 422, ``AlertNotFoundError`` → 404,
``AccessDeniedError`` → 403. ``EmailDeliveryError`` never leaves the
notification dispatcher.
"""


class VitalwatchError(Exception):
    """Base class for vitalwatch domain errors."""


class ReadingValidationError(VitalwatchError, ValueError):
    """Raised when a metric reading is malformed."""


class AlertNotFoundError(VitalwatchError):
    """Raised when an alert id does not exist."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert {alert_id!r} not found")
        self.alert_id = alert_id


class ReadingNotFoundError(VitalwatchError):
    """Raised when a metric reading id does not exist."""

    def __init__(self, reading_id: str) -> None:
        super().__init__(f"Reading {reading_id!r} not found")
        self.reading_id = reading_id


class AccessDeniedError(VitalwatchError):
    """Raised when the caller's role or ownership does not permit an action."""


class EmailDeliveryError(VitalwatchError):
    """Raised when every provider exhausted its retries.

    Attributes:
        last_error: The final exception observed.
        attempts: Total number of attempts across all providers.
    """

    def __init__(
        self,
        message: str,
        last_error: BaseException | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts
