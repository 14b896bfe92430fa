"""
Error taxonomy for the reminder service
"""


class ReminderError(Exception):
    """Base exception for the reminder service"""


class ReminderConfigError(ReminderError):
    """Raised when the configuration cannot be used to start the reminder"""


class ReminderStoppedError(ReminderError):
    """Raised when start() is called on a reminder that was already stopped"""

    def __init__(self, message: str = "reminder stopped, cannot start again"):
        super().__init__(message)


class StoreError(ReminderError):
    """Raised when a read against the entity/evaluation store fails"""


class PublishError(ReminderError):
    """Raised when messages cannot be enqueued on the event bus"""


class MetricsError(ReminderError):
    """Raised when the metrics provider or the metrics server cannot be set up"""
