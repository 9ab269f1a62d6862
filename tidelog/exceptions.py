class LoggerError(Exception):
    """Base class for errors raised by tidelog."""


class InvalidLevelError(LoggerError):
    """Exception raised when a level name is not part of the level table.

    Attributes:
        name: the level name that was requested
    """

    def __init__(self, name):
        self.name = name
        super().__init__(f"Invalid level name '{name}'.")


class InvalidDestinationError(LoggerError):
    """Exception raised when a rotating sink destination cannot be used.

    Attributes:
        destination: absolute path that was checked
        reason: why the destination was rejected
    """

    def __init__(self, destination: str, reason: str = ""):
        self.destination = destination
        self.reason = reason
        super().__init__(f"Invalid destination '{destination}'. {reason}".strip())


class SinkRegistrationError(LoggerError):
    """Exception raised when the dispatch engine refuses a new sink."""
