class ResponderError(Exception):
    """Base class for errors raised by responder."""


class EmptyHistoryError(ResponderError):
    """Raised when a run is started without any history to respond to."""


class ProviderError(ResponderError):
    """The completion provider failed to open or deliver a stream."""


class ToolExecutionError(ResponderError):
    """A tool could not be executed (unknown name, bad arguments)."""


class ConfigurationError(ResponderError):
    """Required settings are missing or inconsistent."""
