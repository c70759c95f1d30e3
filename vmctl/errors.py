"""Error taxonomy shared by providers, polling and the CLI."""


class VmctlError(Exception):
    """Base class for every failure the CLI reports with a non-zero exit."""


class ConfigurationError(VmctlError):
    """Missing credential or unusable config file."""


class ValidationError(VmctlError):
    """A caller-supplied parameter was rejected before any remote call."""


class NotFoundError(VmctlError):
    """A referenced remote object (SSH key, instance) does not exist."""


class TransportError(VmctlError):
    """Network failure, unexpected HTTP status or SDK client error."""


class ExhaustedError(VmctlError):
    """Polling used up its attempt budget without reaching the ready state."""

    def __init__(self, description, attempts, last_error=None):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        message = f"Gave up waiting for {description} after {attempts} attempt(s)"
        if last_error is not None:
            message += f" (last error: {last_error})"
        super().__init__(message)
