"""Custom exceptions for the GitOps PR automator."""


class AutomatorError(Exception):
    """Base exception for all automator errors."""


class ConfigError(AutomatorError):
    """Raised when the configuration cannot be parsed or validated."""


class VersionLocatorError(AutomatorError):
    """Raised when a tracked release file cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot read release file '{path}': {reason}")


class PlatformResponseError(AutomatorError):
    """Raised when the hosting platform answers 2xx but reports errors in the payload."""
