class ConfigurationError(RuntimeError):
    """Missing credentials or paths; raised before a scan touches any photo"""


class ScanInProgressError(RuntimeError):
    """A scan is already running for this user"""


class InvalidTransitionError(ValueError):
    """Unmatched photo review status change that the lifecycle does not allow"""
