"""
Error types and event log categories for FileLizard.
"""

import enum


class ServiceEventIds(enum.IntEnum):
    """Numeric categories attached to error log entries."""

    CONFIGURATION_INVALID = 1000
    INITIALIZATION_FAILURE = 2000
    INITIALIZATION_DIR_NOT_EXIST = 2010
    INITIALIZATION_DIR_NO_ACCESS = 2020
    INITIALIZATION_DIR_OTHER_ERROR = 2030
    SMTP_FAILURE = 3000
    START_FAILURE = 4000
    STOP_FAILURE = 5000
    WATCHER_ERROR = 6000
    WATCHER_BUFFER_OVERFLOW = 6010


class FileLizardError(Exception):
    """Base class for errors raised by FileLizard."""

    pass


class ConfigurationError(FileLizardError):
    """Raised when required configuration settings are missing or invalid."""

    def __init__(self, message, missing_keys=None):
        super().__init__(message)
        self.missing_keys = list(missing_keys or [])


class StartError(FileLizardError):
    """Raised when the watch subscription cannot be established."""

    event_id = ServiceEventIds.INITIALIZATION_FAILURE


class DirectoryUnavailable(StartError):
    """Raised when the directory to monitor is missing or cannot be read."""

    def __init__(self, path, reason, event_id=ServiceEventIds.INITIALIZATION_DIR_OTHER_ERROR):
        super().__init__(f'Directory "{path}" is unavailable: {reason}')
        self.path = path
        self.reason = reason
        self.event_id = event_id


class WatcherBufferOverflow(OSError):
    """Raised when change events arrive faster than the watcher can read them."""

    pass
