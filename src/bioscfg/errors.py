"""Error kinds raised across the BIOS configuration worker."""

from __future__ import annotations

TASK_FATAL_ERROR_MESSAGE = "Task fatal error, check logs for details"


class BiosCfgError(Exception):
    """Base class for every anticipated failure in this package."""

    retryable: bool = False


class ConfigurationError(BiosCfgError):
    """Invalid or incomplete process configuration."""


class InvalidParametersError(BiosCfgError):
    """Task envelope parameters are malformed; redelivery will not help."""


class TaskConversionError(BiosCfgError):
    """Envelope and typed task could not be converted into each other."""


class AssetLookupError(BiosCfgError):
    """Inventory service unreachable or asset unknown."""

    retryable = True


class SessionOpenError(BiosCfgError):
    """BMC session could not be opened."""


class SessionCloseError(BiosCfgError):
    """BMC session could not be closed cleanly."""


class StepExecutionError(BiosCfgError):
    """A task step failed; remaining steps are not run."""

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class UnsupportedActionError(BiosCfgError):
    """Requested action has no known handler."""


class ConfigFetchError(BiosCfgError):
    """BIOS configuration file could not be downloaded."""


class TaskCancelledError(BiosCfgError):
    """Cancellation was requested before the next step started."""


class TaskFatalError(BiosCfgError):
    """Uncontrolled fault contained at the task boundary."""

    def __init__(self) -> None:
        super().__init__(TASK_FATAL_ERROR_MESSAGE)
