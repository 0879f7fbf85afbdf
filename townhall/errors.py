"""Error taxonomy for the Townhall scheduler.

Configuration problems are reported to the caller synchronously; invariant
violations inside the engine are programming errors and are never caught.
"""

from typing import Optional


class TownhallError(Exception):
    """Base class for all Townhall errors."""


class InvalidConfigError(TownhallError, ValueError):
    """Malformed policy, quantum or simulation configuration.

    Raised before any state changes, so the previous configuration stays
    in effect.
    """


class InsufficientResourceError(TownhallError):
    """The caller-side resource check rejected a task request."""


class DamagedResourceError(InsufficientResourceError):
    """The target building cannot take upgrades until it is repaired."""


class DisruptionStateError(TownhallError, RuntimeError):
    """A disruption decision arrived while no disruption was pending."""


class SchedulingInvariantError(TownhallError, AssertionError):
    """The engine reached a state its invariants rule out."""


class DataIntegrityWarning(UserWarning):
    """Non-fatal inconsistency in task history, recovered locally.

    Instances are logged and stored on the report, never raised.
    """

    def __init__(self, message: str, task_id: Optional[int] = None):
        super().__init__(message)
        self.task_id = task_id

    def __repr__(self) -> str:
        return f"DataIntegrityWarning(task_id={self.task_id}, {self.args[0]!r})"
