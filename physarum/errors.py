"""Exception hierarchy for the trail engine."""


class PhysarumError(Exception):
    """Base class for all engine errors."""


class InitError(PhysarumError):
    """Raised when a run cannot be started.

    Covers an unavailable compute backend and out-of-range configuration.
    Never retried.
    """


class DispatchError(PhysarumError):
    """Raised when a relaxation or agent pass could not be executed.

    Fatal to the current run: the scheduler halts and the partially
    computed tick is discarded.
    """


class SchedulerError(PhysarumError):
    """Raised on lifecycle misuse, e.g. ticking a halted scheduler."""
