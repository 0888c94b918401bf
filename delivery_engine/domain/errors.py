"""
Error taxonomy shared by every engine component.

All errors are returned to the immediate caller; none of them leaves the
engine in a half-written state.  The engine never retries on its own.
"""


class DeliveryEngineError(Exception):
    """Base class for typed engine failures."""


class ValidationError(DeliveryEngineError):
    """Malformed input: out-of-range coordinate, negative weight, etc."""


class ConflictError(DeliveryEngineError):
    """A conditional update lost a race; the job is no longer available."""


class InvalidTransitionError(DeliveryEngineError):
    """Requested status change is not reachable from the current status."""


class NotFoundError(DeliveryEngineError):
    """Referenced delivery request or driver does not exist."""


class OutcomeUnknownError(DeliveryEngineError):
    """
    The store did not answer in time.

    The write may or may not have been applied.  Callers must re-read the
    request before deciding anything; blindly re-sending an ``accept`` can
    make a driver take the same job twice.
    """
