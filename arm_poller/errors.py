from typing import Any, Optional


class PollerError(Exception):
    """Base class for every error raised by arm_poller"""


class TransientTransportError(PollerError):
    """Network failure or 5xx response, safe to retry until the deadline"""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.status = status
        self.retry_after = retry_after


class FatalRequestError(PollerError):
    """4xx or malformed request, never retried"""

    def __init__(
        self,
        status: Optional[int],
        message: str,
        code: Optional[str] = None,
    ):
        prefix = f"HTTP {status}" if code is None else f"HTTP {status} {code}"
        super().__init__(f"{prefix}: {message}")
        self.status = status
        self.code = code
        self.message = message


class RemoteOperationFailed(PollerError):
    def __init__(self, state: Any, message: Optional[str], code: Optional[str] = None):
        super().__init__(
            f"operation finished in state {getattr(state, 'value', state)}"
            f" ({code or 'no code'}): {message or 'no message'}"
        )
        self.state = state
        self.code = code
        self.message = message


class OperationCancelled(RemoteOperationFailed):
    pass


class DeadlineExceeded(PollerError, TimeoutError):
    """Local timeout reached before a terminal state was observed.

    The operation may still be running remotely; ``operation`` holds the handle
    so the caller can persist it and re-poll later.
    """

    def __init__(self, timeout: float, last_state: Any = None, operation: Any = None):
        super().__init__(
            f"operation did not reach a terminal state within {timeout} seconds"
            f" (last state: {getattr(last_state, 'value', last_state)})"
        )
        self.timeout = timeout
        self.last_state = last_state
        self.operation = operation


class UnexpectedStateError(PollerError):
    def __init__(self, state: Optional[str], expected: list[str]):
        super().__init__(f"unexpected state {state!r}, wanted target {expected!r}")
        self.state = state
        self.expected = expected


class ResourceAlreadyExistsError(PollerError):
    def __init__(self, resource_id: str):
        super().__init__(
            f"a resource with the ID {resource_id!r} already exists"
            " and must be imported into state before it can be managed"
        )
        self.resource_id = resource_id


class InvalidResourceIdError(PollerError, ValueError):
    def __init__(self, value: str, reason: str):
        super().__init__(f"parsing {value!r}: {reason}")
        self.value = value
        self.reason = reason
