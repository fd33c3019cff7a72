"""Custom error types for playwire."""


class PlaywireError(Exception):
    """Base class for all playwire errors."""


class DisposedObjectError(PlaywireError):
    """Raised when an operation targets a proxy whose remote object is disposed."""

    action: str
    remote_type: str
    remote_id: str

    def __init__(self, action: str, remote_type: str, remote_id: str) -> None:
        """Initialize a disposed-object error.

        :param action: Name of the attempted operation.
        :param remote_type: Category tag of the disposed object.
        :param remote_id: Remote identifier of the disposed object.
        """
        self.action = action
        self.remote_type = remote_type
        self.remote_id = remote_id
        super().__init__(f"Cannot perform {action} on disposed {remote_type} (id: {remote_id})")


class OwnershipError(PlaywireError):
    """Raised when a parent/child link would break the ownership forest."""


class SubjectTypeError(PlaywireError, TypeError):
    """Raised when an assertion targets a subject lacking the required capability."""


class AssertionTimeoutError(PlaywireError, AssertionError):
    """Raised when a polled condition does not reach its target polarity in time."""

    timeout_ms: int
    last_observed: object
    negated: bool

    def __init__(self, message: str, timeout_ms: int, last_observed: object, negated: bool = False) -> None:
        """Initialize a timeout failure.

        :param message: Human-readable failure description.
        :param timeout_ms: Effective deadline in milliseconds.
        :param last_observed: Last value read from the subject.
        :param negated: Whether the expectation was negated.
        """
        self.timeout_ms = timeout_ms
        self.last_observed = last_observed
        self.negated = negated
        super().__init__(f"Assertion timed out after {timeout_ms}ms: {message}")


class EventDispatchError(PlaywireError):
    """Raised after delivery when one or more event listeners failed."""

    event_name: str
    errors: list[Exception]

    def __init__(self, event_name: str, errors: list[Exception]) -> None:
        """Initialize a dispatch failure.

        :param event_name: Name of the dispatched event.
        :param errors: Exceptions raised by listeners, in delivery order.
        """
        self.event_name = event_name
        self.errors = list(errors)
        first: Exception = self.errors[0]
        super().__init__(
            f"{len(self.errors)} listener(s) failed for event {event_name!r}; "
            + f"first: {type(first).__name__}: {first}"
        )


class TransportError(PlaywireError):
    """Base class for failures reported by a transport."""


class ProtocolError(TransportError):
    """Raised for malformed frames or remote protocol errors."""

    protocol_name: str | None
    method: str | None
    remote_stack: str | None
    code: int

    def __init__(
        self,
        message: str,
        code: int = 0,
        protocol_name: str | None = None,
        method: str | None = None,
        remote_stack: str | None = None,
    ) -> None:
        """Initialize a protocol error.

        :param message: Error message.
        :param code: Numeric protocol error code.
        :param protocol_name: Remote error name, such as ``Error``.
        :param method: Action being executed when the error occurred.
        :param remote_stack: Remote stack trace text.
        """
        self.code = code
        self.protocol_name = protocol_name
        self.method = method
        self.remote_stack = remote_stack
        super().__init__(message)


class RemoteTimeoutError(TransportError):
    """Raised when the remote engine or the channel times out."""

    timeout_ms: float

    def __init__(self, message: str, timeout_ms: float = 0.0) -> None:
        """Initialize a remote timeout error.

        :param message: Error message.
        :param timeout_ms: Timeout that elapsed, in milliseconds.
        """
        self.timeout_ms = timeout_ms
        super().__init__(message)


class DisconnectedError(TransportError):
    """Raised when the remote engine closed the target or the channel."""


def _get_str(error: dict[str, object], key: str) -> str | None:
    """Read one string field from an error payload.

    :param error: Error payload.
    :param key: Field name.
    :returns: Field value or ``None`` when absent or not a string.
    """
    value: object = error.get(key)
    if isinstance(value, str) is True:
        return value
    return None


def _get_int(error: dict[str, object], key: str) -> int | None:
    """Read one integer field from an error payload.

    :param error: Error payload.
    :param key: Field name.
    :returns: Field value or ``None`` when absent or not numeric.
    """
    value: object = error.get(key)
    if isinstance(value, bool) is True:
        return None
    if isinstance(value, int) is True:
        return value
    if isinstance(value, str) is True and value.strip().lstrip("-").isdigit() is True:
        return int(value)
    return None


def map_protocol_error(
    error: dict[str, object],
    method: str | None = None,
    timeout_ms: float | None = None,
) -> TransportError:
    """Convert a remote error payload into the matching transport error.

    :param error: Error payload with ``name``, ``message``, ``code`` and ``stack`` fields.
    :param method: Action being executed.
    :param timeout_ms: Timeout used for the request, if any.
    :returns: Transport error instance to raise.
    """
    name: str | None = _get_str(error, "name")
    message: str = _get_str(error, "message") or "Protocol error"
    code: int = _get_int(error, "code") or 0
    stack: str | None = _get_str(error, "stack") or _get_str(error, "remoteStack")

    if name == "TimeoutError" or code == 408:
        return RemoteTimeoutError(message, timeout_ms or 0.0)
    if name in ("TargetClosedError", "DisconnectedError"):
        return DisconnectedError(message)
    return ProtocolError(message, code, name, method, stack)
