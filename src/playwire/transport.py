"""Request/response channels to the remote automation engine."""

import logging
import threading
import time
from collections.abc import Callable
from multiprocessing.connection import Connection
from typing import Protocol
from typing import runtime_checkable

from playwire.errors import DisconnectedError
from playwire.errors import ProtocolError
from playwire.errors import RemoteTimeoutError
from playwire.errors import map_protocol_error

logger = logging.getLogger(__name__)

EventSink = Callable[[dict[str, object]], None]


@runtime_checkable
class Transport(Protocol):
    """Synchronous request/response channel consumed by sessions."""

    def send(self, message: dict[str, object]) -> dict[str, object]:
        """Send one action and return its named results.

        :param message: ``{"action": name, **params}``.
        :returns: Flat mapping of named results.
        """
        ...


@runtime_checkable
class EventSource(Protocol):
    """Transport that can push unsolicited notifications to a sink."""

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Install the callable receiving pushed notifications.

        :param sink: Event sink, or ``None`` to drop pushes.
        """
        ...


class PipeTransport:
    """Transport over a duplex ``multiprocessing`` connection.

    Requests carry a monotonically increasing ``request_id``. Pushed event
    frames that arrive while a response is pending are buffered and handed to
    the event sink, in arrival order, once that response has been read. A
    listener may therefore issue its own requests from inside the sink.
    """

    _connection: Connection | None
    _timeout_s: float | None
    _event_sink: EventSink | None
    _next_request_id: int
    _lock: threading.RLock
    _is_closed: bool

    def __init__(self, connection: Connection, timeout_s: float | None = 30.0) -> None:
        """Initialize a transport around an open connection.

        :param connection: Duplex connection to the engine.
        :param timeout_s: Upper bound on one round trip, or ``None`` to wait forever.
        """
        self._connection = connection
        self._timeout_s = timeout_s
        self._event_sink = None
        self._next_request_id = 1
        self._lock = threading.RLock()
        self._is_closed = False

    @property
    def is_closed(self) -> bool:
        """Report whether this transport has been closed.

        :returns: ``True`` when closed.
        """
        with self._lock:
            return self._is_closed

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Install the callable receiving pushed notifications.

        :param sink: Event sink, or ``None`` to drop pushes.
        """
        with self._lock:
            self._event_sink = sink

    def send(self, message: dict[str, object]) -> dict[str, object]:
        """Send one action and wait for its correlated response.

        :param message: ``{"action": name, **params}``.
        :returns: Response payload.
        :raises ProtocolError: For malformed frames or remote protocol errors.
        :raises RemoteTimeoutError: If no response arrives in time.
        :raises DisconnectedError: If the channel is closed or broken.
        """
        action_obj: object = message.get("action")
        if isinstance(action_obj, str) is False:
            raise ProtocolError("message action must be a string")
        action: str = action_obj

        with self._lock:
            connection: Connection = self._require_connection()
            request_id: int = self._next_request_id
            self._next_request_id += 1

            request: dict[str, object] = dict(message)
            request["request_id"] = request_id
            try:
                connection.send(request)
            except (BrokenPipeError, EOFError, OSError) as exc:
                raise DisconnectedError(f"Failed to send {action} to engine") from exc

            pending_events: list[dict[str, object]] = []
            try:
                return self._wait_for_response(request_id, action, pending_events)
            finally:
                self._deliver_pending(pending_events, action)

    def pump_events(self) -> int:
        """Deliver every pushed notification already waiting on the channel.

        :returns: Number of notifications delivered.
        :raises ProtocolError: If a response frame arrives with no request pending.
        """
        delivered: int = 0
        with self._lock:
            connection: Connection = self._require_connection()
            while True:
                try:
                    has_data: bool = connection.poll(0)
                except (EOFError, OSError) as exc:
                    raise DisconnectedError("Engine connection closed") from exc
                if has_data is False:
                    return delivered
                frame: dict[str, object] = self._receive(connection, None)
                if "status" in frame:
                    raise ProtocolError(f"Unsolicited response for request {frame.get('request_id')!r}")
                self._deliver_event(frame)
                delivered += 1

    def close(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        with self._lock:
            if self._is_closed is True:
                return
            self._is_closed = True
            connection: Connection | None = self._connection
            self._connection = None
            self._event_sink = None

        if connection is not None:
            try:
                connection.close()
            except OSError:
                logger.debug("Ignoring error while closing engine connection", exc_info=True)

    def _require_connection(self) -> Connection:
        """Return the active connection.

        :returns: Open connection.
        :raises DisconnectedError: If the transport is closed.
        """
        connection: Connection | None = self._connection
        if self._is_closed is True or connection is None:
            raise DisconnectedError("Transport is closed")
        return connection

    def _receive(self, connection: Connection, deadline: float | None) -> dict[str, object]:
        """Receive one frame, honoring the round-trip deadline.

        :param connection: Open connection.
        :param deadline: Absolute ``time.monotonic`` deadline, or ``None``.
        :returns: Decoded frame.
        :raises RemoteTimeoutError: If the deadline passes first.
        :raises DisconnectedError: If the channel breaks.
        :raises ProtocolError: If the frame is not a dict.
        """
        try:
            if deadline is not None:
                remaining: float = max(0.0, deadline - time.monotonic())
                ready: bool = connection.poll(remaining)
                if ready is False:
                    timeout_ms: float = (self._timeout_s or 0.0) * 1000.0
                    raise RemoteTimeoutError(f"No response from engine within {timeout_ms:.0f}ms", timeout_ms)
            incoming: object = connection.recv()
        except (EOFError, BrokenPipeError, OSError) as exc:
            raise DisconnectedError("Failed to receive message from engine") from exc

        if isinstance(incoming, dict) is False:
            raise ProtocolError("Engine message must be a dict")
        return incoming

    def _wait_for_response(
        self,
        expected_request_id: int,
        action: str,
        pending_events: list[dict[str, object]],
    ) -> dict[str, object]:
        """Wait for one correlated response, buffering pushed events.

        :param expected_request_id: Request id being waited for.
        :param action: Action name, used in errors.
        :param pending_events: Receives event frames read before the response.
        :returns: Response payload.
        """
        deadline: float | None = None
        if self._timeout_s is not None:
            deadline = time.monotonic() + self._timeout_s

        while True:
            connection: Connection = self._require_connection()
            message: dict[str, object] = self._receive(connection, deadline)

            has_status: bool = "status" in message
            if has_status is False:
                if "event" in message:
                    pending_events.append(message)
                    continue
                raise ProtocolError("Engine message must include either status or event")

            request_id_obj: object = message.get("request_id")
            if isinstance(request_id_obj, int) is False:
                raise ProtocolError("Engine response request_id must be an int")
            if request_id_obj != expected_request_id:
                raise ProtocolError(
                    f"Unexpected response request_id {request_id_obj}; expected {expected_request_id}"
                )

            status: object = message.get("status")
            payload_obj: object = message.get("payload", {})
            if isinstance(payload_obj, dict) is False:
                raise ProtocolError(f"{action} response payload must be a dict")
            payload: dict[str, object] = payload_obj

            if status == "ok":
                return payload
            if status == "error":
                timeout_ms: float | None = None
                if self._timeout_s is not None:
                    timeout_ms = self._timeout_s * 1000.0
                raise map_protocol_error(payload, action, timeout_ms)
            raise ProtocolError(f"Unknown engine response status: {status!r}")

    def _deliver_pending(self, pending_events: list[dict[str, object]], action: str) -> None:
        """Deliver events buffered while waiting for a response.

        :param pending_events: Event frames in arrival order.
        :param action: Action whose response was awaited, used in logs.
        """
        for message in pending_events:
            try:
                self._deliver_event(message)
            except Exception:
                # The caller's response is already read and decides the outcome.
                logger.error(
                    "Event %r received during %s failed",
                    message.get("event"),
                    action,
                    exc_info=True,
                )

    def _deliver_event(self, message: dict[str, object]) -> None:
        """Hand one pushed notification to the event sink.

        :param message: Event frame.
        """
        sink: EventSink | None = self._event_sink
        if sink is None:
            logger.debug("Dropping %r event: no sink installed", message.get("event"))
            return
        sink(message)
