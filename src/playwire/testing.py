"""In-process scripted transport for tests and offline use."""

import threading
from collections.abc import Callable
from dataclasses import dataclass

from playwire.errors import ProtocolError
from playwire.transport import EventSink

Matcher = Callable[[dict[str, object]], bool]
ScriptedPayload = dict[str, object] | Callable[[dict[str, object]], dict[str, object]] | BaseException


@dataclass
class _Script:
    """One queued response."""

    payload: ScriptedPayload
    matcher: Matcher | None


def action_is(action: str) -> Matcher:
    """Build a matcher accepting messages for one action.

    :param action: Action name.
    :returns: Matcher callable.
    """
    return lambda message: message.get("action") == action


class ScriptedTransport:
    """Transport answering each ``send`` with the first matching queued response."""

    _lock: threading.Lock
    _scripts: list[_Script]
    _sent_messages: list[dict[str, object]]
    _event_sink: EventSink | None

    def __init__(self) -> None:
        """Initialize a transport with no scripted responses."""
        self._lock = threading.Lock()
        self._scripts = []
        self._sent_messages = []
        self._event_sink = None

    @property
    def sent_messages(self) -> list[dict[str, object]]:
        """Return a copy of every message sent so far.

        :returns: Sent messages in order.
        """
        with self._lock:
            return list(self._sent_messages)

    @property
    def pending_response_count(self) -> int:
        """Return how many scripted responses remain unused.

        :returns: Script count.
        """
        with self._lock:
            return len(self._scripts)

    def sent_actions(self) -> list[str]:
        """Return the action names sent so far.

        :returns: Action names in order.
        """
        return [str(message.get("action")) for message in self.sent_messages]

    def queue_response(self, payload: ScriptedPayload, matcher: Matcher | str | None = None) -> None:
        """Queue a response for a future ``send``.

        :param payload: Result mapping, a callable building it from the message, or an exception to raise.
        :param matcher: Predicate over the message, an action name, or ``None`` to match anything.
        """
        resolved_matcher: Matcher | None
        if isinstance(matcher, str) is True:
            resolved_matcher = action_is(matcher)
        else:
            resolved_matcher = matcher
        with self._lock:
            self._scripts.append(_Script(payload=payload, matcher=resolved_matcher))

    def send(self, message: dict[str, object]) -> dict[str, object]:
        """Record ``message`` and answer it from the script queue.

        :param message: ``{"action": name, **params}``.
        :returns: Scripted result mapping.
        :raises ProtocolError: If no queued response matches.
        """
        with self._lock:
            self._sent_messages.append(dict(message))
            script: _Script | None = None
            for index, candidate in enumerate(self._scripts):
                if candidate.matcher is not None and candidate.matcher(message) is False:
                    continue
                script = self._scripts.pop(index)
                break

        if script is None:
            raise ProtocolError(f"No scripted response matches action {message.get('action')!r}")
        if isinstance(script.payload, BaseException) is True:
            raise script.payload
        if callable(script.payload) is True:
            return script.payload(message)
        return dict(script.payload)

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Install the callable receiving pushed notifications.

        :param sink: Event sink, or ``None`` to drop pushes.
        """
        with self._lock:
            self._event_sink = sink

    def push_event(self, object_id: str, event: str, params: dict[str, object] | None = None) -> None:
        """Simulate one server-pushed notification.

        :param object_id: Remote id the notification is addressed to.
        :param event: Event name.
        :param params: Event parameters.
        """
        with self._lock:
            sink: EventSink | None = self._event_sink
        if sink is None:
            return
        sink({"objectId": object_id, "event": event, "params": dict(params or {})})
