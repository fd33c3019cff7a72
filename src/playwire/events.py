"""Per-object listener registry for server-pushed notifications."""

import logging
import threading
from collections.abc import Callable

from playwire.errors import EventDispatchError

logger = logging.getLogger(__name__)

Listener = Callable[..., object]


class _OnceListener:
    """Wrapper that unregisters itself before running the wrapped listener."""

    _relay: "EventRelay"
    _event_name: str
    listener: Listener

    def __init__(self, relay: "EventRelay", event_name: str, listener: Listener) -> None:
        """Initialize a one-shot wrapper.

        :param relay: Relay the wrapper is registered on.
        :param event_name: Event name the wrapper is registered under.
        :param listener: Wrapped listener.
        """
        self._relay = relay
        self._event_name = event_name
        self.listener = listener

    def __call__(self, *args: object) -> object:
        """Remove this registration, then invoke the wrapped listener.

        :param args: Event arguments.
        :returns: Listener result, or ``None`` when the registration was already gone.
        """
        was_registered: bool = self._relay._discard(self._event_name, self)
        if was_registered is False:
            return None
        return self.listener(*args)


class EventRelay:
    """Deliver named notifications to registered callbacks in registration order."""

    _lock: threading.Lock
    _listeners: dict[str, list[Listener]]

    def __init__(self) -> None:
        """Initialize a relay with no listeners."""
        self._lock = threading.Lock()
        self._listeners = {}

    def on(self, event_name: str, listener: Listener) -> None:
        """Register ``listener`` for every future ``event_name`` notification.

        :param event_name: Event name.
        :param listener: Callable invoked with the event arguments.
        """
        with self._lock:
            self._listeners.setdefault(event_name, []).append(listener)

    def once(self, event_name: str, listener: Listener) -> None:
        """Register ``listener`` for the next ``event_name`` notification only.

        :param event_name: Event name.
        :param listener: Callable invoked with the event arguments.
        """
        self.on(event_name, _OnceListener(self, event_name, listener))

    def remove_listener(self, event_name: str, listener: Listener) -> None:
        """Remove the first registration equal to ``listener``.

        A pending ``once`` registration of ``listener`` also matches.

        :param event_name: Event name.
        :param listener: Listener to remove.
        """
        with self._lock:
            listeners: list[Listener] | None = self._listeners.get(event_name)
            if listeners is None:
                return
            for index, candidate in enumerate(listeners):
                is_match: bool = candidate == listener
                if is_match is False and isinstance(candidate, _OnceListener) is True:
                    is_match = candidate.listener == listener
                if is_match is True:
                    del listeners[index]
                    break
            if len(listeners) == 0:
                self._listeners.pop(event_name, None)

    def remove_all_listeners(self, event_name: str | None = None) -> None:
        """Remove every listener for ``event_name``, or for all events.

        :param event_name: Event name, or ``None`` for every event.
        """
        with self._lock:
            if event_name is None:
                self._listeners.clear()
                return
            self._listeners.pop(event_name, None)

    def listener_count(self, event_name: str) -> int:
        """Return how many listeners are registered for ``event_name``.

        :param event_name: Event name.
        :returns: Listener count.
        """
        with self._lock:
            return len(self._listeners.get(event_name, []))

    def dispatch(self, event_name: str, *args: object) -> int:
        """Invoke every listener currently registered for ``event_name``.

        A failing listener does not prevent delivery to the ones after it.

        :param event_name: Event name.
        :param args: Arguments passed to each listener.
        :returns: Number of listeners invoked.
        :raises EventDispatchError: After delivery, if any listener raised.
        """
        with self._lock:
            snapshot: list[Listener] = list(self._listeners.get(event_name, []))

        errors: list[Exception] = []
        for listener in snapshot:
            try:
                listener(*args)
            except Exception as exc:
                logger.debug("Listener for %r raised %s", event_name, type(exc).__name__)
                errors.append(exc)

        if len(errors) > 0:
            raise EventDispatchError(event_name, errors) from errors[0]
        return len(snapshot)

    def _discard(self, event_name: str, listener: Listener) -> bool:
        """Remove the exact registration ``listener`` if still present.

        :param event_name: Event name.
        :param listener: Registered callable, compared by identity.
        :returns: ``True`` when the registration was found and removed.
        """
        with self._lock:
            listeners: list[Listener] | None = self._listeners.get(event_name)
            if listeners is None:
                return False
            for index, candidate in enumerate(listeners):
                if candidate is listener:
                    del listeners[index]
                    if len(listeners) == 0:
                        self._listeners.pop(event_name, None)
                    return True
            return False
