"""Client session: owns the proxy forest and routes pushed notifications."""

import logging
from types import TracebackType

from playwire.config import ClientConfig
from playwire.errors import DisconnectedError
from playwire.errors import ProtocolError
from playwire.expect import Expectation
from playwire.expect import expect as build_expectation
from playwire.node import RemoteObject
from playwire.proxies import BrowserContext
from playwire.proxies import Page
from playwire.proxies import RemoteProxy
from playwire.registry import OwnershipRegistry
from playwire.transport import EventSource
from playwire.transport import Transport

logger = logging.getLogger(__name__)

DISPOSE_EVENT: str = "__dispose__"


class Session:
    """Connection-scoped owner of every proxy created through one transport.

    The session's registry lock guards the whole proxy forest. The session
    installs itself as the transport's event sink when the transport can
    push notifications.
    """

    _transport: Transport
    _config: ClientConfig
    _registry: OwnershipRegistry
    _owns_transport: bool
    _is_closed: bool

    def __init__(
        self,
        transport: Transport,
        config: ClientConfig | None = None,
        owns_transport: bool = False,
    ) -> None:
        """Initialize a session over ``transport``.

        :param transport: Request/response channel to the engine.
        :param config: Client configuration, defaults to ``ClientConfig()``.
        :param owns_transport: Close the transport when the session closes.
        """
        self._transport = transport
        self._config = config if config is not None else ClientConfig()
        self._registry = OwnershipRegistry()
        self._owns_transport = owns_transport
        self._is_closed = False
        if isinstance(transport, EventSource) is True:
            transport.set_event_sink(self.handle_event)

    @property
    def transport(self) -> Transport:
        """Return the session transport.

        :returns: Transport.
        """
        return self._transport

    @property
    def config(self) -> ClientConfig:
        """Return the session configuration.

        :returns: Client configuration.
        """
        return self._config

    @property
    def registry(self) -> OwnershipRegistry:
        """Return the id index of live proxies.

        :returns: Registry.
        """
        return self._registry

    @property
    def is_closed(self) -> bool:
        """Report whether the session has been closed.

        :returns: ``True`` when closed.
        """
        with self._registry.lock:
            return self._is_closed

    def new_context(self, **options: object) -> BrowserContext:
        """Create an isolated browser context.

        :param options: Context options forwarded to the engine.
        :returns: Root context proxy.
        :raises DisconnectedError: If the session is closed.
        """
        self._require_open()
        action: str = "browser.newContext"
        payload: dict[str, object] = self._transport.send({"action": action, "options": dict(options)})
        context_id: object = payload.get("contextId")
        if isinstance(context_id, str) is False:
            raise ProtocolError(f"{action} payload missing str contextId")
        context: BrowserContext = BrowserContext(self, context_id)
        self.adopt(context)
        return context

    def adopt(self, proxy: RemoteObject, parent: RemoteObject | None = None) -> RemoteObject:
        """Register ``proxy`` and, when given, make it owned by ``parent``.

        :param proxy: Node to track.
        :param parent: Owning node.
        :returns: The adopted node.
        """
        if parent is None:
            self._registry.register(proxy)
        else:
            self._registry.link_parent_child(parent, proxy)
        return proxy

    def page_for(self, page_id: str, context: BrowserContext | None) -> Page:
        """Return the live proxy for ``page_id``, creating and adopting it when new.

        :param page_id: Remote page identifier.
        :param context: Owning context for a new page.
        :returns: Page proxy.
        """
        with self._registry.lock:
            existing: RemoteObject | None = self._registry.get(page_id)
            if isinstance(existing, Page) is True:
                return existing
            page: Page = Page(self, page_id)
            self.adopt(page, parent=context)
            return page

    def get(self, remote_id: str) -> RemoteObject | None:
        """Return the live node registered under ``remote_id``.

        :param remote_id: Remote identifier.
        :returns: Node, or ``None``.
        """
        return self._registry.get(remote_id)

    def handle_event(self, message: dict[str, object]) -> None:
        """Route one pushed notification to the proxy it addresses.

        :param message: ``{"objectId": id, "event": name, "params": {...}}``.
        :raises ProtocolError: If the notification is malformed.
        """
        object_id: object = message.get("objectId")
        event: object = message.get("event")
        params: object = message.get("params", {})
        if isinstance(object_id, str) is False:
            raise ProtocolError("Event objectId must be a string")
        if isinstance(event, str) is False:
            raise ProtocolError("Event name must be a string")
        if isinstance(params, dict) is False:
            raise ProtocolError(f"{event} event params must be a dict")

        node: RemoteObject | None = self._registry.get(object_id)
        if event == DISPOSE_EVENT:
            if isinstance(node, RemoteProxy) is True:
                node.mark_released_remotely()
            self._registry.dispose_cascade(object_id)
            return

        if node is None:
            logger.warning("Dropping %r event for unknown object %s", event, object_id)
            return
        if isinstance(node, RemoteProxy) is False:
            logger.warning("Dropping %r event for %s %s: no event relay", event, node.remote_type, object_id)
            return

        logger.debug("Routing %r event to %s %s", event, node.remote_type, object_id)
        node.dispatch_event(event, params)

    def expect(self, target: object, timeout_ms: int | None = None) -> Expectation:
        """Build an expectation using this session's timeout and poll defaults.

        :param target: Element or page to assert on.
        :param timeout_ms: Deadline replacing the session default; per-call timeouts still win.
        :returns: Expectation.
        """
        return build_expectation(target, timeout_ms=timeout_ms, config=self._config)

    def close(self) -> None:
        """Dispose every proxy and release the transport. Safe to call repeatedly."""
        with self._registry.lock:
            if self._is_closed is True:
                return
            self._is_closed = True
            roots: list[RemoteObject] = [
                node for node in self._registry.get_all().values() if node.parent is None
            ]

        for root in roots:
            root.dispose()
        self._registry.reset()

        if isinstance(self._transport, EventSource) is True:
            self._transport.set_event_sink(None)
        if self._owns_transport is True:
            close_transport: object = getattr(self._transport, "close", None)
            if callable(close_transport) is True:
                close_transport()
        logger.debug("Session closed after disposing %d root(s)", len(roots))

    def _require_open(self) -> None:
        """Raise when the session is closed.

        :raises DisconnectedError: If the session is closed.
        """
        if self.is_closed is True:
            raise DisconnectedError("Session is closed")

    def __enter__(self) -> "Session":
        """Return this session for ``with`` blocks."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the session on block exit."""
        self.close()
