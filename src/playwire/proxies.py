"""Proxy objects for remote browser contexts, pages and element handles."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from playwire.errors import ProtocolError
from playwire.events import EventRelay
from playwire.node import RemoteObject

if TYPE_CHECKING:
    from playwire.session import Session

logger = logging.getLogger(__name__)


def _require_str(payload: dict[str, object], key: str, action: str) -> str:
    """Read one required string result.

    :param payload: Response payload.
    :param key: Result name.
    :param action: Action name, used in errors.
    :returns: Result value.
    :raises ProtocolError: If the result is missing or not a string.
    """
    value: object = payload.get(key)
    if isinstance(value, str) is False:
        raise ProtocolError(f"{action} payload missing str {key}")
    return value


def _require_bool(payload: dict[str, object], key: str, action: str) -> bool:
    """Read one required boolean result.

    :param payload: Response payload.
    :param key: Result name.
    :param action: Action name, used in errors.
    :returns: Result value.
    :raises ProtocolError: If the result is missing or not a bool.
    """
    value: object = payload.get(key)
    if isinstance(value, bool) is False:
        raise ProtocolError(f"{action} payload missing bool {key}")
    return value


def _optional_str(payload: dict[str, object], key: str, action: str) -> str | None:
    """Read one optional string result.

    :param payload: Response payload.
    :param key: Result name.
    :param action: Action name, used in errors.
    :returns: Result value, or ``None``.
    :raises ProtocolError: If the result is present but not a string.
    """
    value: object = payload.get(key)
    if value is None:
        return None
    if isinstance(value, str) is False:
        raise ProtocolError(f"{action} payload {key} must be a str or null")
    return value


@dataclass(frozen=True)
class ConsoleMessage:
    """One console message emitted by a page."""

    type: str
    text: str


class RemoteProxy(RemoteObject):
    """Base proxy: an ownership node bound to a session, with its own event relay."""

    _session: "Session"
    _released_remotely: bool
    events: EventRelay

    def __init__(self, session: "Session", remote_id: str, remote_type: str) -> None:
        """Initialize a proxy sharing the session's forest lock.

        :param session: Owning session.
        :param remote_id: Remote identifier.
        :param remote_type: Category tag.
        """
        super().__init__(remote_id, remote_type, lock=session.registry.lock)
        self._session = session
        self._released_remotely = False
        self.events = EventRelay()

    @property
    def session(self) -> "Session":
        """Return the owning session.

        :returns: Session.
        """
        return self._session

    def mark_released_remotely(self) -> None:
        """Record that the remote entity and everything it owns are already gone.

        No release message is sent for this proxy or its descendants.
        """
        with self.lock:
            self._released_remotely = True
            for child in self.children:
                if isinstance(child, RemoteProxy) is True:
                    child.mark_released_remotely()

    def dispatch_event(self, event: str, params: dict[str, object]) -> None:
        """Deliver one pushed notification to this proxy's listeners.

        :param event: Event name.
        :param params: Event parameters.
        """
        self.events.dispatch(event, params)

    def _send(self, action: str, **params: object) -> dict[str, object]:
        """Send one action for this proxy after checking it is alive.

        :param action: Protocol action name.
        :param params: Action parameters.
        :returns: Response payload.
        :raises DisposedObjectError: If this proxy is disposed.
        """
        self.assert_alive(action)
        message: dict[str, object] = {"action": action}
        message.update(params)
        return self._session.transport.send(message)

    def _release_message(self) -> dict[str, object] | None:
        """Build the message releasing the remote entity.

        :returns: Release message, or ``None`` when nothing needs releasing.
        """
        return None

    def _on_dispose(self) -> None:
        """Send the best-effort release message unless the remote side already dropped the entity."""
        if self._released_remotely is True:
            return
        message: dict[str, object] | None = self._release_message()
        if message is None:
            return
        self._session.transport.send(message)


class ElementHandle(RemoteProxy):
    """Proxy for one element inside a page."""

    def __init__(self, session: "Session", handle_id: str) -> None:
        """Initialize an element handle proxy.

        :param session: Owning session.
        :param handle_id: Remote handle identifier.
        """
        super().__init__(session, handle_id, "handle")

    def _query_bool(self, action: str) -> bool:
        payload: dict[str, object] = self._send(action, handleId=self.remote_id)
        return _require_bool(payload, "value", action)

    def is_visible(self) -> bool:
        """Return whether the element is visible."""
        return self._query_bool("elementHandle.isVisible")

    def is_enabled(self) -> bool:
        """Return whether the element is enabled."""
        return self._query_bool("elementHandle.isEnabled")

    def is_checked(self) -> bool:
        """Return whether the element is checked."""
        return self._query_bool("elementHandle.isChecked")

    def text_content(self) -> str | None:
        """Return the element's text content, or ``None``."""
        action: str = "elementHandle.textContent"
        payload: dict[str, object] = self._send(action, handleId=self.remote_id)
        return _optional_str(payload, "value", action)

    def input_value(self) -> str:
        """Return the value of an input-like element."""
        action: str = "elementHandle.inputValue"
        payload: dict[str, object] = self._send(action, handleId=self.remote_id)
        return _require_str(payload, "value", action)

    def get_attribute(self, name: str) -> str | None:
        """Return attribute ``name``, or ``None`` when absent.

        :param name: Attribute name.
        :returns: Attribute value.
        """
        action: str = "elementHandle.getAttribute"
        payload: dict[str, object] = self._send(action, handleId=self.remote_id, name=name)
        return _optional_str(payload, "value", action)

    def count(self) -> int:
        """Return the number of elements this handle refers to, which is always one."""
        self.assert_alive("count")
        return 1

    def _release_message(self) -> dict[str, object] | None:
        return {"action": "elementHandle.dispose", "handleId": self.remote_id}


class Page(RemoteProxy):
    """Proxy for one page (tab) inside a browser context."""

    def __init__(self, session: "Session", page_id: str) -> None:
        """Initialize a page proxy.

        :param session: Owning session.
        :param page_id: Remote page identifier.
        """
        super().__init__(session, page_id, "page")

    @property
    def context(self) -> "BrowserContext | None":
        """Return the browser context owning this page.

        :returns: Owning context, or ``None`` for detached pages.
        """
        parent: RemoteObject | None = self.parent
        if isinstance(parent, BrowserContext) is True:
            return parent
        return None

    def url(self) -> str:
        """Return the page's current URL."""
        action: str = "page.url"
        payload: dict[str, object] = self._send(action, pageId=self.remote_id)
        return _require_str(payload, "value", action)

    def title(self) -> str:
        """Return the page's current title."""
        action: str = "page.title"
        payload: dict[str, object] = self._send(action, pageId=self.remote_id)
        return _require_str(payload, "value", action)

    def goto(self, url: str) -> None:
        """Navigate the page to ``url``.

        :param url: Target URL.
        """
        self._send("page.goto", pageId=self.remote_id, url=url)

    def query_selector(self, selector: str) -> ElementHandle | None:
        """Resolve ``selector`` to an element handle owned by this page.

        :param selector: Element selector.
        :returns: Handle, or ``None`` when nothing matches.
        """
        action: str = "page.querySelector"
        payload: dict[str, object] = self._send(action, pageId=self.remote_id, selector=selector)
        handle_id: str | None = _optional_str(payload, "handleId", action)
        if handle_id is None:
            return None
        handle: ElementHandle = ElementHandle(self._session, handle_id)
        self._session.adopt(handle, parent=self)
        return handle

    def close(self) -> None:
        """Close the page, disposing every handle it owns."""
        self.dispose()

    def dispatch_event(self, event: str, params: dict[str, object]) -> None:
        """Translate and deliver one pushed page notification.

        :param event: Event name.
        :param params: Event parameters.
        """
        if event == "console":
            message: ConsoleMessage = ConsoleMessage(
                type=str(params.get("type", "log")),
                text=str(params.get("text", "")),
            )
            self.events.dispatch("console", message)
            return

        if event == "popup":
            page_id: object = params.get("pageId")
            if isinstance(page_id, str) is False:
                raise ProtocolError("popup event missing str pageId")
            popup: Page = self._session.page_for(page_id, self.context)
            self.events.dispatch("popup", popup)
            return

        if event == "close":
            logger.debug("Page %s closed by the engine", self.remote_id)
            self.mark_released_remotely()
            self.dispose()
            self.events.dispatch("close", self)
            return

        self.events.dispatch(event, params)

    def _release_message(self) -> dict[str, object] | None:
        return {"action": "page.close", "pageId": self.remote_id}


class BrowserContext(RemoteProxy):
    """Proxy for one isolated browser context owning its pages."""

    def __init__(self, session: "Session", context_id: str) -> None:
        """Initialize a browser context proxy.

        :param session: Owning session.
        :param context_id: Remote context identifier.
        """
        super().__init__(session, context_id, "context")

    @property
    def pages(self) -> list[Page]:
        """Return the live pages owned by this context.

        :returns: Pages in creation order.
        """
        return [child for child in self.children if isinstance(child, Page) is True]

    def new_page(self) -> Page:
        """Open a new page owned by this context.

        :returns: Page proxy.
        """
        action: str = "context.newPage"
        payload: dict[str, object] = self._send(action, contextId=self.remote_id)
        page_id: str = _require_str(payload, "pageId", action)
        return self._session.page_for(page_id, self)

    def close(self) -> None:
        """Close the context, disposing every page and handle it owns."""
        self.dispose()

    def dispatch_event(self, event: str, params: dict[str, object]) -> None:
        """Translate and deliver one pushed context notification.

        :param event: Event name.
        :param params: Event parameters.
        """
        if event == "page":
            page_id: object = params.get("pageId")
            if isinstance(page_id, str) is False:
                raise ProtocolError("page event missing str pageId")
            page: Page = self._session.page_for(page_id, self)
            self.events.dispatch("page", page)
            return

        self.events.dispatch(event, params)

    def _release_message(self) -> dict[str, object] | None:
        return {"action": "context.close", "contextId": self.remote_id}
