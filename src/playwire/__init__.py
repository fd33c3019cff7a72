"""Public package API for playwire."""

from playwire.api import connect
from playwire.api import expect
from playwire.config import ClientConfig
from playwire.errors import AssertionTimeoutError
from playwire.errors import DisconnectedError
from playwire.errors import DisposedObjectError
from playwire.errors import EventDispatchError
from playwire.errors import OwnershipError
from playwire.errors import PlaywireError
from playwire.errors import ProtocolError
from playwire.errors import RemoteTimeoutError
from playwire.errors import SubjectTypeError
from playwire.errors import TransportError
from playwire.events import EventRelay
from playwire.expect import Expectation
from playwire.expect import Subject
from playwire.expect import poll_until
from playwire.node import RemoteObject
from playwire.proxies import BrowserContext
from playwire.proxies import ConsoleMessage
from playwire.proxies import ElementHandle
from playwire.proxies import Page
from playwire.registry import OwnershipRegistry
from playwire.session import Session
from playwire.transport import PipeTransport

__all__: list[str] = [
    "connect",
    "expect",
    "poll_until",
    "AssertionTimeoutError",
    "BrowserContext",
    "ClientConfig",
    "ConsoleMessage",
    "DisconnectedError",
    "DisposedObjectError",
    "ElementHandle",
    "EventDispatchError",
    "EventRelay",
    "Expectation",
    "OwnershipError",
    "OwnershipRegistry",
    "Page",
    "PipeTransport",
    "PlaywireError",
    "ProtocolError",
    "RemoteObject",
    "RemoteTimeoutError",
    "Session",
    "Subject",
    "SubjectTypeError",
    "TransportError",
]
