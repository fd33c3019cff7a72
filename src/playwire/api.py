"""User-facing API entrypoints for playwire."""

from multiprocessing.connection import Connection

from playwire.config import ClientConfig
from playwire.expect import Expectation
from playwire.expect import expect as build_expectation
from playwire.session import Session
from playwire.transport import PipeTransport


def connect(connection: Connection, config: ClientConfig | None = None) -> Session:
    """Open a session over a duplex connection to a running engine.

    The session owns the transport and closes it when the session closes.

    :param connection: Duplex connection whose far end speaks the engine protocol.
    :param config: Client configuration, defaults to ``ClientConfig.from_env()``.
    :returns: Open session.
    """
    resolved_config: ClientConfig = config if config is not None else ClientConfig.from_env()
    transport: PipeTransport = PipeTransport(connection, timeout_s=resolved_config.transport_timeout_s)
    return Session(transport, config=resolved_config, owns_transport=True)


def expect(
    target: object,
    timeout_ms: int | None = None,
    config: ClientConfig | None = None,
) -> Expectation:
    """Build an auto-retrying expectation for an element or page.

    :param target: Element handle or page.
    :param timeout_ms: Deadline replacing the configured default; per-call timeouts still win.
    :param config: Source of the default timeout and poll interval.
    :returns: Expectation.
    """
    return build_expectation(target, timeout_ms=timeout_ms, config=config)
