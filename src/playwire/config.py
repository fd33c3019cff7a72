"""Client configuration for playwire sessions and expectations."""

import dataclasses
import os
from dataclasses import dataclass

DEFAULT_TIMEOUT_MS: int = 5000
DEFAULT_POLL_INTERVAL_MS: int = 50
DEFAULT_TRANSPORT_TIMEOUT_S: float = 30.0
ENV_TIMEOUT_MS: str = "PLAYWIRE_TIMEOUT_MS"
ENV_POLL_INTERVAL_MS: str = "PLAYWIRE_POLL_INTERVAL_MS"
ENV_TRANSPORT_TIMEOUT_S: str = "PLAYWIRE_TRANSPORT_TIMEOUT_S"


def _read_positive_int(name: str, default: int) -> int:
    """Read one positive integer environment variable.

    :param name: Environment variable name.
    :param default: Value used when the variable is unset or blank.
    :returns: Parsed value.
    :raises ValueError: If the value is not a positive integer.
    """
    raw: str = os.environ.get(name, "").strip()
    if len(raw) == 0:
        return default
    try:
        value: int = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _read_optional_seconds(name: str, default: float | None) -> float | None:
    """Read one optional positive float environment variable.

    :param name: Environment variable name.
    :param default: Value used when the variable is unset.
    :returns: Parsed value, or ``None`` for ``none``/blank.
    :raises ValueError: If the value is not a positive number.
    """
    raw_obj: str | None = os.environ.get(name)
    if raw_obj is None:
        return default
    raw: str = raw_obj.strip()
    if len(raw) == 0 or raw.lower() == "none":
        return None
    try:
        value: float = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class ClientConfig:
    """Timeouts and polling defaults shared by a session."""

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    transport_timeout_s: float | None = DEFAULT_TRANSPORT_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate field values.

        :raises ValueError: If a timeout or interval is not positive.
        """
        if self.default_timeout_ms < 0:
            raise ValueError("default_timeout_ms must be >= 0")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be > 0")
        if self.transport_timeout_s is not None and self.transport_timeout_s <= 0:
            raise ValueError("transport_timeout_s must be > 0 or None")

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a configuration from ``PLAYWIRE_*`` environment variables.

        :returns: Configuration with unset variables left at their defaults.
        """
        return cls(
            default_timeout_ms=_read_positive_int(ENV_TIMEOUT_MS, DEFAULT_TIMEOUT_MS),
            poll_interval_ms=_read_positive_int(ENV_POLL_INTERVAL_MS, DEFAULT_POLL_INTERVAL_MS),
            transport_timeout_s=_read_optional_seconds(ENV_TRANSPORT_TIMEOUT_S, DEFAULT_TRANSPORT_TIMEOUT_S),
        )

    def with_overrides(self, **changes: object) -> "ClientConfig":
        """Return a copy with selected fields replaced.

        :param changes: Field values to replace.
        :returns: New configuration.
        """
        return dataclasses.replace(self, **changes)
