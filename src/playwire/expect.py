"""Deadline-bound condition polling and the expectation API built on it."""

import dataclasses
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal
from typing import Protocol
from typing import runtime_checkable

from playwire.config import ClientConfig
from playwire.config import DEFAULT_POLL_INTERVAL_MS
from playwire.config import DEFAULT_TIMEOUT_MS
from playwire.errors import AssertionTimeoutError
from playwire.errors import SubjectTypeError

logger = logging.getLogger(__name__)

SubjectKind = Literal["element", "page"]
Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass(frozen=True)
class PollResult:
    """Outcome of a successful poll."""

    observed_value: object
    attempts: int
    elapsed_ms: float


def poll_until(
    read: Callable[[], object],
    condition: Callable[[object], bool],
    *,
    timeout_ms: int,
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    negated: bool = False,
    description: str = "condition",
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> PollResult:
    """Re-read live state until ``condition`` reaches the target polarity or the deadline passes.

    Each iteration performs exactly one ``read``. Success returns at once,
    without sleeping. Errors raised by ``read`` propagate unchanged.

    :param read: Reads the current state of the subject.
    :param condition: Maps a state to the raw boolean condition.
    :param timeout_ms: Deadline relative to the first read, in milliseconds.
    :param interval_ms: Sleep between reads, in milliseconds.
    :param negated: Pass when the condition does not hold instead of when it does.
    :param description: Failure message used when the deadline passes.
    :param clock: Monotonic clock returning seconds.
    :param sleep: Sleep function taking seconds.
    :returns: Poll outcome with the observed value.
    :raises ValueError: If the timeout is negative or the interval is not positive.
    :raises AssertionTimeoutError: If the deadline passes first.
    """
    if timeout_ms < 0:
        raise ValueError("timeout_ms must be >= 0")
    if interval_ms <= 0:
        raise ValueError("interval_ms must be > 0")

    started: float = clock()
    deadline: float = started + timeout_ms / 1000.0
    interval_s: float = interval_ms / 1000.0
    attempts: int = 0
    last_observed: object = None

    while True:
        state: object = read()
        attempts += 1
        observed: bool = bool(condition(state))
        passed: bool = observed != negated
        if passed is True:
            elapsed_ms: float = (clock() - started) * 1000.0
            return PollResult(observed_value=state, attempts=attempts, elapsed_ms=elapsed_ms)

        last_observed = state
        now: float = clock()
        if now >= deadline:
            logger.debug("Poll for %s timed out after %d attempt(s)", description, attempts)
            raise AssertionTimeoutError(description, timeout_ms, last_observed, negated)
        sleep(min(interval_s, deadline - now))


@runtime_checkable
class ElementLike(Protocol):
    """Capabilities an element-like subject exposes to assertions."""

    def is_visible(self) -> bool: ...

    def is_enabled(self) -> bool: ...

    def is_checked(self) -> bool: ...

    def text_content(self) -> str | None: ...

    def input_value(self) -> str: ...

    def get_attribute(self, name: str) -> str | None: ...

    def count(self) -> int: ...


@runtime_checkable
class PageLike(Protocol):
    """Capabilities a page-like subject exposes to assertions."""

    def url(self) -> str: ...

    def title(self) -> str: ...


@dataclass(frozen=True)
class Subject:
    """Assertion target tagged with its capability set at construction time."""

    kind: SubjectKind
    target: object

    @classmethod
    def element(cls, target: ElementLike) -> "Subject":
        """Tag ``target`` as an element-like subject.

        :param target: Element-like object.
        :returns: Tagged subject.
        """
        return cls("element", target)

    @classmethod
    def page(cls, target: PageLike) -> "Subject":
        """Tag ``target`` as a page-like subject.

        :param target: Page-like object.
        :returns: Tagged subject.
        """
        return cls("page", target)

    @classmethod
    def of(cls, target: object) -> "Subject":
        """Classify ``target`` once by the capabilities it exposes.

        :param target: Candidate subject, or an existing ``Subject``.
        :returns: Tagged subject.
        :raises SubjectTypeError: If ``target`` is neither element-like nor page-like.
        """
        if isinstance(target, Subject) is True:
            return target
        if isinstance(target, ElementLike) is True:
            return cls.element(target)
        if isinstance(target, PageLike) is True:
            return cls.page(target)
        raise SubjectTypeError(f"Cannot build an expectation for {type(target).__name__}")


class _UrlMatcher:
    """URL comparison resolved once per assertion: literal equality or a ``/pattern/``."""

    expected: str
    pattern: re.Pattern[str] | None

    def __init__(self, expected: "str | re.Pattern[str]") -> None:
        """Resolve the comparison mode.

        :param expected: Literal URL, ``/regex/`` string or compiled pattern.
        """
        if isinstance(expected, re.Pattern) is True:
            self.expected = expected.pattern
            self.pattern = expected
            return
        self.expected = expected
        is_delimited: bool = len(expected) > 2 and expected.startswith("/") and expected.endswith("/")
        if is_delimited is True:
            self.pattern = re.compile(expected[1:-1])
        else:
            self.pattern = None

    def __call__(self, current: object) -> bool:
        """Match one observed URL.

        :param current: Observed URL.
        :returns: Match result.
        """
        if isinstance(current, str) is False:
            return False
        if self.pattern is not None:
            return self.pattern.search(current) is not None
        return current == self.expected


def _class_tokens(value: object) -> list[str]:
    """Split a ``class`` attribute value into tokens.

    :param value: Attribute value.
    :returns: Class names.
    """
    if isinstance(value, str) is False:
        return []
    return value.split()


@dataclass(frozen=True)
class Expectation:
    """Immutable assertion builder polling one subject until it matches.

    Refinements such as ``with_timeout`` and ``not_`` return new instances.
    """

    subject: Subject
    timeout_ms: int | None = None
    negated: bool = False
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    clock: Clock = time.monotonic
    sleep: Sleeper = time.sleep

    def with_timeout(self, timeout_ms: int) -> "Expectation":
        """Return a copy whose deadline replaces the configured default.

        A ``timeout_ms`` passed to an individual assertion still wins.

        :param timeout_ms: Deadline in milliseconds.
        :returns: New expectation.
        """
        return dataclasses.replace(self, timeout_ms=timeout_ms)

    def not_(self) -> "Expectation":
        """Return a copy with reversed polarity.

        :returns: New expectation.
        """
        return dataclasses.replace(self, negated=not self.negated)

    def resolve_timeout(self, call_timeout_ms: int | None = None) -> int:
        """Pick the effective deadline: per-call value > ``with_timeout`` > default.

        :param call_timeout_ms: Timeout passed to the assertion call.
        :returns: Deadline in milliseconds.
        """
        if call_timeout_ms is not None:
            return call_timeout_ms
        if self.timeout_ms is not None:
            return self.timeout_ms
        return self.default_timeout_ms

    def _require(self, kind: SubjectKind, assertion: str) -> object:
        """Return the subject target, checking its capability set first.

        :param kind: Required subject kind.
        :param assertion: Assertion name used in the error.
        :returns: Subject target.
        :raises SubjectTypeError: If the subject has a different kind.
        """
        if self.subject.kind != kind:
            raise SubjectTypeError(
                f"{assertion}() requires a {kind} subject, got a {self.subject.kind} subject"
            )
        return self.subject.target

    def _poll(
        self,
        read: Callable[[], object],
        condition: Callable[[object], bool],
        what: str,
        claim: str,
        call_timeout_ms: int | None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> PollResult:
        """Run the poller and format timeout failures.

        :param read: Reads the subject's live state.
        :param condition: Raw condition on that state.
        :param what: Observed quantity, such as ``"locator"`` or ``"page URL"``.
        :param claim: Expected relation, such as ``"to be visible"``.
        :param call_timeout_ms: Timeout passed to the assertion call.
        :param interval_ms: Poll interval passed to the assertion call.
        :param message: Caller-supplied failure message replacing the generated one.
        :returns: Poll outcome.
        :raises AssertionTimeoutError: With the last observed value.
        """
        timeout_ms: int = self.resolve_timeout(call_timeout_ms)
        resolved_interval_ms: int = interval_ms if interval_ms is not None else self.poll_interval_ms
        description: str
        if message is not None:
            description = message
        else:
            polarity: str = "not " if self.negated is True else ""
            description = f"Expected {what} {polarity}{claim}"
        try:
            return poll_until(
                read,
                condition,
                timeout_ms=timeout_ms,
                interval_ms=resolved_interval_ms,
                negated=self.negated,
                description=description,
                clock=self.clock,
                sleep=self.sleep,
            )
        except AssertionTimeoutError as exc:
            failure: str = f"{description}, last observed: {exc.last_observed!r}"
            raise AssertionTimeoutError(failure, timeout_ms, exc.last_observed, self.negated) from None

    def to_be_visible(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to be visible."""
        element = self._require("element", "to_be_visible")
        self._poll(element.is_visible, bool, "locator", "to be visible", timeout_ms, interval_ms, message)

    def to_be_hidden(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to be hidden."""
        element = self._require("element", "to_be_hidden")
        self._poll(
            element.is_visible,
            lambda visible: not visible,
            "locator",
            "to be hidden",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_be_enabled(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to be enabled."""
        element = self._require("element", "to_be_enabled")
        self._poll(element.is_enabled, bool, "locator", "to be enabled", timeout_ms, interval_ms, message)

    def to_be_disabled(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to be disabled."""
        element = self._require("element", "to_be_disabled")
        self._poll(
            element.is_enabled,
            lambda enabled: not enabled,
            "locator",
            "to be disabled",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_be_checked(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to be checked."""
        element = self._require("element", "to_be_checked")
        self._poll(element.is_checked, bool, "locator", "to be checked", timeout_ms, interval_ms, message)

    def to_be_empty(
        self,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element to have no text content."""
        element = self._require("element", "to_be_empty")
        self._poll(
            element.text_content,
            lambda text: text is None or text == "",
            "locator",
            "to be empty",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_text(
        self,
        text: str | list[str],
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element's text content to equal ``text``.

        A list is compared with the list of text contents of every matched
        element; a missing text content counts as ``""``.

        :param text: Expected text, or expected texts in match order.
        :param timeout_ms: Per-call timeout.
        :param interval_ms: Per-call poll interval.
        :param message: Failure message replacing the generated one.
        """
        element = self._require("element", "to_have_text")
        expected: str | list[str] = text if isinstance(text, str) is True else list(text)

        def read() -> object:
            current: str = element.text_content() or ""
            if isinstance(expected, str) is True:
                return current
            return [current]

        self._poll(
            read,
            lambda actual: actual == expected,
            "text",
            f"to be {expected!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_contain_text(
        self,
        text: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element's text content to contain ``text``.

        :param text: Expected substring.
        :param timeout_ms: Per-call timeout.
        :param interval_ms: Per-call poll interval.
        :param message: Failure message replacing the generated one.
        """
        element = self._require("element", "to_contain_text")
        self._poll(
            element.text_content,
            lambda actual: text in (actual or ""),
            "text",
            f"to contain {text!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_value(
        self,
        value: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element's input value to equal ``value``.

        :param value: Expected input value.
        :param timeout_ms: Per-call timeout.
        """
        element = self._require("element", "to_have_value")
        self._poll(
            element.input_value,
            lambda actual: actual == value,
            "value",
            f"to be {value!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_attribute(
        self,
        name: str,
        value: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for attribute ``name`` to equal ``value``.

        :param name: Attribute name.
        :param value: Expected attribute value.
        :param timeout_ms: Per-call timeout.
        :param interval_ms: Per-call poll interval.
        :param message: Failure message replacing the generated one.
        """
        element = self._require("element", "to_have_attribute")
        self._poll(
            lambda: element.get_attribute(name),
            lambda actual: actual == value,
            f"attribute {name!r}",
            f"to be {value!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_id(
        self,
        element_id: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the ``id`` attribute to equal ``element_id``."""
        self.to_have_attribute("id", element_id, timeout_ms=timeout_ms, interval_ms=interval_ms, message=message)

    def to_have_class(
        self,
        class_names: str | list[str],
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the element's class list to contain every name in ``class_names``.

        :param class_names: One class name or several.
        :param timeout_ms: Per-call timeout.
        """
        element = self._require("element", "to_have_class")
        expected: list[str]
        if isinstance(class_names, str) is True:
            expected = [class_names]
        else:
            expected = list(class_names)
        self._poll(
            lambda: element.get_attribute("class"),
            lambda actual: all(name in _class_tokens(actual) for name in expected),
            "class list",
            f"to contain {' '.join(expected)!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_count(
        self,
        count: int,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the locator to match exactly ``count`` elements.

        :param count: Expected match count.
        :param timeout_ms: Per-call timeout.
        """
        element = self._require("element", "to_have_count")
        self._poll(
            element.count,
            lambda actual: actual == count,
            "count",
            f"to be {count}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_url(
        self,
        url: "str | re.Pattern[str]",
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the page URL to equal ``url``, or match it when given as a pattern.

        The literal-or-pattern decision is made once; the URL is re-read on every poll.

        :param url: Literal URL, ``/regex/`` string or compiled pattern.
        :param timeout_ms: Per-call timeout.
        :param interval_ms: Per-call poll interval.
        :param message: Failure message replacing the generated one.
        """
        page = self._require("page", "to_have_url")
        matcher: _UrlMatcher = _UrlMatcher(url)
        self._poll(
            page.url,
            matcher,
            "page URL",
            f"to match {matcher.expected!r}",
            timeout_ms,
            interval_ms,
            message,
        )

    def to_have_title(
        self,
        title: str,
        timeout_ms: int | None = None,
        interval_ms: int | None = None,
        message: str | None = None,
    ) -> None:
        """Wait for the page title to equal ``title``.

        :param title: Expected title.
        :param timeout_ms: Per-call timeout.
        """
        page = self._require("page", "to_have_title")
        self._poll(
            page.title,
            lambda actual: actual == title,
            "page title",
            f"to be {title!r}",
            timeout_ms,
            interval_ms,
            message,
        )


def expect(
    target: object,
    timeout_ms: int | None = None,
    config: ClientConfig | None = None,
) -> Expectation:
    """Build an expectation for an element-like or page-like target.

    :param target: Subject to assert on.
    :param timeout_ms: Deadline replacing the configured default; per-call timeouts still win.
    :param config: Source of the default timeout and poll interval.
    :returns: New expectation.
    :raises SubjectTypeError: If the target exposes neither capability set.
    """
    resolved_config: ClientConfig = config if config is not None else ClientConfig()
    return Expectation(
        subject=Subject.of(target),
        timeout_ms=timeout_ms,
        default_timeout_ms=resolved_config.default_timeout_ms,
        poll_interval_ms=resolved_config.poll_interval_ms,
    )
