"""Shared fixtures for AutoWebkit unit tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from autowebkit.engine.scheduler import StepScheduler


# ---------------------------------------------------------------------------
# In-memory page: records what steps asked for, answers evaluations
# ---------------------------------------------------------------------------

class FakePage:
    """``PageDriver`` double with a manual clock and scripted evaluations."""

    def __init__(self) -> None:
        self.html = "<html><head></head><body></body></html>"
        self.loaded_urls: list[str] = []
        self.loaded_html: list[tuple[str, str | None]] = []
        self.scripts: list[str] = []
        # script -> (value, error); anything else falls back to ``default_result``
        self.results: dict[str, tuple[Any, Exception | None]] = {}
        self.default_result: tuple[Any, Exception | None] = (None, None)
        # When True, evaluations wait for ``resolve_pending()``
        self.defer_evaluations = False
        self.pending: list[tuple[Callable[[Any, Exception | None], None], tuple[Any, Exception | None]]] = []
        self.now = 0.0
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = 0

    @property
    def last_script(self) -> str | None:
        return self.scripts[-1] if self.scripts else None

    def load_url(self, url: str) -> None:
        self.loaded_urls.append(url)

    def load_html(self, html: str, base_url: str | None = None) -> None:
        self.loaded_html.append((html, base_url))
        self.html = html

    def evaluate(self, script: str, callback: Callable[[Any, Exception | None], None]) -> None:
        self.scripts.append(script)
        if script in self.results:
            result = self.results[script]
        elif "outerHTML" in script:
            result = (self.html, None)
        else:
            result = self.default_result
        if self.defer_evaluations:
            self.pending.append((callback, result))
            return
        callback(*result)

    def resolve_pending(self) -> None:
        pending, self.pending = self.pending, []
        for callback, result in pending:
            callback(*result)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self._seq += 1
        self._timers.append((self.now + delay, self._seq, callback))

    def advance(self, seconds: float) -> None:
        """Move the clock forward and fire every timer that came due."""
        self.now += seconds
        while True:
            due = sorted(t for t in self._timers if t[0] <= self.now)
            if not due:
                return
            timer = due[0]
            self._timers.remove(timer)
            timer[2]()


class CountingObserver:
    """``SchedulerObserver`` that counts and records every callback."""

    def __init__(self) -> None:
        self.will_begin_count = 0
        self.did_finish_count = 0
        self.executed: list[Any] = []
        self.completed: list[Any] = []
        self.events: list[str] = []

    def will_begin_executing(self, script: Any) -> None:
        self.will_begin_count += 1
        self.events.append("begin")

    def did_finish_executing(self, script: Any) -> None:
        self.did_finish_count += 1
        self.events.append("finish")

    def will_execute_step(self, step: Any) -> None:
        self.executed.append(step)
        self.events.append("will")

    def did_complete_step(self, step: Any) -> None:
        self.completed.append(step)
        self.events.append("did")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def observer() -> CountingObserver:
    return CountingObserver()


@pytest.fixture
def messages() -> list[str]:
    """Collects PrintMessage output."""
    return []


@pytest.fixture
def scheduler(fake_page: FakePage, observer: CountingObserver, messages: list[str]) -> StepScheduler:
    return StepScheduler(fake_page, observer=observer, message_sink=messages.append)


@pytest.fixture
def sample_script_yaml() -> str:
    """Return a valid script YAML document exercising every step kind."""
    return """\
script:
  name: login
  environment:
    user: alice
  steps:
    - load: https://example.com/login
    - load_html:
        html: "<p>hi</p>"
        base_url: "https://example.com/"
    - wait: 1.5
    - wait_until_loaded: true
    - set_attribute: {name: value, value: alice, selector: "#user"}
    - remove_attribute: {name: disabled, selector: "#go"}
    - set_attribute_from_context: {name: value, key: user, selector: "#user"}
    - submit: {selector: form, block: false}
    - capture_value: {selector: "#token", key: token}
    - if_present:
        key: token
        then:
          - print: got token
        else:
          - print: no token
    - if_equals:
        key: user
        value: alice
        then:
          - print: hello alice
    - print: done
"""
