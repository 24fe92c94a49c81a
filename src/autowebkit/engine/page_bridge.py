"""AutoWebkit Page Bridge — Connects a Playwright page to the step scheduler.

Implements ``PageDriver`` over a Playwright sync ``Page`` and forwards the
page lifecycle into a ``StepScheduler``:

- main-frame navigation request      -> ``navigation_started``
- main-frame document commit         -> ``navigation_committed``
- navigation request finished/failed -> ``navigation_finished`` / ``navigation_failed``
- bootstrap script's ready message   -> ``content_ready``

Playwright only delivers events while one of its sync calls is waiting, so
the host drives everything through ``pump()`` / ``run_until_finished()``.
Events that can start steps (finished, failed, ready) are queued and
handled by the pump rather than inside Playwright's callbacks.
"""

from __future__ import annotations

import collections
import heapq
import itertools
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from playwright.sync_api import Error as PlaywrightError

from autowebkit.engine.protocols import EvaluateCallback
from autowebkit.engine.scheduler import SchedulerState, StepScheduler
from autowebkit.models import (
    BRIDGE_NAME,
    DEFAULT_HTML_BASE_URL,
    DEFAULT_PUMP_INTERVAL_MS,
    ONLOAD_SCRIPT,
    READY_MESSAGE,
)

if TYPE_CHECKING:
    from playwright.sync_api import Page, Request

logger = logging.getLogger("autowebkit.engine.page_bridge")


class PlaywrightPageBridge:
    """``PageDriver`` + lifecycle event source for one Playwright page."""

    def __init__(self, page: Page, pump_interval_ms: int = DEFAULT_PUMP_INTERVAL_MS) -> None:
        self._page = page
        self._pump_interval_ms = pump_interval_ms
        self._scheduler: StepScheduler | None = None

        self._events: collections.deque[tuple[str, Any]] = collections.deque()
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._timer_seq = itertools.count()

        # A main-frame navigation request is out; the next framenavigated is a new document
        self._document_pending = False
        # Bumped on every commit so ready messages from a replaced document are dropped
        self._document_generation = 0
        self._attached = False

    @property
    def page(self) -> Page:
        return self._page

    # -- Wiring ------------------------------------------------------------

    def attach(self, scheduler: StepScheduler) -> StepScheduler:
        """Start forwarding page events into ``scheduler``."""
        self._scheduler = scheduler
        if self._attached:
            return scheduler

        self._page.expose_binding(BRIDGE_NAME, self._on_bridge_message)
        self._page.add_init_script(script=ONLOAD_SCRIPT)
        self._page.on("request", self._on_request)
        self._page.on("requestfinished", self._on_request_finished)
        self._page.on("requestfailed", self._on_request_failed)
        self._page.on("framenavigated", self._on_frame_navigated)
        self._attached = True

        # The document already in the page never saw the init script.
        try:
            self._page.evaluate(ONLOAD_SCRIPT)
        except PlaywrightError as exc:
            logger.warning("Failed to attach onLoad listener to current document: %s", exc)
        return scheduler

    def detach(self) -> None:
        if not self._attached:
            return
        for event, handler in (
            ("request", self._on_request),
            ("requestfinished", self._on_request_finished),
            ("requestfailed", self._on_request_failed),
            ("framenavigated", self._on_frame_navigated),
        ):
            self._page.remove_listener(event, handler)
        self._attached = False
        self._scheduler = None
        self._events.clear()
        self._timers.clear()

    # -- PageDriver --------------------------------------------------------

    def load_url(self, url: str) -> None:
        logger.debug("Loading %s", url)
        self._page.goto(url, wait_until="commit")

    def load_html(self, html: str, base_url: str | None = None) -> None:
        """Serve ``html`` at ``base_url`` once and navigate there.

        Going through a real navigation keeps HTML loads on the same
        lifecycle (request, commit, ready) as URL loads.
        """
        url = base_url or DEFAULT_HTML_BASE_URL
        target = url.rstrip("/")

        def _fulfill(route: Any) -> None:
            route.fulfill(status=200, content_type="text/html; charset=utf-8", body=html)

        self._page.route(lambda candidate: candidate.rstrip("/") == target, _fulfill, times=1)
        logger.debug("Loading %d chars of HTML at %s", len(html), url)
        self._page.goto(url, wait_until="commit")

    def evaluate(self, script: str, callback: EvaluateCallback) -> None:
        try:
            value = self._page.evaluate(script)
        except PlaywrightError as exc:
            logger.debug("Evaluation failed: %s", exc)
            callback(None, exc)
            return
        callback(value, None)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._timers, (time.monotonic() + max(delay, 0.0), next(self._timer_seq), callback))

    # -- Pumping -----------------------------------------------------------

    def pump(self, interval_ms: int | None = None) -> None:
        """Let Playwright deliver events for one interval, then handle them."""
        self._page.wait_for_timeout(interval_ms if interval_ms is not None else self._pump_interval_ms)
        self._drain_events()
        self._fire_due_timers()
        self._drain_events()

    def run_until_finished(self, scheduler: StepScheduler | None = None, timeout: float = 120.0) -> bool:
        """Pump until the scheduler finishes or ``timeout`` seconds pass.

        Returns False on timeout. The scheduler itself never gives up on a
        slow page; this is the caller-side watchdog.
        """
        scheduler = scheduler or self._scheduler
        if scheduler is None:
            raise RuntimeError("No scheduler attached to this bridge")

        deadline = time.monotonic() + timeout
        self._drain_events()
        while scheduler.state not in (SchedulerState.IDLE, SchedulerState.FINISHED):
            if time.monotonic() >= deadline:
                logger.warning(
                    "Script stalled after %.1fs at state=%s (loaded=%s, loading=%s)",
                    timeout,
                    scheduler.state.value,
                    scheduler.context.has_loaded,
                    scheduler.context.is_loading,
                )
                return False
            self.pump()
        return True

    def wait_until_idle(self, timeout: float = 30.0) -> bool:
        """Pump until no navigation is in flight; True if the page settled."""
        if self._scheduler is None:
            raise RuntimeError("No scheduler attached to this bridge")
        deadline = time.monotonic() + timeout
        self._drain_events()
        while self._scheduler.context.is_loading or self._scheduler.is_running_step:
            if time.monotonic() >= deadline:
                return False
            self.pump()
        return True

    def _drain_events(self) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            self._events.clear()
            return
        while self._events:
            kind, payload = self._events.popleft()
            if kind == "finished":
                scheduler.navigation_finished(payload)
            elif kind == "failed":
                token, failure = payload
                scheduler.navigation_failed(token, failure)
            elif kind == "ready":
                if payload != self._document_generation:
                    logger.debug("Dropping ready message from a replaced document")
                    continue
                scheduler.content_ready()

    def _fire_due_timers(self) -> None:
        now = time.monotonic()
        while self._timers and self._timers[0][0] <= now:
            _, _, callback = heapq.heappop(self._timers)
            callback()

    # -- Playwright event handlers -----------------------------------------

    def _is_main_frame_navigation(self, request: Request) -> bool:
        try:
            return request.is_navigation_request() and request.frame == self._page.main_frame
        except PlaywrightError:
            # Service worker requests have no frame
            return False

    def _on_request(self, request: Request) -> None:
        if self._scheduler is None or not self._is_main_frame_navigation(request):
            return
        self._document_pending = True
        self._scheduler.navigation_started(request)

    def _on_request_finished(self, request: Request) -> None:
        if self._is_main_frame_navigation(request):
            self._events.append(("finished", request))

    def _on_request_failed(self, request: Request) -> None:
        if self._is_main_frame_navigation(request):
            self._document_pending = False
            self._events.append(("failed", (request, request.failure)))

    def _on_frame_navigated(self, frame: Any) -> None:
        # Same-document navigations (hash, pushState) have no request and no new load.
        if self._scheduler is None or frame != self._page.main_frame or not self._document_pending:
            return
        self._document_pending = False
        self._document_generation += 1
        self._scheduler.navigation_committed()

    def _on_bridge_message(self, source: dict[str, Any], message: Any = None) -> None:
        if source.get("frame") != self._page.main_frame:
            return
        try:
            body = json.loads(message).get("body") if isinstance(message, str) else None
        except (ValueError, AttributeError):
            body = None
        if body != READY_MESSAGE:
            logger.debug("Ignoring bridge message: %r", message)
            return
        self._events.append(("ready", self._document_generation))
