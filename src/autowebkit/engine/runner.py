"""AutoWebkit Script Runner — Playwright browser lifecycle around the scheduler.

Launches the configured browser, opens one page, wires it to a
``StepScheduler`` through ``PlaywrightPageBridge``, runs scripts to
completion (bounded by a watchdog timeout) and reports what happened.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable

from autowebkit.config import AutoWebkitConfig
from autowebkit.engine.context import ScriptContext
from autowebkit.engine.page_bridge import PlaywrightPageBridge
from autowebkit.engine.scheduler import StepScheduler
from autowebkit.engine.script import AutomationScript
from autowebkit.engine.steps import Step

logger = logging.getLogger("autowebkit.engine.runner")


@dataclasses.dataclass
class StepRecord:
    """One executed step, as seen by the host."""

    index: int
    description: str
    duration_seconds: float


@dataclasses.dataclass
class ScriptRunResult:
    """Outcome of running one script."""

    script_name: str
    finished: bool
    steps: list[StepRecord]
    environment: dict[str, str]
    duration_seconds: float
    html: str | None = None

    @property
    def step_count(self) -> int:
        return len(self.steps)


class RecordingObserver:
    """``SchedulerObserver`` that records step timings and forwards to hooks."""

    def __init__(self, on_step_complete: Callable[[StepRecord], None] | None = None) -> None:
        self.records: list[StepRecord] = []
        self.began = 0
        self.finished = 0
        self._on_step_complete = on_step_complete
        self._started_at: float | None = None

    def will_begin_executing(self, script: AutomationScript) -> None:
        self.began += 1

    def did_finish_executing(self, script: AutomationScript) -> None:
        self.finished += 1

    def will_execute_step(self, step: Step) -> None:
        self._started_at = time.monotonic()

    def did_complete_step(self, step: Step) -> None:
        started = self._started_at if self._started_at is not None else time.monotonic()
        record = StepRecord(
            index=len(self.records),
            description=step.describe(),
            duration_seconds=time.monotonic() - started,
        )
        self.records.append(record)
        self._started_at = None
        if self._on_step_complete is not None:
            self._on_step_complete(record)


class ScriptRunner:
    """Runs automation scripts in a real browser page.

    Call ``start()`` once, ``run()`` any number of times (the page and its
    state carry over between scripts), then ``stop()``.
    """

    def __init__(
        self,
        config: AutoWebkitConfig,
        message_sink: Callable[[str], None] = print,
        on_step_complete: Callable[[StepRecord], None] | None = None,
    ) -> None:
        self._config = config
        self._message_sink = message_sink
        self._on_step_complete = on_step_complete

        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._bridge: PlaywrightPageBridge | None = None
        self._scheduler: StepScheduler | None = None
        self._observer: RecordingObserver | None = None

    # -- Browser Lifecycle ---------------------------------------------------

    def start(self) -> None:
        """Launch the browser and attach the scheduler to a fresh page."""
        from playwright.sync_api import sync_playwright

        self._playwright = sync_playwright().start()
        launcher = getattr(self._playwright, self._config.browser)
        self._browser = launcher.launch(headless=self._config.headless)
        width, height = self._config.viewport
        self._context = self._browser.new_context(viewport={"width": width, "height": height})
        self._page = self._context.new_page()

        self._bridge = PlaywrightPageBridge(self._page, pump_interval_ms=self._config.pump_interval_ms)
        self._observer = RecordingObserver(self._on_step_complete)
        self._scheduler = StepScheduler(self._bridge, observer=self._observer, message_sink=self._message_sink)
        self._bridge.attach(self._scheduler)
        logger.info("Started %s (headless=%s)", self._config.browser, self._config.headless)

    def stop(self) -> None:
        """Close the browser and Playwright. Safe to call more than once."""
        try:
            if self._bridge is not None:
                self._bridge.detach()
        except Exception as exc:
            logger.debug("Bridge detach failed: %s", exc)
        try:
            if self._context is not None:
                self._context.close()
        except Exception as exc:
            logger.debug("Context close failed: %s", exc)
        try:
            if self._browser is not None:
                self._browser.close()
        except Exception as exc:
            logger.debug("Browser close failed: %s", exc)
        try:
            if self._playwright is not None:
                self._playwright.stop()
        except Exception as exc:
            logger.debug("Playwright stop failed: %s", exc)
        self._bridge = None
        self._scheduler = None
        self._observer = None
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    def __enter__(self) -> ScriptRunner:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    @property
    def scheduler(self) -> StepScheduler:
        if self._scheduler is None:
            raise RuntimeError("ScriptRunner.start() has not been called")
        return self._scheduler

    def _started(self) -> tuple[PlaywrightPageBridge, RecordingObserver]:
        if self._bridge is None or self._observer is None:
            raise RuntimeError("ScriptRunner.start() has not been called")
        return self._bridge, self._observer

    # -- Running -------------------------------------------------------------

    def run(
        self,
        script: AutomationScript,
        environment: dict[str, str] | None = None,
        capture_html: bool = False,
    ) -> ScriptRunResult:
        """Run ``script`` to completion or until the configured timeout."""
        scheduler = self.scheduler
        bridge, observer = self._started()

        seed = {**self._config.environment, **(environment or {})}
        context = scheduler.context
        context.environment = seed

        observer.records = []
        start = time.monotonic()
        scheduler.execute(script, context)
        finished = bridge.run_until_finished(scheduler, timeout=self._config.timeout)
        duration = time.monotonic() - start

        html = self.fetch_html() if capture_html and finished else None
        return ScriptRunResult(
            script_name=script.name,
            finished=finished,
            steps=list(observer.records),
            environment=dict(scheduler.context.environment),
            duration_seconds=duration,
            html=html,
        )

    def fetch_html(self, timeout: float = 10.0) -> str | None:
        """Return the current document's HTML once the page is idle."""
        bridge, _ = self._started()
        if not bridge.wait_until_idle(timeout):
            logger.warning("Page still loading after %.1fs; not fetching HTML", timeout)
            return None

        fetched: dict[str, Any] = {}

        def _store(html: str | None, error: Exception | None) -> None:
            if error is not None:
                logger.warning("Failed to fetch page HTML: %s", error)
            fetched["html"] = html

        self.scheduler.fetch_raw_contents(_store)
        return fetched.get("html")


def run_script(
    script: AutomationScript,
    config: AutoWebkitConfig | None = None,
    context: ScriptContext | None = None,
) -> ScriptRunResult:
    """Convenience wrapper: start a browser, run one script, stop."""
    config = config or AutoWebkitConfig()
    env = dict(context.environment) if context is not None else None
    with ScriptRunner(config) as runner:
        return runner.run(script, environment=env)
