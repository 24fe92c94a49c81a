"""AutoWebkit Step Scheduler — Sequences script steps against the page lifecycle.

The scheduler owns the working step list, a cursor (index of the last
started step), and the live ``ScriptContext``. A step may start only when:

- no other step is running,
- no navigation is in flight,
- and, if the step touches the DOM, the page has reported its content ready.

``process_next_step_if_possible()`` is the single re-entry point. It is
called after every step completion and after every lifecycle event, and is
a no-op whenever the next step is not yet eligible. There is no timeout:
a page that never reports ready stalls the script until an external event
arrives. Callers that need a bound run a watchdog around the page pump.

Steps may hand back follow-up steps (branches); these are spliced in
directly after the current cursor so they run before anything already
queued.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable

from autowebkit.engine.context import ScriptContext
from autowebkit.engine.protocols import PageDriver, SchedulerObserver
from autowebkit.engine.script import AutomationScript
from autowebkit.engine.step_executor import DOCUMENT_HTML_SCRIPT, StepExecutor
from autowebkit.engine.steps import Step, StepOutcome

logger = logging.getLogger("autowebkit.engine.scheduler")


class SchedulerState(enum.Enum):
    IDLE = "idle"  # no script loaded
    RUNNING = "running"  # a step is in flight
    AWAITING_EXTERNAL_EVENT = "awaiting_external_event"  # next step not yet eligible
    FINISHED = "finished"


class StepScheduler:
    """Runs an ``AutomationScript`` one step at a time on a single page.

    All calls must come from the thread that created the scheduler; page
    callbacks are expected to resume on that thread.
    """

    def __init__(
        self,
        page: PageDriver,
        observer: SchedulerObserver | None = None,
        message_sink: Callable[[str], None] = print,
        executor: StepExecutor | None = None,
    ) -> None:
        self._page = page
        self._executor = executor or StepExecutor(page, message_sink=message_sink)
        self.observer = observer

        self._script: AutomationScript | None = None
        self._steps = AutomationScript()
        self._context = ScriptContext()
        self._cursor = -1
        self._is_running_step = False
        self._running_step: Step | None = None
        # True between will_begin_executing and did_finish_executing
        self._began = False

        # Set when a lifecycle event changed has_loaded while a step was running
        self._lifecycle_changed = False
        # Bumped on every execute() so completions from a replaced script are dropped
        self._generation = 0
        # Trampoline state for synchronous completions
        self._dispatching = False
        self._pending_pass = False

        self._owner_thread = threading.get_ident()

    # -- Public API --------------------------------------------------------

    @property
    def is_finished(self) -> bool:
        return self._cursor + 1 >= len(self._steps)

    @property
    def is_running_step(self) -> bool:
        return self._is_running_step

    @property
    def state(self) -> SchedulerState:
        if self._script is None:
            return SchedulerState.IDLE
        if self._is_running_step:
            return SchedulerState.RUNNING
        if self.is_finished:
            return SchedulerState.FINISHED
        return SchedulerState.AWAITING_EXTERNAL_EVENT

    @property
    def context(self) -> ScriptContext:
        """A copy of the live context."""
        return self._context.copy()

    @property
    def script(self) -> AutomationScript | None:
        return self._script

    @property
    def steps(self) -> list[Step]:
        """The working step list, including any spliced-in branch steps."""
        return self._steps.steps

    def execute(self, script: AutomationScript, context: ScriptContext | None = None) -> None:
        """Load ``script`` and start running it.

        ``context`` seeds the environment and loaded flag; it is copied, so
        later mutations never reach the caller's object. In-flight
        navigations always come from the page, never from ``context``.
        """
        self._check_owner()
        self._abandon_current_script()
        live = self._context
        if context is not None:
            start = context.copy()
        else:
            start = ScriptContext(has_loaded=live.has_loaded)
        start.environment = {**script.environment, **start.environment}
        start.navigations = set(live.navigations)

        self._generation += 1
        self._script = script
        self._steps = script.copy()
        self._context = start
        self._cursor = -1
        self._is_running_step = False
        self._running_step = None
        self._began = False
        self._lifecycle_changed = False

        logger.debug("Executing %r", script)
        self.process_next_step_if_possible()

    def _abandon_current_script(self) -> None:
        """Close out observer callbacks for a script replaced mid-run."""
        if self._running_step is not None:
            step = self._running_step
            logger.info("Abandoning in-flight step %s", step.describe())
            self._running_step = None
            self._is_running_step = False
            if self.observer is not None:
                self.observer.did_complete_step(step)
        if self._began:
            self._began = False
            logger.info("Abandoning %r before it finished", self._script)
            if self.observer is not None:
                self.observer.did_finish_executing(self._script)

    def fetch_raw_contents(self, callback: Callable[[str | None, Exception | None], None]) -> bool:
        """Fetch the current document's HTML outside the step sequence.

        Refused (returns False, callback never invoked) while a step is
        running or a navigation is in flight.
        """
        self._check_owner()
        if self._is_running_step or self._context.is_loading:
            logger.debug("fetch_raw_contents refused: page busy")
            return False

        def _on_result(value: Any, error: Exception | None) -> None:
            callback(value if isinstance(value, str) else None, error)

        self._page.evaluate(DOCUMENT_HTML_SCRIPT, _on_result)
        return True

    # -- Page lifecycle entry points ---------------------------------------

    def navigation_started(self, token: Any) -> None:
        self._check_owner()
        logger.debug("Navigation started: %r", token)
        self._context.navigations.add(token)

    def navigation_committed(self) -> None:
        """A new document replaced the old one; it must report ready again."""
        self._check_owner()
        logger.debug("Navigation committed")
        self._context.has_loaded = False
        self._lifecycle_changed = True

    def navigation_finished(self, token: Any) -> None:
        self._check_owner()
        logger.debug("Navigation finished: %r", token)
        self._context.navigations.discard(token)
        self.process_next_step_if_possible()

    def navigation_failed(self, token: Any, error: Any = None) -> None:
        self._check_owner()
        logger.warning("Navigation failed: %r (%s)", token, error)
        self._context.navigations.discard(token)
        self.process_next_step_if_possible()

    def content_ready(self) -> None:
        self._check_owner()
        logger.debug("Page content ready")
        self._context.has_loaded = True
        self._lifecycle_changed = True
        self.process_next_step_if_possible()

    # -- State machine -----------------------------------------------------

    def process_next_step_if_possible(self) -> None:
        """Start the next step if it is eligible; otherwise do nothing.

        Safe to call at any time and any number of times.
        """
        if self._dispatching:
            # Re-entered from a synchronous completion; the outer loop picks it up.
            self._pending_pass = True
            return

        self._dispatching = True
        try:
            while True:
                self._pending_pass = False
                self._dispatch_next()
                if not self._pending_pass:
                    break
        finally:
            self._dispatching = False

    def _dispatch_next(self) -> None:
        if self._script is None or self.is_finished:
            return
        if self._is_running_step or self._context.is_loading:
            return

        next_index = self._cursor + 1
        if next_index >= len(self._steps):
            return

        step = self._steps[next_index]
        if step.requires_loaded and not self._context.has_loaded:
            logger.debug("Step %d (%s) waiting for page content", next_index, step.describe())
            return

        self._start(step, next_index)

    def _start(self, step: Step, index: int) -> None:
        if index == 0:
            logger.info("Beginning %r", self._script)
            self._began = True
            if self.observer is not None:
                self.observer.will_begin_executing(self._script)

        self._cursor = index
        self._is_running_step = True
        self._running_step = step
        self._lifecycle_changed = False
        if self.observer is not None:
            self.observer.will_execute_step(step)
        logger.debug("Step %d: %s", index, step.describe())

        generation = self._generation
        completed = False

        def _completion(outcome: StepOutcome) -> None:
            nonlocal completed
            if generation != self._generation:
                logger.debug("Dropping completion of %s from a replaced script", step.describe())
                return
            if completed:
                logger.warning("Step %s completed more than once; ignoring", step.describe())
                return
            completed = True
            self._finish_step(step, outcome)

        try:
            self._executor.perform(step, self._context.copy(), _completion)
        except Exception as exc:
            logger.warning("Step %s raised: %s", step.describe(), exc)
            if not completed:
                _completion(StepOutcome(self._context.copy(), exc))

    def _finish_step(self, step: Step, outcome: StepOutcome) -> None:
        if outcome.next_steps:
            self._steps.insert_steps(self._cursor + 1, outcome.next_steps)
        if outcome.error is not None:
            logger.warning("Error while performing step %s: %s", step.describe(), outcome.error)

        self._adopt(outcome.context)
        self._is_running_step = False
        self._running_step = None
        if self.observer is not None:
            self.observer.did_complete_step(step)

        if self.is_finished:
            logger.info("Finished %r", self._script)
            self._began = False
            if self.observer is not None:
                self.observer.did_finish_executing(self._script)
        else:
            self.process_next_step_if_possible()

    def _adopt(self, returned: ScriptContext) -> None:
        """Take the step's context, keeping lifecycle facts the step could not see."""
        adopted = returned.copy()
        adopted.navigations = set(self._context.navigations)
        if self._lifecycle_changed:
            adopted.has_loaded = self._context.has_loaded
        self._context = adopted

    def _check_owner(self) -> None:
        if threading.get_ident() != self._owner_thread:
            raise RuntimeError("StepScheduler must only be used from the thread that created it")
