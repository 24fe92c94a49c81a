"""Contracts between the scheduler and its collaborators.

The scheduler never talks to a browser directly. It drives a ``PageDriver``
(load, evaluate, timers) and reports progress to a ``SchedulerObserver``.
``PlaywrightPageBridge`` is the production ``PageDriver``; tests use an
in-memory fake.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from autowebkit.engine.script import AutomationScript
    from autowebkit.engine.steps import Step

# (value, error) -- exactly one call per evaluate()
EvaluateCallback = Callable[[Any, "Exception | None"], None]


@runtime_checkable
class PageDriver(Protocol):
    """The page primitive steps act on.

    Loads are fire-and-forget: the resulting navigation is reported later
    through the scheduler's lifecycle entry points, not through the call.
    """

    def load_url(self, url: str) -> None: ...

    def load_html(self, html: str, base_url: str | None = None) -> None: ...

    def evaluate(self, script: str, callback: EvaluateCallback) -> None: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


@runtime_checkable
class SchedulerObserver(Protocol):
    """Host-side hooks fired by the scheduler.

    ``will_begin_executing``/``did_finish_executing`` fire once per
    ``execute()`` of a non-empty script. ``will_execute_step`` and
    ``did_complete_step`` are always paired.
    """

    def will_begin_executing(self, script: AutomationScript) -> None: ...

    def did_finish_executing(self, script: AutomationScript) -> None: ...

    def will_execute_step(self, step: Step) -> None: ...

    def did_complete_step(self, step: Step) -> None: ...
