"""AutoWebkit steps — the closed set of things a script can ask the page to do.

Every step is an immutable value. Steps carry only their static data; the
``StepExecutor`` performs them and the ``StepScheduler`` decides when.

Families:
- Load: ``Load``, ``LoadHtml``
- Wait: ``Wait``, ``WaitUntilLoaded``
- DomMutate: ``SetAttribute``, ``SetAttributeFromContext``, ``Submit``
- DomQuery: ``GetHtml``, ``GetHtmlByElement``
- Branch: ``IfPresent``, ``IfEquals``
- Debug: ``PrintMessage``

Adding a step kind means adding a class here, to ``STEP_TYPES`` and to the
executor's dispatch table.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Callable, ClassVar, Optional, Sequence, Union

from autowebkit.engine.context import ScriptContext
from autowebkit.engine.document import HTMLDocument

logger = logging.getLogger("autowebkit.engine.steps")


class StepKind(enum.Enum):
    LOAD = "load"
    WAIT = "wait"
    DOM_MUTATE = "dom_mutate"
    DOM_QUERY = "dom_query"
    BRANCH = "branch"
    DEBUG = "debug"


# Invoked by out-of-band work (callbacks) once the script may continue.
Resume = Callable[..., None]  # (context, error=None)

# (html, context, error, resume) -- html is None when evaluation failed
HtmlCallback = Callable[[Optional[str], ScriptContext, Optional[Exception], Resume], None]

# (context, resume)
LoadedCallback = Callable[[ScriptContext, Resume], None]


class _StepBase:
    kind: ClassVar[StepKind]
    # True if the page must have reported its content ready before running
    requires_loaded: ClassVar[bool] = False

    def describe(self) -> str:
        return type(self).__name__


# -- Load ------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Load(_StepBase):
    """Navigate to ``url``. Completes as soon as the navigation is issued."""

    kind: ClassVar[StepKind] = StepKind.LOAD

    url: str

    def describe(self) -> str:
        return f"load {self.url}"


@dataclasses.dataclass(frozen=True)
class LoadHtml(_StepBase):
    """Replace the page with ``html``, served as if it came from ``base_url``."""

    kind: ClassVar[StepKind] = StepKind.LOAD

    html: str
    base_url: str | None = None

    def describe(self) -> str:
        return f"load html ({len(self.html)} chars)"


# -- Wait ------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Wait(_StepBase):
    """Pause for ``duration`` seconds regardless of page state."""

    kind: ClassVar[StepKind] = StepKind.WAIT

    duration: float

    def describe(self) -> str:
        return f"wait {self.duration:g}s"


@dataclasses.dataclass(frozen=True)
class WaitUntilLoaded(_StepBase):
    """Gate on the page being loaded.

    Without a callback this is a no-op once it runs; the scheduler's
    loaded precondition does the waiting. With a callback, the script
    resumes when the callback invokes its ``resume`` argument.
    """

    kind: ClassVar[StepKind] = StepKind.WAIT
    requires_loaded: ClassVar[bool] = True

    callback: LoadedCallback | None = None

    def describe(self) -> str:
        return "wait until loaded"


# -- DomMutate -------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class SetAttribute(_StepBase):
    """Set ``name`` to ``value`` on the element matching ``selector``.

    A ``value`` of None removes the attribute instead.
    """

    kind: ClassVar[StepKind] = StepKind.DOM_MUTATE
    requires_loaded: ClassVar[bool] = True

    name: str
    value: str | None
    selector: str

    def describe(self) -> str:
        if self.value is None:
            return f"remove {self.name} on {self.selector}"
        return f"set {self.name}={self.value!r} on {self.selector}"


@dataclasses.dataclass(frozen=True)
class SetAttributeFromContext(_StepBase):
    """Like ``SetAttribute`` but reads the value from ``environment[context_key]``."""

    kind: ClassVar[StepKind] = StepKind.DOM_MUTATE
    requires_loaded: ClassVar[bool] = True

    name: str
    context_key: str
    selector: str

    def describe(self) -> str:
        return f"set {self.name}=${self.context_key} on {self.selector}"


@dataclasses.dataclass(frozen=True)
class Submit(_StepBase):
    """Submit the element matching ``selector``.

    With ``should_block`` the context is marked not-loaded before the
    submit is issued, so DOM steps after it wait for the resulting page.
    """

    kind: ClassVar[StepKind] = StepKind.DOM_MUTATE
    requires_loaded: ClassVar[bool] = True

    selector: str
    should_block: bool = True

    def describe(self) -> str:
        suffix = "" if self.should_block else " (non-blocking)"
        return f"submit {self.selector}{suffix}"


# -- DomQuery --------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class GetHtml(_StepBase):
    """Fetch the whole document's HTML and hand it to ``callback``."""

    kind: ClassVar[StepKind] = StepKind.DOM_QUERY
    requires_loaded: ClassVar[bool] = True

    callback: HtmlCallback

    def describe(self) -> str:
        return "get html"


@dataclasses.dataclass(frozen=True)
class GetHtmlByElement(_StepBase):
    """Fetch one element's inner HTML (empty string when it is missing)."""

    kind: ClassVar[StepKind] = StepKind.DOM_QUERY
    requires_loaded: ClassVar[bool] = True

    selector: str
    callback: HtmlCallback

    def describe(self) -> str:
        return f"get html of {self.selector}"


# -- Branch ----------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class IfPresent(_StepBase):
    """Run ``success`` when ``key`` is set in the environment, else ``failure``."""

    kind: ClassVar[StepKind] = StepKind.BRANCH

    key: str
    success: tuple[Step, ...] | None = None
    failure: tuple[Step, ...] | None = None

    def select_branch(self, environment: dict[str, str]) -> tuple[Step, ...] | None:
        return self.success if self.key in environment else self.failure

    def describe(self) -> str:
        return f"if {self.key} is present"


@dataclasses.dataclass(frozen=True)
class IfEquals(_StepBase):
    """Run ``success`` when ``environment[key] == value``, else ``failure``."""

    kind: ClassVar[StepKind] = StepKind.BRANCH

    key: str
    value: str
    success: tuple[Step, ...] | None = None
    failure: tuple[Step, ...] | None = None

    def select_branch(self, environment: dict[str, str]) -> tuple[Step, ...] | None:
        return self.success if environment.get(self.key) == self.value else self.failure

    def describe(self) -> str:
        return f"if {self.key} == {self.value!r}"


# -- Debug -----------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class PrintMessage(_StepBase):
    """Emit ``message`` to the executor's message sink. Not meant for production scripts."""

    kind: ClassVar[StepKind] = StepKind.DEBUG

    message: str

    def describe(self) -> str:
        return f"print {self.message!r}"


Step = Union[
    Load,
    LoadHtml,
    Wait,
    WaitUntilLoaded,
    SetAttribute,
    SetAttributeFromContext,
    Submit,
    GetHtml,
    GetHtmlByElement,
    IfPresent,
    IfEquals,
    PrintMessage,
]

STEP_TYPES: tuple[type, ...] = (
    Load,
    LoadHtml,
    Wait,
    WaitUntilLoaded,
    SetAttribute,
    SetAttributeFromContext,
    Submit,
    GetHtml,
    GetHtmlByElement,
    IfPresent,
    IfEquals,
    PrintMessage,
)


@dataclasses.dataclass
class StepOutcome:
    """What a step hands back to the scheduler when it completes.

    ``next_steps`` are run immediately after the step, before anything
    that was already queued behind it.
    """

    context: ScriptContext
    error: Exception | None = None
    next_steps: Sequence[Step] | None = None


# -- Factories -------------------------------------------------------------


def remove_attribute(name: str, selector: str) -> SetAttribute:
    return SetAttribute(name=name, value=None, selector=selector)


def capture_value(selector: str, key: str) -> GetHtml:
    """Build a ``GetHtml`` that stores the ``value`` of ``selector`` into ``environment[key]``."""

    def _capture(html: str | None, context: ScriptContext, error: Exception | None, resume: Resume) -> None:
        if html is not None:
            value = HTMLDocument(html).value_for_element(selector)
            if value is not None:
                context = context.with_values(**{key: value})
            else:
                logger.debug("No value for %s; %s left unset", selector, key)
        resume(context, error)

    return GetHtml(callback=_capture)
