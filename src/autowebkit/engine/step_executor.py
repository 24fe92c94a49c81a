"""AutoWebkit Step Executor — Performs steps against the page primitive.

Maps each step variant to a concrete page interaction: navigation, timers,
small DOM scripts run through ``PageDriver.evaluate``, branch selection and
debug output. Every DOM script has the shape
``{ var element = document.querySelector(...); <operation>; }`` so its
declarations stay inside one evaluation.

The executor never decides *when* a step runs; that is the scheduler's job.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from autowebkit.engine.context import ScriptContext
from autowebkit.engine.protocols import PageDriver
from autowebkit.engine.steps import (
    GetHtml,
    GetHtmlByElement,
    HtmlCallback,
    IfEquals,
    IfPresent,
    Load,
    LoadHtml,
    PrintMessage,
    SetAttribute,
    SetAttributeFromContext,
    Step,
    StepOutcome,
    Submit,
    Wait,
    WaitUntilLoaded,
)

logger = logging.getLogger("autowebkit.engine.step_executor")

StepCompletion = Callable[[StepOutcome], None]

DOCUMENT_HTML_SCRIPT = "document.documentElement.outerHTML.toString();"


# -- JavaScript builders ---------------------------------------------------


def js_string(value: str) -> str:
    """Quote ``value`` as a JavaScript string literal."""
    return json.dumps(value)


def element_query(selector: str) -> str:
    return f"var element = document.querySelector({js_string(selector)});"


def safe_block(script: str) -> str:
    return "{ " + script + " }"


def set_attribute_script(name: str, value: str | None, selector: str) -> str:
    script = element_query(selector)
    if value is not None:
        script += f"element.setAttribute({js_string(name)}, {js_string(value)});"
    else:
        script += f"element.removeAttribute({js_string(name)});"
    return safe_block(script)


def submit_script(selector: str) -> str:
    return safe_block(element_query(selector) + "element.submit();")


def inner_html_script(selector: str) -> str:
    script = element_query(selector)
    script += 'if (element != null) {element.innerHTML.toString();} else { "".toString(); }'
    return safe_block(script)


class StepExecutor:
    """Performs one step at a time against a ``PageDriver``."""

    def __init__(self, page: PageDriver, message_sink: Callable[[str], None] = print) -> None:
        self._page = page
        self._message_sink = message_sink
        self._handlers: dict[type, Callable[[Any, ScriptContext, StepCompletion], None]] = {
            Load: self._do_load,
            LoadHtml: self._do_load_html,
            Wait: self._do_wait,
            WaitUntilLoaded: self._do_wait_until_loaded,
            SetAttribute: self._do_set_attribute,
            SetAttributeFromContext: self._do_set_attribute_from_context,
            Submit: self._do_submit,
            GetHtml: self._do_get_html,
            GetHtmlByElement: self._do_get_html_by_element,
            IfPresent: self._do_branch,
            IfEquals: self._do_branch,
            PrintMessage: self._do_print,
        }

    @property
    def page(self) -> PageDriver:
        return self._page

    def perform(self, step: Step, context: ScriptContext, completion: StepCompletion) -> None:
        """Perform ``step`` and call ``completion`` exactly once when it is done.

        Completion may happen before this returns (immediate steps) or
        later, from a timer or page callback.
        """
        handler = self._handlers.get(type(step))
        if handler is None:
            raise TypeError(f"Unknown step type: {type(step).__name__}")
        handler(step, context, completion)

    # -- Load --------------------------------------------------------------

    def _do_load(self, step: Load, context: ScriptContext, completion: StepCompletion) -> None:
        self._page.load_url(step.url)
        completion(StepOutcome(context))

    def _do_load_html(self, step: LoadHtml, context: ScriptContext, completion: StepCompletion) -> None:
        self._page.load_html(step.html, step.base_url)
        completion(StepOutcome(context))

    # -- Wait --------------------------------------------------------------

    def _do_wait(self, step: Wait, context: ScriptContext, completion: StepCompletion) -> None:
        self._page.call_later(step.duration, lambda: completion(StepOutcome(context)))

    def _do_wait_until_loaded(
        self, step: WaitUntilLoaded, context: ScriptContext, completion: StepCompletion
    ) -> None:
        if step.callback is None:
            completion(StepOutcome(context))
            return

        def _resume(new_context: ScriptContext, error: Exception | None = None) -> None:
            completion(StepOutcome(new_context, error))

        step.callback(context, _resume)

    # -- DomMutate ---------------------------------------------------------

    def _do_set_attribute(self, step: SetAttribute, context: ScriptContext, completion: StepCompletion) -> None:
        self._evaluate_and_complete(set_attribute_script(step.name, step.value, step.selector), context, completion)

    def _do_set_attribute_from_context(
        self, step: SetAttributeFromContext, context: ScriptContext, completion: StepCompletion
    ) -> None:
        value = context.environment.get(step.context_key)
        self._evaluate_and_complete(set_attribute_script(step.name, value, step.selector), context, completion)

    def _do_submit(self, step: Submit, context: ScriptContext, completion: StepCompletion) -> None:
        if step.should_block:
            # The submit is expected to navigate; later DOM steps must wait for it.
            context = context.copy()
            context.has_loaded = False
        self._evaluate_and_complete(submit_script(step.selector), context, completion)

    def _evaluate_and_complete(self, script: str, context: ScriptContext, completion: StepCompletion) -> None:
        def _on_result(_value: Any, error: Exception | None) -> None:
            completion(StepOutcome(context, error))

        self._page.evaluate(script, _on_result)

    # -- DomQuery ----------------------------------------------------------

    def _do_get_html(self, step: GetHtml, context: ScriptContext, completion: StepCompletion) -> None:
        self._fetch_and_callback(DOCUMENT_HTML_SCRIPT, step.callback, context, completion)

    def _do_get_html_by_element(
        self, step: GetHtmlByElement, context: ScriptContext, completion: StepCompletion
    ) -> None:
        self._fetch_and_callback(inner_html_script(step.selector), step.callback, context, completion)

    def _fetch_and_callback(
        self,
        script: str,
        callback: HtmlCallback,
        context: ScriptContext,
        completion: StepCompletion,
    ) -> None:
        def _resume(new_context: ScriptContext, error: Exception | None = None) -> None:
            completion(StepOutcome(new_context, error))

        def _on_result(value: Any, error: Exception | None) -> None:
            html = value if isinstance(value, str) else None
            callback(html, context, error, _resume)

        self._page.evaluate(script, _on_result)

    # -- Branch ------------------------------------------------------------

    def _do_branch(self, step: IfPresent | IfEquals, context: ScriptContext, completion: StepCompletion) -> None:
        branch = step.select_branch(context.environment)
        completion(StepOutcome(context, next_steps=list(branch) if branch else None))

    # -- Debug -------------------------------------------------------------

    def _do_print(self, step: PrintMessage, context: ScriptContext, completion: StepCompletion) -> None:
        logger.debug("Debug message: %s", step.message)
        self._message_sink(step.message)
        completion(StepOutcome(context))
