"""AutoWebkit engine — step scheduling against a single browser page.

- ScriptContext: environment values plus page-loading state
- Steps: the closed set of step variants (load, wait, DOM, branch, debug)
- AutomationScript: ordered step list and YAML loader
- StepExecutor: performs one step against a PageDriver
- StepScheduler: the state machine deciding when the next step may run
- PlaywrightPageBridge: PageDriver and lifecycle events over a Playwright page
- ScriptRunner: browser lifecycle around the scheduler
"""

from autowebkit.engine.context import ScriptContext
from autowebkit.engine.document import HTMLDocument
from autowebkit.engine.page_bridge import PlaywrightPageBridge
from autowebkit.engine.protocols import PageDriver, SchedulerObserver
from autowebkit.engine.runner import ScriptRunner, ScriptRunResult, StepRecord
from autowebkit.engine.scheduler import SchedulerState, StepScheduler
from autowebkit.engine.script import AutomationScript, ScriptFormatError
from autowebkit.engine.step_executor import StepExecutor
from autowebkit.engine.steps import (
    GetHtml,
    GetHtmlByElement,
    IfEquals,
    IfPresent,
    Load,
    LoadHtml,
    PrintMessage,
    SetAttribute,
    SetAttributeFromContext,
    Step,
    StepKind,
    StepOutcome,
    Submit,
    Wait,
    WaitUntilLoaded,
    capture_value,
    remove_attribute,
)

__all__ = [
    "AutomationScript",
    "GetHtml",
    "GetHtmlByElement",
    "HTMLDocument",
    "IfEquals",
    "IfPresent",
    "Load",
    "LoadHtml",
    "PageDriver",
    "PlaywrightPageBridge",
    "PrintMessage",
    "SchedulerObserver",
    "SchedulerState",
    "ScriptContext",
    "ScriptFormatError",
    "ScriptRunResult",
    "ScriptRunner",
    "SetAttribute",
    "SetAttributeFromContext",
    "Step",
    "StepExecutor",
    "StepKind",
    "StepOutcome",
    "StepRecord",
    "StepScheduler",
    "Submit",
    "Wait",
    "WaitUntilLoaded",
    "capture_value",
    "remove_attribute",
]
