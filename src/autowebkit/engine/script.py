"""AutomationScript — an ordered list of steps, plus the YAML script loader."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from autowebkit.engine.steps import (
    IfEquals,
    IfPresent,
    Load,
    LoadHtml,
    PrintMessage,
    SetAttribute,
    SetAttributeFromContext,
    Step,
    STEP_TYPES,
    Submit,
    Wait,
    WaitUntilLoaded,
    capture_value,
    remove_attribute,
)

logger = logging.getLogger("autowebkit.engine.script")


class ScriptFormatError(ValueError):
    """Raised when a script document cannot be turned into steps."""


class AutomationScript:
    """The steps to run, in order.

    Once handed to a scheduler the list belongs to it; only the scheduler
    inserts into it (branch splicing).
    """

    def __init__(
        self,
        steps: Iterable[Step] = (),
        name: str = "",
        environment: dict[str, str] | None = None,
    ) -> None:
        self._steps: list[Step] = list(steps)
        for index, step in enumerate(self._steps):
            if not isinstance(step, STEP_TYPES):
                raise TypeError(f"Step {index} is not a step: {step!r}")
        self.name = name
        # Starting environment declared by the script document, if any
        self.environment: dict[str, str] = dict(environment or {})

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(list(self._steps))

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    def __repr__(self) -> str:
        return f"AutomationScript(name={self.name!r}, steps={len(self._steps)})"

    def copy(self) -> AutomationScript:
        return AutomationScript(self._steps, name=self.name, environment=self.environment)

    def insert_steps(self, index: int, steps: Iterable[Step]) -> None:
        self._steps[index:index] = list(steps)

    # -- Loading -----------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path) -> AutomationScript:
        """Load a script from a YAML file."""
        if not path.is_file():
            raise ScriptFormatError(f"Script file not found: {path}")
        try:
            with open(path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ScriptFormatError(f"YAML parse error in {path}: {exc}") from exc
        script = cls.from_dict(data)
        if not script.name:
            script.name = path.stem
        logger.debug("Loaded script %s from %s (%d steps)", script.name, path, len(script))
        return script

    @classmethod
    def from_dict(cls, data: Any) -> AutomationScript:
        """Build a script from a parsed document.

        Accepts ``{"script": {...}}``, a bare ``{"steps": [...]}`` mapping,
        or a plain list of steps.
        """
        if isinstance(data, list):
            data = {"steps": data}
        if not isinstance(data, dict):
            raise ScriptFormatError("Script document must be a mapping or a list of steps")
        body = data.get("script", data)
        if not isinstance(body, dict):
            raise ScriptFormatError("'script' must be a mapping")

        raw_steps = body.get("steps")
        if raw_steps is None:
            raw_steps = []
        if not isinstance(raw_steps, list):
            raise ScriptFormatError("'steps' must be a list")

        environment = body.get("environment") or {}
        if not isinstance(environment, dict):
            raise ScriptFormatError("'environment' must be a mapping")

        steps = parse_steps(raw_steps, path="steps")
        return cls(
            steps,
            name=str(body.get("name", "")),
            environment={str(k): str(v) for k, v in environment.items()},
        )


# -- Step parsing ----------------------------------------------------------


def parse_steps(raw_steps: list[Any], path: str) -> list[Step]:
    return [parse_step(raw, f"{path}[{index}]") for index, raw in enumerate(raw_steps)]


def parse_step(raw: Any, path: str) -> Step:
    """Turn one ``{kind: args}`` entry into a step."""
    if isinstance(raw, str):
        raw = {raw: None}
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ScriptFormatError(f"{path}: each step must be a mapping with exactly one key")

    kind, args = next(iter(raw.items()))
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise ScriptFormatError(f"{path}: unknown step '{kind}' (known: {', '.join(sorted(_BUILDERS))})")
    return builder(args, f"{path}.{kind}")


def _require(args: Any, key: str, path: str) -> str:
    if not isinstance(args, dict) or args.get(key) is None:
        raise ScriptFormatError(f"{path}: missing required field '{key}'")
    return str(args[key])


def _branch(args: Any, key: str, path: str) -> tuple[Step, ...] | None:
    raw = args.get(key) if isinstance(args, dict) else None
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ScriptFormatError(f"{path}.{key}: must be a list of steps")
    return tuple(parse_steps(raw, f"{path}.{key}"))


def _build_load(args: Any, path: str) -> Step:
    if isinstance(args, dict):
        return Load(url=_require(args, "url", path))
    if not args:
        raise ScriptFormatError(f"{path}: missing url")
    return Load(url=str(args))


def _build_load_html(args: Any, path: str) -> Step:
    if isinstance(args, str):
        return LoadHtml(html=args)
    base_url = args.get("base_url") if isinstance(args, dict) else None
    return LoadHtml(html=_require(args, "html", path), base_url=base_url)


def _build_wait(args: Any, path: str) -> Step:
    raw = args.get("seconds") if isinstance(args, dict) else args
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ScriptFormatError(f"{path}: duration must be a number of seconds, got {raw!r}")
    duration = float(raw)
    if duration < 0:
        raise ScriptFormatError(f"{path}: duration must not be negative")
    return Wait(duration=duration)


def _build_wait_until_loaded(args: Any, path: str) -> Step:
    return WaitUntilLoaded()


def _build_set_attribute(args: Any, path: str) -> Step:
    value = args.get("value") if isinstance(args, dict) else None
    return SetAttribute(
        name=_require(args, "name", path),
        value=None if value is None else str(value),
        selector=_require(args, "selector", path),
    )


def _build_remove_attribute(args: Any, path: str) -> Step:
    return remove_attribute(_require(args, "name", path), _require(args, "selector", path))


def _build_set_attribute_from_context(args: Any, path: str) -> Step:
    return SetAttributeFromContext(
        name=_require(args, "name", path),
        context_key=_require(args, "key", path),
        selector=_require(args, "selector", path),
    )


def _build_submit(args: Any, path: str) -> Step:
    if isinstance(args, str):
        return Submit(selector=args)
    block = args.get("block", True) if isinstance(args, dict) else True
    if not isinstance(block, bool):
        raise ScriptFormatError(f"{path}: block must be true or false, got {block!r}")
    return Submit(selector=_require(args, "selector", path), should_block=block)


def _build_capture_value(args: Any, path: str) -> Step:
    return capture_value(_require(args, "selector", path), _require(args, "key", path))


def _build_if_present(args: Any, path: str) -> Step:
    return IfPresent(
        key=_require(args, "key", path),
        success=_branch(args, "then", path),
        failure=_branch(args, "else", path),
    )


def _build_if_equals(args: Any, path: str) -> Step:
    return IfEquals(
        key=_require(args, "key", path),
        value=_require(args, "value", path),
        success=_branch(args, "then", path),
        failure=_branch(args, "else", path),
    )


def _build_print(args: Any, path: str) -> Step:
    if isinstance(args, dict):
        return PrintMessage(message=_require(args, "message", path))
    return PrintMessage(message="" if args is None else str(args))


_BUILDERS = {
    "load": _build_load,
    "load_html": _build_load_html,
    "wait": _build_wait,
    "wait_until_loaded": _build_wait_until_loaded,
    "set_attribute": _build_set_attribute,
    "remove_attribute": _build_remove_attribute,
    "set_attribute_from_context": _build_set_attribute_from_context,
    "submit": _build_submit,
    "capture_value": _build_capture_value,
    "if_present": _build_if_present,
    "if_equals": _build_if_equals,
    "print": _build_print,
}
