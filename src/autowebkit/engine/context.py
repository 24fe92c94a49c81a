"""Shared state threaded through every step of a running script."""

from __future__ import annotations

import dataclasses
from typing import Any


@dataclasses.dataclass
class ScriptContext:
    """State used while executing an ``AutomationScript``.

    Tracks page loading, in-flight navigations and the environment values
    set by the script. Steps receive a copy and hand back a (possibly
    mutated) copy; nothing holds a reference across steps.
    """

    # Values set by the script during execution
    environment: dict[str, str] = dataclasses.field(default_factory=dict)

    # True once the page reported its content ready after the last commit
    has_loaded: bool = False

    # Opaque tokens for navigations the page has started but not ended
    navigations: set[Any] = dataclasses.field(default_factory=set)

    @property
    def is_loading(self) -> bool:
        return bool(self.navigations)

    def copy(self) -> ScriptContext:
        return ScriptContext(
            environment=dict(self.environment),
            has_loaded=self.has_loaded,
            navigations=set(self.navigations),
        )

    def with_values(self, **values: str) -> ScriptContext:
        """Return a copy whose environment also holds ``values``."""
        updated = self.copy()
        updated.environment.update(values)
        return updated
