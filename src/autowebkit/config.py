"""AutoWebkit configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from autowebkit.models import (
    DEFAULT_BROWSER,
    DEFAULT_PUMP_INTERVAL_MS,
    DEFAULT_RUN_TIMEOUT,
    DEFAULT_VIEWPORT,
    SUPPORTED_BROWSERS,
)


class AutoWebkitConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass
class AutoWebkitConfig:
    """Configuration for an AutoWebkit run."""

    # Paths
    project_dir: Path = field(default_factory=lambda: Path(".autowebkit"))
    scripts_dir: Path = field(default_factory=lambda: Path(".autowebkit/scripts"))

    # Browser
    browser: str = DEFAULT_BROWSER
    headless: bool = True
    viewport: tuple[int, int] = DEFAULT_VIEWPORT

    # Behavior
    timeout: float = DEFAULT_RUN_TIMEOUT
    pump_interval_ms: int = DEFAULT_PUMP_INTERVAL_MS

    # Seed values merged into every script's starting environment
    environment: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_file(cls, config_path: Path) -> AutoWebkitConfig:
        """Load config from a YAML file."""
        if not config_path.exists():
            raise AutoWebkitConfigError(
                f"Config file not found: {config_path}\n\nTo fix: create {config_path.name} or drop --config"
            )
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise AutoWebkitConfigError(f"Config file must be a YAML mapping: {config_path}")
        return cls._from_dict(data, config_path.parent)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], project_dir: Path) -> AutoWebkitConfig:
        """Create config from a dictionary."""
        config = cls()
        config.project_dir = project_dir

        if "scripts_dir" in data:
            config.scripts_dir = project_dir / data["scripts_dir"]
        else:
            config.scripts_dir = project_dir / "scripts"

        if "browser" in data:
            config.browser = str(data["browser"]).lower()
        if "headless" in data:
            config.headless = bool(data["headless"])
        if "timeout" in data:
            config.timeout = float(data["timeout"])
        if "pump_interval_ms" in data:
            config.pump_interval_ms = int(data["pump_interval_ms"])
        if "viewport" in data:
            vp = data["viewport"]
            if isinstance(vp, dict):
                config.viewport = (vp.get("width", 1280), vp.get("height", 720))
        if "environment" in data:
            env = data["environment"] or {}
            if not isinstance(env, dict):
                raise AutoWebkitConfigError("'environment' must be a mapping of key: value")
            config.environment = {str(k): str(v) for k, v in env.items()}

        config.validate()
        return config

    def validate(self) -> None:
        """Reject settings the runner cannot honour."""
        if self.browser not in SUPPORTED_BROWSERS:
            raise AutoWebkitConfigError(
                f"Unsupported browser: {self.browser}\n\n"
                f"Valid browsers: {', '.join(SUPPORTED_BROWSERS)}"
            )
        if self.timeout <= 0:
            raise AutoWebkitConfigError(f"timeout must be positive, got {self.timeout}")
        if self.pump_interval_ms <= 0:
            raise AutoWebkitConfigError(f"pump_interval_ms must be positive, got {self.pump_interval_ms}")
