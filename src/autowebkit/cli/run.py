"""autowebkit run — Execute a step script in a real browser.

Resolves config, loads the script, launches Playwright, runs the script
through the scheduler and displays live Rich output: one line per completed
step, a summary panel and the final environment.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from autowebkit.config import AutoWebkitConfig, AutoWebkitConfigError
from autowebkit.engine.runner import ScriptRunner, ScriptRunResult, StepRecord
from autowebkit.engine.script import AutomationScript, ScriptFormatError

console = Console(stderr=True)
output_console = Console()  # stdout for machine-readable output

logger = logging.getLogger("autowebkit.cli.run")


def _error_panel(title: str, message: str) -> None:
    console.print(Panel(message, title=f"[red]{title}[/red]", border_style="red"))


def _parse_env(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated KEY=VALUE options into a dict."""
    env: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            _error_panel("Config Error", f"[red]Invalid --env value:[/red] {pair}\n\nExpected format: KEY=VALUE")
            raise typer.Exit(code=2)
        env[key.strip()] = value
    return env


def _resolve_project_dir() -> Path:
    """Find the .autowebkit/ project directory, searching upward from cwd."""
    current = Path.cwd()
    candidate = current / ".autowebkit"
    if candidate.is_dir():
        return candidate

    for parent in current.parents:
        candidate = parent / ".autowebkit"
        if candidate.is_dir():
            return candidate

    return current / ".autowebkit"


def _build_config(
    config_path: Path | None,
    browser: str | None,
    headless: bool | None,
    timeout: float | None,
) -> AutoWebkitConfig:
    """Build config from the config file (if any), with CLI options on top."""
    if config_path is not None:
        config = AutoWebkitConfig.from_file(config_path)
    else:
        project_dir = _resolve_project_dir()
        default_path = project_dir / "config.yaml"
        if default_path.is_file():
            config = AutoWebkitConfig.from_file(default_path)
        else:
            config = AutoWebkitConfig()
            config.project_dir = project_dir
            config.scripts_dir = project_dir / "scripts"

    if browser is not None:
        config.browser = browser.lower()
    if headless is not None:
        config.headless = headless
    if timeout is not None:
        config.timeout = timeout
    config.validate()
    return config


def _resolve_script_path(script: Path, config: AutoWebkitConfig) -> Path:
    """Accept a direct path, or a name inside the project's scripts dir."""
    if script.is_file():
        return script
    for candidate in (config.scripts_dir / script, config.scripts_dir / f"{script}.yaml"):
        if candidate.is_file():
            return candidate
    return script


def _print_step(record: StepRecord) -> None:
    console.print(
        f"  [bold green]✓[/bold green] Step {record.index + 1}: {escape(record.description)}"
        f"  [dim]{record.duration_seconds:.2f}s[/dim]"
    )


def _print_message(message: str) -> None:
    console.print(f"  > {message}", markup=False, highlight=False)


def _print_summary(result: ScriptRunResult, timeout: float) -> None:
    if result.finished:
        border = "green"
        verdict = "[bold green]SCRIPT FINISHED[/bold green]"
    else:
        border = "red"
        verdict = f"[bold red]SCRIPT STALLED[/bold red] [dim](no progress within {timeout:g}s)[/dim]"

    lines = [
        verdict,
        "",
        f"  Script:    {result.script_name or '-'}",
        f"  Steps:     {result.step_count}",
        f"  Duration:  {result.duration_seconds:.1f}s",
    ]
    console.print()
    console.print(Panel("\n".join(lines), border_style=border))

    if result.environment:
        table = Table(title="Environment", show_header=True, header_style="bold")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key in sorted(result.environment):
            table.add_row(key, result.environment[key])
        console.print(table)
    console.print()


def run(
    script: Path = typer.Argument(..., help="Script YAML file, or a script name in .autowebkit/scripts/."),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config YAML file. Default: .autowebkit/config.yaml if present.",
    ),
    browser: Optional[str] = typer.Option(
        None,
        "--browser",
        "-b",
        help="Browser engine: chromium, firefox or webkit.",
    ),
    headless: Optional[bool] = typer.Option(
        None,
        "--headless/--no-headless",
        help="Run browser in headless mode or visible. Default from config.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Give up if the script has not finished after this many seconds.",
    ),
    env: Optional[list[str]] = typer.Option(
        None,
        "--env",
        "-e",
        help="Seed an environment value as KEY=VALUE. Repeatable.",
    ),
    dump_html: Optional[Path] = typer.Option(
        None,
        "--dump-html",
        help="Write the final page HTML to this file.",
    ),
    output_format: str = typer.Option(
        "text",
        "--output",
        "-o",
        help="Output format: text or json.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
) -> None:
    """Run a step script against a browser page.

    Exits 0 when the script finished, 1 when it stalled past the timeout,
    2 on configuration or script errors.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")

    if output_format not in ("text", "json"):
        _error_panel("Config Error", f"[red]Invalid output format:[/red] {output_format}\n\nValid formats: text, json")
        raise typer.Exit(code=2)

    seed_env = _parse_env(env)

    try:
        config = _build_config(config_path, browser, headless, timeout)
    except AutoWebkitConfigError as exc:
        _error_panel("Config Error", escape(str(exc)))
        raise typer.Exit(code=2)

    script_path = _resolve_script_path(script, config)
    try:
        automation_script = AutomationScript.from_file(script_path)
    except ScriptFormatError as exc:
        _error_panel("Script Error", escape(str(exc)))
        raise typer.Exit(code=2)

    text_mode = output_format == "text"
    if text_mode:
        console.print(
            f"[bold cyan]Running[/bold cyan] {automation_script.name} "
            f"[dim]({len(automation_script)} steps, {config.browser}, timeout {config.timeout:g}s)[/dim]"
        )

    runner = ScriptRunner(
        config,
        message_sink=_print_message,
        on_step_complete=_print_step if text_mode else None,
    )
    try:
        runner.start()
    except Exception as exc:
        _error_panel(
            "Browser Error",
            f"Could not launch {config.browser}: {exc}\n\nTo fix: playwright install {config.browser}",
        )
        raise typer.Exit(code=2)

    try:
        result = runner.run(automation_script, environment=seed_env, capture_html=dump_html is not None)
    finally:
        runner.stop()

    if dump_html is not None:
        if result.html is not None:
            dump_html.write_text(result.html, encoding="utf-8")
            logger.info("Wrote page HTML to %s", dump_html)
        else:
            console.print("[yellow]Page HTML not available; nothing written.[/yellow]")

    if text_mode:
        _print_summary(result, config.timeout)
    else:
        output_console.print_json(
            json.dumps(
                {
                    "script": result.script_name,
                    "finished": result.finished,
                    "duration_seconds": round(result.duration_seconds, 3),
                    "steps": [
                        {"index": r.index, "description": r.description, "duration_seconds": round(r.duration_seconds, 3)}
                        for r in result.steps
                    ],
                    "environment": result.environment,
                }
            )
        )

    if not result.finished:
        raise typer.Exit(code=1)
