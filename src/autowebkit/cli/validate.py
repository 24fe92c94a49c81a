"""autowebkit validate — Parse a step script without launching a browser.

Prints the parsed steps as a tree (branches nested under their condition)
or the first format error found.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from autowebkit.engine.script import AutomationScript, ScriptFormatError
from autowebkit.engine.steps import IfEquals, IfPresent, Step

console = Console(stderr=True)


def _add_steps(tree: Tree, steps: Iterable[Step]) -> int:
    """Add ``steps`` under ``tree``; returns how many steps were added, nested included."""
    count = 0
    for step in steps:
        label = escape(step.describe())
        if step.requires_loaded:
            label += " [dim](needs loaded page)[/dim]"
        node = tree.add(label)
        count += 1
        if isinstance(step, (IfPresent, IfEquals)):
            if step.success:
                count += _add_steps(node.add("[green]then[/green]"), step.success)
            if step.failure:
                count += _add_steps(node.add("[yellow]else[/yellow]"), step.failure)
    return count


def validate(
    script: Path = typer.Argument(..., help="Script YAML file to validate."),
) -> None:
    """Validate a step script. Zero side effects."""
    try:
        parsed = AutomationScript.from_file(script)
    except ScriptFormatError as exc:
        console.print(Panel(escape(str(exc)), title="[red]Script Error[/red]", border_style="red"))
        raise typer.Exit(code=2)

    tree = Tree(f"[bold]{escape(parsed.name)}[/bold]")
    total = _add_steps(tree, parsed)
    console.print(tree)
    if parsed.environment:
        keys = ", ".join(sorted(parsed.environment))
        console.print(f"[dim]Starting environment: {keys}[/dim]")
    console.print(f"[green]OK[/green] {len(parsed)} top-level steps, {total} total")
