"""AutoWebkit CLI — Typer application and subcommands."""
