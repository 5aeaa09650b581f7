"""Backend commands: list."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from ._common import console, handles_errors, load_project
from ..models import BackendType


def register_backend_commands(main: click.Group) -> None:
    """Register the backend command group."""

    @main.group()
    def backend():
        """Inspect configured secret backends."""

    @backend.command("list")
    @handles_errors
    def backend_list():
        """List backends in fallback order."""
        project = load_project()
        backends = project.config.backends
        if not backends:
            console.print("[dim]No backends configured.[/]")
            return

        known = BackendType.values()
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("#", justify="right", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Default", justify="center")
        for i, bc in enumerate(backends):
            kind = bc.effective_type
            if kind not in known:
                kind = f"[red]{escape(kind)} (unknown)[/]"
            table.add_row(str(i + 1), escape(bc.name), kind, "[green]yes[/]" if i == 0 else "")
        console.print(table)
