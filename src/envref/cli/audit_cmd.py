"""Audit command: show recent secret changes."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from ._common import console, handles_errors, load_project
from ..audit import AuditLog


def register_audit_commands(main: click.Group) -> None:
    """Register the audit command."""

    @main.command("audit")
    @click.option("--limit", "-n", default=20, show_default=True, help="Newest N entries (0 for all).")
    @handles_errors
    def audit(limit):
        """Show who set, deleted or imported which secret."""
        project = load_project()
        entries = AuditLog.for_project(project.root).read(limit=limit)
        if not entries:
            console.print("[dim]No audit entries.[/]")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Time", style="dim")
        table.add_column("User")
        table.add_column("Op", style="bold")
        table.add_column("Key", style="cyan")
        table.add_column("Backend")
        table.add_column("Scope")
        for entry in entries:
            scope = f"{entry.project}/{entry.profile}" if entry.profile else entry.project
            table.add_row(
                entry.timestamp[:19],
                escape(entry.user),
                entry.operation.value,
                escape(entry.key),
                escape(entry.backend),
                escape(scope),
            )
        console.print(table)
