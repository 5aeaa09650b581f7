"""Team commands: list, add, remove."""

from __future__ import annotations

import os
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from ._common import console, handles_errors, load_project
from .. import CONFIG_FILE_NAME
from ..config import add_team_member, find_config_dir, remove_team_member
from ..errors import ConfigurationError, InvalidRecipientError
from ..sync.envelope import fingerprint, load_recipient, split_armored_keys


def _config_path() -> Path:
    return find_config_dir(os.getcwd()) / CONFIG_FILE_NAME


def register_team_commands(main: click.Group) -> None:
    """Register the team command group."""

    @main.group()
    def team():
        """Manage the team members who can decrypt sync files."""

    @team.command("list")
    @handles_errors
    def team_list():
        """Show team members and their key fingerprints."""
        project = load_project()
        members = project.config.team
        if not members:
            console.print("[dim]No team members.[/] Add one with [cyan]envref team add[/].")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Name", style="cyan")
        table.add_column("Fingerprint")
        for member in members:
            try:
                fp = fingerprint(load_recipient(member.public_key))
            except InvalidRecipientError:
                fp = "[red]invalid key[/]"
            table.add_row(escape(member.name), fp)
        console.print(table)

    @team.command("add")
    @click.argument("name")
    @click.argument("keyfile", type=click.Path(exists=True, dir_okay=False))
    @handles_errors
    def team_add(name, keyfile):
        """Add NAME with the armored public key in KEYFILE."""
        blocks = split_armored_keys(Path(keyfile).read_text(encoding="utf-8"))
        if len(blocks) != 1:
            raise ConfigurationError(
                f"{keyfile} must hold exactly one PGP key (found {len(blocks)})"
            )
        key = load_recipient(blocks[0])

        add_team_member(_config_path(), name, str(key))
        console.print(f"[green]Added[/] {escape(name)} ({fingerprint(key)})")

    @team.command("remove")
    @click.argument("name")
    @handles_errors
    def team_remove(name):
        """Remove NAME from the team roster."""
        remove_team_member(_config_path(), name)
        console.print(f"[green]Removed[/] {escape(name)}")
