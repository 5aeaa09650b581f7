"""Profile commands: list, use."""

from __future__ import annotations

import os

import click
from rich.markup import escape

from ._common import console, handles_errors, load_project
from .. import CONFIG_FILE_NAME
from ..config import find_config_dir, set_active_profile


def register_profile_commands(main: click.Group) -> None:
    """Register the profile command group."""

    @main.group()
    def profile():
        """Switch between deployment profiles (staging, production, ...)."""

    @profile.command("list")
    @handles_errors
    def profile_list():
        """List declared profiles and mark the active one."""
        project = load_project()
        cfg = project.config
        if not cfg.profiles:
            console.print("[dim]No profiles declared.[/]")
            return
        for name in cfg.profiles:
            marker = "[green]*[/]" if name == cfg.active_profile else " "
            console.print(f"{marker} {escape(name)}  [dim]{escape(str(cfg.profile_env_file(name)))}[/]")

    @profile.command("use")
    @click.argument("name", required=False)
    @click.option("--clear", is_flag=True, help="Clear the active profile.")
    @handles_errors
    def profile_use(name, clear):
        """Make NAME the active profile."""
        if not name and not clear:
            raise click.UsageError("give a profile NAME or --clear")

        path = find_config_dir(os.getcwd()) / CONFIG_FILE_NAME
        set_active_profile(path, None if clear else name)
        if clear:
            console.print("[green]Active profile cleared[/]")
        else:
            console.print(f"[green]Active profile:[/] {escape(name)}")
