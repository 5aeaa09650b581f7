"""Resolve command: print the project's environment with secrets filled in."""

from __future__ import annotations

import click

from ._common import console, handles_errors, load_project, warn
from ..backends.registry import build_registry
from ..config import load_project_env
from ..output import OutputFormat, build_table, render
from ..resolve import ResolutionResult, resolve


def register_resolve_commands(main: click.Group) -> None:
    """Register the resolve command."""

    @main.command("resolve")
    @click.option("--profile", "-P", default=None, help="Profile to layer and resolve for.")
    @click.option(
        "--format",
        "fmt",
        type=click.Choice(OutputFormat.values()),
        default=OutputFormat.PLAIN.value,
        show_default=True,
        help="Output format.",
    )
    @click.option("--strict", is_flag=True, help="Fail with no output if any reference fails.")
    @click.option("--mask", is_flag=True, help="Hide secret values in table output.")
    @handles_errors
    def resolve_cmd(profile, fmt, strict, mask):
        """Resolve ref:// values and print KEY=VALUE pairs.

        Layers .env, the profile file and .env.local, then looks every
        reference up in the configured backends.
        """
        project = load_project(profile)
        env = load_project_env(project.config, project.root, project.profile)

        if env.has_refs():
            with build_registry(project.config) as registry:
                result = resolve(env, registry, project.name, project.profile)
        else:
            result = ResolutionResult(entries=tuple(env.all()))

        for failure in result.errors:
            warn(str(failure))
        result.check(strict)

        if fmt == OutputFormat.TABLE.value:
            console.print(build_table(result.entries, mask=mask))
        else:
            click.echo(render(result.entries, fmt), nl=False)
