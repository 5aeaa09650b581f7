"""Secret commands: set, get, delete, list."""

from __future__ import annotations

import click
from rich.markup import escape

from ._common import Project, console, handles_errors, load_project, select_backend
from ..audit import AuditLog
from ..backends.audit import AuditBackend
from ..backends.base import SecretBackend
from ..backends.namespaced import NamespacedBackend
from ..backends.registry import Registry, build_registry
from ..errors import NotFoundError


def _scoped(registry: Registry, project: Project, backend_name) -> SecretBackend:
    """Namespaced, audited view of the chosen backend for the project scope."""
    inner = select_backend(registry, backend_name)
    view = NamespacedBackend(inner, project.name, project.profile)
    return AuditBackend(
        view, AuditLog.for_project(project.root), project.name, project.profile
    )


def _backend_option(func):
    return click.option(
        "--backend", "-b", default=None, help="Backend to use (default: first configured)."
    )(func)


def _profile_option(func):
    return click.option(
        "--profile", "-P", default=None, help="Profile scope (default: active profile)."
    )(func)


def register_secret_commands(main: click.Group) -> None:
    """Register the secret command group."""

    @main.group()
    def secret():
        """Store, read and remove secrets in a backend.

        Keys are scoped to the project, or to <project>/<profile> when a
        profile is in effect.
        """

    @secret.command("set")
    @click.argument("key")
    @click.argument("value", required=False)
    @_backend_option
    @_profile_option
    @handles_errors
    def secret_set(key, value, backend, profile):
        """Store a secret. Prompts for VALUE when it is omitted."""
        if value is None:
            value = click.prompt(f"Value for {key}", hide_input=True)

        project = load_project(profile)
        with build_registry(project.config) as registry:
            target = _scoped(registry, project, backend)
            target.set(key, value)
            scope = f"{project.name}/{project.profile}" if project.profile else project.name
            console.print(f"[green]Stored[/] {escape(key)} in [cyan]{escape(target.name)}[/] ({escape(scope)})")

    @secret.command("get")
    @click.argument("key")
    @_backend_option
    @_profile_option
    @handles_errors
    def secret_get(key, backend, profile):
        """Print a secret's value.

        A profile-scoped lookup falls back to the project scope.
        """
        project = load_project(profile)
        with build_registry(project.config) as registry:
            inner = select_backend(registry, backend)
            if project.profile:
                try:
                    value = NamespacedBackend(inner, project.name, project.profile).get(key)
                except NotFoundError:
                    value = NamespacedBackend(inner, project.name).get(key)
            else:
                value = NamespacedBackend(inner, project.name).get(key)
        click.echo(value)

    @secret.command("delete")
    @click.argument("key")
    @_backend_option
    @_profile_option
    @click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation.")
    @handles_errors
    def secret_delete(key, backend, profile, force):
        """Remove a secret from the backend."""
        if not force:
            click.confirm(f"Delete secret {key}?", abort=True)

        project = load_project(profile)
        with build_registry(project.config) as registry:
            target = _scoped(registry, project, backend)
            target.delete(key)
            console.print(f"[green]Deleted[/] {escape(key)} from [cyan]{escape(target.name)}[/]")

    @secret.command("list")
    @_backend_option
    @_profile_option
    @handles_errors
    def secret_list(backend, profile):
        """List secret keys in the project (or profile) scope."""
        project = load_project(profile)
        with build_registry(project.config) as registry:
            inner = select_backend(registry, backend)
            keys = NamespacedBackend(inner, project.name, project.profile).list()

        if not keys:
            console.print("[dim]No secrets found.[/]")
            return
        for key in sorted(keys):
            click.echo(key)
