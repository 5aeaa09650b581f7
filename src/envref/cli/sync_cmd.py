"""Sync commands: push, pull."""

from __future__ import annotations

import os

import click
from rich.markup import escape

from ._common import console, handles_errors, load_project, select_backend
from ..audit import AuditLog, AuditOperation
from ..backends.audit import AuditBackend
from ..backends.namespaced import NamespacedBackend
from ..backends.registry import build_registry
from ..errors import ConfigurationError, NoRecipientsError
from ..sync import (
    DEFAULT_SYNC_FILE,
    collect_recipients,
    export_secrets,
    import_secrets,
    load_identity,
    read_envelope,
    write_envelope,
)

IDENTITY_ENV = "ENVREF_IDENTITY"
IDENTITY_PASSPHRASE_ENV = "ENVREF_IDENTITY_PASSPHRASE"


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command group."""

    @main.group()
    def sync():
        """Share secrets through an encrypted file in the repository.

        push encrypts the project's secrets for every recipient; pull
        decrypts them with your private key and merges them locally.
        """

    @sync.command("push")
    @click.option("--to", "to_names", multiple=True, metavar="NAME", help="Team member to encrypt for (repeatable).")
    @click.option("--to-file", "to_files", multiple=True, type=click.Path(), help="File of armored public keys (repeatable).")
    @click.option("--to-team", is_flag=True, help="Encrypt for every team member.")
    @click.option("--file", "-f", "sync_file", default=DEFAULT_SYNC_FILE, show_default=True, help="Sync file path.")
    @click.option("--backend", "-b", default=None, help="Backend to export from (default: first configured).")
    @click.option("--profile", "-P", default=None, help="Profile scope to export.")
    @handles_errors
    def sync_push(to_names, to_files, to_team, sync_file, backend, profile):
        """Encrypt the project's secrets into the sync file."""
        project = load_project(profile)
        recipients = collect_recipients(project.config, to_names, to_files, to_team)
        if not recipients:
            raise NoRecipientsError(
                "at least one recipient is required (use --to, --to-file, or --to-team)"
            )

        with build_registry(project.config) as registry:
            source = NamespacedBackend(
                select_backend(registry, backend), project.name, project.profile
            )
            envelope, secrets = export_secrets(source, recipients)

        target = write_envelope(envelope, project.path(sync_file))
        console.print(
            f"[green]Encrypted[/] {len(secrets)} secret(s) for "
            f"{len(recipients)} recipient(s) to [cyan]{escape(str(target))}[/]"
        )

    @sync.command("pull")
    @click.option("--identity", "-i", type=click.Path(), default=None, help=f"Private key file (default: ${IDENTITY_ENV}).")
    @click.option("--file", "-f", "sync_file", default=DEFAULT_SYNC_FILE, show_default=True, help="Sync file path.")
    @click.option("--backend", "-b", default=None, help="Backend to import into (default: first configured).")
    @click.option("--profile", "-P", default=None, help="Profile scope to import into.")
    @click.option("--force", is_flag=True, help="Overwrite secrets that already exist.")
    @handles_errors
    def sync_pull(identity, sync_file, backend, profile, force):
        """Decrypt the sync file and merge it into a backend."""
        identity = identity or os.environ.get(IDENTITY_ENV)
        if not identity:
            raise ConfigurationError(
                f"no identity file given (use --identity or set {IDENTITY_ENV})"
            )

        project = load_project(profile)
        identities = load_identity(identity, os.environ.get(IDENTITY_PASSPHRASE_ENV))
        envelope = read_envelope(project.path(sync_file))

        with build_registry(project.config) as registry:
            view = NamespacedBackend(
                select_backend(registry, backend), project.name, project.profile
            )
            target = AuditBackend(
                view,
                AuditLog.for_project(project.root),
                project.name,
                project.profile,
                set_operation=AuditOperation.IMPORT,
            )
            summary = import_secrets(target, envelope, identities, force=force)

        console.print(
            f"[green]Imported[/] {len(summary.imported)} secret(s), "
            f"skipped {len(summary.skipped)} existing"
        )
        for key in summary.skipped:
            console.print(f"  [dim]skipped {escape(key)} (use --force to overwrite)[/]")
