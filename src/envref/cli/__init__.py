"""
envref CLI — resolve references, manage secrets, share them with the team.

Each command group lives in its own module and is attached to the main
group by its register function.

Entry point: envref.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="envref")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr.")
def main(verbose):
    """envref — secret references for .env files.

    Commit ref:// tokens, keep values in a secret store.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .resolve_cmd import register_resolve_commands
from .secret import register_secret_commands
from .sync_cmd import register_sync_commands
from .team import register_team_commands
from .backend_cmd import register_backend_commands
from .profile import register_profile_commands
from .audit_cmd import register_audit_commands

register_resolve_commands(main)
register_secret_commands(main)
register_sync_commands(main)
register_team_commands(main)
register_backend_commands(main)
register_profile_commands(main)
register_audit_commands(main)
