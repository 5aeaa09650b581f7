"""Shared utilities for all CLI command modules.

Provides the Rich consoles, project loading, backend selection and the
error handler every command runs under.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

from rich.console import Console
from rich.markup import escape

from ..backends.base import SecretBackend
from ..backends.registry import Registry
from ..config import load_config, warnings_for
from ..errors import ConfigurationError, EnvrefError
from ..models import ProjectConfig

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("envref.cli")


@dataclass
class Project:
    """The loaded project a command operates on."""

    config: ProjectConfig
    root: Path
    profile: Optional[str] = None

    @property
    def name(self) -> str:
        return self.config.project

    def path(self, relative: str | Path) -> Path:
        """Resolve a user-given path against the project root."""
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.root / candidate


def load_project(profile: Optional[str] = None) -> Project:
    """Load the project config around the working directory.

    Args:
        profile: Explicit profile; falls back to the configured active one.
    """
    cfg, root = load_config(os.getcwd())
    for note in warnings_for(cfg):
        warn(note)
    return Project(config=cfg, root=root, profile=cfg.effective_profile(profile))


def select_backend(registry: Registry, name: Optional[str]) -> SecretBackend:
    """Pick the named backend, or the first configured one.

    Raises:
        ConfigurationError: If the name is not registered.
    """
    if not name:
        backend = registry.default()
        if backend is None:
            raise ConfigurationError("no backends configured in .envref.yaml")
        return backend
    backend = registry.backend(name)
    if backend is None:
        raise ConfigurationError(
            f"backend {name!r} not found (available: {', '.join(registry.names())})"
        )
    return backend


def warn(message: str) -> None:
    err_console.print(f"[yellow]warning:[/] {escape(message)}")


def abort(message: str) -> NoReturn:
    err_console.print(f"[bold red]Error:[/] {escape(message)}")
    sys.exit(1)


def handles_errors(func):
    """Turn envref errors raised by a command into a message and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except EnvrefError as exc:
            logger.debug("Command failed", exc_info=True)
            abort(str(exc))

    return wrapper
