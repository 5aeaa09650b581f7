"""
Backend registry — the configured backends of one command invocation.

Declaration order matters: it is the fallback order for resolution and
the first backend is the default target for writes and sync. The
registry owns its backends and closes them all when it is closed, even
if some of them fail to close.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Iterator, Optional

from ..errors import (
    BackendCloseError,
    ConfigurationError,
    DuplicateBackendError,
    UnknownBackendTypeError,
)
from ..models import BackendConfig, BackendType, ProjectConfig
from .base import SecretBackend
from .keychain import KeychainBackend
from .plugin import PluginBackend
from .vault import PASSPHRASE_ENV, VaultBackend

logger = logging.getLogger("envref.backends.registry")


class Registry:
    """Ordered, name-addressed collection of live backends."""

    def __init__(self) -> None:
        self._backends: list[SecretBackend] = []
        self._by_name: dict[str, SecretBackend] = {}

    def register(self, backend: SecretBackend) -> None:
        """Add a backend.

        Raises:
            DuplicateBackendError: If the name is already taken.
        """
        if backend.name in self._by_name:
            raise DuplicateBackendError(backend.name)
        self._backends.append(backend)
        self._by_name[backend.name] = backend

    def backend(self, name: str) -> Optional[SecretBackend]:
        """Return the named backend, or None if it is not registered."""
        return self._by_name.get(name)

    def backends(self) -> list[SecretBackend]:
        return list(self._backends)

    def names(self) -> list[str]:
        return [b.name for b in self._backends]

    def default(self) -> Optional[SecretBackend]:
        """First configured backend, or None for an empty registry."""
        return self._backends[0] if self._backends else None

    def close_all(self) -> None:
        """Close every backend, then report all failures together.

        Raises:
            BackendCloseError: If any backend failed to close.
        """
        failures: list[tuple[str, BaseException]] = []
        for backend in self._backends:
            try:
                backend.close()
            except Exception as exc:
                logger.warning("Closing backend %s failed: %s", backend.name, exc)
                failures.append((backend.name, exc))
        if failures:
            raise BackendCloseError(failures)

    def __len__(self) -> int:
        return len(self._backends)

    def __iter__(self) -> Iterator[SecretBackend]:
        return iter(list(self._backends))

    def __enter__(self) -> Registry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.close_all()
        except BackendCloseError:
            if exc is None:
                raise
            logger.warning("Backend close failures suppressed while handling %s", exc_type.__name__)

    def __repr__(self) -> str:
        if not self._backends:
            return "Registry(empty)"
        return f"Registry({' -> '.join(self.names())})"


# ---------------------------------------------------------------------------
# Construction from config
# ---------------------------------------------------------------------------


def _create_keychain(bc: BackendConfig) -> SecretBackend:
    return KeychainBackend(name=bc.name, service=bc.config.get("service", "envref"))


def _create_vault(bc: BackendConfig) -> SecretBackend:
    passphrase = os.environ.get(PASSPHRASE_ENV) or bc.config.get("passphrase", "")
    return VaultBackend(passphrase, path=bc.config.get("path") or None, name=bc.name)


def _create_plugin(bc: BackendConfig) -> SecretBackend:
    return PluginBackend.from_config(bc.name, bc.config)


_FACTORIES: dict[BackendType, Callable[[BackendConfig], SecretBackend]] = {
    BackendType.KEYCHAIN: _create_keychain,
    BackendType.VAULT: _create_vault,
    BackendType.PLUGIN: _create_plugin,
}


def create_backend(bc: BackendConfig) -> SecretBackend:
    """Instantiate the backend a config entry describes.

    Raises:
        UnknownBackendTypeError: If the type is not a BackendType.
        ConfigurationError: If the backend's own options are unusable.
    """
    try:
        backend_type = BackendType(bc.effective_type)
    except ValueError:
        raise UnknownBackendTypeError(bc.effective_type, BackendType.values()) from None
    return _FACTORIES[backend_type](bc)


def build_registry(cfg: ProjectConfig) -> Registry:
    """Construct every configured backend, in declaration order.

    Any construction failure closes what was already built and aborts.

    Raises:
        ConfigurationError: No backends configured, or one is unusable.
    """
    if not cfg.backends:
        raise ConfigurationError("no backends configured in .envref.yaml")

    registry = Registry()
    try:
        for bc in cfg.backends:
            registry.register(create_backend(bc))
    except BaseException:
        try:
            registry.close_all()
        except BackendCloseError as close_exc:
            logger.warning("%s", close_exc)
        raise

    logger.debug("Built %r", registry)
    return registry
