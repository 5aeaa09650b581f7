"""
Secret backends — where the values actually live.

keychain: the OS credential store (via keyring).
vault: a passphrase-protected local file.
plugin: any executable speaking the JSON plugin protocol.

Backends are wrapped per project (and profile) by NamespacedBackend and
collected, in declaration order, in a Registry.
"""

from .base import SecretBackend
from .namespaced import NamespacedBackend
from .registry import Registry, build_registry, create_backend

__all__ = [
    "NamespacedBackend",
    "Registry",
    "SecretBackend",
    "build_registry",
    "create_backend",
]
