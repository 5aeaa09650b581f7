"""
Namespaced backend — isolate one project's secrets in a shared store.

Keys are prefixed with ``<project>/`` or ``<project>/<profile>/`` before
they reach the wrapped backend. Project and profile names may not
contain a path separator, which keeps the mapping lossless and free of
collisions between namespaces.

Profile-to-project fallback on NotFoundError is the caller's job; the
wrapper only translates keys.
"""

from __future__ import annotations

from typing import Optional

from ..errors import ConfigurationError
from .base import SecretBackend

SEPARATOR = "/"
_FORBIDDEN = ("/", "\\")


def _check_component(label: str, value: Optional[str]) -> None:
    if not value:
        raise ConfigurationError(f"{label} name must not be empty")
    if any(ch in value for ch in _FORBIDDEN):
        raise ConfigurationError(
            f"{label} name {value!r} must not contain path separators (/ or \\)"
        )


def namespace_prefix(project: str, profile: Optional[str] = None) -> str:
    """Key prefix for a project, or a project's profile."""
    _check_component("project", project)
    if profile is None:
        return project + SEPARATOR
    _check_component("profile", profile)
    return project + SEPARATOR + profile + SEPARATOR


def wrap_key(key: str, project: str, profile: Optional[str] = None) -> str:
    return namespace_prefix(project, profile) + key


def unwrap_key(wrapped: str, project: str, profile: Optional[str] = None) -> Optional[str]:
    """Strip the namespace prefix, or return None if *wrapped* is outside it."""
    prefix = namespace_prefix(project, profile)
    if not wrapped.startswith(prefix):
        return None
    return wrapped[len(prefix):]


class NamespacedBackend(SecretBackend):
    """A view of *inner* restricted to one project (and optional profile).

    The wrapper does not own *inner*; closing it is a no-op.
    """

    def __init__(self, inner: SecretBackend, project: str, profile: Optional[str] = None):
        self.prefix = namespace_prefix(project, profile)
        self.inner = inner
        self.project = project
        self.profile = profile

    @property
    def name(self) -> str:
        return self.inner.name

    def get(self, key: str) -> str:
        return self.inner.get(self.prefix + key)

    def set(self, key: str, value: str) -> None:
        self.inner.set(self.prefix + key, value)

    def delete(self, key: str) -> None:
        self.inner.delete(self.prefix + key)

    def list(self) -> list[str]:
        return [
            k[len(self.prefix):]
            for k in self.inner.list()
            if k.startswith(self.prefix)
        ]

    def __repr__(self) -> str:
        return f"NamespacedBackend({self.inner!r}, prefix={self.prefix!r})"
