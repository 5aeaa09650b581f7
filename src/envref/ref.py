"""
ref:// tokens — the only thing that marks a value as a secret.

A token is ``ref://<first>/<path>``. ``first`` names a backend when it
matches a registered one; anything else (conventionally ``secrets``)
means "try every backend in order". The prefix match is exact and
case-sensitive. There is no escape for literal values that happen to
start with ``ref://``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidReferenceError

PREFIX = "ref://"


def is_ref(value: str) -> bool:
    """Return True if *value* is a reference token."""
    return value.startswith(PREFIX)


@dataclass(frozen=True)
class Reference:
    """A parsed ref:// token."""

    raw: str
    backend: str
    path: str

    def __str__(self) -> str:
        return f"{PREFIX}{self.backend}/{self.path}"

    @classmethod
    def parse(cls, value: str) -> Reference:
        """Parse a ref:// token.

        Args:
            value: The raw value from an env file or a backend.

        Returns:
            Reference: backend hint and lookup path.

        Raises:
            InvalidReferenceError: If the value is not a well-formed token.
        """
        if not is_ref(value):
            raise InvalidReferenceError(f"not a ref:// URI: {value!r}")

        rest = value[len(PREFIX):]
        if not rest:
            raise InvalidReferenceError(f"empty ref:// URI: {value!r}")

        backend, sep, path = rest.partition("/")
        if not sep:
            raise InvalidReferenceError(
                f"ref:// URI missing path: {value!r} "
                "(expected ref://<backend>/<path>)"
            )
        if not backend:
            raise InvalidReferenceError(f"ref:// URI has empty backend: {value!r}")
        if not path:
            raise InvalidReferenceError(f"ref:// URI has empty path: {value!r}")

        return cls(raw=value, backend=backend, path=path)
