"""
Secret backend contract.

Every secret store is reached through the same four operations. The
only failure a caller is expected to handle is NotFoundError; anything
else the store reports comes back as VendorError with the original
exception chained, and is never retried here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretBackend(ABC):
    """Abstract secret store."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of this backend (the user-chosen label)."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the value stored under *key*.

        Raises:
            NotFoundError: If the key does not exist.
            VendorError: If the store fails for any other reason.
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, overwriting any existing value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*.

        Raises:
            NotFoundError: If the key does not exist.
        """

    @abstractmethod
    def list(self) -> list[str]:
        """Return every key the store holds."""

    def close(self) -> None:
        """Release vendor resources. The default holds none."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
