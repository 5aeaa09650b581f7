"""
OS credential store backend via the keyring package.

macOS Keychain, Windows Credential Locker, Secret Service on Linux —
whatever keyring picks for the platform. Credential stores cannot
enumerate entries, so the backend keeps a JSON index of its keys under
a reserved entry and updates it on every set and delete.
"""

from __future__ import annotations

import json
import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..errors import NotFoundError, VendorError
from .base import SecretBackend

logger = logging.getLogger("envref.backends.keychain")

SERVICE_NAME = "envref"
INDEX_KEY = "__envref_key_index__"


class KeychainBackend(SecretBackend):
    """Secrets stored in the operating system's credential store."""

    def __init__(self, name: str = "keychain", service: str = SERVICE_NAME):
        self._name = name
        self.service = service

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: str) -> str:
        try:
            value = keyring.get_password(self.service, key)
        except KeyringError as exc:
            raise VendorError(self.name, key, f"keychain get: {exc}") from exc
        if value is None:
            raise NotFoundError(self.name, key)
        return value

    def set(self, key: str, value: str) -> None:
        keys = self._load_index()
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as exc:
            raise VendorError(self.name, key, f"keychain set: {exc}") from exc

        if key not in keys:
            keys.append(key)
            try:
                self._save_index(keys)
            except VendorError:
                try:
                    keyring.delete_password(self.service, key)
                except KeyringError as rollback_exc:
                    logger.warning(
                        "Could not roll back %s after index failure: %s",
                        key, rollback_exc,
                    )
                raise

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError as exc:
            raise NotFoundError(self.name, key) from exc
        except KeyringError as exc:
            raise VendorError(self.name, key, f"keychain delete: {exc}") from exc

        keys = self._load_index()
        if key in keys:
            keys.remove(key)
            self._save_index(keys)

    def list(self) -> list[str]:
        return self._load_index()

    def _load_index(self) -> list[str]:
        try:
            raw = keyring.get_password(self.service, INDEX_KEY)
        except KeyringError as exc:
            raise VendorError(self.name, None, f"keychain load index: {exc}") from exc
        if not raw:
            return []
        try:
            keys = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise VendorError(self.name, None, f"keychain parse index: {exc}") from exc
        return [str(k) for k in keys]

    def _save_index(self, keys: list[str]) -> None:
        try:
            keyring.set_password(self.service, INDEX_KEY, json.dumps(sorted(keys)))
        except KeyringError as exc:
            raise VendorError(self.name, None, f"keychain save index: {exc}") from exc
