"""
Local encrypted vault backend.

A single JSON file where every value is encrypted on its own with
Fernet. The Fernet key is derived from a passphrase with Scrypt and a
random per-vault salt; the passphrase itself is never written anywhere.

File layout::

    {
      "version": 1,
      "salt": "<base64>",
      "check": "<fernet token of a fixed marker>",
      "secrets": {"<key>": "<fernet token>", ...}
    }
"""

from __future__ import annotations

import base64
import json
import logging
import os
import secrets as _secrets
import tempfile
from pathlib import Path
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .. import config_dir
from ..errors import ConfigurationError, NotFoundError, VendorError
from .base import SecretBackend

logger = logging.getLogger("envref.backends.vault")

PASSPHRASE_ENV = "ENVREF_VAULT_PASSPHRASE"
DEFAULT_VAULT_NAME = "vault.json"
VAULT_VERSION = 1
_CHECK_MARKER = b"envref-vault"


def default_vault_path() -> Path:
    return Path(config_dir()) / DEFAULT_VAULT_NAME


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a passphrase with Scrypt."""
    kdf = Scrypt(salt=salt, length=32, n=2**15, r=8, p=1)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class VaultBackend(SecretBackend):
    """Passphrase-protected secrets in a local file."""

    def __init__(
        self,
        passphrase: str,
        path: Optional[str | Path] = None,
        name: str = "vault",
    ):
        if not passphrase:
            raise ConfigurationError(
                f"vault backend {name!r} needs a passphrase "
                f"(set {PASSPHRASE_ENV} or config.passphrase)"
            )
        self._name = name
        self._passphrase = passphrase
        self.path = Path(path).expanduser() if path else default_vault_path()
        self._fernet: Optional[Fernet] = None
        self._data: Optional[dict[str, Any]] = None

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: str) -> str:
        data = self._open()
        token = data["secrets"].get(key)
        if token is None:
            raise NotFoundError(self.name, key)
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise VendorError(self.name, key, "vault entry could not be decrypted") from exc

    def set(self, key: str, value: str) -> None:
        data = self._open()
        data["secrets"][key] = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._open()
        if key not in data["secrets"]:
            raise NotFoundError(self.name, key)
        del data["secrets"][key]
        self._save(data)

    def list(self) -> list[str]:
        return sorted(self._open()["secrets"])

    def close(self) -> None:
        self._fernet = None
        self._data = None

    def _open(self) -> dict[str, Any]:
        """Load (or initialise) the vault and verify the passphrase."""
        if self._data is not None:
            return self._data

        if not self.path.exists():
            salt = _secrets.token_bytes(16)
            self._fernet = Fernet(_derive_key(self._passphrase, salt))
            self._data = {
                "version": VAULT_VERSION,
                "salt": base64.b64encode(salt).decode("ascii"),
                "check": self._fernet.encrypt(_CHECK_MARKER).decode("ascii"),
                "secrets": {},
            }
            logger.debug("Initialised new vault at %s", self.path)
            return self._data

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            salt = base64.b64decode(data["salt"])
            data.setdefault("secrets", {})
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise VendorError(self.name, None, f"reading vault {self.path}: {exc}") from exc

        fernet = Fernet(_derive_key(self._passphrase, salt))
        check = data.get("check")
        if check:
            try:
                fernet.decrypt(check.encode("ascii"))
            except InvalidToken as exc:
                raise VendorError(self.name, None, "incorrect vault passphrase") from exc

        self._fernet = fernet
        self._data = data
        return data

    def _save(self, data: dict[str, Any]) -> None:
        """Atomic write: temp file in the same directory, then rename."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=".vault_", suffix=".tmp"
            )
        except OSError as exc:
            raise VendorError(self.name, None, f"writing vault {self.path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            Path(tmp_path).unlink(missing_ok=True)
            raise VendorError(self.name, None, f"writing vault {self.path}: {exc}") from exc
