"""Shared test fixtures for envref."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pgpy
import pytest
import yaml
from pgpy.constants import (
    CompressionAlgorithm,
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SymmetricKeyAlgorithm,
)

from envref.backends.base import SecretBackend
from envref.errors import NotFoundError, VendorError

IDENTITY_PASSPHRASE = "test-identity-2026"


class InMemoryBackend(SecretBackend):
    """Dict-backed backend double with failure injection."""

    def __init__(
        self,
        name: str = "memory",
        data: Optional[dict[str, str]] = None,
        fail_keys: tuple[str, ...] = (),
        fail_list: bool = False,
        close_error: Optional[Exception] = None,
    ):
        self._name = name
        self.data = dict(data or {})
        self.fail_keys = set(fail_keys)
        self.fail_list = fail_list
        self.close_error = close_error
        self.closed = False
        self.gets: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: str) -> str:
        self.gets.append(key)
        if key in self.fail_keys:
            raise VendorError(self.name, key, "injected failure")
        if key not in self.data:
            raise NotFoundError(self.name, key)
        return self.data[key]

    def set(self, key: str, value: str) -> None:
        if key in self.fail_keys:
            raise VendorError(self.name, key, "injected failure")
        self.data[key] = value

    def delete(self, key: str) -> None:
        if key not in self.data:
            raise NotFoundError(self.name, key)
        del self.data[key]

    def list(self) -> list[str]:
        if self.fail_list:
            raise VendorError(self.name, None, "injected list failure")
        return sorted(self.data)

    def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


def _generate_keypair(name: str, passphrase: Optional[str] = None) -> pgpy.PGPKey:
    """Generate an RSA-2048 key that can encrypt and decrypt."""
    key = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    uid = pgpy.PGPUID.new(name, email=f"{name.lower()}@example.com")
    key.add_uid(
        uid,
        usage={
            KeyFlags.Sign,
            KeyFlags.Certify,
            KeyFlags.EncryptCommunications,
            KeyFlags.EncryptStorage,
        },
        hashes=[HashAlgorithm.SHA256],
        ciphers=[SymmetricKeyAlgorithm.AES256],
        compression=[CompressionAlgorithm.Uncompressed],
    )
    if passphrase:
        key.protect(passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)
    return key


@pytest.fixture(scope="session")
def alice_key() -> pgpy.PGPKey:
    """Session-scoped unprotected private key."""
    return _generate_keypair("Alice")


@pytest.fixture(scope="session")
def bob_key() -> pgpy.PGPKey:
    """Session-scoped passphrase-protected private key."""
    return _generate_keypair("Bob", IDENTITY_PASSPHRASE)


@pytest.fixture(scope="session")
def mallory_key() -> pgpy.PGPKey:
    """Session-scoped key that is never a recipient."""
    return _generate_keypair("Mallory")


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user-level config directory at a throwaway location."""
    config_home = tmp_path / "config-home"
    config_home.mkdir()
    monkeypatch.setenv("ENVREF_CONFIG_DIR", str(config_home))
    for var in ("ENVREF_VAULT_PASSPHRASE", "ENVREF_IDENTITY", "ENVREF_IDENTITY_PASSPHRASE"):
        monkeypatch.delenv(var, raising=False)
    return config_home


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A project using a local vault backend, with the cwd inside it."""
    root = tmp_path / "myapp"
    root.mkdir()
    config = {
        "project": "myapp",
        "backends": [
            {"name": "vault", "config": {"path": str(tmp_path / "vault.json")}},
        ],
    }
    (root / ".envref.yaml").write_text(
        yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
    )
    (root / ".env").write_text(
        "APP_NAME=myapp\nDB_PASSWORD=ref://secrets/db_password\n", encoding="utf-8"
    )
    monkeypatch.setenv("ENVREF_VAULT_PASSPHRASE", "vault-pass")
    monkeypatch.chdir(root)
    return root
