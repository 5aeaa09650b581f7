"""
Sync engine — export a namespace to an envelope, import it back.

Export is all-or-nothing: every key is read before anything is
encrypted, and the sync file is written only after encryption succeeds.
Import decrypts and validates the whole envelope before the first write,
then merges: existing keys are skipped unless forced, and keys missing
from the envelope are never deleted. Running the same import twice
changes nothing the second time.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pgpy

from ..backends.base import SecretBackend
from ..errors import (
    CodecError,
    ConfigurationError,
    EmptySecretSetError,
    NotFoundError,
    NoRecipientsError,
)
from ..models import ProjectConfig
from .envelope import dedupe_recipients, load_recipient, load_recipients_file, open_envelope, seal

logger = logging.getLogger("envref.sync.engine")

DEFAULT_SYNC_FILE = ".envref.secrets.asc"


@dataclass
class ImportSummary:
    """What an import did."""

    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.imported) + len(self.skipped)


def collect_recipients(
    cfg: ProjectConfig,
    names: Sequence[str] = (),
    key_files: Sequence[str | Path] = (),
    whole_team: bool = False,
) -> list[pgpy.PGPKey]:
    """Gather recipient keys from the team roster and key files.

    Args:
        cfg: Project config holding the team roster.
        names: Individual team members to include.
        key_files: Files of armored public keys.
        whole_team: Include every team member.

    Returns:
        Unique keys, roster order first.

    Raises:
        ConfigurationError: A named member is not on the roster.
        InvalidRecipientError: A key cannot be parsed.
    """
    armored: list[str] = []
    if whole_team:
        armored.extend(cfg.team_public_keys())
    for name in names:
        member = cfg.team_member(name)
        if member is None:
            raise ConfigurationError(f"team member {name!r} not found")
        armored.append(member.public_key)

    keys = [load_recipient(text) for text in armored]
    for path in key_files:
        keys.extend(load_recipients_file(path))
    return dedupe_recipients(keys)


def collect_secrets(backend: SecretBackend) -> dict[str, str]:
    """Read every key visible through *backend*.

    Any failure aborts; a partial set is never returned.
    """
    secrets: dict[str, str] = {}
    for key in backend.list():
        secrets[key] = backend.get(key)
    return secrets


def export_secrets(
    backend: SecretBackend, recipients: Iterable[pgpy.PGPKey]
) -> tuple[str, dict[str, str]]:
    """Encrypt the full secret set of a namespaced backend.

    Args:
        backend: Namespaced view to export.
        recipients: Public keys allowed to decrypt.

    Returns:
        (armored envelope, exported secrets).

    Raises:
        NoRecipientsError: No recipients given.
        EmptySecretSetError: The namespace holds no secrets.
        BackendError: Listing or reading any key failed.
    """
    keys = dedupe_recipients(recipients)
    if not keys:
        raise NoRecipientsError()

    secrets = collect_secrets(backend)
    if not secrets:
        raise EmptySecretSetError(f"no secrets found in backend {backend.name!r}")

    envelope = seal(secrets, keys)
    logger.info("Exported %d secret(s) for %d recipient(s)", len(secrets), len(keys))
    return envelope, secrets


def write_envelope(envelope: str, path: str | Path) -> Path:
    """Atomically write an armored envelope to *path*."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=".envref-sync-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(envelope)
        os.replace(tmp_path, target)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise
    return target


def import_secrets(
    backend: SecretBackend,
    envelope: str,
    identities: Iterable[tuple[pgpy.PGPKey, Optional[str]]],
    force: bool = False,
) -> ImportSummary:
    """Decrypt an envelope and merge it into a namespaced backend.

    Args:
        backend: Namespaced view to write into.
        envelope: Armored envelope text.
        identities: (private key, passphrase) pairs to try.
        force: Overwrite keys the backend already holds.

    Returns:
        ImportSummary with imported and skipped keys.

    Raises:
        CodecError: The envelope cannot be opened; nothing was written.
        BackendError: A read (other than not-found) or write failed.
    """
    secrets = open_envelope(envelope, identities)

    summary = ImportSummary()
    for key in sorted(secrets):
        if not force and _exists(backend, key):
            logger.debug("Skipped %s (already exists)", key)
            summary.skipped.append(key)
            continue
        backend.set(key, secrets[key])
        summary.imported.append(key)

    logger.info(
        "Imported %d secret(s), skipped %d", len(summary.imported), len(summary.skipped)
    )
    return summary


def _exists(backend: SecretBackend, key: str) -> bool:
    try:
        backend.get(key)
    except NotFoundError:
        return False
    return True


def read_envelope(path: str | Path) -> str:
    """Read an armored envelope from *path*.

    Raises:
        CodecError: If the file cannot be read.
    """
    source = Path(path)
    try:
        return source.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise CodecError(f"sync file not found: {source}") from None
    except OSError as exc:
        raise CodecError(f"reading sync file {source}: {exc}") from exc
