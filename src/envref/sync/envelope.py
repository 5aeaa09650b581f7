"""
Sync envelope — PGP encryption of a secret snapshot for many recipients.

The payload is a JSON object of key -> value. It is encrypted once with a
random AES-256 session key, and that session key is wrapped separately
for each recipient's public key, so any one recipient can open it and no
recipient learns anything about another's key. The result is ASCII
armor, safe to commit.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterable, Mapping, Optional

import pgpy
from pgpy.constants import SymmetricKeyAlgorithm
from pgpy.errors import PGPDecryptionError, PGPError

from ..errors import (
    InvalidRecipientError,
    MalformedEnvelopeError,
    NoMatchingIdentityError,
    NoRecipientsError,
)

logger = logging.getLogger("envref.sync.envelope")

SESSION_CIPHER = SymmetricKeyAlgorithm.AES256
_MESSAGE_HEADER = "-----BEGIN PGP MESSAGE-----"
_ARMOR_BLOCK = re.compile(
    r"-----BEGIN PGP (?:PUBLIC|PRIVATE) KEY BLOCK-----.*?"
    r"-----END PGP (?:PUBLIC|PRIVATE) KEY BLOCK-----",
    re.DOTALL,
)


def fingerprint(key: pgpy.PGPKey) -> str:
    return str(key.fingerprint).replace(" ", "")


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def load_recipient(armored: str) -> pgpy.PGPKey:
    """Parse one ASCII-armored key into a recipient public key.

    A private key is accepted and reduced to its public half.

    Raises:
        InvalidRecipientError: If the text is not a PGP key.
    """
    if not _ARMOR_BLOCK.search(armored):
        raise InvalidRecipientError("invalid recipient public key: no armored PGP key block")
    try:
        key, _ = pgpy.PGPKey.from_blob(armored.strip())
    except (ValueError, PGPError, TypeError) as exc:
        raise InvalidRecipientError(f"invalid recipient public key: {exc}") from exc
    if not key.is_public:
        key = key.pubkey
    return key


def split_armored_keys(text: str) -> list[str]:
    """Split a file holding several armored key blocks."""
    return _ARMOR_BLOCK.findall(text)


def load_recipients_file(path: str | Path) -> list[pgpy.PGPKey]:
    """Load every armored key block in a file.

    Raises:
        InvalidRecipientError: If the file is unreadable or holds no keys.
    """
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidRecipientError(f"reading key file {file_path}: {exc}") from exc

    blocks = split_armored_keys(text)
    if not blocks:
        raise InvalidRecipientError(f"no PGP keys found in {file_path}")
    return [load_recipient(block) for block in blocks]


def dedupe_recipients(keys: Iterable[pgpy.PGPKey]) -> list[pgpy.PGPKey]:
    """Drop repeated keys, keeping first occurrence order."""
    seen: set[str] = set()
    unique = []
    for key in keys:
        fp = fingerprint(key)
        if fp not in seen:
            seen.add(fp)
            unique.append(key)
    return unique


def load_identity(
    path: str | Path, passphrase: Optional[str] = None
) -> list[tuple[pgpy.PGPKey, Optional[str]]]:
    """Load private keys from an identity file.

    Args:
        path: File with one or more armored private key blocks.
        passphrase: Passphrase for protected keys.

    Returns:
        (key, passphrase) pairs ready for :func:`open_envelope`.

    Raises:
        InvalidRecipientError: If the file is unreadable, holds no private
            key, or a key cannot be parsed.
    """
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidRecipientError(f"reading identity file {file_path}: {exc}") from exc

    identities = []
    for block in split_armored_keys(text):
        try:
            key, _ = pgpy.PGPKey.from_blob(block)
        except (ValueError, PGPError, TypeError) as exc:
            raise InvalidRecipientError(f"parsing identity file {file_path}: {exc}") from exc
        if key.is_public:
            continue
        identities.append((key, passphrase))

    if not identities:
        raise InvalidRecipientError(f"no private keys found in {file_path}")
    return identities


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


def encode_payload(secrets: Mapping[str, str]) -> str:
    """Canonical JSON for a secret set (sorted keys, stable bytes)."""
    return json.dumps(dict(secrets), indent=2, sort_keys=True, ensure_ascii=False)


def decode_payload(text: str) -> dict[str, str]:
    """Parse and check a decrypted payload.

    Raises:
        MalformedEnvelopeError: If it is not a JSON object of strings.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedEnvelopeError(f"parsing decrypted secrets: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedEnvelopeError("decrypted payload is not a JSON object")
    for key, value in data.items():
        if not isinstance(value, str):
            raise MalformedEnvelopeError(f"secret {key!r} is not a string")
    return data


def seal(secrets: Mapping[str, str], recipients: Iterable[pgpy.PGPKey]) -> str:
    """Encrypt a secret set for every recipient.

    Returns:
        ASCII-armored PGP message.

    Raises:
        NoRecipientsError: If *recipients* is empty.
        InvalidRecipientError: If a key cannot encrypt.
    """
    keys = dedupe_recipients(recipients)
    if not keys:
        raise NoRecipientsError()

    message = pgpy.PGPMessage.new(encode_payload(secrets))
    session_key = SESSION_CIPHER.gen_key()
    try:
        for key in keys:
            try:
                message = key.encrypt(message, cipher=SESSION_CIPHER, sessionkey=session_key)
            except (PGPError, ValueError, NotImplementedError) as exc:
                raise InvalidRecipientError(
                    f"cannot encrypt to key {fingerprint(key)}: {exc}"
                ) from exc
    finally:
        del session_key

    logger.debug("Sealed %d secret(s) for %d recipient(s)", len(secrets), len(keys))
    return str(message)


def open_envelope(
    armored: str, identities: Iterable[tuple[pgpy.PGPKey, Optional[str]]]
) -> dict[str, str]:
    """Decrypt an envelope with the first identity that is a recipient.

    Raises:
        MalformedEnvelopeError: Bad armor, not encrypted, or a bad payload.
        NoMatchingIdentityError: No identity can decrypt it.
    """
    if _MESSAGE_HEADER not in armored:
        raise MalformedEnvelopeError("sync envelope is not an armored PGP message")
    try:
        message = pgpy.PGPMessage.from_blob(armored)
    except (ValueError, PGPError, TypeError) as exc:
        raise MalformedEnvelopeError(f"reading sync envelope: {exc}") from exc
    if not message.is_encrypted:
        raise MalformedEnvelopeError("sync envelope is not encrypted")

    recipients = message.encrypters
    failures: list[str] = []
    for key, passphrase in identities:
        if not _is_recipient(key, recipients):
            failures.append(f"{fingerprint(key)}: not a recipient")
            continue
        if key.is_protected and passphrase is None:
            failures.append(f"{fingerprint(key)}: identity is passphrase-protected")
            continue
        try:
            payload = _decrypt(key, passphrase, message)
        except _WrongPassphrase as exc:
            failures.append(f"{fingerprint(key)}: {exc}")
            continue
        return decode_payload(payload)

    detail = "; ".join(failures) or "no identities supplied"
    raise NoMatchingIdentityError(f"no identity matched the sync envelope ({detail})")


class _WrongPassphrase(Exception):
    pass


def _is_recipient(key: pgpy.PGPKey, recipients: set) -> bool:
    ids = {key.fingerprint.keyid}
    ids.update(sub.fingerprint.keyid for sub in key.subkeys.values())
    return bool(ids & set(recipients))


def _decrypt(key: pgpy.PGPKey, passphrase: Optional[str], message: pgpy.PGPMessage) -> str:
    """Decrypt *message* with a recipient key and return the payload text.

    An unlock failure is the identity's fault; any failure after that
    means the ciphertext is damaged.
    """
    if not key.is_protected:
        return _decrypt_payload(key, message)
    try:
        with key.unlock(passphrase):
            return _decrypt_payload(key, message)
    except (PGPDecryptionError, PGPError, ValueError) as exc:
        raise _WrongPassphrase(str(exc) or "passphrase was incorrect") from exc


def _decrypt_payload(key: pgpy.PGPKey, message: pgpy.PGPMessage) -> str:
    try:
        payload = key.decrypt(message).message
    except (PGPDecryptionError, PGPError, ValueError, TypeError) as exc:
        raise MalformedEnvelopeError(f"decrypting sync envelope: {exc}") from exc
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEnvelopeError(f"decrypted payload is not UTF-8: {exc}") from exc
    return payload
