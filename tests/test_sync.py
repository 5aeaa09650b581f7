"""Tests for sync envelopes and the export/import engine."""

from __future__ import annotations

import json
from pathlib import Path

import pgpy
import pytest

from envref.backends.namespaced import NamespacedBackend
from envref.errors import (
    CodecError,
    ConfigurationError,
    EmptySecretSetError,
    InvalidRecipientError,
    MalformedEnvelopeError,
    NoMatchingIdentityError,
    NoRecipientsError,
    VendorError,
)
from envref.models import ProjectConfig, TeamMember
from envref.sync import (
    collect_recipients,
    export_secrets,
    import_secrets,
    load_identity,
    load_recipient,
    load_recipients_file,
    open_envelope,
    read_envelope,
    seal,
    write_envelope,
)
from envref.sync.envelope import decode_payload, encode_payload, fingerprint

from conftest import IDENTITY_PASSPHRASE, InMemoryBackend

SECRETS = {"API_KEY": "sk-123", "DB_PASSWORD": "p@ss word\n'quoted'", "EMPTY": ""}


class TestKeys:
    """Loading recipients and identities."""

    def test_private_key_reduced_to_public(self, alice_key: pgpy.PGPKey) -> None:
        recipient = load_recipient(str(alice_key))
        assert recipient.is_public
        assert fingerprint(recipient) == fingerprint(alice_key)

    def test_invalid_recipient(self) -> None:
        with pytest.raises(InvalidRecipientError):
            load_recipient("not a key")

    def test_recipients_file_with_several_keys(
        self, tmp_path: Path, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        path = tmp_path / "team.asc"
        path.write_text(f"{alice_key.pubkey}\n{bob_key.pubkey}\n", encoding="utf-8")
        keys = load_recipients_file(path)
        assert [fingerprint(k) for k in keys] == [fingerprint(alice_key), fingerprint(bob_key)]

    def test_recipients_file_without_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.asc"
        path.write_text("nothing here", encoding="utf-8")
        with pytest.raises(InvalidRecipientError):
            load_recipients_file(path)

    def test_identity_requires_private_key(self, tmp_path: Path, alice_key: pgpy.PGPKey) -> None:
        path = tmp_path / "alice.pub.asc"
        path.write_text(str(alice_key.pubkey), encoding="utf-8")
        with pytest.raises(InvalidRecipientError, match="no private keys"):
            load_identity(path)

    def test_identity_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidRecipientError):
            load_identity(tmp_path / "missing.asc")


class TestPayload:
    """The JSON inside the envelope."""

    def test_keys_sorted(self) -> None:
        assert list(json.loads(encode_payload({"b": "2", "a": "1"}))) == ["a", "b"]
        assert encode_payload({"b": "2", "a": "1"}) == encode_payload({"a": "1", "b": "2"})

    @pytest.mark.parametrize("text", ["[1, 2]", '{"a": 1}', "not json"])
    def test_bad_payloads(self, text: str) -> None:
        with pytest.raises(MalformedEnvelopeError):
            decode_payload(text)


class TestEnvelope:
    """Multi-recipient seal and open."""

    def test_round_trip_for_either_recipient(
        self, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        armored = seal(SECRETS, [alice_key.pubkey, bob_key.pubkey])
        assert armored.startswith("-----BEGIN PGP MESSAGE-----")
        assert "sk-123" not in armored

        assert open_envelope(armored, [(alice_key, None)]) == SECRETS
        assert open_envelope(armored, [(bob_key, IDENTITY_PASSPHRASE)]) == SECRETS

    def test_no_recipients(self) -> None:
        with pytest.raises(NoRecipientsError, match="at least one recipient is required"):
            seal(SECRETS, [])

    def test_duplicate_recipients_collapse(self, alice_key: pgpy.PGPKey) -> None:
        armored = seal(SECRETS, [alice_key.pubkey, load_recipient(str(alice_key))])
        assert len(pgpy.PGPMessage.from_blob(armored).encrypters) == 1

    def test_non_recipient_cannot_open(
        self, alice_key: pgpy.PGPKey, mallory_key: pgpy.PGPKey
    ) -> None:
        armored = seal(SECRETS, [alice_key.pubkey])
        with pytest.raises(NoMatchingIdentityError):
            open_envelope(armored, [(mallory_key, None)])

    def test_protected_identity_needs_passphrase(
        self, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        armored = seal(SECRETS, [bob_key.pubkey])
        with pytest.raises(NoMatchingIdentityError):
            open_envelope(armored, [(bob_key, None)])
        with pytest.raises(NoMatchingIdentityError):
            open_envelope(armored, [(bob_key, "wrong passphrase")])

    def test_second_identity_used_when_first_is_not_a_recipient(
        self, alice_key: pgpy.PGPKey, mallory_key: pgpy.PGPKey
    ) -> None:
        armored = seal(SECRETS, [alice_key.pubkey])
        assert open_envelope(armored, [(mallory_key, None), (alice_key, None)]) == SECRETS

    def test_wrong_passphrase_falls_through_to_next_identity(
        self, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        armored = seal(SECRETS, [alice_key.pubkey, bob_key.pubkey])
        identities = [(bob_key, "wrong passphrase"), (alice_key, None)]
        assert open_envelope(armored, identities) == SECRETS

    def test_tampered_ciphertext(self, alice_key: pgpy.PGPKey) -> None:
        blob = bytearray(bytes(pgpy.PGPMessage.from_blob(seal(SECRETS, [alice_key.pubkey]))))
        blob[-5] ^= 0xFF
        tampered = str(pgpy.PGPMessage.from_blob(bytes(blob)))
        with pytest.raises(MalformedEnvelopeError):
            open_envelope(tampered, [(alice_key, None)])

    def test_malformed_envelope(self, alice_key: pgpy.PGPKey) -> None:
        with pytest.raises(MalformedEnvelopeError):
            open_envelope("garbage", [(alice_key, None)])

    def test_unencrypted_message_rejected(self, alice_key: pgpy.PGPKey) -> None:
        plain = str(pgpy.PGPMessage.new(json.dumps(SECRETS)))
        with pytest.raises(MalformedEnvelopeError, match="not encrypted"):
            open_envelope(plain, [(alice_key, None)])


class TestEngine:
    """Export and import against namespaced backends."""

    def _view(self, backend: InMemoryBackend) -> NamespacedBackend:
        return NamespacedBackend(backend, "app")

    def test_export_import_round_trip(
        self, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        source = InMemoryBackend(data={f"app/{k}": v for k, v in SECRETS.items()})
        source.data["other/IGNORED"] = "x"
        envelope, exported = export_secrets(
            self._view(source), [alice_key.pubkey, bob_key.pubkey]
        )
        assert exported == SECRETS

        target = InMemoryBackend()
        summary = import_secrets(self._view(target), envelope, [(bob_key, IDENTITY_PASSPHRASE)])
        assert summary.imported == sorted(SECRETS)
        assert summary.skipped == []
        assert self._view(target).list() == sorted(SECRETS)
        assert {k: self._view(target).get(k) for k in SECRETS} == SECRETS

    def test_import_is_idempotent(self, alice_key: pgpy.PGPKey) -> None:
        envelope = seal(SECRETS, [alice_key.pubkey])
        target = InMemoryBackend()
        import_secrets(self._view(target), envelope, [(alice_key, None)])
        after_first = dict(target.data)

        summary = import_secrets(self._view(target), envelope, [(alice_key, None)])
        assert target.data == after_first
        assert summary.imported == []
        assert summary.skipped == sorted(SECRETS)

    def test_import_skips_existing_unless_forced(self, alice_key: pgpy.PGPKey) -> None:
        envelope = seal({"A": "new", "B": "b"}, [alice_key.pubkey])
        target = InMemoryBackend(data={"app/A": "local", "app/KEEP": "k"})

        summary = import_secrets(self._view(target), envelope, [(alice_key, None)])
        assert summary.skipped == ["A"] and summary.imported == ["B"]
        assert target.data["app/A"] == "local"

        summary = import_secrets(self._view(target), envelope, [(alice_key, None)], force=True)
        assert summary.imported == ["A", "B"]
        assert target.data["app/A"] == "new"
        assert target.data["app/KEEP"] == "k"

    def test_failed_decrypt_writes_nothing(
        self, alice_key: pgpy.PGPKey, mallory_key: pgpy.PGPKey
    ) -> None:
        envelope = seal(SECRETS, [alice_key.pubkey])
        target = InMemoryBackend()
        with pytest.raises(NoMatchingIdentityError):
            import_secrets(self._view(target), envelope, [(mallory_key, None)])
        assert target.data == {}

    def test_export_without_recipients_touches_nothing(self) -> None:
        source = InMemoryBackend(data={"app/A": "1"})
        with pytest.raises(NoRecipientsError, match="at least one recipient is required"):
            export_secrets(self._view(source), [])
        assert source.gets == []

    def test_export_empty_namespace(self, alice_key: pgpy.PGPKey) -> None:
        with pytest.raises(EmptySecretSetError):
            export_secrets(self._view(InMemoryBackend()), [alice_key.pubkey])

    def test_export_aborts_on_any_read_failure(self, alice_key: pgpy.PGPKey) -> None:
        source = InMemoryBackend(data={"app/A": "1", "app/B": "2"}, fail_keys=("app/B",))
        with pytest.raises(VendorError):
            export_secrets(self._view(source), [alice_key.pubkey])


class TestFilesAndRecipients:
    """Sync file IO and roster selection."""

    def test_write_and_read_envelope(self, tmp_path: Path) -> None:
        path = write_envelope("ARMORED", tmp_path / "sub" / ".envref.secrets.asc")
        assert read_envelope(path) == "ARMORED"
        assert [p.name for p in path.parent.iterdir()] == [".envref.secrets.asc"]

    def test_read_missing_envelope(self, tmp_path: Path) -> None:
        with pytest.raises(CodecError, match="not found"):
            read_envelope(tmp_path / "nope.asc")

    def test_collect_recipients(
        self, tmp_path: Path, alice_key: pgpy.PGPKey, bob_key: pgpy.PGPKey
    ) -> None:
        cfg = ProjectConfig(
            project="app",
            team=[
                TeamMember(name="alice", public_key=str(alice_key.pubkey)),
                TeamMember(name="bob", public_key=str(bob_key.pubkey)),
            ],
        )
        key_file = tmp_path / "extra.asc"
        key_file.write_text(str(alice_key.pubkey), encoding="utf-8")

        assert collect_recipients(cfg) == []
        only_bob = collect_recipients(cfg, names=["bob"])
        assert [fingerprint(k) for k in only_bob] == [fingerprint(bob_key)]

        everyone = collect_recipients(cfg, names=["bob"], key_files=[key_file], whole_team=True)
        assert [fingerprint(k) for k in everyone] == [fingerprint(alice_key), fingerprint(bob_key)]

        with pytest.raises(ConfigurationError, match="carol"):
            collect_recipients(cfg, names=["carol"])
