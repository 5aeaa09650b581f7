"""
Secure sync — share a project's secrets through version control.

Push encrypts the namespace's secrets for every recipient into one
armored file. Pull decrypts it with a recipient's private key and merges
it into a backend.
"""

from .engine import (
    DEFAULT_SYNC_FILE,
    ImportSummary,
    collect_recipients,
    export_secrets,
    import_secrets,
    read_envelope,
    write_envelope,
)
from .envelope import load_identity, load_recipient, load_recipients_file, open_envelope, seal

__all__ = [
    "DEFAULT_SYNC_FILE",
    "ImportSummary",
    "collect_recipients",
    "export_secrets",
    "import_secrets",
    "load_identity",
    "load_recipient",
    "load_recipients_file",
    "open_envelope",
    "read_envelope",
    "seal",
    "write_envelope",
]
