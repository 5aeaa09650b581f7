"""
Audit log — who changed which secret, where, and when.

JSONL, one entry per line, append-only. Entries name the key, backend,
project and profile. Values are never recorded.
"""

from __future__ import annotations

import getpass
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("envref.audit")

AUDIT_LOG_NAME = ".envref.audit.log"


class AuditOperation(str, Enum):
    """Kinds of secret mutation that are audited."""

    SET = "set"
    DELETE = "delete"
    IMPORT = "import"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class AuditEntry(BaseModel):
    """A single audit record."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    user: str = Field(default_factory=_current_user)
    operation: AuditOperation
    key: str
    backend: str
    project: str
    profile: Optional[str] = None
    detail: Optional[str] = None


class AuditLog:
    """Append-only JSONL audit log at *path*."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @classmethod
    def for_project(cls, root: str | Path) -> AuditLog:
        return cls(Path(root) / AUDIT_LOG_NAME)

    def record(self, entry: AuditEntry) -> AuditEntry:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json(exclude_none=True) + "\n")
        return entry

    def read(self, limit: int = 0) -> list[AuditEntry]:
        """Read entries oldest first; *limit* > 0 keeps only the newest N.

        Lines that do not parse are skipped with a warning.
        """
        if not self.path.exists():
            return []

        entries: list[AuditEntry] = []
        for lineno, line in enumerate(
            self.path.read_text(encoding="utf-8").splitlines(), start=1
        ):
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Skipping malformed audit line %d: %s", lineno, exc)

        if limit > 0:
            entries = entries[-limit:]
        return entries
