"""
Audit decorator — record every successful write or delete.

Reads pass straight through. A failed audit write is logged and does not
undo or fail the secret operation that already succeeded.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..audit import AuditEntry, AuditLog, AuditOperation
from .base import SecretBackend

logger = logging.getLogger("envref.backends.audit")


class AuditBackend(SecretBackend):
    """Wraps a backend and appends to an AuditLog after mutations."""

    def __init__(
        self,
        inner: SecretBackend,
        audit_log: AuditLog,
        project: str,
        profile: Optional[str] = None,
        set_operation: AuditOperation = AuditOperation.SET,
    ):
        self.inner = inner
        self.audit_log = audit_log
        self.project = project
        self.profile = profile
        self.set_operation = set_operation

    @property
    def name(self) -> str:
        return self.inner.name

    def get(self, key: str) -> str:
        return self.inner.get(key)

    def list(self) -> list[str]:
        return self.inner.list()

    def set(self, key: str, value: str) -> None:
        self.inner.set(key, value)
        self._record(self.set_operation, key)

    def delete(self, key: str) -> None:
        self.inner.delete(key)
        self._record(AuditOperation.DELETE, key)

    def _record(self, operation: AuditOperation, key: str) -> None:
        entry = AuditEntry(
            operation=operation,
            key=key,
            backend=self.inner.name,
            project=self.project,
            profile=self.profile,
        )
        try:
            self.audit_log.record(entry)
        except OSError as exc:
            logger.warning("Could not write audit entry for %s: %s", key, exc)
