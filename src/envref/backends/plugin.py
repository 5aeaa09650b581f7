"""
Plugin backend — delegate to an external executable.

Each operation runs ``<command> serve`` with one JSON request on stdin
and reads one JSON response from stdout::

    request:  {"operation": "get" | "set" | "delete" | "list",
               "key": "...", "value": "..."}
    response: {"value": "...", "keys": [...], "error": "..."}

A non-empty ``error`` fails the operation; ``"not found"`` maps to
NotFoundError. Without an explicit ``command`` the executable is found
on PATH as ``envref-backend-<name>``.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from typing import Any, Optional

from ..errors import ConfigurationError, NotFoundError, VendorError
from .base import SecretBackend

logger = logging.getLogger("envref.backends.plugin")

PLUGIN_PREFIX = "envref-backend-"
DEFAULT_TIMEOUT = 30.0


def discover_plugin(name: str) -> Optional[str]:
    """Find ``envref-backend-<name>`` on PATH."""
    return shutil.which(PLUGIN_PREFIX + name)


class PluginBackend(SecretBackend):
    """Secrets served by an external plugin process."""

    def __init__(self, name: str, command: str, timeout: float = DEFAULT_TIMEOUT):
        self._name = name
        self.command = command
        self.timeout = timeout

    @classmethod
    def from_config(cls, name: str, options: dict[str, str]) -> PluginBackend:
        command = options.get("command") or discover_plugin(name)
        if not command:
            raise ConfigurationError(
                f"plugin backend {name!r}: no config.command and "
                f"{PLUGIN_PREFIX}{name} not found on PATH"
            )
        timeout = float(options.get("timeout", DEFAULT_TIMEOUT))
        return cls(name, command, timeout=timeout)

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: str) -> str:
        response = self._call({"operation": "get", "key": key}, key)
        return str(response.get("value", ""))

    def set(self, key: str, value: str) -> None:
        self._call({"operation": "set", "key": key, "value": value}, key)

    def delete(self, key: str) -> None:
        self._call({"operation": "delete", "key": key}, key)

    def list(self) -> list[str]:
        response = self._call({"operation": "list"}, None)
        return [str(k) for k in response.get("keys") or []]

    def _call(self, request: dict[str, Any], key: Optional[str]) -> dict[str, Any]:
        op = request["operation"]
        try:
            result = subprocess.run(
                [self.command, "serve"],
                input=json.dumps(request),
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise VendorError(self.name, key, f"plugin {op}: {exc}") from exc

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise VendorError(self.name, key, f"plugin {op}: {detail}")

        try:
            response = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise VendorError(self.name, key, f"plugin {op}: invalid response: {exc}") from exc
        if not isinstance(response, dict):
            raise VendorError(self.name, key, f"plugin {op}: response is not a JSON object")

        error = response.get("error")
        if error:
            if str(error).strip().lower() == "not found" and key is not None:
                raise NotFoundError(self.name, key)
            raise VendorError(self.name, key, f"plugin {op}: {error}")

        logger.debug("plugin %s %s ok", self.name, op)
        return response
