"""Tests for the external plugin backend protocol."""

from __future__ import annotations

import json
import os
import stat
import sys
from pathlib import Path

import pytest

from envref.backends.plugin import PluginBackend, discover_plugin
from envref.errors import NotFoundError, VendorError

pytestmark = pytest.mark.skipif(os.name != "posix", reason="needs executable scripts")

PLUGIN_SOURCE = '''
import json, sys
from pathlib import Path

assert sys.argv[1:] == ["serve"], sys.argv
store_path = Path(__file__).with_suffix(".json")
store = json.loads(store_path.read_text()) if store_path.exists() else {}
req = json.load(sys.stdin)
op, key = req["operation"], req.get("key")
if key == "CRASH":
    sys.stderr.write("plugin exploded")
    sys.exit(3)
if key == "DENIED":
    print(json.dumps({"error": "access denied"}))
    sys.exit(0)
if op == "get":
    resp = {"value": store[key]} if key in store else {"error": "not found"}
elif op == "set":
    store[key] = req["value"]
    resp = {}
elif op == "delete":
    resp = {} if store.pop(key, None) is not None else {"error": "not found"}
else:
    resp = {"keys": sorted(store)}
store_path.write_text(json.dumps(store))
print(json.dumps(resp))
'''


def _write_plugin(directory: Path, name: str, source: str = PLUGIN_SOURCE) -> Path:
    script = directory / name
    script.write_text(f"#!{sys.executable}\n{source}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


@pytest.fixture
def plugin(tmp_path: Path) -> PluginBackend:
    return PluginBackend("fake", str(_write_plugin(tmp_path, "envref-backend-fake")))


class TestPluginBackend:
    """JSON over stdin/stdout."""

    def test_round_trip(self, plugin: PluginBackend) -> None:
        plugin.set("app/A", "1")
        plugin.set("app/B", "two words")
        assert plugin.get("app/B") == "two words"
        assert plugin.list() == ["app/A", "app/B"]
        plugin.delete("app/A")
        assert plugin.list() == ["app/B"]

    def test_not_found(self, plugin: PluginBackend) -> None:
        with pytest.raises(NotFoundError):
            plugin.get("missing")
        with pytest.raises(NotFoundError):
            plugin.delete("missing")

    def test_plugin_error_is_vendor_error(self, plugin: PluginBackend) -> None:
        with pytest.raises(VendorError, match="access denied"):
            plugin.get("DENIED")

    def test_nonzero_exit(self, plugin: PluginBackend) -> None:
        with pytest.raises(VendorError, match="plugin exploded"):
            plugin.get("CRASH")

    def test_invalid_json(self, tmp_path: Path) -> None:
        script = _write_plugin(tmp_path, "garbage", "print('not json')\n")
        with pytest.raises(VendorError, match="invalid response"):
            PluginBackend("garbage", str(script)).list()

    def test_missing_executable(self, tmp_path: Path) -> None:
        with pytest.raises(VendorError):
            PluginBackend("gone", str(tmp_path / "does-not-exist")).list()

    def test_discovery_on_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        script = _write_plugin(tmp_path, "envref-backend-found")
        monkeypatch.setenv("PATH", str(tmp_path))
        assert discover_plugin("found") == str(script)
        backend = PluginBackend.from_config("found", {})
        backend.set("k", "v")
        assert json.loads(script.with_suffix(".json").read_text()) == {"k": "v"}
