"""
Layered env files — parse, load and merge KEY=VALUE files.

A project's environment is built from up to three layers, lowest
precedence first: the base file, the active profile's file and the
local override file. Later layers win per key, but a key keeps the
position where it was first seen.

Values that start with ``ref://`` are tagged as references when the
line is parsed. The tag follows whichever layer supplied the winning
value, so a local literal that overrides a shared reference is just a
literal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .errors import EnvFileNotFoundError, EnvFileParseError
from .ref import is_ref

logger = logging.getLogger("envref.envfile")

_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", '"': '"'}
_NEEDS_QUOTING = set(" \t\n\r\"'`#\\$")


@dataclass(frozen=True)
class Entry:
    """One environment variable.

    Attributes:
        key: Variable name.
        value: Literal value, reference token or resolved secret.
        was_ref: True when the pre-resolution value was a ref:// token.
    """

    key: str
    value: str
    was_ref: bool = False

    @classmethod
    def from_value(cls, key: str, value: str) -> Entry:
        return cls(key=key, value=value, was_ref=is_ref(value))


class Env:
    """Ordered mapping of keys to entries.

    Insertion order is first-seen order; setting an existing key replaces
    its entry in place.
    """

    def __init__(self, entries: Optional[Iterable[Entry]] = None):
        self._entries: dict[str, Entry] = {}
        for entry in entries or ():
            self.set(entry)

    def set(self, entry: Entry) -> None:
        self._entries[entry.key] = entry

    def get(self, key: str) -> Optional[Entry]:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries)

    def all(self) -> list[Entry]:
        return list(self._entries.values())

    def refs(self) -> list[Entry]:
        """Entries whose value is a reference token, in order."""
        return [e for e in self._entries.values() if e.was_ref]

    def has_refs(self) -> bool:
        return any(e.was_ref for e in self._entries.values())

    def as_dict(self) -> dict[str, str]:
        return {k: e.value for k, e in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"Env({self.keys()!r})"

    def write(self, path: str | Path) -> Path:
        """Write the env back out as a KEY=VALUE file.

        Values that contain whitespace, quotes or shell metacharacters are
        double-quoted with escapes so :func:`parse` reads them back intact.
        """
        target = Path(path)
        lines = [f"{e.key}={format_value(e.value)}\n" for e in self._entries.values()]
        target.write_text("".join(lines), encoding="utf-8")
        return target


def format_value(value: str) -> str:
    """Quote a value for an env file when it needs it."""
    if not value or not (_NEEDS_QUOTING & set(value)):
        return value
    out = ['"']
    for ch in value:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse(text: str, path: Optional[str] = None) -> list[Entry]:
    """Parse env file text into entries.

    Recognises ``KEY=VALUE`` lines with an optional ``export`` prefix.
    Blank lines and ``#`` comment lines are skipped, as are lines with no
    ``=`` or an empty key. Quoted values must close on the same line.

    Args:
        text: File contents.
        path: Source path, used only in error messages.

    Returns:
        Entries in file order. Duplicate keys are kept; :class:`Env`
        collapses them.

    Raises:
        EnvFileParseError: On an unterminated quoted value.
    """
    entries: list[Entry] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].strip()

        key, sep, raw_value = stripped.partition("=")
        key = key.strip()
        if not sep or not key:
            continue

        try:
            value = _parse_value(raw_value)
        except ValueError as exc:
            raise EnvFileParseError(lineno, str(exc), path) from None

        entries.append(Entry.from_value(key, value))
    return entries


def _parse_value(raw: str) -> str:
    trimmed = raw.lstrip()
    if not trimmed:
        return ""

    quote = trimmed[0]
    if quote == "'":
        end = trimmed.find("'", 1)
        if end < 0:
            raise ValueError("unterminated single-quoted value")
        return trimmed[1:end]
    if quote == '"':
        return _parse_double_quoted(trimmed)
    if quote == "`":
        end = trimmed.find("`", 1)
        if end < 0:
            raise ValueError("unterminated backtick-quoted value")
        return trimmed[1:end]

    return _strip_inline_comment(raw).strip()


def _parse_double_quoted(raw: str) -> str:
    out: list[str] = []
    escaped = False
    for ch in raw[1:]:
        if escaped:
            out.append(_ESCAPES.get(ch, "\\" + ch))
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            return "".join(out)
        else:
            out.append(ch)
    raise ValueError("unterminated double-quoted value")


def _strip_inline_comment(value: str) -> str:
    for i in range(1, len(value)):
        if value[i] == "#" and value[i - 1] in " \t":
            return value[:i]
    return value


# ---------------------------------------------------------------------------
# Loading and merging
# ---------------------------------------------------------------------------


def load(path: str | Path) -> Env:
    """Load an env file.

    Raises:
        EnvFileNotFoundError: If the file does not exist.
        EnvFileParseError: If the file cannot be parsed.
    """
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise EnvFileNotFoundError(str(file_path)) from None

    env = Env(parse(text, str(file_path)))
    logger.debug("Loaded %s (%d keys, %d refs)", file_path, len(env), len(env.refs()))
    return env


def load_optional(path: str | Path) -> Env:
    """Load an env file, returning an empty Env if it does not exist."""
    try:
        return load(path)
    except EnvFileNotFoundError:
        logger.debug("Optional env file %s not present", path)
        return Env()


def merge(*layers: Env) -> Env:
    """Merge env layers left to right.

    Later layers override earlier ones by key. A key keeps the position
    of its first definition; keys new to a layer are appended in the
    order that layer lists them.
    """
    result = Env()
    for layer in layers:
        for entry in layer:
            result.set(entry)
    return result
