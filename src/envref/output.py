"""
Output formats for resolved environments.

plain   KEY=VALUE, quoted so the env file parser reads it back intact
shell   export KEY='VALUE', safe to eval in a POSIX shell
json    a single JSON object, keys in env order
table   a rich table; values from references can be masked
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Iterable

from rich.table import Table
from rich.text import Text

from .envfile import Entry, format_value

MASK = "********"


class OutputFormat(str, Enum):
    PLAIN = "plain"
    SHELL = "shell"
    JSON = "json"
    TABLE = "table"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


def shell_quote(value: str) -> str:
    """Single-quote *value* for a POSIX shell."""
    return "'" + value.replace("'", "'\\''") + "'"


def format_plain(entries: Iterable[Entry]) -> str:
    return "".join(f"{e.key}={format_value(e.value)}\n" for e in entries)


def format_shell(entries: Iterable[Entry]) -> str:
    return "".join(f"export {e.key}={shell_quote(e.value)}\n" for e in entries)


def format_json(entries: Iterable[Entry]) -> str:
    return json.dumps({e.key: e.value for e in entries}, indent=2, ensure_ascii=False) + "\n"


def build_table(entries: Iterable[Entry], mask: bool = False) -> Table:
    """Rich table of entries; secret values are replaced when *mask* is set."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for entry in entries:
        value = MASK if (mask and entry.was_ref) else entry.value
        table.add_row(Text(entry.key), Text(value), "secret" if entry.was_ref else "literal")
    return table


_FORMATTERS = {
    OutputFormat.PLAIN: format_plain,
    OutputFormat.SHELL: format_shell,
    OutputFormat.JSON: format_json,
}


def render(entries: Iterable[Entry], fmt: OutputFormat | str) -> str:
    """Render entries as text. Table output goes through :func:`build_table`."""
    fmt = OutputFormat(fmt)
    if fmt is OutputFormat.TABLE:
        raise ValueError("table output is rendered with build_table()")
    return _FORMATTERS[fmt](list(entries))
