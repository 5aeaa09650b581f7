"""Tests for resolved-environment output formats."""

from __future__ import annotations

import json

import pytest
from rich.console import Console

from envref.envfile import Entry, parse
from envref.output import MASK, build_table, render, shell_quote

ENTRIES = [
    Entry("PLAIN", "value"),
    Entry("SPACED", "hello world", was_ref=True),
    Entry("QUOTE", "it's \"here\""),
]


class TestFormats:
    """Text renderers."""

    def test_plain_reads_back(self) -> None:
        parsed = parse(render(ENTRIES, "plain"))
        assert {e.key: e.value for e in parsed} == {e.key: e.value for e in ENTRIES}

    def test_shell(self) -> None:
        assert render([Entry("A", "it's")], "shell") == "export A='it'\\''s'\n"

    def test_shell_quote_empty(self) -> None:
        assert shell_quote("") == "''"

    def test_json_keeps_order(self) -> None:
        data = json.loads(render(ENTRIES, "json"))
        assert list(data) == ["PLAIN", "SPACED", "QUOTE"]

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError):
            render(ENTRIES, "xml")

    def test_table_is_not_a_text_format(self) -> None:
        with pytest.raises(ValueError):
            render(ENTRIES, "table")


class TestTable:
    """Rich table output."""

    def _text(self, **kwargs) -> str:
        console = Console(width=120, record=True)
        with console.capture() as capture:
            console.print(build_table(ENTRIES, **kwargs))
        return capture.get()

    def test_masks_only_secrets(self) -> None:
        text = self._text(mask=True)
        assert "hello world" not in text
        assert MASK in text
        assert "value" in text

    def test_unmasked(self) -> None:
        assert "hello world" in self._text()

    @pytest.mark.parametrize("value", ["abc[/]def", "x[bold]y"])
    def test_bracketed_values_print_verbatim(self, value: str) -> None:
        console = Console(width=120, record=True)
        with console.capture() as capture:
            console.print(build_table([Entry("K[red]", value, was_ref=True)]))
        text = capture.get()
        assert value in text
        assert "K[red]" in text
