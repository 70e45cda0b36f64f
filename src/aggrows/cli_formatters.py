# src/aggrows/cli_formatters.py
"""Rendering for CLI output: flattened rows and error panels.

Rows are written with allow_nan=False. The flattener never emits NaN and the
decoder rejects infinite values, so a ValueError here means a hand-built
tree carried Infinity, which JSON cannot represent.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from aggrows.contracts.aggregations import ResultRow
from aggrows.contracts.enums import OutputFormat


def render_rows(rows: Sequence[ResultRow], output_format: OutputFormat, indent: int | None = 2) -> str:
    """Render rows as a JSON array or as JSON lines.

    Args:
        rows: Flattened rows
        output_format: JSON (one array) or JSONL (one object per line)
        indent: Indentation for JSON output; ignored for JSONL

    Returns:
        The rendered text, newline-terminated unless there is nothing to
        write in JSONL mode
    """
    if output_format == OutputFormat.JSONL:
        return "".join(json.dumps(row, ensure_ascii=False, allow_nan=False) + "\n" for row in rows)
    return json.dumps(list(rows), indent=indent, ensure_ascii=False, allow_nan=False) + "\n"


def format_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error on stderr with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]{title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)
