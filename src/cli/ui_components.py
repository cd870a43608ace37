"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Tables/panels are reused by `run` and `doctor`.
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.results import ErrorResult, FoundResult, NotFoundResult, RateLimitedResult, ResultMap

_STATUS_STYLE = {
    "found": "green",
    "not_found": "yellow",
    "rate_limited": "magenta",
    "error": "red",
}


def build_results_table(result_map: ResultMap) -> Table:
    """One row per service with its classified outcome."""

    table = Table(title="Service versions")
    table.add_column("Service", style="cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Image", style="white")
    table.add_column("Tag / detail", style="dim")

    for name, result in result_map.items():
        style = _STATUS_STYLE.get(result.status, "white")
        status = Text(result.status.replace("_", " "), style=style)
        if isinstance(result, FoundResult):
            table.add_row(escape(name), status, escape(result.image), escape(result.tag))
        elif isinstance(result, NotFoundResult):
            table.add_row(escape(name), status, "", escape(result.reason or ""))
        elif isinstance(result, RateLimitedResult):
            hint = f"retry after {result.retry_after:.0f}s" if result.retry_after is not None else ""
            table.add_row(escape(name), status, "", hint)
        elif isinstance(result, ErrorResult):
            table.add_row(escape(name), status, "", escape(result.message))
    return table


def build_omitted_panel(result_map: ResultMap) -> Panel:
    """Panel listing services left out of an interrupted run."""

    body = Text()
    body.append("The run was interrupted; the output is incomplete.\n", style="bold")
    body.append("Services without a result:\n")
    for name in result_map.omitted:
        body.append(f"- {name}\n")
    return Panel(body, title=Text("Incomplete run", style="bold yellow"), border_style="yellow")
