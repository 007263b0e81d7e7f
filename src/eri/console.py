"""
Rich-based console utilities for the ERI CLI.

Provides consistent terminal output with:
- ERI logo/branding
- Styled messages (info, success, warning, error)
- Indicator, report and cohort tables
- Definition trees
"""

from typing import Any

import pandas as pd
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from rich.tree import Tree

from eri.core.definitions import CohortDefinition, CohortKind, walk

# Custom theme for ERI
ERI_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "highlight": "magenta",
        "muted": "dim",
        "brand": "bold blue",
        "path": "cyan underline",
        "command": "bold green",
    }
)

# Global console instance with custom theme
console = Console(theme=ERI_THEME)

ERI_LOGO = r"""
    _____ ____  ___
   | ____|  _ \|_ _|
   |  _| | |_) || |
   | |___|  _ < | |
   |_____|_| \_\___|
"""

ERI_TAGLINE = "Early Retention Indicators"


def print_logo(show_tagline: bool = True, show_version: bool = True) -> None:
    """Print the ERI logo with optional tagline and version."""
    from eri import __version__

    logo_text = Text(ERI_LOGO, style="bold blue")

    if show_tagline:
        logo_text.append(Text(f"\n  {ERI_TAGLINE}", style="italic cyan"))

    if show_version:
        logo_text.append(Text(f"\n  v{__version__}", style="dim"))

    console.print(logo_text)


def info(message: str, prefix: str = "info") -> None:
    """Print an info message."""
    console.print(f"[info]{prefix}:[/info] {message}")


def success(message: str, prefix: str = "done") -> None:
    """Print a success message."""
    console.print(f"[success]{prefix}:[/success] {message}")


def warning(message: str, prefix: str = "warning") -> None:
    """Print a warning message."""
    console.print(f"[warning]{prefix}:[/warning] {message}")


def error(message: str, prefix: str = "error") -> None:
    """Print an error message."""
    console.print(f"[error]{prefix}:[/error] {message}")


def print_key_value(key: str, value: Any, indent: int = 2) -> None:
    """Print a key-value pair."""
    spaces = " " * indent
    console.print(f"{spaces}[muted]{key}:[/muted] {value}")


def print_error_panel(title: str, message: str, hint: str | None = None) -> None:
    """Print an error in a styled panel."""
    content = f"[error]{message}[/error]"
    if hint:
        content += f"\n\n[dim]Hint: {hint}[/dim]"
    console.print(Panel(content, title=f"[error]{title}[/error]", padding=(1, 2)))


def _create_table() -> Table:
    return Table(
        show_header=True,
        header_style="bold",
        border_style="dim",
        padding=(0, 1),
    )


def print_indicators_table(indicators: list[dict]) -> None:
    """
    Print a table of report indicators.

    Args:
        indicators: List of dicts with keys: name, description, kind
    """
    table = _create_table()
    table.add_column("Indicator", style="bold")
    table.add_column("Kind", justify="center")
    table.add_column("Description")

    for ind in indicators:
        table.add_row(ind["name"], ind["kind"], ind["description"])

    console.print(table)


def print_report_table(report: pd.DataFrame, title: str | None = None) -> None:
    """Print an evaluated report (indicator, description, patient_count)."""
    table = _create_table()
    table.title = title
    table.add_column("Indicator", style="bold")
    table.add_column("Description")
    table.add_column("Patients", justify="right")

    for row in report.itertuples(index=False):
        table.add_row(row.indicator, row.description, f"{row.patient_count:,}")

    console.print(table)


def print_definition_tree(definition: CohortDefinition) -> None:
    """Print a cohort definition and its searches as a tree."""
    nodes: dict[int, Tree] = {}
    root: Tree | None = None

    for depth, search_name, node in walk(definition):
        label = f"[bold]{node.name}[/bold]"
        if search_name is not None:
            label = f"[highlight]{search_name}[/highlight] -> {label}"
        if node.kind is CohortKind.COMPOSITION:
            label += f"\n[muted]{node.composition_string}[/muted]"
        else:
            params = ", ".join(node.parameter_names)
            label += f" [muted]({params})[/muted]"

        if root is None:
            root = Tree(label)
            nodes[depth] = root
        else:
            nodes[depth] = nodes[depth - 1].add(label)

    console.print(root)


def print_patient_ids(patient_ids: frozenset[int], columns: int = 10) -> None:
    """Print sorted patient ids in fixed-width rows."""
    ordered = sorted(patient_ids)
    for start in range(0, len(ordered), columns):
        chunk = ordered[start : start + columns]
        console.print("  " + " ".join(f"{pid:>8}" for pid in chunk))
