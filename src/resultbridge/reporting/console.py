# src/resultbridge/reporting/console.py

"""
Rich rendering of a finished run for the command line.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from resultbridge.protocols import RunSummary, Verdict
from resultbridge.reporting.sinks import RecordingSink

VERDICT_STYLES = {
    Verdict.PASSED: ("✅", "green"),
    Verdict.FAILED: ("❌", "red"),
    Verdict.SKIPPED: ("⏭️", "yellow"),
}


def render_results(console: Console, sink: RecordingSink, summary: RunSummary) -> None:
    """Prints one row per test followed by the run summary."""
    table = Table(title="Test results", show_lines=False)
    table.add_column("", no_wrap=True)
    table.add_column("Test")
    table.add_column("Duration", justify="right")
    table.add_column("Message")

    for identifier in sorted(sink.results):
        result = sink.results[identifier]
        emoji, style = VERDICT_STYLES[result.verdict]
        duration = f"{result.duration_ms:.0f}ms" if result.duration_ms is not None else ""
        table.add_row(emoji, f"[{style}]{escape(str(identifier))}[/{style}]", duration, escape(result.message or ""))
    console.print(table)

    parts = [
        f"[green]{summary.passed} passed[/green]",
        f"[red]{summary.failed} failed[/red]",
        f"[yellow]{summary.skipped} skipped[/yellow]",
        f"{summary.unresolved} unresolved",
    ]
    if summary.malformed:
        parts.append(f"{summary.malformed} malformed")
    if summary.rejected:
        parts.append(f"{summary.rejected} rejected")
    status = "cancelled" if summary.cancelled else f"exit code {summary.exit_code}"
    console.print(", ".join(parts) + f" ({summary.dialect}, {status})", soft_wrap=True)

# 🔼⚙️
