"""Main CLI entry point for thoughtcheck."""

import asyncio
import uuid

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .logging_config import setup_logging
from .memory import VerificationMemoryStore
from .models import Thought, ThoughtMetrics, ThoughtType
from .verification import (
    CalculationVerificationResult,
    VerificationConfig,
    VerificationResult,
    VerificationStatus,
    create_verification_pipeline,
)

console = Console()

app = typer.Typer(
    name="thoughtcheck",
    help="Verify the claims and calculations of reasoning steps.",
    add_completion=False,
)

STATUS_STYLES = {
    VerificationStatus.VERIFIED: "green",
    VerificationStatus.PARTIALLY_VERIFIED: "cyan",
    VerificationStatus.ABSENCE_OF_INFORMATION: "blue",
    VerificationStatus.CONTRADICTORY: "red",
    VerificationStatus.UNCERTAIN: "yellow",
    VerificationStatus.INCONCLUSIVE: "yellow",
    VerificationStatus.UNVERIFIED: "dim",
    VerificationStatus.VERIFICATION_IN_PROGRESS: "magenta",
}


def _calculation_table(calculations: list[CalculationVerificationResult]) -> Table:
    table = Table(title="Calculations")
    table.add_column("Expression")
    table.add_column("Result", justify="center")
    table.add_column("Verdict")
    for calc in calculations:
        if calc.is_function_notation:
            mark = "[dim]skipped[/dim]"
        elif calc.is_correct:
            mark = "[green]✓[/green]"
        elif calc.is_pending:
            mark = "[yellow]…[/yellow]"
        else:
            mark = "[red]✗[/red]"
        table.add_row(calc.original, mark, calc.verified)
    return table


def _result_panel(result: VerificationResult, title: str) -> Panel:
    style = STATUS_STYLES.get(result.status, "white")
    lines = [
        f"[bold {style}]{result.status.value}[/bold {style}]  "
        f"confidence {result.confidence:.2f}",
        "",
        result.notes,
    ]
    if result.sources:
        lines += ["", "[bold]Sources[/bold]"] + [f"  • {s}" for s in result.sources]
    if result.contradictions:
        lines += ["", "[bold red]Contradictions[/bold red]"] + [
            f"  • {c}" for c in result.contradictions
        ]
    return Panel("\n".join(lines), title=title, border_style=style)


@app.command()
def check(
    text: str = typer.Argument(..., help="Text whose calculations should be checked"),
):
    """Check the arithmetic in TEXT and print it with inline markers.

    Examples:
        thoughtcheck check "2 + 2 = 4 and 3 * 3 = 10"
    """
    setup_logging()
    pipeline = create_verification_pipeline()
    result = asyncio.run(pipeline.preliminary_verify(text, explicitly_requested=True))

    console.print(Panel(result.preverified_thought, title="Annotated", border_style="cyan"))
    if result.verified_calculations:
        console.print(_calculation_table(result.verified_calculations))
    else:
        console.print("[dim]No calculation found.[/dim]")


@app.command()
def verify(
    text: str = typer.Argument(..., help="Thought to verify"),
    session_id: str = typer.Option(
        "default",
        "--session", "-s",
        help="Session the verification belongs to",
    ),
    thought_type: ThoughtType = typer.Option(
        ThoughtType.REGULAR,
        "--type", "-t",
        help="Kind of reasoning step",
    ),
    confidence: float = typer.Option(
        0.5,
        "--confidence", "-c",
        help="Prior confidence of the thought",
        min=0.0,
        max=1.0,
    ),
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Ignore earlier verifications and run the tools again",
    ),
    db_path: str = typer.Option(
        "verifications.db",
        "--db", "-d",
        help="Path to SQLite verification memory",
    ),
    timeout: float = typer.Option(
        10.0,
        "--timeout",
        help="Per-tool timeout in seconds",
        min=0.1,
        max=300.0,
    ),
):
    """Run a full verification of TEXT and remember the result.

    Examples:
        thoughtcheck verify "The total is 12 + 30 = 42" --session demo
        thoughtcheck verify "So 2³ = 8" --type conclusion --force
    """
    setup_logging()
    config = VerificationConfig.from_env()
    config.tool_timeout_seconds = timeout
    pipeline = create_verification_pipeline(config=config, db_path=db_path)

    thought = Thought(
        id=uuid.uuid4().hex[:8],
        content=text,
        type=thought_type,
        metrics=ThoughtMetrics(confidence=confidence),
    )
    contains_calculations = pipeline.characterizer.has_calculation(text)
    result = asyncio.run(pipeline.deep_verify(
        thought,
        contains_calculations=contains_calculations,
        force_verification=force,
        session_id=session_id,
    ))

    source = thought.metadata.get("verification_source", "tools")
    console.print(_result_panel(result, title=f"Verification ({source})"))
    if result.verified_calculations:
        console.print(_calculation_table(result.verified_calculations))
        console.print(pipeline.annotate(text, result.verified_calculations))


@app.command("memory-stats")
def memory_stats(
    db_path: str = typer.Option(
        "verifications.db",
        "--db", "-d",
        help="Path to SQLite verification memory",
    ),
):
    """Show what the verification memory holds."""
    setup_logging()
    store = VerificationMemoryStore(db_path)
    stats = asyncio.run(store.get_stats())

    table = Table(title=f"Verification memory ({db_path})")
    table.add_column("Status")
    table.add_column("Entries", justify="right")
    for status, count in stats["entries_by_status"].items():
        table.add_row(status, str(count))
    console.print(table)
    console.print(
        f"[bold]{stats['total_entries']}[/bold] entries across "
        f"[bold]{stats['session_count']}[/bold] session(s)"
    )


@app.command()
def serve(
    port: int = typer.Option(
        8080,
        "--port", "-p",
        help="Port for API server (default: 8080)",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        help="Reload on code changes",
    ),
):
    """Start the verification API server."""
    import uvicorn

    console.print(Panel(
        f"[bold]thoughtcheck API[/bold]\n"
        f"Server: http://localhost:{port}\n"
        f"Docs:   http://localhost:{port}/docs",
        border_style="cyan",
    ))
    uvicorn.run("api.server:app", host="0.0.0.0", port=port, reload=reload, log_level="info")


if __name__ == "__main__":
    app()
