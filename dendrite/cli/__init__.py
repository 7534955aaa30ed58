"""
Command-Line Interface

CLI commands for Dendrite operations.

Commands:
    dendrite submit   - Queue an evaluation for the next worker cycle
    dendrite process  - Process an evaluation immediately
    dendrite worker   - Run one worker cycle now, or keep the schedule running
    dendrite search   - Similarity search over talent profiles
    dendrite ask      - AI recommendation for a request
    dendrite hit      - Record that a search led to selecting someone
    dendrite tag      - Tag a colleague
    dendrite rewards  - Show a contributor's points, level and history
    dendrite status   - Queue and storage status

Usage:
    dendrite submit Alice "Alice debugged a Redis connection leak overnight"
    dendrite worker --once
    dendrite search "redis outage" --limit 3 --economy
    dendrite hit "redis outage" Alice --by Bob
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dendrite.api.envelope import ApiResponse
from dendrite.config import DendriteConfig

__all__ = ["main", "app"]

app = typer.Typer(
    name="dendrite",
    help="Evaluation-driven talent profiles and semantic search",
    no_args_is_help=True,
)
console = Console()

_state: dict[str, Optional[Path]] = {"config": None}


def _load_config() -> DendriteConfig:
    path = _state["config"]
    if path is not None:
        return DendriteConfig.from_file(path)
    return DendriteConfig()


def _open(db: Optional[Path], config: DendriteConfig):
    from dendrite.api.service import Dendrite

    return Dendrite(db if db is not None else config.db_path, config)


def _fail(response: ApiResponse) -> None:
    console.print(f"[red]{response.error_code}: {response.message}[/]")
    raise typer.Exit(code=1)


def _db_option() -> Optional[Path]:
    return typer.Option(None, "--db", "-d", help="DuckDB file (default: config db_path)")


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="TOML configuration file", exists=True
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    _state["config"] = config


@app.command()
def submit(
    employee: str = typer.Argument(..., help="Employee being evaluated"),
    content: str = typer.Argument(..., help="Evaluation text"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Queue an evaluation for the next worker cycle."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            response = await service.submit_evaluation(employee, content)
            if not response.success:
                _fail(response)
            console.print(
                f"[green]{response.message}[/] (queue size {response.data.queue_size})"
            )

    asyncio.run(_run())


@app.command()
def process(
    employee: str = typer.Argument(..., help="Employee being evaluated"),
    content: str = typer.Argument(..., help="Evaluation text"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Process an evaluation immediately (extract, synthesize, vectorize)."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task(f"Processing evaluation for {employee}...")
                response = await service.process_evaluation(employee, content, wait=True)
            if not response.success:
                _fail(response)
            snapshot = response.data
            style = "green" if snapshot.status.value == "COMPLETED" else "red"
            console.print(Panel(
                f"[{style}]{snapshot.status.value}[/] {snapshot.message}\n\n"
                f"  Task: {snapshot.task_id}\n"
                f"  Progress: {snapshot.percent}%",
                title=f"Evaluation: {employee}",
            ))

    asyncio.run(_run())


@app.command()
def worker(
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Run the evaluation worker (Ctrl+C stops after the current batch)."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            if once:
                response = await service.run_pipeline_now()
                if response.data is None and response.success:
                    console.print("[yellow]Queue is empty[/]")
                    return
                result = response.data
                if result is None:
                    _fail(response)
                console.print(Panel(
                    f"{'[green]Success[/]' if result.success else '[red]Failed[/]'}\n\n"
                    f"  Skills extracted: {result.skills_extracted}\n"
                    f"  Profiles updated: {result.profiles_updated}\n"
                    f"  Vectors stored: {result.vectors_stored}\n"
                    f"  Duration: {result.duration_ms}ms"
                    + (f"\n  Error: {result.error_message}" if result.error_message else ""),
                    title="Pipeline Run",
                ))
                return

            await service.start_worker()
            console.print("Worker running. Press Ctrl+C to stop.")
            try:
                while True:
                    await asyncio.sleep(3600)
            finally:
                await service.stop_worker()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("Worker stopped.")


def _hits_table(title: str, hits) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Employee", style="cyan")
    table.add_column("Similarity", justify="right", style="green")
    table.add_column("Skills")
    for rank, hit in enumerate(hits, start=1):
        table.add_row(str(rank), hit.employee_name, f"{hit.similarity:.3f}", ", ".join(hit.skills_en))
    return table


@app.command()
def search(
    query: str = typer.Argument(..., help="What you are looking for"),
    limit: int = typer.Option(5, "--limit", "-n", help="Maximum results"),
    economy: bool = typer.Option(False, "--economy", help="Skip AI query expansion"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Similarity search over talent profiles."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            service.set_economy_mode(economy)
            response = await service.search(query, limit)
            if not response.success:
                _fail(response)
            if not response.data:
                console.print("[yellow]No matching profiles[/]")
                return
            console.print(_hits_table(f"Results: {query}", response.data))

    asyncio.run(_run())


@app.command()
def ask(
    query: str = typer.Argument(..., help="Request to find someone for"),
    economy: bool = typer.Option(False, "--economy", help="Skip AI query expansion"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Ask for an AI recommendation."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            service.set_economy_mode(economy)
            response = await service.ask(query)
            if not response.success:
                _fail(response)
            recommendation = response.data
            console.print(Panel(recommendation.answer, title="Recommendation"))
            if recommendation.candidates:
                console.print(_hits_table("Candidates", recommendation.candidates))

    asyncio.run(_run())


@app.command()
def hit(
    query: str = typer.Argument(..., help="The search text that was used"),
    employee: str = typer.Argument(..., help="The employee that was selected"),
    by: Optional[str] = typer.Option(None, "--by", help="Who performed the search"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Record a search hit and credit matching tag authors."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            response = await service.track_search_hit(query, employee, trigger_user=by)
            if not response.success:
                _fail(response)
            result = response.data
            if not result.credited:
                console.print(f"No tags credited ({result.tags_considered} considered)")
                return
            table = Table(title=f"Credits for finding {employee}")
            table.add_column("Tag", justify="right", style="dim")
            table.add_column("Creator", style="cyan")
            table.add_column("Similarity", justify="right")
            table.add_column("Points", justify="right", style="green")
            for credit in result.credited:
                table.add_row(
                    str(credit.tag_id),
                    credit.creator_employee,
                    f"{credit.similarity:.3f}",
                    f"+{credit.points}",
                )
            console.print(table)

    asyncio.run(_run())


@app.command()
def tag(
    creator: str = typer.Argument(..., help="Who is tagging"),
    target: str = typer.Argument(..., help="Who is being tagged"),
    text: str = typer.Argument(..., help="The tag"),
    context: str = typer.Option("", "--context", help="Optional context for the tag"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Tag a colleague."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            response = await service.submit_tag(creator, target, text, context)
            if not response.success:
                _fail(response)
            created = response.data
            console.print(
                f"[green]Tagged {created.target_employee}[/] with {created.raw_tag_name!r} "
                f"({created.standardized_category.value}, weight {created.weight:g})"
            )

    asyncio.run(_run())


@app.command()
def rewards(
    employee: str = typer.Argument(..., help="Contributor"),
    limit: int = typer.Option(20, "--limit", "-n", help="History rows"),
    db: Optional[Path] = _db_option(),
) -> None:
    """Show a contributor's points, level and reward history."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            response = await service.contributor(employee)
            if not response.success:
                _fail(response)
            profile = response.data
            console.print(Panel(
                f"  Level: {profile.level}\n"
                f"  Current points: {profile.current_points}\n"
                f"  Lifetime points: {profile.total_accumulated_points}\n"
                f"  Tags submitted: {profile.total_tags_submitted}\n"
                f"  Search hits: {profile.search_hits_count}",
                title=f"Contributor: {employee}",
            ))

            history = await service.reward_history(employee, limit)
            if history.success and history.data:
                table = Table(title="History")
                table.add_column("When", style="dim")
                table.add_column("Points", justify="right", style="green")
                table.add_column("Reason")
                for record in history.data:
                    table.add_row(
                        record.timestamp.strftime("%Y-%m-%d %H:%M"),
                        f"{record.points_change:+d}",
                        record.reason,
                    )
                console.print(table)

    asyncio.run(_run())


@app.command()
def status(db: Optional[Path] = _db_option()) -> None:
    """Show storage health, row counts and queue status."""

    async def _run() -> None:
        async with _open(db, _load_config()) as service:
            response = await service.queue_status()
            if not response.success:
                _fail(response)
            stats = await service.stats()
            if not stats.success:
                _fail(stats)
            health = await service.health()
            if not health.success:
                _fail(health)
            info = response.data
            table = Table(title=f"Dendrite: {service.path}")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right", style="green")
            table.add_row("Health", health.data.status)
            table.add_row("Profiles", str(stats.data.profile_count))
            table.add_row("Skills", str(stats.data.skill_count))
            table.add_row("Queued evaluations", str(info.queue_size))
            table.add_row("Batch size", str(info.batch_size))
            table.add_row("Scan interval", f"{info.scan_interval_seconds:g}s")
            table.add_row("Pipeline", info.pipeline_description)
            console.print(table)

    asyncio.run(_run())


def main() -> None:
    """Entry point for the CLI."""
    load_dotenv()
    app()
