"""
CLI Main - Typer-based command-line interface.

Usage:
    docuspec parse path/to/document.md
    docuspec extract path/to/document.md --save
    docuspec bom <doc-id>
    docuspec documents
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from docuspec.config.errors import DocuSpecError

app = typer.Typer(
    name="docuspec",
    help="DocuSpec - Bill of materials extraction from construction documents",
    add_completion=False,
)
console = Console()

logger = logging.getLogger(__name__)


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    from docuspec.config import get_settings

    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_document(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command()
def parse(
    path: Path = typer.Argument(..., help="Path to Markdown document"),
) -> None:
    """Show the page, block and table structure of a document."""
    from docuspec.domains.extraction import classify_table
    from docuspec.domains.parsing import parse_document

    document = parse_document(_read_document(path))

    console.print(f"\n[bold]{document.title or path.name}[/bold]")
    if document.doc_code:
        console.print(f"[dim]Code: {document.doc_code}[/dim]")

    summary = Table(title="Document Summary")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Pages", str(document.page_count))
    summary.add_row("Blocks", str(document.total_blocks))
    summary.add_row("Error Blocks", str(document.error_blocks))
    summary.add_row(
        "Tables", str(sum(len(block.tables) for _, block in document.iter_blocks()))
    )
    console.print(summary)

    blocks = Table(title="Blocks")
    blocks.add_column("Page", justify="right")
    blocks.add_column("Block")
    blocks.add_column("Type")
    blocks.add_column("Section")
    blocks.add_column("Tables")
    for page, block in document.iter_blocks():
        categories = ", ".join(classify_table(table).value for table in block.tables)
        block_type = "[red]ERROR[/red]" if block.has_error else block.type.value
        blocks.add_row(
            str(page.page_no),
            block.uid,
            block_type,
            block.section_title or "",
            categories,
        )
    console.print(blocks)


@app.command()
def extract(
    path: Path = typer.Argument(..., help="Path to Markdown document"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Rule-based extraction only"),
    save: bool = typer.Option(False, "--save", "-s", help="Persist to SQLite and show the BOM"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON path"),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-c", min=1, help="LLM blocks in flight"
    ),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Extract material facts from a Markdown document."""
    text = _read_document(path)
    asyncio.run(_extract_async(path, text, no_llm, save, output, concurrency, db))


async def _extract_async(
    path: Path,
    text: str,
    no_llm: bool,
    save: bool,
    output: Path | None,
    concurrency: int | None,
    db: Path | None,
) -> None:
    """Async extraction implementation."""
    from docuspec.adapters.openrouter import OpenRouterClient, OpenRouterConfig
    from docuspec.adapters.sqlite import SQLiteRepository
    from docuspec.config import get_settings
    from docuspec.domains.extraction import LLMBlockExtractor
    from docuspec.domains.orchestration import ExtractionPipeline, ExtractionProgress
    from docuspec.domains.parsing import parse_document

    settings = get_settings()

    client: OpenRouterClient | None = None
    extractor: LLMBlockExtractor | None = None
    if not no_llm:
        if settings.openrouter_api_key:
            client = OpenRouterClient(OpenRouterConfig.from_settings(settings))
            extractor = LLMBlockExtractor(
                client,
                temperature=settings.llm_temperature,
                timeout_seconds=settings.llm_timeout_seconds,
                max_concurrent=concurrency or settings.llm_max_concurrent,
            )
        else:
            console.print(
                "[yellow]OPENROUTER_API_KEY is not set, running rule-based extraction only[/yellow]"
            )

    repo: SQLiteRepository | None = None
    doc_id: str | None = None

    try:
        if save:
            repo = SQLiteRepository(db or settings.db_path)
            await repo.initialize()
            doc_id = await repo.save_parsed_document(path.name, parse_document(text))

        pipeline = ExtractionPipeline(extractor, store=repo)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Extracting...", total=None)

            def on_progress(snapshot: ExtractionProgress) -> None:
                progress.update(
                    task,
                    description=snapshot.status.value.replace("_", " "),
                    completed=snapshot.completed_batches,
                    total=snapshot.total_batches or None,
                )

            result = await pipeline.run(text, doc_id=doc_id, on_progress=on_progress)

        console.print("\n[green]Extraction Complete[/green]\n")

        summary = Table(title="Extraction Summary")
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="green")
        summary.add_row("Blocks", str(result.document.total_blocks))
        summary.add_row("Rule-Based Facts", str(result.rule_fact_count))
        summary.add_row("LLM Blocks", str(result.llm_blocks))
        summary.add_row("LLM Facts", str(result.llm_fact_count))
        console.print(summary)

        if output:
            payload = [fact.model_dump(mode="json") for fact in result.facts]
            output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            console.print(f"\n[green]Saved to:[/green] {output}")

        if repo is not None and doc_id is not None:
            console.print(f"\n[green]Document ID:[/green] {doc_id}")
            _print_bom(await repo.get_bom(doc_id))
        else:
            _print_facts(result)

    except DocuSpecError as e:
        logger.debug("Command failed: %s", e.to_dict())
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        if client is not None:
            await client.close()
        if repo is not None:
            await repo.close()


@app.command()
def bom(
    doc_id: str = typer.Argument(..., help="Document ID"),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show the bill of materials of a stored document."""
    asyncio.run(_bom_async(doc_id, db))


async def _bom_async(doc_id: str, db: Path | None) -> None:
    """Async BOM implementation."""
    from docuspec.adapters.sqlite import SQLiteRepository
    from docuspec.config import get_settings

    repo = SQLiteRepository(db or get_settings().db_path)
    try:
        await repo.initialize()
        document = await repo.get_document(doc_id)
        if document is None:
            console.print(f"[red]Error:[/red] Document not found: {doc_id}")
            raise typer.Exit(1)

        console.print(f"\n[bold]{document['title'] or document['filename']}[/bold]")
        console.print(f"[dim]Status: {document['status']}[/dim]\n")
        _print_bom(await repo.get_bom(doc_id))
    except DocuSpecError as e:
        logger.debug("Command failed: %s", e.to_dict())
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await repo.close()


@app.command()
def documents(
    db: Path | None = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List stored documents."""
    asyncio.run(_documents_async(db))


async def _documents_async(db: Path | None) -> None:
    """Async document listing."""
    from docuspec.adapters.sqlite import SQLiteRepository
    from docuspec.config import get_settings

    repo = SQLiteRepository(db or get_settings().db_path)
    try:
        await repo.initialize()
        rows = await repo.list_documents()
    except DocuSpecError as e:
        logger.debug("Command failed: %s", e.to_dict())
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await repo.close()

    table = Table(title="Documents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File")
    table.add_column("Code")
    table.add_column("Status")
    table.add_column("Blocks", justify="right")
    for row in rows:
        table.add_row(
            row["id"],
            row["filename"],
            row["doc_code"] or "",
            _status_color(row["status"]),
            str(row["block_count"] or 0),
        )
    console.print(table)


def _print_facts(result) -> None:
    from docuspec.domains.extraction import format_quantity

    table = Table(title="Material Facts")
    table.add_column("Block")
    table.add_column("Source")
    table.add_column("Name")
    table.add_column("Qty", justify="right")
    table.add_column("Unit")
    table.add_column("Conf.", justify="right")
    for fact in result.facts:
        table.add_row(
            fact.block_id,
            fact.source.value,
            fact.item.raw_name,
            format_quantity(fact.item.quantity),
            fact.item.unit or "",
            f"{fact.item.confidence:.2f}",
        )
    console.print(table)


def _print_bom(lines) -> None:
    from docuspec.domains.extraction import format_quantity

    table = Table(title="Bill of Materials")
    table.add_column("Name")
    table.add_column("Key", style="dim")
    table.add_column("Total", justify="right")
    table.add_column("Unit")
    table.add_column("Facts", justify="right")
    table.add_column("Verified")
    for line in lines:
        table.add_row(
            line.canonical_name or "",
            line.canonical_key,
            format_quantity(line.total_qty),
            line.unit or "",
            str(line.fact_count),
            "[green]yes[/green]" if line.all_verified else "no",
        )
    console.print(table)


def _status_color(status: str) -> str:
    """Color-code document status."""
    colors = {
        "done": "[green]done[/green]",
        "has_errors": "[yellow]has_errors[/yellow]",
        "error": "[red]error[/red]",
        "extracting": "[blue]extracting[/blue]",
    }
    return colors.get(status, status)


@app.command()
def version() -> None:
    """Show version information."""
    from docuspec import __version__

    console.print(f"DocuSpec v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
