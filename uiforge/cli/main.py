"""
Typer CLI for the uiforge learning loop.

Commands:
    uiforge-learn init-db              - Create learning tables (idempotent)
    uiforge-learn feedback ID RATING   - Record explicit feedback for a generation
    uiforge-learn stats                - Feedback and pattern statistics
    uiforge-learn patterns             - List tracked code patterns
    uiforge-learn promote              - Run one promotion cycle
    uiforge-learn export ADAPTER       - Export adapter training data (JSONL)
    uiforge-learn readiness            - Training data volume and last job per adapter
    uiforge-learn train-start ADAPTER  - Export a dataset and open a training job
    uiforge-learn train-update ID ST   - Record training job status from the trainer
    uiforge-learn index FILE           - Embed {id, text} JSONL rows into the store
    uiforge-learn search QUERY         - Semantic search over stored embeddings
    uiforge-learn enhance PROMPT       - Enhance a generation prompt
    uiforge-learn score PROMPT FILE    - Score generated code for likely acceptance

Usage:
    uiforge-learn --help
    uiforge-learn feedback gen-123 positive --comment "exactly what I wanted"
    uiforge-learn export quality-scorer --output-dir data/training
    uiforge-learn search "pricing table" --source-type component --top-k 3
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from uiforge import __version__
from uiforge.db.database import create_session_factory
from uiforge.domain import Embedding, JobStatus
from uiforge.exceptions import LearningError
from uiforge.feedback.learning_loop import LearningLoop
from uiforge.ml.embeddings import EmbeddingService
from uiforge.ml.inference import create_inference_provider
from uiforge.ml.prompt_enhancer import EnhancementContext, PromptEnhancer, needs_enhancement
from uiforge.ml.quality_scorer import QualityScorer
from uiforge.ml.training_exporter import AdapterType

app = typer.Typer(
    help="uiforge learning loop: feedback, pattern promotion, embeddings and training export",
    no_args_is_help=True,
)

console = Console()


def _build_loop() -> LearningLoop:
    return LearningLoop.from_settings(get_settings())


def _fail(message: str) -> NoReturn:
    rprint(f"[red]✗[/red] {message}")
    raise typer.Exit(code=1)


# ========================================
# Database
# ========================================


@app.command("init-db")
def init_db_command() -> None:
    """
    Create the learning loop tables if they don't exist.

    Safe to run multiple times (idempotent).
    """
    settings = get_settings()
    try:
        create_session_factory(settings.database_url, echo=settings.database_echo)
    except Exception as e:
        logger.exception("Database initialization failed")
        _fail(f"Database initialization failed: {e}")
    rprint("[green]✓[/green] Learning tables ready")


# ========================================
# Feedback
# ========================================


@app.command("feedback")
def feedback_command(
    generation_id: str = typer.Argument(..., help="Generation id the rating refers to"),
    rating: str = typer.Argument(..., help="positive or negative"),
    comment: str | None = typer.Option(None, "--comment", "-c", help="Optional free-text comment"),
) -> None:
    """Record explicit feedback for a generation."""
    try:
        feedback = _build_loop().record_explicit_feedback(generation_id, rating.lower(), comment)
    except LearningError as e:
        _fail(str(e))

    colour = "green" if feedback.score > 0 else "red"
    rprint(
        f"[{colour}]✓[/{colour}] Recorded {feedback.rating.value} feedback for {generation_id} "
        f"(score {feedback.score:+.1f})"
    )


@app.command("stats")
def stats_command() -> None:
    """Show feedback and pattern statistics."""
    loop = _build_loop()
    fb = loop.feedback_store.get_stats()
    pat = loop.pattern_ledger.stats()

    table = Table(title="Feedback")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Total", str(fb.total))
    table.add_row("Explicit", str(fb.explicit))
    table.add_row("Implicit", str(fb.implicit))
    table.add_row("Average score", f"{fb.avg_score:.3f}")
    table.add_row("Positive", str(fb.positive))
    table.add_row("Negative", str(fb.negative))
    table.add_row("Neutral", str(fb.neutral))
    console.print(table)

    table = Table(title="Code Patterns")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Total", str(pat.total))
    table.add_row("Promoted", str(pat.promoted))
    table.add_row("Eligible", str(pat.eligible))
    table.add_row("Average frequency", f"{pat.avg_frequency:.2f}")
    table.add_row("Average score", f"{pat.avg_score:.3f}")
    console.print(table)


# ========================================
# Patterns
# ========================================


@app.command("patterns")
def patterns_command(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum patterns to show"),
    promotable: bool = typer.Option(False, "--promotable", help="Only show patterns eligible for promotion"),
) -> None:
    """List tracked code patterns."""
    ledger = _build_loop().pattern_ledger
    patterns = ledger.get_promotable()[:limit] if promotable else ledger.list_patterns(limit=limit)

    if not patterns:
        rprint("[yellow]No patterns recorded yet[/yellow]")
        return

    table = Table(title=f"Code Patterns ({len(patterns)})")
    table.add_column("Hash", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Freq", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Promoted")
    table.add_column("Skeleton")
    for p in patterns:
        table.add_row(
            p.skeleton_hash,
            p.component_type or "-",
            str(p.frequency),
            f"{p.avg_score:.2f}",
            "[green]yes[/green]" if p.promoted else "no",
            p.skeleton[:60] + ("..." if len(p.skeleton) > 60 else ""),
        )
    console.print(table)


@app.command("promote")
def promote_command() -> None:
    """Promote every eligible pattern into the catalog."""
    loop = _build_loop()
    promoted = loop.run_promotion_cycle()
    if promoted:
        rprint(f"[green]✓[/green] Promoted {promoted} pattern(s) to {get_settings().catalog_path}")
    else:
        rprint("[dim]No patterns eligible for promotion[/dim]")


# ========================================
# Training data
# ========================================


@app.command("export")
def export_command(
    adapter: str = typer.Argument(..., help="quality-scorer, prompt-enhancer, style-recommender or all"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for JSONL files"),
) -> None:
    """Export adapter training data as JSONL."""
    loop = _build_loop()
    adapters = list(AdapterType) if adapter == "all" else [adapter]

    for name in adapters:
        try:
            result = loop.export_for_adapter(name, output_dir)
        except LearningError as e:
            _fail(str(e))
        label = name.value if isinstance(name, AdapterType) else name
        if result.count:
            rprint(f"[green]✓[/green] {label}: {result.count} rows -> {result.path}")
        else:
            rprint(f"[yellow]⚠[/yellow] {label}: no training rows available")


@app.command("readiness")
def readiness_command() -> None:
    """Check training data volume and the latest training job per adapter."""
    summary = _build_loop().training_summary()

    table = Table(title="Training Readiness")
    table.add_column("Adapter", style="cyan")
    table.add_column("Examples", justify="right")
    table.add_column("Required", justify="right")
    table.add_column("Ready")
    table.add_column("Last Job")
    for adapter, r in summary.readiness.items():
        job = summary.job_for(adapter)
        job_label = job.status.value if job.id is None else f"#{job.id} {job.status.value} {job.progress:.0f}%"
        if job.error:
            job_label += f" ({job.error})"
        table.add_row(
            adapter.value,
            str(r.count),
            str(r.required),
            "[green]yes[/green]" if r.ready else "[red]no[/red]",
            job_label,
        )
    console.print(table)


@app.command("train-start")
def train_start_command(
    adapter: str = typer.Argument(..., help="quality-scorer, prompt-enhancer or style-recommender"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for the JSONL dataset"),
) -> None:
    """Export an adapter's dataset and open a training job for the external trainer."""
    try:
        job, export = _build_loop().start_training_job(adapter, output_dir)
    except LearningError as e:
        _fail(str(e))

    if job.status == JobStatus.FAILED:
        _fail(f"Training job #{job.id} for {job.adapter} failed: {job.error}")
    rprint(f"[green]✓[/green] Training job #{job.id} for {job.adapter}: {export.count} rows -> {export.path}")


@app.command("train-update")
def train_update_command(
    job_id: int = typer.Argument(..., help="Training job id"),
    status: str = typer.Argument(..., help="preparing, training, complete or failed"),
    progress: float = typer.Option(0.0, "--progress", "-p", help="Progress percentage 0-100"),
    error: str | None = typer.Option(None, "--error", "-e", help="Error message for failed jobs"),
) -> None:
    """Report progress from the external trainer."""
    try:
        job = _build_loop().training_jobs.update_status(job_id, status.lower(), progress, error)
    except (LearningError, ValueError) as e:
        _fail(str(e))
    rprint(f"[green]✓[/green] Training job #{job.id} ({job.adapter}): {job.status.value} {job.progress:.0f}%")


# ========================================
# Embeddings
# ========================================


@app.command("index")
def index_command(
    path: Path = typer.Argument(..., help="JSONL file of {id, text} rows"),
    source_type: str = typer.Option("component", "--source-type", "-t", help="Embedding source type"),
    replace_all: bool = typer.Option(False, "--replace", help="Delete existing embeddings of this type first"),
) -> None:
    """Embed text rows and store them for semantic search."""
    if not path.exists():
        _fail(f"File not found: {path}")

    rows = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
                rows.append((str(row["id"]), str(row["text"])))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                _fail(f"{path}:{line_no}: expected {{\"id\", \"text\"}} object ({e})")

    if not rows:
        rprint("[yellow]Nothing to index[/yellow]")
        return

    loop = _build_loop()
    if replace_all:
        loop.embedding_store.delete_all(source_type)

    service = EmbeddingService()
    vectors = service.embed_batch([text for _, text in rows])
    written = loop.embedding_store.store_many(
        Embedding.create(source_id, source_type, text, vector)
        for (source_id, text), vector in zip(rows, vectors)
    )
    rprint(f"[green]✓[/green] Indexed {written} {source_type} embeddings")


@app.command("search")
def search_command(
    query: str = typer.Argument(..., help="Search text"),
    source_type: str = typer.Option("component", "--source-type", "-t", help="Embedding source type"),
    top_k: int | None = typer.Option(None, "--top-k", "-k", help="Maximum results"),
    threshold: float | None = typer.Option(None, "--threshold", help="Minimum cosine similarity"),
) -> None:
    """Semantic search over stored embeddings."""
    loop = _build_loop()
    if loop.embedding_store.count(source_type) == 0:
        rprint(f"[yellow]No {source_type} embeddings stored[/yellow]")
        return

    vector = EmbeddingService().embed(query)
    results = loop.semantic_search(vector, source_type, top_k=top_k, threshold=threshold)
    if not results:
        rprint("[dim]No results above threshold[/dim]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("ID", style="cyan")
    table.add_column("Similarity", justify="right", style="green")
    table.add_column("Text")
    for r in results:
        table.add_row(r.id, f"{r.similarity:.3f}", r.text[:80])
    console.print(table)


# ========================================
# Inference-backed helpers
# ========================================


@app.command("enhance")
def enhance_command(
    prompt: str = typer.Argument(..., help="Prompt to enhance"),
    component_type: str | None = typer.Option(None, "--component-type"),
    framework: str | None = typer.Option(None, "--framework"),
    style: str | None = typer.Option(None, "--style"),
    mood: str | None = typer.Option(None, "--mood"),
) -> None:
    """Enhance a generation prompt (model when available, rules otherwise)."""
    settings = get_settings()
    if not needs_enhancement(prompt):
        rprint("[dim]Prompt is already fairly specific[/dim]")

    async def _run():
        provider = create_inference_provider(settings)
        try:
            enhancer = PromptEnhancer(provider, timeout_seconds=settings.inference_timeout_seconds)
            return await enhancer.enhance(
                prompt,
                EnhancementContext(component_type=component_type, framework=framework, style=style, mood=mood),
            )
        finally:
            await provider.close()

    result = asyncio.run(_run())
    rprint(f"[bold]Enhanced[/bold] ({result.source}): {result.enhanced}")
    if result.additions:
        rprint(f"[dim]Additions: {', '.join(result.additions)}[/dim]")


@app.command("score")
def score_command(
    prompt: str = typer.Argument(..., help="Prompt the code was generated from"),
    code_file: Path = typer.Argument(..., help="File containing the generated code"),
    component_type: str | None = typer.Option(None, "--component-type"),
    framework: str | None = typer.Option(None, "--framework"),
    style: str | None = typer.Option(None, "--style"),
) -> None:
    """Score generated code for likely acceptance (0-10)."""
    if not code_file.exists():
        _fail(f"File not found: {code_file}")
    settings = get_settings()
    code = code_file.read_text(encoding="utf-8")

    async def _run():
        provider = create_inference_provider(settings)
        try:
            scorer = QualityScorer(provider, timeout_seconds=settings.inference_timeout_seconds)
            return await scorer.score(prompt, code, component_type, framework, style)
        finally:
            await provider.close()

    result = asyncio.run(_run())
    colour = "green" if result.score >= 6 else "yellow" if result.score >= 4 else "red"
    rprint(
        f"[{colour}]{result.score:.1f}/10[/{colour}] "
        f"(source: {result.source}, confidence: {result.confidence:.1f})"
    )
    if result.factors:
        table = Table(title="Heuristic factors")
        table.add_column("Factor", style="cyan")
        table.add_column("Value", justify="right")
        for name, value in result.factors.items():
            table.add_row(name, f"{value:.2f}")
        console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]uiforge-learn[/bold] v{__version__}")


# ========================================
# Entry Point
# ========================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)

    app()


if __name__ == "__main__":
    main()
