"""CLI interface for AI Scan."""

import asyncio
import logging
import signal
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ai_scan.agent.claude_invoker import ClaudeInvoker
from ai_scan.agent.prompt_generator import PromptGenerator
from ai_scan.batching.batch_organizer import summarize_batches
from ai_scan.consts import (
    AGENT_BINARY,
    CHECKPOINT_FILENAME,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MINI_BATCH_SIZE,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_TIMEOUT_SECONDS,
    EXIT_COMPLETE_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_LOCK_HELD,
    EXIT_PARTIAL_FAILURE,
    EXIT_SUCCESS,
    EXIT_USAGE_ERROR,
)
from ai_scan.errors import AiScanError, LockHeldError, TemplateError
from ai_scan.models.model_batch import Batch, ProcessingProgress
from ai_scan.models.model_config import ProcessorConfig
from ai_scan.models.model_summary import ProcessingStatus, ProcessingSummary
from ai_scan.output.summary_generator import classify_status, print_json_summary
from ai_scan.pipeline import PipelineContext, plan_file, run_single_file, watch_directory
from ai_scan.processing.directory_scanner import scan_directory

app = typer.Typer(
    name="ai-scan",
    help="AI Scan - Batch AI accessibility analysis of pending scans",
)

console = Console()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _configure_logging(verbose: bool, quiet: bool, log_file: Path | None) -> None:
    """Set root logging level and optional file output."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def _exit_code(status: ProcessingStatus) -> int:
    if status == ProcessingStatus.COMPLETED:
        return EXIT_SUCCESS
    if status == ProcessingStatus.PARTIAL_FAILURE:
        return EXIT_PARTIAL_FAILURE
    return EXIT_COMPLETE_FAILURE


def _status_color(status: ProcessingStatus) -> str:
    """Get color for status display."""
    if status == ProcessingStatus.COMPLETED:
        return "green"
    elif status == ProcessingStatus.PARTIAL_FAILURE:
        return "yellow"
    else:
        return "red"


def _print_summary(summary: ProcessingSummary) -> None:
    """Render a run summary as a table."""
    color = _status_color(summary.status)
    table = Table(title="Processing Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="magenta")

    table.add_row("Status", f"[{color}]{summary.status.value}[/{color}]")
    table.add_row("Files processed", str(summary.files_processed))
    table.add_row("Total URLs", str(summary.total_urls))
    table.add_row("Successful", str(summary.successful))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Duration", f"{summary.duration_seconds:.2f}s")
    console.print(table)

    for path in summary.output_files:
        console.print(f"[green]Results:[/green] {path}")
    for path in summary.failed_files:
        console.print(f"[yellow]Failed scans:[/yellow] {path}")
    if summary.errors:
        console.print(f"\n[yellow]Errors ({len(summary.errors)}):[/yellow]")
        for error in summary.errors:
            console.print(f"  [dim]-[/dim] {error}")


def _emit_summary(summary: ProcessingSummary, json_summary: bool) -> None:
    if json_summary:
        print_json_summary(summary)
    else:
        _print_summary(summary)


def _print_plan(title: str, batches: list[Batch], skipped: int) -> None:
    """Show the batch plan for a dry run."""
    totals = summarize_batches(batches)
    table = Table(title=f"{title} (Dry Run)")
    table.add_column("Batch", justify="right", style="cyan")
    table.add_column("URLs", justify="right", style="magenta")
    table.add_column("Mini-batches", justify="right")
    table.add_column("Mini-batch sizes", style="dim")

    for batch in batches:
        sizes = ", ".join(str(mb.size) for mb in batch.mini_batches)
        table.add_row(str(batch.batch_number), str(len(batch.scans)), str(len(batch.mini_batches)), sizes)

    console.print(table)
    console.print(
        f"Batches: {totals['batches']}  Mini-batches: {totals['mini_batches']}  "
        f"Total URLs: {totals['total_urls']}  Skipped rows: {skipped}"
    )


def _run_with_shutdown(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, cancelling it cleanly on SIGINT/SIGTERM.

    Cancellation unwinds through the pipeline, which flushes the checkpoint
    and releases the lock on the way out.
    """

    async def runner() -> Any:
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, task.cancel)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not available on this platform/thread
                pass
        return await coro

    try:
        return asyncio.run(runner())
    except (asyncio.CancelledError, KeyboardInterrupt):
        console.print("\n[yellow]Interrupted. Checkpoint saved; rerun with --resume to continue.[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)


@app.command()
def run(
    input_file: Path = typer.Option(None, "--input", "-i", help="CSV file of pending scans"),
    input_dir: Path = typer.Option(None, "--input-dir", "-d", help="Directory of CSV files (directory mode)"),
    output: Path = typer.Option(DEFAULT_OUTPUT_PATH, "--output", "-o", help="Output CSV file or directory"),
    batch_size: int = typer.Option(DEFAULT_BATCH_SIZE, "--batch-size", "-b", help="URLs per batch"),
    mini_batch_size: int = typer.Option(
        DEFAULT_MINI_BATCH_SIZE, "--mini-batch-size", "-m", help="URLs per agent call (clamped to 1-10)"
    ),
    delay: float = typer.Option(DEFAULT_DELAY_SECONDS, "--delay", help="Seconds between mini-batches"),
    retries: int = typer.Option(DEFAULT_MAX_RETRIES, "--retries", help="Retries per failed mini-batch"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT_SECONDS, "--timeout", help="Agent call timeout (seconds)"),
    start_batch: int = typer.Option(1, "--start-batch", help="Skip batches numbered below this"),
    max_files: int = typer.Option(None, "--max-files", help="Max files per directory pass"),
    resume: bool = typer.Option(False, "--resume", "-r", help="Resume from checkpoint"),
    clear_checkpoint: bool = typer.Option(False, "--clear-checkpoint", help="Discard checkpoint before starting"),
    prompt_template: Path = typer.Option(None, "--prompt-template", help="Custom Jinja2 prompt template"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show batch plan without calling the agent"),
    watch_interval: float = typer.Option(
        None, "--watch-interval", help="Re-scan the input directory every N seconds"
    ),
    max_cycles: int = typer.Option(None, "--max-cycles", help="Stop watching after N passes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging, including prompts"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Warnings and errors only"),
    json_summary: bool = typer.Option(False, "--json-summary", "-j", help="Print summary as JSON"),
    log_file: Path = typer.Option(None, "--log", "-l", help="Also write logs to this file"),
    break_stale_lock: bool = typer.Option(
        False, "--break-stale-lock", help="Remove a stale lock left by a crashed run"
    ),
) -> None:
    """Process pending scans through the AI agent in batches."""
    # Validate options
    if input_file and input_dir:
        console.print("[red]Error:[/red] --input and --input-dir are mutually exclusive")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if not input_file and not input_dir:
        console.print("[red]Error:[/red] Must specify --input or --input-dir")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if verbose and quiet:
        console.print("[red]Error:[/red] --verbose and --quiet are mutually exclusive")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if resume and clear_checkpoint:
        console.print("[red]Error:[/red] --resume and --clear-checkpoint are mutually exclusive")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if watch_interval is not None and not input_dir:
        console.print("[red]Error:[/red] --watch-interval requires --input-dir")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if watch_interval is not None and watch_interval <= 0:
        console.print("[red]Error:[/red] --watch-interval must be positive")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if batch_size < 1:
        console.print(f"[red]Error:[/red] --batch-size must be at least 1, got {batch_size}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if start_batch < 1:
        console.print(f"[red]Error:[/red] --start-batch must be at least 1, got {start_batch}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if input_file and not input_file.is_file():
        console.print(f"[red]Error:[/red] Input file not found: {input_file}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if input_dir and not input_dir.is_dir():
        console.print(f"[red]Error:[/red] Input directory not found: {input_dir}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    # Directory mode is meant for cron, so it is quiet unless asked otherwise
    _configure_logging(verbose, quiet or (input_dir is not None and not verbose), log_file)

    try:
        config = ProcessorConfig(
            batch_size=batch_size,
            mini_batch_size=mini_batch_size,
            delay_seconds=delay,
            max_retries=retries,
            timeout_seconds=timeout,
            verbose=verbose,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid option: {e}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    if config.mini_batch_size != mini_batch_size:
        logger.warning(f"Mini-batch size {mini_batch_size} clamped to {config.mini_batch_size}")

    try:
        prompt_generator = PromptGenerator(prompt_template)
    except TemplateError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_USAGE_ERROR)

    # Dry run mode
    if dry_run:
        files = [input_file] if input_file else scan_directory(input_dir, max_files).files
        if not files:
            console.print("[yellow]No CSV files to process[/yellow]")
            return
        for path in files:
            try:
                parsed, batches = plan_file(path, config)
            except AiScanError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(EXIT_COMPLETE_FAILURE)
            batches = [b for b in batches if b.batch_number >= start_batch]
            _print_plan(path.name, batches, len(parsed.skipped))
        console.print("\n[dim]Run without --dry-run to invoke the agent[/dim]")
        return

    invoker = ClaudeInvoker(timeout=config.timeout_seconds)
    if not invoker.is_installed():
        console.print(f"[red]Error:[/red] '{AGENT_BINARY}' not found on PATH. Run 'ai-scan check'.")
        raise typer.Exit(EXIT_COMPLETE_FAILURE)

    ctx = PipelineContext(
        invoker=invoker,
        prompt_builder=prompt_generator.generate,
        config=config,
        output=output,
        start_batch=start_batch,
    )

    try:
        if input_file:
            summary = _run_single_with_progress(
                ctx,
                input_file,
                resume=resume,
                clear_checkpoint=clear_checkpoint,
                break_stale_lock=break_stale_lock,
                show_progress=not (json_summary or quiet),
            )
            _emit_summary(summary, json_summary)
            raise typer.Exit(_exit_code(summary.status))

        summaries = _run_with_shutdown(
            watch_directory(
                input_dir,
                ctx,
                max_files=max_files,
                watch_interval=watch_interval,
                max_cycles=max_cycles,
                break_stale_lock=break_stale_lock,
                on_summary=lambda s: _emit_summary(s, json_summary),
            )
        )
    except LockHeldError as e:
        console.print(f"[red]Error:[/red] Another run is active: {e}")
        raise typer.Exit(EXIT_LOCK_HELD)
    except AiScanError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_COMPLETE_FAILURE)

    successful = sum(s.successful for s in summaries)
    failed = sum(s.failed for s in summaries)
    raise typer.Exit(_exit_code(classify_status(successful, failed)))


def _run_single_with_progress(
    ctx: PipelineContext,
    input_file: Path,
    resume: bool,
    clear_checkpoint: bool,
    break_stale_lock: bool,
    show_progress: bool,
) -> ProcessingSummary:
    """Run single-file mode, driving a progress bar from processor callbacks."""
    checkpoint_path = Path(CHECKPOINT_FILENAME)

    if not show_progress:
        return _run_with_shutdown(
            run_single_file(
                input_file,
                ctx,
                checkpoint_path=checkpoint_path,
                resume=resume,
                clear_checkpoint=clear_checkpoint,
                break_stale_lock=break_stale_lock,
            )
        )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total} URLs"),
        console=console,
    ) as progress:
        task = progress.add_task("Processing...", total=None)

        def on_progress(p: ProcessingProgress) -> None:
            progress.update(
                task,
                completed=p.processed_urls,
                total=p.total_urls,
                description=f"Batch {p.batch_number} mini-batch {p.mini_batch_number}/{p.total_mini_batches}",
            )

        ctx.progress_callback = on_progress
        summary = _run_with_shutdown(
            run_single_file(
                input_file,
                ctx,
                checkpoint_path=checkpoint_path,
                resume=resume,
                clear_checkpoint=clear_checkpoint,
                break_stale_lock=break_stale_lock,
            )
        )
        progress.update(task, completed=summary.total_urls, total=summary.total_urls or 1)

    return summary


@app.command()
def check() -> None:
    """Verify the Claude Code CLI is installed."""
    invoker = ClaudeInvoker()
    if not invoker.is_installed():
        console.print(f"[red]Error: '{AGENT_BINARY}' not installed[/red]")
        console.print("\nInstall Claude Code from: https://docs.anthropic.com/en/docs/claude-code")
        console.print("\nQuick install:")
        console.print("  npm install -g @anthropic-ai/claude-code")
        console.print("\nThen authenticate once by running 'claude' interactively.")
        raise typer.Exit(EXIT_COMPLETE_FAILURE)

    console.print(f"[green]'{AGENT_BINARY}' found on PATH[/green]")


if __name__ == "__main__":
    app()
