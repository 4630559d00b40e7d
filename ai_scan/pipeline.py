"""Run orchestration for single-file and directory modes.

Each input file goes through the same steps:
1. Parse and validate rows
2. Load or start the checkpoint, dropping already-processed scans
3. Organize batches and mini-batches
4. Process mini-batches through the agent, appending each one's results to the
   results CSV before its scan IDs are checkpointed
5. Write the failed-scans CSV
6. Clear the checkpoint once the file is done
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ai_scan.agent.base import AgentInvoker
from ai_scan.batching.batch_organizer import organize_batches
from ai_scan.consts import CHECKPOINT_FILENAME, DEFAULT_OUTPUT_PATH, LOCK_FILENAME
from ai_scan.errors import CheckpointError, LockHeldError
from ai_scan.input.csv_parser import parse_input_csv
from ai_scan.models.common import _utc_now
from ai_scan.models.model_batch import Batch, FailedScan
from ai_scan.models.model_config import ProcessorConfig
from ai_scan.models.model_scan import ParseResult, ScanResult
from ai_scan.models.model_summary import ProcessingSummary, SummaryStats
from ai_scan.output.csv_writer import (
    generate_failed_scans_path,
    generate_output_path,
    write_csv,
    write_failed_scans_csv,
)
from ai_scan.output.result_transformer import transform_to_import_format
from ai_scan.output.summary_generator import generate_summary
from ai_scan.processing.directory_scanner import (
    ensure_subdirectories,
    move_to_failed,
    move_to_processed,
    scan_directory,
)
from ai_scan.processing.mini_batch_processor import (
    MiniBatchProcessor,
    ProgressCallback,
    PromptBuilder,
    SleepFunc,
)
from ai_scan.storage.checkpoint_manager import CheckpointManager
from ai_scan.storage.lock_manager import LockManager

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Collaborators and options shared by every file in a run."""

    invoker: AgentInvoker
    prompt_builder: PromptBuilder
    config: ProcessorConfig = field(default_factory=ProcessorConfig)
    output: Path = DEFAULT_OUTPUT_PATH
    start_batch: int = 1
    progress_callback: ProgressCallback | None = None
    sleep: SleepFunc = asyncio.sleep


@dataclass
class FileRunResult:
    """Outcome of processing one input file."""

    input_file: Path
    total_urls: int = 0
    skipped: int = 0
    already_processed: int = 0
    results: list[ScanResult] = field(default_factory=list)
    failed_scans: list[FailedScan] = field(default_factory=list)
    output_file: Path | None = None
    failed_file: Path | None = None


@dataclass
class RunTotals:
    """Counters accumulated across the files of one run."""

    files_processed: int = 0
    total_urls: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    output_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def add(self, result: FileRunResult) -> None:
        self.files_processed += 1
        self.total_urls += result.total_urls
        self.successful += len(result.results)
        self.failed += len(result.failed_scans)
        self.skipped += result.skipped
        if result.output_file:
            self.output_files.append(str(result.output_file))
        if result.failed_file:
            self.failed_files.append(str(result.failed_file))

    def to_stats(self, start_time: datetime, end_time: datetime | None = None) -> SummaryStats:
        return SummaryStats(
            start_time=start_time,
            end_time=end_time or _utc_now(),
            files_processed=self.files_processed,
            total_urls=self.total_urls,
            successful=self.successful,
            failed=self.failed,
            skipped=self.skipped,
            output_files=self.output_files,
            failed_files=self.failed_files,
            errors=self.errors,
        )


def plan_file(input_file: Path | str, config: ProcessorConfig) -> tuple[ParseResult, list[Batch]]:
    """Parse a file and organize it without processing (dry runs).

    Returns:
        Tuple of (parse result, batches)
    """
    parsed = parse_input_csv(input_file)
    batches = organize_batches(parsed.scans, config.batch_size, config.mini_batch_size)
    return parsed, batches


def _prepare_checkpoint(checkpoint_manager: CheckpointManager, source_id: str, resume: bool) -> bool:
    """Load a matching checkpoint when resuming, otherwise start a new one.

    Returns:
        True if a checkpoint for this source was resumed
    """
    existing = checkpoint_manager.load_checkpoint() if resume else None

    if existing is not None and existing.input_file == source_id:
        logger.info(
            f"Resuming from checkpoint: {checkpoint_manager.processed_count} scans already processed "
            f"(last batch {existing.last_batch})"
        )
        return True

    if existing is not None:
        logger.warning(
            f"Checkpoint belongs to {existing.input_file}, not {source_id}; starting fresh"
        )
    elif not resume and checkpoint_manager.checkpoint_path.exists():
        logger.warning(f"Overwriting existing checkpoint {checkpoint_manager.checkpoint_path}")

    checkpoint = checkpoint_manager.init_checkpoint(source_id)
    checkpoint_manager.save_checkpoint(checkpoint)
    return False


def _results_path(
    checkpoint_manager: CheckpointManager, resumed: bool, output: Path, input_path: Path
) -> Path:
    """Results CSV for this run, reusing the one recorded in a resumed checkpoint."""
    checkpoint = checkpoint_manager.checkpoint
    if resumed and checkpoint.output_file:
        logger.info(f"Appending to results from the interrupted run: {checkpoint.output_file}")
        return Path(checkpoint.output_file)

    path = generate_output_path(output, input_path.stem)
    checkpoint.output_file = str(path)
    checkpoint_manager.save_checkpoint(checkpoint)
    return path


async def process_file(
    input_file: Path | str,
    ctx: PipelineContext,
    checkpoint_manager: CheckpointManager,
    resume: bool = False,
    output: Path | None = None,
) -> FileRunResult:
    """Process one input file end to end.

    Args:
        input_file: CSV of pending scans
        ctx: Shared collaborators and options
        checkpoint_manager: Checkpoint for this file
        resume: Skip scans recorded in a matching checkpoint
        output: Output path override (default: ctx.output)

    Returns:
        FileRunResult for the file

    Raises:
        InputReadError: If the file cannot be read
        CheckpointError: If checkpoint state cannot be read or written
        CsvWriteError: If results cannot be written
    """
    input_path = Path(input_file)
    output = Path(output or ctx.output)
    parsed = parse_input_csv(input_path)
    result = FileRunResult(input_file=input_path, skipped=len(parsed.skipped))

    for skipped in parsed.skipped:
        logger.debug(f"Row {skipped.row} skipped: {skipped.reason}")

    if not parsed.scans:
        logger.warning(f"No valid scans found in {input_path.name}")
        return result

    source_id = str(input_path.resolve())
    resumed = _prepare_checkpoint(checkpoint_manager, source_id, resume)
    output_path = _results_path(checkpoint_manager, resumed, output, input_path)

    pending = [scan for scan in parsed.scans if not checkpoint_manager.is_processed(scan.scan_id)]
    result.already_processed = len(parsed.scans) - len(pending)
    if result.already_processed:
        logger.info(f"Skipping {result.already_processed} scans already in checkpoint")

    batches = organize_batches(pending, ctx.config.batch_size, ctx.config.mini_batch_size)
    selected = [b for b in batches if b.batch_number >= ctx.start_batch]
    result.total_urls = sum(len(b.scans) for b in selected)
    logger.info(
        f"Organized {len(pending)} scans into {len(batches)} batches "
        f"({sum(len(b.mini_batches) for b in batches)} mini-batches)"
    )

    if result.total_urls:
        if not (resumed and output_path.exists()):
            # Header only; rows are appended as mini-batches complete
            write_csv(output_path, [])
        result.output_file = output_path
    elif resumed and output_path.exists():
        result.output_file = output_path

    def persist_results(results: list[ScanResult]) -> None:
        write_csv(output_path, transform_to_import_format(results), append=True)

    processor = MiniBatchProcessor(
        invoker=ctx.invoker,
        prompt_builder=ctx.prompt_builder,
        config=ctx.config,
        checkpoint_manager=checkpoint_manager,
        progress_callback=ctx.progress_callback,
        sleep=ctx.sleep,
        result_sink=persist_results,
    )

    try:
        outcomes = await processor.process_all_batches(batches, start_batch=ctx.start_batch)
    except asyncio.CancelledError:
        # Rows for these IDs are already in the results CSV
        logger.warning("Interrupted, flushing checkpoint")
        checkpoint_manager.flush()
        raise

    for outcome in outcomes:
        result.results.extend(outcome.results)
        result.failed_scans.extend(outcome.failed_scans)

    logger.info(
        f"Processing complete for {input_path.name}: {len(result.results)} successful, "
        f"{len(result.failed_scans)} failed"
    )

    if result.failed_scans:
        failed_path = generate_failed_scans_path(output_path.parent)
        result.failed_file = write_failed_scans_csv(failed_path, result.failed_scans)
        logger.warning(f"Failed scans written to: {result.failed_file}")

    checkpoint_manager.clear_checkpoint()
    return result


def acquire_run_lock(lock_manager: LockManager, break_stale_lock: bool = False) -> None:
    """Acquire the run lock or raise if another run holds it.

    Args:
        lock_manager: Lock for the working directory
        break_stale_lock: Remove a stale lock before acquiring

    Raises:
        LockHeldError: If the lock is held
        LockError: If the lock file cannot be created
    """
    if break_stale_lock and lock_manager.break_lock():
        logger.info(f"Removed stale lock {lock_manager.lock_file_path}")

    if lock_manager.acquire_lock():
        logger.info(f"Lock acquired: {lock_manager.lock_file_path}")
        return

    info = lock_manager.read_lock_info()
    owner = f"pid {info.pid} on {info.hostname} since {info.started_at.isoformat()}" if info else None
    stale = info is not None and lock_manager.is_stale(info)
    if stale:
        logger.warning(f"Lock {lock_manager.lock_file_path} looks stale ({owner})")
    raise LockHeldError(lock_manager.lock_file_path, owner=owner, stale=stale)


async def run_single_file(
    input_file: Path | str,
    ctx: PipelineContext,
    checkpoint_path: Path | str = CHECKPOINT_FILENAME,
    resume: bool = False,
    clear_checkpoint: bool = False,
    break_stale_lock: bool = False,
) -> ProcessingSummary:
    """Process one input file under the lock of the checkpoint's directory.

    Args:
        input_file: CSV of pending scans
        ctx: Shared collaborators and options
        checkpoint_path: Checkpoint location
        resume: Continue from a matching checkpoint
        clear_checkpoint: Delete any checkpoint before starting
        break_stale_lock: Remove a stale lock before acquiring

    Returns:
        ProcessingSummary for the run
    """
    start_time = _utc_now()
    checkpoint_manager = CheckpointManager(checkpoint_path)
    lock_manager = LockManager(checkpoint_manager.checkpoint_path.parent / LOCK_FILENAME)

    acquire_run_lock(lock_manager, break_stale_lock)
    try:
        if clear_checkpoint:
            checkpoint_manager.clear_checkpoint()
            logger.info("Checkpoint cleared")

        file_result = await process_file(input_file, ctx, checkpoint_manager, resume=resume)
    finally:
        if lock_manager.is_held:
            lock_manager.release_lock()

    totals = RunTotals()
    totals.add(file_result)
    return generate_summary(totals.to_stats(start_time))


async def run_directory(input_dir: Path | str, ctx: PipelineContext, max_files: int | None = None) -> ProcessingSummary:
    """Process every eligible file in a directory once.

    Files with at least one successful scan move to processed/, others to
    failed/. The caller must hold the directory lock.

    Args:
        input_dir: Watched directory
        ctx: Shared collaborators and options
        max_files: Limit on files handled in this pass

    Returns:
        ProcessingSummary aggregated over the files
    """
    start_time = _utc_now()
    directory = Path(input_dir)
    ensure_subdirectories(directory)
    totals = RunTotals()

    scanned = scan_directory(directory, max_files)
    if not scanned.files:
        logger.info("No CSV files to process")
        return generate_summary(totals.to_stats(start_time))

    logger.info(f"Processing {len(scanned.files)} of {scanned.total_found} total files")
    checkpoint_manager = CheckpointManager(directory / CHECKPOINT_FILENAME)

    for file_path in scanned.files:
        logger.info(f"=== Processing file: {file_path.name} ===")
        try:
            file_result = await process_file(file_path, ctx, checkpoint_manager, resume=True)
        except CheckpointError:
            raise
        except Exception as e:
            logger.error(f"Failed to process {file_path.name}: {e}")
            totals.errors.append(f"{file_path.name}: {e}")
            totals.files_processed += 1
            move_to_failed(file_path, directory)
            continue

        totals.add(file_result)

        if file_result.total_urls == 0 and file_result.already_processed == 0:
            totals.errors.append(f"{file_path.name}: No valid scans found")
            move_to_failed(file_path, directory)
        elif file_result.results or (file_result.already_processed and not file_result.failed_scans):
            # A resumed file whose remaining scans all succeeded earlier still counts
            move_to_processed(file_path, directory)
        else:
            move_to_failed(file_path, directory)

    return generate_summary(totals.to_stats(start_time))


async def watch_directory(
    input_dir: Path | str,
    ctx: PipelineContext,
    max_files: int | None = None,
    watch_interval: float | None = None,
    max_cycles: int | None = None,
    break_stale_lock: bool = False,
    on_summary: Callable[[ProcessingSummary], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[ProcessingSummary]:
    """Run directory passes under one lock.

    Without a watch interval a single pass runs. With one, the directory is
    re-scanned every watch_interval seconds until max_cycles passes have run
    (forever when max_cycles is None).

    Args:
        input_dir: Watched directory
        ctx: Shared collaborators and options
        max_files: Limit on files per pass
        watch_interval: Seconds between passes (None: single pass)
        max_cycles: Maximum number of passes in watch mode
        break_stale_lock: Remove a stale lock before acquiring
        on_summary: Called with each pass summary
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Summaries of every pass, in order

    Raises:
        LockHeldError: If another run holds the directory lock
    """
    directory = Path(input_dir)
    lock_manager = LockManager(directory / LOCK_FILENAME)
    acquire_run_lock(lock_manager, break_stale_lock)

    summaries: list[ProcessingSummary] = []
    cycle = 0
    try:
        while True:
            cycle += 1
            summary = await run_directory(directory, ctx, max_files)
            summaries.append(summary)
            if on_summary and (summary.files_processed or watch_interval is None):
                on_summary(summary)

            if watch_interval is None:
                break
            if max_cycles is not None and cycle >= max_cycles:
                logger.info(f"Reached {max_cycles} watch cycles, stopping")
                break

            logger.debug(f"Waiting {watch_interval}s before next directory scan")
            await sleep(watch_interval)
    finally:
        if lock_manager.is_held:
            lock_manager.release_lock()
            logger.info("Lock released")

    return summaries
