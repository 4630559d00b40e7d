"""Sequential mini-batch execution with retry, reconciliation and checkpointing."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from ai_scan.agent.base import AgentInvoker
from ai_scan.agent.result_parser import parse_agent_output
from ai_scan.models.model_batch import (
    Batch,
    ErrorKind,
    FailedScan,
    MiniBatch,
    MiniBatchOutcome,
    ProcessingProgress,
)
from ai_scan.models.model_config import ProcessorConfig
from ai_scan.models.model_scan import PendingScan, ScanResult
from ai_scan.processing.backoff import calculate_retry_delay
from ai_scan.storage.checkpoint_manager import CheckpointManager

logger = logging.getLogger(__name__)

MISSING_RESULT_MESSAGE = "Scan result not found in agent output"

PromptBuilder = Callable[[list[PendingScan]], str]
SleepFunc = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[ProcessingProgress], None]
ResultSink = Callable[[list[ScanResult]], None]


class MiniBatchProcessor:
    """Runs mini-batches through the agent one at a time.

    Invocation failures (and any exception raised while building the prompt or
    parsing output) are retried with backoff. Jobs missing from a successful
    response fail immediately with INVALID_OUTPUT. Each mini-batch's results go
    to the result sink before their scan IDs are buffered, and buffered IDs are
    flushed to the checkpoint once per batch.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        prompt_builder: PromptBuilder,
        config: ProcessorConfig | None = None,
        checkpoint_manager: CheckpointManager | None = None,
        progress_callback: ProgressCallback | None = None,
        sleep: SleepFunc = asyncio.sleep,
        result_sink: ResultSink | None = None,
    ):
        """Initialize MiniBatchProcessor.

        Args:
            invoker: Agent invocation strategy
            prompt_builder: Renders the prompt for a list of scans
            config: Processor options (default: ProcessorConfig())
            checkpoint_manager: Checkpoint to update after each batch (optional)
            progress_callback: Called before each mini-batch (optional)
            sleep: Awaitable sleep, replaceable in tests
            result_sink: Persists each mini-batch's results before they are checkpointed (optional)
        """
        self.invoker = invoker
        self.prompt_builder = prompt_builder
        self.config = config or ProcessorConfig()
        self.checkpoint_manager = checkpoint_manager
        self.progress_callback = progress_callback
        self._sleep = sleep
        self.result_sink = result_sink

        self._processed_urls = 0
        self._total_urls = 0

    def _fail_all(
        self, mini_batch: MiniBatch, error_kind: ErrorKind, error_message: str
    ) -> list[FailedScan]:
        return [
            FailedScan(
                scan_id=scan.scan_id,
                url=scan.url,
                error_kind=error_kind,
                error_message=error_message,
            )
            for scan in mini_batch.scans
        ]

    def _reconcile(
        self, mini_batch: MiniBatch, parsed: list[ScanResult], duration_ms: int
    ) -> tuple[list[ScanResult], list[FailedScan]]:
        """Match parsed results to the mini-batch's scans, in input order.

        Args:
            mini_batch: Scans that were sent to the agent
            parsed: Results extracted from the agent output
            duration_ms: Invocation time, shared evenly across the scans

        Returns:
            Tuple of (results, failed scans) covering every input scan exactly once
        """
        by_id: dict[str, ScanResult] = {}
        expected = {scan.scan_id for scan in mini_batch.scans}
        for result in parsed:
            if result.scan_id not in expected:
                logger.debug(f"Ignoring result for unexpected scan {result.scan_id}")
                continue
            # First result for an ID wins
            by_id.setdefault(result.scan_id, result)

        per_scan_ms = duration_ms // max(1, mini_batch.size)
        results: list[ScanResult] = []
        failed: list[FailedScan] = []

        for scan in mini_batch.scans:
            result = by_id.get(scan.scan_id)
            if result is None:
                failed.append(
                    FailedScan(
                        scan_id=scan.scan_id,
                        url=scan.url,
                        error_kind=ErrorKind.INVALID_OUTPUT,
                        error_message=MISSING_RESULT_MESSAGE,
                    )
                )
                continue

            results.append(
                result.model_copy(
                    update={
                        "url": result.url or scan.url,
                        "page_title": result.page_title or scan.page_title or "",
                        "wcag_level": scan.wcag_level,
                        "duration_ms": per_scan_ms,
                    }
                )
            )

        return results, failed

    async def process_mini_batch(self, mini_batch: MiniBatch, batch_number: int) -> MiniBatchOutcome:
        """Run one mini-batch through the agent, retrying failed invocations.

        Args:
            mini_batch: Scans to send in one invocation
            batch_number: Number of the enclosing batch (for logging)

        Returns:
            MiniBatchOutcome whose results and failed scans cover every input scan
        """
        label = f"batch {batch_number} mini-batch {mini_batch.mini_batch_number}"
        start_time = time.monotonic()
        retry_count = 0

        while True:
            try:
                prompt = self.prompt_builder(mini_batch.scans)
                if self.config.verbose:
                    logger.debug(f"Prompt for {label}:\n{prompt}")

                invocation = await self.invoker.invoke(prompt)

                if invocation.success:
                    parsed = parse_agent_output(invocation.output or "")
                    results, failed = self._reconcile(mini_batch, parsed, invocation.duration_ms)
                    duration_ms = int((time.monotonic() - start_time) * 1000)
                    logger.info(
                        f"Completed {label}: {len(results)} succeeded, {len(failed)} missing "
                        f"({duration_ms}ms, {retry_count} retries)"
                    )
                    return MiniBatchOutcome(
                        mini_batch_number=mini_batch.mini_batch_number,
                        results=results,
                        failed_scans=failed,
                        retry_count=retry_count,
                        duration_ms=duration_ms,
                    )

                error_kind = invocation.error_kind or ErrorKind.UNKNOWN
                error_message = invocation.error or "Unknown invocation error"
            except Exception as e:
                error_kind = ErrorKind.UNKNOWN
                error_message = f"Unexpected error: {e}"
                logger.debug(f"Unexpected error in {label}", exc_info=True)

            if retry_count >= self.config.max_retries:
                break

            delay = calculate_retry_delay(retry_count, error_kind)
            logger.warning(
                f"{label} failed ({error_kind.value}): {error_message}. "
                f"Retry {retry_count + 1}/{self.config.max_retries} in {delay:.0f}s"
            )
            await self._sleep(delay)
            retry_count += 1

        logger.error(
            f"{label} failed after {retry_count} retries ({error_kind.value}): {error_message}"
        )
        return MiniBatchOutcome(
            mini_batch_number=mini_batch.mini_batch_number,
            failed_scans=self._fail_all(mini_batch, error_kind, error_message),
            retry_count=retry_count,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    async def process_batch(self, batch: Batch) -> list[MiniBatchOutcome]:
        """Run a batch's mini-batches in order, then flush the checkpoint.

        Args:
            batch: Batch to process

        Returns:
            One outcome per mini-batch, in order
        """
        outcomes: list[MiniBatchOutcome] = []
        total = len(batch.mini_batches)
        logger.info(f"Processing batch {batch.batch_number} ({len(batch.scans)} URLs, {total} mini-batches)")

        for index, mini_batch in enumerate(batch.mini_batches):
            if self.progress_callback:
                self.progress_callback(
                    ProcessingProgress(
                        batch_number=batch.batch_number,
                        mini_batch_number=mini_batch.mini_batch_number,
                        total_mini_batches=total,
                        processed_urls=self._processed_urls,
                        total_urls=self._total_urls or len(batch.scans),
                        current_url=mini_batch.scans[0].url,
                    )
                )

            outcome = await self.process_mini_batch(mini_batch, batch.batch_number)
            outcomes.append(outcome)
            self._processed_urls += mini_batch.size

            if self.result_sink and outcome.results:
                self.result_sink(outcome.results)
            if self.checkpoint_manager and outcome.results:
                self.checkpoint_manager.mark_processed([r.scan_id for r in outcome.results])

            is_last = index == total - 1
            if not is_last and self.config.delay_seconds > 0:
                logger.debug(f"Waiting {self.config.delay_seconds}s before next mini-batch")
                await self._sleep(self.config.delay_seconds)

        if self.checkpoint_manager:
            last_mini = outcomes[-1].mini_batch_number if outcomes else 0
            self.checkpoint_manager.flush(last_batch=batch.batch_number, last_mini_batch=last_mini)

        return outcomes

    async def process_all_batches(
        self, batches: list[Batch], start_batch: int = 1
    ) -> list[MiniBatchOutcome]:
        """Run every batch in order.

        Args:
            batches: Batches from organize_batches()
            start_batch: Skip batches numbered below this

        Returns:
            Outcomes for all processed mini-batches, in order
        """
        selected = [b for b in batches if b.batch_number >= start_batch]
        if len(selected) < len(batches):
            logger.info(f"Starting at batch {start_batch}, skipping {len(batches) - len(selected)} batches")

        self._processed_urls = 0
        self._total_urls = sum(len(b.scans) for b in selected)

        outcomes: list[MiniBatchOutcome] = []
        for batch in selected:
            outcomes.extend(await self.process_batch(batch))
        return outcomes
