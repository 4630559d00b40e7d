"""Tests for single-file and directory run orchestration."""

import asyncio
import csv
from pathlib import Path

import pytest

from conftest import FakeInvoker, SleepRecorder, agent_output, echo_success, make_scan, simple_prompt, success
from ai_scan.consts import CHECKPOINT_FILENAME, LOCK_FILENAME
from ai_scan.errors import LockHeldError
from ai_scan.models.model_config import ProcessorConfig
from ai_scan.models.model_summary import ProcessingStatus
from ai_scan.pipeline import PipelineContext, plan_file, run_single_file, watch_directory
from ai_scan.storage.checkpoint_manager import CheckpointManager
from ai_scan.storage.lock_manager import LockManager


def _rows(count: int) -> list[str]:
    return [f"scan-{i:03d},https://example.com/page-{i},AA,,2026-01-0{i % 9 + 1}" for i in range(1, count + 1)]


def _read_csv(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def ctx_factory(tmp_path: Path, fast_config: ProcessorConfig, sleep_recorder: SleepRecorder):
    def _make(invoker: FakeInvoker, output: Path | None = None, **kwargs) -> PipelineContext:
        return PipelineContext(
            invoker=invoker,
            prompt_builder=simple_prompt,
            config=fast_config,
            output=output or tmp_path / "results.csv",
            sleep=sleep_recorder,
            **kwargs,
        )

    return _make


class TestRunSingleFile:
    """Tests for single-file mode."""

    @pytest.mark.asyncio
    async def test_all_scans_succeed(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(3))
        invoker = FakeInvoker([echo_success, echo_success])
        checkpoint_path = tmp_path / CHECKPOINT_FILENAME

        summary = await run_single_file(input_file, ctx_factory(invoker), checkpoint_path=checkpoint_path)

        assert summary.status == ProcessingStatus.COMPLETED
        assert (summary.total_urls, summary.successful, summary.failed) == (3, 3, 0)
        assert summary.output_files == [str((tmp_path / "results.csv").resolve())]
        assert [r["scan_id"] for r in _read_csv(tmp_path / "results.csv")] == ["scan-001", "scan-002", "scan-003"]
        assert len(invoker.prompts) == 2
        assert not checkpoint_path.exists()
        assert not (tmp_path / LOCK_FILENAME).exists()

    @pytest.mark.asyncio
    async def test_missing_results_reported_as_failed(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(2))
        invoker = FakeInvoker([success(agent_output([make_scan(1)]))])

        summary = await run_single_file(input_file, ctx_factory(invoker), checkpoint_path=tmp_path / CHECKPOINT_FILENAME)

        assert summary.status == ProcessingStatus.PARTIAL_FAILURE
        assert (summary.successful, summary.failed) == (1, 1)
        [failed_file] = summary.failed_files
        [row] = _read_csv(Path(failed_file))
        assert row["scan_id"] == "scan-002"
        assert row["error_type"] == "INVALID_OUTPUT"
        assert row["error_message"] == "Scan result not found in agent output"

    @pytest.mark.asyncio
    async def test_resume_skips_processed_scans(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(3))
        checkpoint_path = tmp_path / CHECKPOINT_FILENAME
        manager = CheckpointManager(checkpoint_path)
        manager.init_checkpoint(str(input_file.resolve()))
        manager.mark_processed(["scan-001"])
        manager.flush(last_batch=1, last_mini_batch=1)
        invoker = FakeInvoker([echo_success])

        summary = await run_single_file(
            input_file, ctx_factory(invoker), checkpoint_path=checkpoint_path, resume=True
        )

        assert len(invoker.prompts) == 1
        assert "scan-001" not in invoker.prompts[0]
        assert summary.total_urls == 2
        assert summary.successful == 2

    @pytest.mark.asyncio
    async def test_checkpoint_for_other_file_is_ignored(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(1))
        checkpoint_path = tmp_path / CHECKPOINT_FILENAME
        manager = CheckpointManager(checkpoint_path)
        manager.init_checkpoint("/elsewhere/other.csv")
        manager.mark_processed(["scan-001"])
        manager.flush()
        invoker = FakeInvoker([echo_success])

        summary = await run_single_file(
            input_file, ctx_factory(invoker), checkpoint_path=checkpoint_path, resume=True
        )

        assert summary.successful == 1
        assert len(invoker.prompts) == 1

    @pytest.mark.asyncio
    async def test_start_batch_skips_earlier_batches(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(6))
        invoker = FakeInvoker([echo_success])

        summary = await run_single_file(
            input_file, ctx_factory(invoker, start_batch=2), checkpoint_path=tmp_path / CHECKPOINT_FILENAME
        )

        assert summary.total_urls == 1
        assert "scan-006" in invoker.prompts[0]

    @pytest.mark.asyncio
    async def test_lock_held_by_live_process(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv(_rows(1))
        assert LockManager(tmp_path / LOCK_FILENAME).acquire_lock()
        invoker = FakeInvoker([])

        with pytest.raises(LockHeldError):
            await run_single_file(input_file, ctx_factory(invoker), checkpoint_path=tmp_path / CHECKPOINT_FILENAME)

        assert invoker.prompts == []
        assert (tmp_path / LOCK_FILENAME).exists()

    @pytest.mark.asyncio
    async def test_interrupt_flushes_checkpoint_and_releases_lock(
        self, tmp_path, write_input_csv, ctx_factory
    ) -> None:
        input_file = write_input_csv(_rows(4))
        checkpoint_path = tmp_path / CHECKPOINT_FILENAME

        def interrupted(prompt: str):
            raise asyncio.CancelledError()

        invoker = FakeInvoker([echo_success, interrupted])

        with pytest.raises(asyncio.CancelledError):
            await run_single_file(input_file, ctx_factory(invoker), checkpoint_path=checkpoint_path)

        checkpoint = CheckpointManager(checkpoint_path).load_checkpoint()
        assert checkpoint is not None
        assert set(checkpoint.processed_scan_ids) == {"scan-001", "scan-002"}
        assert checkpoint.output_file == str((tmp_path / "results.csv").resolve())
        assert not (tmp_path / LOCK_FILENAME).exists()
        # Rows for checkpointed scans are already on disk
        assert [r["scan_id"] for r in _read_csv(tmp_path / "results.csv")] == ["scan-001", "scan-002"]

    @pytest.mark.asyncio
    async def test_resume_after_interrupt_keeps_every_result(
        self, tmp_path, write_input_csv, sleep_recorder
    ) -> None:
        input_file = write_input_csv(_rows(4))
        checkpoint_path = tmp_path / CHECKPOINT_FILENAME
        config = ProcessorConfig(batch_size=2, mini_batch_size=2, delay_seconds=0, max_retries=0)

        def make_ctx(invoker: FakeInvoker) -> PipelineContext:
            return PipelineContext(
                invoker=invoker,
                prompt_builder=simple_prompt,
                config=config,
                output=tmp_path / "results.csv",
                sleep=sleep_recorder,
            )

        def interrupted(prompt: str):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_single_file(
                input_file, make_ctx(FakeInvoker([echo_success, interrupted])), checkpoint_path=checkpoint_path
            )

        invoker = FakeInvoker([echo_success])
        summary = await run_single_file(
            input_file, make_ctx(invoker), checkpoint_path=checkpoint_path, resume=True
        )

        assert "scan-001" not in invoker.prompts[0]
        assert summary.status == ProcessingStatus.COMPLETED
        assert summary.successful == 2
        assert summary.output_files == [str((tmp_path / "results.csv").resolve())]
        rows = _read_csv(tmp_path / "results.csv")
        assert [r["scan_id"] for r in rows] == ["scan-001", "scan-002", "scan-003", "scan-004"]
        assert not checkpoint_path.exists()

    @pytest.mark.asyncio
    async def test_file_without_valid_rows(self, tmp_path, write_input_csv, ctx_factory) -> None:
        input_file = write_input_csv([",https://example.com,AA,,", "scan-2,ftp://example.com,AA,,"])
        invoker = FakeInvoker([])

        summary = await run_single_file(input_file, ctx_factory(invoker), checkpoint_path=tmp_path / CHECKPOINT_FILENAME)

        assert summary.total_urls == 0
        assert summary.skipped == 2
        assert summary.output_files == []
        assert invoker.prompts == []


class TestDirectoryMode:
    """Tests for watched-directory processing."""

    @pytest.mark.asyncio
    async def test_files_moved_by_outcome(self, tmp_path, write_input_csv, ctx_factory) -> None:
        inbox = tmp_path / "inbox"
        out = tmp_path / "out"
        inbox.mkdir()
        out.mkdir()
        write_input_csv(_rows(2), name="a.csv", directory=inbox)
        write_input_csv([",https://example.com,AA,,"], name="b.csv", directory=inbox)
        write_input_csv(_rows(1), name="c.csv", directory=inbox)
        # a.csv answered, c.csv gets a reply with no JSON in it
        invoker = FakeInvoker([echo_success, success("I could not scan these pages.")])

        [summary] = await watch_directory(inbox, ctx_factory(invoker, output=out))

        assert (inbox / "processed" / "a.csv").exists()
        assert (inbox / "failed" / "b.csv").exists()
        assert (inbox / "failed" / "c.csv").exists()
        assert summary.files_processed == 3
        assert summary.successful == 2
        assert summary.failed == 1
        assert "b.csv: No valid scans found" in summary.errors
        assert not (inbox / LOCK_FILENAME).exists()
        assert not (inbox / CHECKPOINT_FILENAME).exists()
        assert len(list(out.glob("ai-results-a-*.csv"))) == 1

    @pytest.mark.asyncio
    async def test_watch_runs_max_cycles(self, tmp_path, ctx_factory) -> None:
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        watch_sleep = SleepRecorder()
        seen = []

        summaries = await watch_directory(
            inbox,
            ctx_factory(FakeInvoker([])),
            watch_interval=5,
            max_cycles=3,
            on_summary=seen.append,
            sleep=watch_sleep,
        )

        assert len(summaries) == 3
        assert watch_sleep.delays == [5, 5]
        assert seen == []
        assert all(s.files_processed == 0 for s in summaries)

    @pytest.mark.asyncio
    async def test_directory_lock_held(self, tmp_path, ctx_factory) -> None:
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        assert LockManager(inbox / LOCK_FILENAME).acquire_lock()

        with pytest.raises(LockHeldError):
            await watch_directory(inbox, ctx_factory(FakeInvoker([])))


class TestPlanFile:
    """Tests for dry-run planning."""

    def test_plan_does_not_invoke_agent(self, write_input_csv, fast_config) -> None:
        input_file = write_input_csv(_rows(7) + [",https://example.com,AA,,"])

        parsed, batches = plan_file(input_file, fast_config)

        assert len(parsed.scans) == 7
        assert len(parsed.skipped) == 1
        assert [len(b.scans) for b in batches] == [5, 2]
        assert [mb.size for mb in batches[0].mini_batches] == [2, 2, 1]
