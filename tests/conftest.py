"""Pytest configuration and fixtures."""

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from ai_scan.agent.base import AgentInvoker
from ai_scan.models.model_batch import ErrorKind, InvocationResult
from ai_scan.models.model_config import ProcessorConfig
from ai_scan.models.model_scan import ComplianceLevel, PendingScan

CSV_HEADER = "scan_id,url,wcag_level,email,created_at"


class FakeInvoker(AgentInvoker):
    """Scripted agent: replays queued responses and records prompts."""

    def __init__(self, responses: list[InvocationResult | Callable[[str], InvocationResult]] | None = None):
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    async def invoke(self, prompt: str) -> InvocationResult:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("FakeInvoker ran out of scripted responses")
        response = self.responses.pop(0)
        if callable(response):
            return response(prompt)
        return response


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_scan(index: int, level: ComplianceLevel = ComplianceLevel.AA) -> PendingScan:
    return PendingScan(
        scan_id=f"scan-{index:03d}",
        url=f"https://example.com/page-{index}",
        wcag_level=level,
    )


def agent_output(scans: list[PendingScan], issues: list[dict] | None = None) -> str:
    """JSON reply in the shape the default prompt asks for."""
    return json.dumps(
        {
            "wcagLevel": "AA",
            "results": [
                {
                    "scanId": scan.scan_id,
                    "url": scan.url,
                    "pageTitle": f"Page {scan.scan_id}",
                    "wcagLevel": scan.wcag_level.value,
                    "summary": f"Summary for {scan.scan_id}",
                    "remediationPlan": "Fix the critical issues first.",
                    "issues": issues
                    if issues is not None
                    else [
                        {
                            "ruleId": "image-alt",
                            "wcagCriteria": "1.1.1",
                            "impact": "CRITICAL",
                            "description": "Image is missing alt text",
                            "aiPriority": 9,
                        }
                    ],
                }
                for scan in scans
            ],
        }
    )


def success(output: str, duration_ms: int = 2000) -> InvocationResult:
    return InvocationResult(success=True, output=output, duration_ms=duration_ms)


def failure(kind: ErrorKind, message: str = "boom") -> InvocationResult:
    return InvocationResult(success=False, error=message, error_kind=kind, duration_ms=10)


def echo_success(prompt: str) -> InvocationResult:
    """Answer every scan ID mentioned in the prompt."""
    scan_ids = [line.split(":", 1)[1].strip() for line in prompt.splitlines() if line.startswith("- scanId:")]
    scans = [
        PendingScan(scan_id=sid, url=f"https://example.com/{sid}", wcag_level=ComplianceLevel.AA)
        for sid in scan_ids
    ]
    return success(agent_output(scans))


def simple_prompt(scans: list[PendingScan]) -> str:
    return "\n".join(f"- scanId: {scan.scan_id}" for scan in scans)


@pytest.fixture
def sample_scans() -> list[PendingScan]:
    """Ten pending scans in input order."""
    return [make_scan(i) for i in range(1, 11)]


@pytest.fixture
def fast_config() -> ProcessorConfig:
    """Config with no inter-mini-batch delay."""
    return ProcessorConfig(batch_size=5, mini_batch_size=2, delay_seconds=0, max_retries=3)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def write_input_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write an input CSV from raw data lines."""

    def _write(lines: list[str], name: str = "scans.csv", directory: Path | None = None) -> Path:
        path = (directory or tmp_path) / name
        path.write_text("\n".join([CSV_HEADER, *lines]) + "\n", encoding="utf-8")
        return path

    return _write
