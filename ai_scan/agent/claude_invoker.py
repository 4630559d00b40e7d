"""Claude Code CLI wrapper."""

import asyncio
import logging
import re
import shutil
import time

from ai_scan.agent.base import AgentInvoker
from ai_scan.consts import AGENT_BINARY, DEFAULT_TIMEOUT_SECONDS
from ai_scan.models.model_batch import ErrorKind, InvocationResult

logger = logging.getLogger(__name__)

_RATE_LIMIT_PATTERN = re.compile(r"rate[ _-]?limit|too many requests|\b429\b", re.IGNORECASE)


class ClaudeInvoker(AgentInvoker):
    """Runs `claude -p <prompt>` as a subprocess, one call per invoke()."""

    def __init__(self, binary: str = AGENT_BINARY, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """Initialize ClaudeInvoker.

        Args:
            binary: Path or name of the claude executable (default: "claude")
            timeout: Seconds before the process is killed (default: 180)
        """
        self.binary = binary
        self.timeout = timeout

    def is_installed(self) -> bool:
        """Check if the claude CLI is on PATH.

        Returns:
            True if the executable can be found, False otherwise
        """
        return shutil.which(self.binary) is not None

    def _classify_error(self, output: str, returncode: int) -> ErrorKind:
        """Classify a failed run from its combined output and exit code.

        Args:
            output: stdout and stderr joined
            returncode: Process return code

        Returns:
            ErrorKind classification
        """
        if returncode == 429 or _RATE_LIMIT_PATTERN.search(output):
            return ErrorKind.RATE_LIMIT

        if returncode != 0:
            return ErrorKind.PROCESS_CRASH

        return ErrorKind.UNKNOWN

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Kill a running agent process and reap it."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                # Exited between the check and the signal
                pass
        await process.wait()

    async def invoke(self, prompt: str) -> InvocationResult:
        """Run the agent with a prompt.

        Args:
            prompt: Prompt text passed via -p

        Returns:
            InvocationResult with stdout on success or a classified error
        """
        start_time = time.monotonic()
        cmd = [self.binary, "-p", prompt]
        logger.debug(f"Running: {self.binary} -p <{len(prompt)} chars>")

        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return InvocationResult(
                success=False,
                error=f"Failed to spawn {self.binary} process: {e}",
                error_kind=ErrorKind.PROCESS_CRASH,
                duration_ms=elapsed_ms(),
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            await self._kill(process)
            return InvocationResult(
                success=False,
                error=f"Claude Code execution timed out after {self.timeout}s",
                error_kind=ErrorKind.TIMEOUT,
                duration_ms=elapsed_ms(),
            )
        except asyncio.CancelledError:
            logger.debug(f"Invocation cancelled, killing {self.binary} (pid={process.pid})")
            await self._kill(process)
            raise

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        duration_ms = elapsed_ms()

        if process.returncode != 0:
            error_kind = self._classify_error(f"{out}\n{err}", process.returncode)
            message = (err or out).strip()[:1000]
            if error_kind == ErrorKind.RATE_LIMIT:
                message = f"Claude Code rate limit exceeded: {message}"
            else:
                message = f"Claude Code exited with code {process.returncode}: {message}"
            logger.debug(f"Invocation failed ({error_kind.value}): {message}")
            return InvocationResult(
                success=False, error=message, error_kind=error_kind, duration_ms=duration_ms
            )

        # A clean exit that only prints a rate-limit notice carries no results
        if "{" not in out and _RATE_LIMIT_PATTERN.search(out):
            return InvocationResult(
                success=False,
                error=f"Claude Code rate limit exceeded: {out.strip()[:1000]}",
                error_kind=ErrorKind.RATE_LIMIT,
                duration_ms=duration_ms,
            )

        logger.debug(f"Invocation completed in {duration_ms}ms ({len(out)} chars)")
        return InvocationResult(success=True, output=out, duration_ms=duration_ms)
