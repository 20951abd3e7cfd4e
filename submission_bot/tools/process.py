"""Process execution for external tools.

Runs git, gh and the theme validator:
- Argument lists only, never a shell
- Per-command timeouts, child killed on timeout or cancellation
- Captures stdout/stderr as lists of lines
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Protocol

from submission_bot.errors import ToolUnavailableError
from submission_bot.schemas import ProcessResult


logger = logging.getLogger(__name__)


class ProcessRunner(Protocol):
    """Capability to execute an external program."""
    
    async def execute(
        self,
        command: str,
        args: list[str],
        cwd: str,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``command`` with ``args`` in ``cwd``.
        
        Raises:
            ToolUnavailableError: the program could not be started or timed out
        """
        ...


def _split_lines(raw: bytes | None) -> list[str]:
    if not raw:
        return []
    return raw.decode("utf-8", errors="replace").splitlines()


class SubprocessRunner:
    """ProcessRunner backed by asyncio subprocesses."""
    
    def __init__(
        self,
        default_timeout: float | None = 120,
        env: dict[str, str] | None = None,
    ):
        self.default_timeout = default_timeout
        self.env = env
    
    def _build_env(self) -> dict[str, str]:
        run_env = os.environ.copy()
        # Never block on a credential prompt
        run_env.setdefault("GIT_TERMINAL_PROMPT", "0")
        if self.env:
            run_env.update(self.env)
        return run_env
    
    async def execute(
        self,
        command: str,
        args: list[str],
        cwd: str,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run a command and capture its output.
        
        Args:
            command: Executable name or path
            args: Arguments passed verbatim
            cwd: Working directory
            timeout: Seconds before the process is killed (default_timeout if None)
            
        Returns:
            ProcessResult with exit code and captured lines
        """
        start = time.perf_counter()
        
        if timeout is None:
            timeout = self.default_timeout
        
        if not os.path.isdir(cwd):
            raise ToolUnavailableError(f"{command} failed to run")
        
        logger.debug(f"Running {command} {' '.join(args)} in {cwd}")
        
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._build_env(),
            )
        except OSError as e:
            logger.error(f"Could not start {command}: {e}")
            raise ToolUnavailableError(f"{command} failed to run") from e
        
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            _kill(proc)
            await proc.wait()
            logger.error(f"{command} {' '.join(args)} timed out after {timeout} seconds")
            raise ToolUnavailableError(f"{command} timed out") from e
        except asyncio.CancelledError:
            _kill(proc)
            raise
        
        latency_ms = int((time.perf_counter() - start) * 1000)
        
        return ProcessResult(
            command=command,
            args=list(args),
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=_split_lines(stdout),
            stderr=_split_lines(stderr),
            latency_ms=latency_ms,
        )


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
