from __future__ import annotations

import sys
import time

import pytest

from submission_bot.errors import ToolUnavailableError
from submission_bot.tools.process import SubprocessRunner


async def test_captures_output_and_exit_code(tmp_path):
    runner = SubprocessRunner()
    
    outcome = await runner.execute(
        sys.executable,
        ["-c", "import sys; print('one'); print('two'); sys.stderr.write('bad\\n'); sys.exit(3)"],
        cwd=str(tmp_path),
    )
    
    assert outcome.exit_code == 3
    assert outcome.stdout == ["one", "two"]
    assert outcome.stderr == ["bad"]
    assert not outcome.ok


async def test_runs_in_working_directory(tmp_path):
    runner = SubprocessRunner()
    
    outcome = await runner.execute(sys.executable, ["-c", "import os; print(os.getcwd())"], cwd=str(tmp_path))
    
    assert outcome.ok
    assert outcome.stdout[-1].endswith(tmp_path.name)


async def test_missing_program_is_tool_unavailable(tmp_path):
    runner = SubprocessRunner()
    
    with pytest.raises(ToolUnavailableError):
        await runner.execute("definitely-not-a-real-program-xyz", [], cwd=str(tmp_path))


async def test_missing_working_directory_is_tool_unavailable(tmp_path):
    runner = SubprocessRunner()
    
    with pytest.raises(ToolUnavailableError):
        await runner.execute(sys.executable, ["-c", "pass"], cwd=str(tmp_path / "missing"))


async def test_timeout_kills_the_process(tmp_path):
    runner = SubprocessRunner(default_timeout=0.2)
    start = time.perf_counter()
    
    with pytest.raises(ToolUnavailableError) as exc_info:
        await runner.execute(sys.executable, ["-c", "import time; time.sleep(30)"], cwd=str(tmp_path))
    
    assert "timed out" in exc_info.value.user_message
    assert time.perf_counter() - start < 10
