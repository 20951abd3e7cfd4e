from __future__ import annotations

import json

import pytest

from submission_bot.errors import GitCommandError
from submission_bot.tools.git_ops import GitRepository, get_repository_lock
from tests.conftest import FakeRunner, result


def repository(tmp_path, handler=None) -> tuple[GitRepository, FakeRunner]:
    runner = FakeRunner(handler)
    return GitRepository(str(tmp_path), runner=runner), runner


async def test_commands_run_in_the_working_copy(tmp_path):
    repo, runner = repository(tmp_path)
    
    await repo.reset_hard()
    await repo.clean()
    await repo.add()
    await repo.commit("Adding Colored Toggles")
    
    assert runner.calls_in(str(tmp_path)) == [
        ["git", "reset", "--hard", "HEAD"],
        ["git", "clean", "-xdf"],
        ["git", "add", "."],
        ["git", "commit", "-m", "Adding Colored Toggles"],
    ]


async def test_force_push_names_remote_and_branch(tmp_path):
    repo, runner = repository(tmp_path)
    
    await repo.push(force=True, remote="origin", branch="123456789")
    await repo.push()
    
    assert runner.matching("git", "push") == [
        ["git", "push", "--force", "origin", "123456789"],
        ["git", "push"],
    ]


async def test_create_branch_moves_existing_branch(tmp_path):
    repo, runner = repository(tmp_path)
    
    await repo.create_branch("123456789")
    
    assert runner.matching("git", "branch") == [["git", "branch", "-f", "123456789"]]


async def test_clone_targets_the_directory_itself(tmp_path):
    runner = FakeRunner()
    
    repo = await GitRepository.clone("https://github.com/upstream/theme-db", str(tmp_path), runner=runner)
    
    assert repo.path == str(tmp_path)
    assert runner.calls == [("git", ["clone", "https://github.com/upstream/theme-db", "."], str(tmp_path))]


async def test_nonzero_exit_raises_with_last_stderr_line(tmp_path):
    repo, _ = repository(
        tmp_path,
        lambda command, args, cwd: result(exit_code=1, stderr=["hint: something", "fatal: rejected"]),
    )
    
    with pytest.raises(GitCommandError) as exc_info:
        await repo.push()
    
    assert exc_info.value.exit_code == 1
    assert "fatal: rejected" in str(exc_info.value)


async def test_staged_file_count_ignores_blank_lines(tmp_path):
    repo, _ = repository(
        tmp_path,
        lambda command, args, cwd: result(stdout=["CSS-1-Theme/shared.css", "", "CSS-1-Theme/theme.json"]),
    )
    
    assert await repo.staged_file_count() == 2


async def test_latest_commit_hash_strips_output(tmp_path):
    repo, _ = repository(tmp_path, lambda command, args, cwd: result(stdout=["abc123\n"]))
    
    assert await repo.latest_commit_hash() == "abc123"


async def test_find_pull_request_returns_first_url(tmp_path):
    repo, runner = repository(
        tmp_path,
        lambda command, args, cwd: result(stdout=[json.dumps([{"url": "https://github.com/o/r/pull/7"}])]),
    )
    
    url = await repo.find_pull_request("123456789", repo="upstream/theme-db")
    
    assert url == "https://github.com/o/r/pull/7"
    assert runner.calls[0][1] == [
        "pr", "list", "--head", "123456789", "--state", "open", "--json", "url", "--repo", "upstream/theme-db",
    ]


async def test_find_pull_request_without_match(tmp_path):
    repo, _ = repository(tmp_path, lambda command, args, cwd: result(stdout=["[]"]))
    
    assert await repo.find_pull_request("123456789") is None
    assert await repo.pull_request_exists("123456789") is False


async def test_unparseable_pull_request_listing_raises(tmp_path):
    repo, _ = repository(tmp_path, lambda command, args, cwd: result(stdout=["not json"]))
    
    with pytest.raises(GitCommandError):
        await repo.find_pull_request("123456789")


async def test_create_pull_request_returns_url(tmp_path):
    repo, runner = repository(
        tmp_path,
        lambda command, args, cwd: result(stdout=["Creating pull request", "https://github.com/o/r/pull/8", ""]),
    )
    
    url = await repo.create_pull_request(
        "Colored Toggles by SuchMeme", "body", head="themebot:123456789", base="main", repo="o/r",
    )
    
    assert url == "https://github.com/o/r/pull/8"
    assert runner.calls[0][0] == "gh"
    assert runner.calls[0][1][:2] == ["pr", "create"]


def test_handles_on_the_same_path_share_a_lock(tmp_path):
    first = GitRepository(str(tmp_path), runner=FakeRunner())
    second = GitRepository(str(tmp_path) + "/.", runner=FakeRunner())
    
    assert first.lock is second.lock
    assert get_repository_lock(str(tmp_path)) is first.lock
    assert get_repository_lock(str(tmp_path / "other")) is not first.lock
