"""Shared fixtures: settings, a scripted process runner and theme zips."""

from __future__ import annotations

import inspect
import io
import json
import os
import tempfile
import zipfile
from typing import Any, Callable

import httpx
import pytest

# The API tests import the database session module, which builds its engine
# from settings at import time.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.mkdtemp(prefix='submission-bot-tests-'), 'test.db')}",
)

from submission_bot.config import Settings  # noqa: E402
from submission_bot.schemas import (  # noqa: E402
    BundleMode,
    KeyboardMode,
    ProcessResult,
    SubmissionRequest,
)
from submission_bot.tools.download import AttachmentDownloader  # noqa: E402


# =============================================================================
# Process runner fakes
# =============================================================================

def result(exit_code: int = 0, stdout: list[str] | None = None, stderr: list[str] | None = None) -> ProcessResult:
    return ProcessResult(command="fake", exit_code=exit_code, stdout=stdout or [], stderr=stderr or [])


class FakeRunner:
    """Records every call and answers through an optional handler.
    
    The handler gets ``(command, args, cwd)`` and returns a ProcessResult,
    ``None`` for a plain success, or an awaitable of either.
    """
    
    def __init__(self, handler: Callable[..., Any] | None = None):
        self.handler = handler
        self.calls: list[tuple[str, list[str], str]] = []
    
    async def execute(self, command, args, cwd, timeout=None) -> ProcessResult:
        self.calls.append((command, list(args), str(cwd)))
        answer = self.handler(command, list(args), str(cwd)) if self.handler else None
        if inspect.isawaitable(answer):
            answer = await answer
        if answer is None:
            answer = ProcessResult(command=command, args=list(args), exit_code=0)
        return answer
    
    def calls_in(self, cwd: str) -> list[list[str]]:
        return [[command, *args] for command, args, call_cwd in self.calls if call_cwd == str(cwd)]
    
    def matching(self, *prefix: str) -> list[list[str]]:
        return [
            [command, *args]
            for command, args, _ in self.calls
            if [command, *args][: len(prefix)] == list(prefix)
        ]


class FakeGitHost:
    """Minimal stand-in for git, gh and the validator.
    
    Working trees are real directories; a commit snapshots the tree so the
    staged count reflects actual differences, like ``git add`` would.
    """
    
    def __init__(self, validator: Callable[..., Any] | None = None):
        self.validator = validator
        self.committed: dict[str, dict[str, bytes]] = {}
        self.staged: dict[str, list[str]] = {}
        self.commit_count = 0
        self.heads: dict[str, str] = {}
        self.pushed: dict[str, dict[str, bytes]] = {}
        self.pull_requests: dict[str, str] = {}
    
    @staticmethod
    def snapshot(path: str) -> dict[str, bytes]:
        tree = {}
        for root, dirs, files in os.walk(path):
            dirs[:] = [d for d in dirs if d != ".git"]
            for name in files:
                full = os.path.join(root, name)
                with open(full, "rb") as f:
                    tree[os.path.relpath(full, path)] = f.read()
        return tree
    
    def __call__(self, command: str, args: list[str], cwd: str):
        if command == "validator":
            return self.validator(command, args, cwd) if self.validator else None
        if command == "gh":
            return self._gh(args)
        return self._git(args, cwd)
    
    def _git(self, args: list[str], cwd: str):
        if args[:2] == ["reset", "--hard"] and args[2] == "@{u}":
            self.committed[cwd] = dict(self.pushed.get(cwd, {}))
        elif args[:2] == ["reset", "--hard"] and args[2] != "HEAD":
            self.committed[cwd] = {}
        elif args[0] == "add":
            tree = self.snapshot(cwd)
            before = self.committed.get(cwd, {})
            self.staged[cwd] = sorted(
                path for path in set(tree) | set(before) if tree.get(path) != before.get(path)
            )
        elif args[:2] == ["diff", "--cached"]:
            return result(stdout=self.staged.get(cwd, []))
        elif args[0] == "commit":
            self.commit_count += 1
            self.committed[cwd] = self.snapshot(cwd)
            self.staged[cwd] = []
            self.heads[cwd] = f"{self.commit_count:040x}"
        elif args[0] == "push":
            self.pushed[cwd] = dict(self.committed.get(cwd, {}))
        elif args[:2] == ["rev-parse", "HEAD"]:
            return result(stdout=[self.heads.get(cwd, "0" * 40)])
        return None
    
    def _gh(self, args: list[str]):
        if args[:2] == ["pr", "list"]:
            branch = args[args.index("--head") + 1]
            url = self.pull_requests.get(branch)
            return result(stdout=[json.dumps([{"url": url}] if url else [])])
        if args[:2] == ["pr", "create"]:
            head = args[args.index("--head") + 1]
            branch = head.split(":")[-1]
            url = f"https://github.com/upstream/theme-db/pull/{len(self.pull_requests) + 1}"
            self.pull_requests[branch] = url
            return result(stdout=["Creating pull request", url])
        return None


# =============================================================================
# Theme archives
# =============================================================================

def make_zip(files: dict[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def theme_files(name: str = "Colored Toggles", author: str = "SuchMeme", **extra: bytes | str) -> dict[str, bytes | str]:
    files: dict[str, bytes | str] = {
        "preview.jpg": b"\xff\xd8\xff\xe0 fake jpeg",
        "theme.json": json.dumps({"name": name, "author": author, "version": "v1.0"}),
        "shared.css": ".toggle { color: red; }",
    }
    files.update(extra)
    return files


def serving(payload: bytes, calls: list[httpx.Request] | None = None) -> AttachmentDownloader:
    """Downloader whose every request returns ``payload``."""
    
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(200, content=payload)
    
    return AttachmentDownloader(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def make_request(payload: bytes | None = None, **overrides) -> SubmissionRequest:
    fields = dict(
        submitter_id="123456789",
        submitter_name="suchmeme",
        attachment_url="https://cdn.example.com/attachments/theme.zip",
        attachment_size=len(payload) if payload is not None else 0,
        bundle_mode=BundleMode.NOT_BUNDLED,
        keyboard_mode=KeyboardMode.NO_KEYBOARD,
    )
    fields.update(overrides)
    return SubmissionRequest(**fields)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    for name in ("content", "registry", "workspaces"):
        (tmp_path / name).mkdir()
    return Settings(
        _env_file=None,
        content_repo_path=str(tmp_path / "content"),
        content_repo_url="https://github.com/example/themes",
        registry_repo_path=str(tmp_path / "registry"),
        registry_fixture_url="https://github.com/upstream/theme-db",
        registry_upstream_slug="upstream/theme-db",
        registry_fork_owner="themebot",
        workspace_root=str(tmp_path / "workspaces"),
        validator_command=["validator"],
        pipeline_timeout_seconds=30,
    )


@pytest.fixture
def git_host() -> FakeGitHost:
    return FakeGitHost()


@pytest.fixture
def runner(git_host) -> FakeRunner:
    return FakeRunner(git_host)
