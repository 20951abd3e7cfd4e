"""Git operations tooling.

Provides the fixed set of git (and GitHub CLI) operations the submission
pipeline needs on a local working copy:
- clone, pull, fetch, reset --hard, clean
- add, commit, push, checkout, branch
- staged file count and latest commit hash
- pull request lookup and creation via ``gh``

Working copies are shared between submissions. Callers hold
``GitRepository.lock`` for the whole of a mutating sequence.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

from submission_bot.errors import GitCommandError
from submission_bot.schemas import ProcessResult
from submission_bot.tools.process import ProcessRunner, SubprocessRunner


logger = logging.getLogger(__name__)


# =============================================================================
# Repository locks
# =============================================================================

_repository_locks: dict[str, asyncio.Lock] = {}


def get_repository_lock(path: str) -> asyncio.Lock:
    """Return the lock guarding the working copy at ``path``.
    
    Locks are keyed by the resolved path, so every handle onto the same
    checkout shares one lock.
    """
    key = os.path.realpath(path)
    lock = _repository_locks.get(key)
    if lock is None:
        lock = _repository_locks[key] = asyncio.Lock()
    return lock


# =============================================================================
# Repository client
# =============================================================================

class GitRepository:
    """A local git working copy driven through a ProcessRunner."""
    
    def __init__(
        self,
        path: str,
        runner: ProcessRunner | None = None,
        git: str = "git",
        gh: str = "gh",
        timeout: float | None = None,
    ):
        self.path = str(path)
        self.runner = runner or SubprocessRunner()
        self.git = git
        self.gh = gh
        self.timeout = timeout
    
    def __repr__(self) -> str:
        return f"GitRepository({self.path!r})"
    
    @property
    def lock(self) -> asyncio.Lock:
        return get_repository_lock(self.path)
    
    @classmethod
    async def clone(
        cls,
        url: str,
        directory: str,
        runner: ProcessRunner | None = None,
        git: str = "git",
        gh: str = "gh",
        timeout: float | None = None,
    ) -> GitRepository:
        """Clone ``url`` into the existing directory ``directory``."""
        repo = cls(directory, runner=runner, git=git, gh=gh, timeout=timeout)
        await repo._git("clone", url, ".")
        return repo
    
    async def _run(self, command: str, *args: str) -> ProcessResult:
        result = await self.runner.execute(command, list(args), cwd=self.path, timeout=self.timeout)
        if result.exit_code != 0:
            logger.warning(
                f"{command} {' '.join(args)} exited with {result.exit_code} in {self.path}"
            )
            raise GitCommandError([command, *args], result.exit_code, result.stderr)
        return result
    
    async def _git(self, *args: str) -> ProcessResult:
        return await self._run(self.git, *args)
    
    async def _gh(self, *args: str) -> ProcessResult:
        return await self._run(self.gh, *args)
    
    # -------------------------------------------------------------------------
    # Working copy
    # -------------------------------------------------------------------------
    
    async def pull(self) -> None:
        await self._git("pull")
    
    async def fetch(self, remote: str) -> None:
        await self._git("fetch", remote)
    
    async def reset_hard(self, ref: str = "HEAD") -> None:
        await self._git("reset", "--hard", ref)
    
    async def clean(self) -> None:
        """Remove untracked and ignored files."""
        await self._git("clean", "-xdf")
    
    async def add(self, path: str = ".") -> None:
        await self._git("add", path)
    
    async def commit(self, message: str) -> None:
        await self._git("commit", "-m", message)
    
    async def push(
        self,
        force: bool = False,
        remote: str | None = None,
        branch: str | None = None,
    ) -> None:
        """Push the current branch, or ``branch`` to ``remote``."""
        args = ["push"]
        if force:
            args.append("--force")
        if remote:
            args.append(remote)
            if branch:
                args.append(branch)
        await self._git(*args)
    
    async def checkout(self, ref: str) -> None:
        await self._git("checkout", ref)
    
    async def create_branch(self, name: str, force: bool = True) -> None:
        """Create ``name`` at HEAD; with ``force`` an existing branch is moved."""
        args = ["branch"]
        if force:
            args.append("-f")
        args.append(name)
        await self._git(*args)
    
    async def staged_file_count(self) -> int:
        """Number of paths recorded for the next commit."""
        result = await self._git("diff", "--cached", "--name-only")
        return len([line for line in result.stdout if line.strip()])
    
    async def latest_commit_hash(self) -> str:
        result = await self._git("rev-parse", "HEAD")
        if not result.stdout:
            raise GitCommandError([self.git, "rev-parse", "HEAD"], result.exit_code, ["no output"])
        return result.stdout[0].strip()
    
    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------
    
    async def find_pull_request(self, branch: str, repo: str | None = None) -> str | None:
        """Return the URL of the open pull request for ``branch``, if any."""
        args = ["pr", "list", "--head", branch, "--state", "open", "--json", "url"]
        if repo:
            args.extend(["--repo", repo])
        result = await self._gh(*args)
        
        try:
            pull_requests = json.loads("\n".join(result.stdout) or "[]")
        except json.JSONDecodeError as e:
            raise GitCommandError([self.gh, *args], result.exit_code, [f"unparseable output: {e}"])
        
        if not pull_requests:
            return None
        return pull_requests[0].get("url") or ""
    
    async def pull_request_exists(self, branch: str, repo: str | None = None) -> bool:
        return await self.find_pull_request(branch, repo=repo) is not None
    
    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str | None = None,
        base: str | None = None,
        repo: str | None = None,
    ) -> str:
        """Open a pull request and return its URL."""
        args = ["pr", "create", "--title", title, "--body", body]
        if head:
            args.extend(["--head", head])
        if base:
            args.extend(["--base", base])
        if repo:
            args.extend(["--repo", repo])
        result = await self._gh(*args)
        
        lines = [line.strip() for line in result.stdout if line.strip()]
        return lines[-1] if lines else ""
