"""LangGraph workflow for one theme submission.

Graph structure:
START → fetch → size_check → extract → validate → publish_content
      → publish_metadata → ensure_pull_request → END

Every node either advances the submission or records an outcome; a recorded
outcome routes straight to END. The workspace is released once the graph
finishes, whatever the result.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
from typing import Literal, TypedDict

from langgraph.graph import END, StateGraph

from submission_bot.config import Settings, get_settings
from submission_bot.errors import (
    GENERIC_FAILURE_MESSAGE,
    InternalContractViolationError,
    MissingRequiredAssetError,
    SubmissionError,
)
from submission_bot.pipeline.messages import (
    NO_CHANGES_MESSAGE,
    TIMEOUT_MESSAGE,
    format_content_link,
    format_missing_preview_message,
    format_published_message,
    format_pull_request_body,
    format_pull_request_title,
)
from submission_bot.pipeline.naming import (
    content_directory_name,
    registry_entry_file_name,
    submission_branch_name,
)
from submission_bot.pipeline.policy import check_submission_policy
from submission_bot.schemas import (
    PipelineStage,
    RegistryEntry,
    RejectionKind,
    SubmissionOutcome,
    SubmissionRequest,
    SubmissionStatus,
    ThemeMetadata,
)
from submission_bot.tools.archive import extract_archive, inspect_archive
from submission_bot.tools.download import AttachmentDownloader
from submission_bot.tools.git_ops import GitRepository
from submission_bot.tools.process import ProcessRunner, SubprocessRunner
from submission_bot.tools.validator import (
    ExternalValidator,
    prepare_fixture,
    read_theme_metadata,
)
from submission_bot.tools.workspace import Workspace


logger = logging.getLogger(__name__)


# =============================================================================
# State Definition
# =============================================================================

class SubmissionState(TypedDict, total=False):
    """State for the submission workflow.
    
    Attributes:
        request: The submission being processed
        workspace: Temporary directories owned by this submission
        stage: Furthest stage reached
        outcome: Terminal outcome, set by the node that ends the run
        archive_path: Downloaded zip
        theme_path: Extracted theme directory
        theme: Metadata read back after validation
        content_subpath: Directory name in the content repository
        commit_hash: Content commit the registry entry points at
    """
    request: SubmissionRequest
    workspace: Workspace
    stage: PipelineStage
    outcome: SubmissionOutcome | None
    archive_path: str
    theme_path: str
    theme: ThemeMetadata
    content_subpath: str
    commit_hash: str


def initial_state(request: SubmissionRequest, workspace: Workspace) -> SubmissionState:
    """Create initial submission state."""
    return SubmissionState(
        request=request,
        workspace=workspace,
        stage=PipelineStage.RECEIVED,
        outcome=None,
    )


# =============================================================================
# Outcomes
# =============================================================================

def rejected_outcome(error: SubmissionError, stage: PipelineStage) -> SubmissionOutcome:
    return SubmissionOutcome(
        status=SubmissionStatus.REJECTED,
        kind=error.kind,
        message=error.user_message,
        suppress_mentions=error.suppress_mentions,
        stage=stage,
    )


def internal_error_outcome(stage: PipelineStage) -> SubmissionOutcome:
    return SubmissionOutcome(
        status=SubmissionStatus.REJECTED,
        kind=RejectionKind.INTERNAL_ERROR,
        message=GENERIC_FAILURE_MESSAGE,
        stage=stage,
    )


def _stage(func):
    """Turn a SubmissionError raised by a node into a rejected outcome."""
    
    @functools.wraps(func)
    async def wrapper(self: SubmissionPipeline, state: SubmissionState) -> SubmissionState:
        try:
            return await func(self, state)
        except SubmissionError as e:
            submission_id = state["request"].submission_id
            if isinstance(e, InternalContractViolationError):
                logger.error(f"[{submission_id}] Validator output unusable: {e.detail}")
            else:
                logger.info(f"[{submission_id}] Rejected in {func.__name__} ({e.kind.value}): {e.user_message}")
            return SubmissionState(outcome=rejected_outcome(e, state.get("stage", PipelineStage.RECEIVED)))
    
    return wrapper


def _replace_directory(source: str, target: str) -> None:
    """Replace ``target`` with a copy of ``source``; nothing old survives."""
    if os.path.isdir(target):
        shutil.rmtree(target)
    shutil.copytree(source, target)


async def _run_in_thread(func, *args):
    """Run ``func`` in a worker thread that outlives cancellation.
    
    A thread cannot be interrupted, so on cancellation this waits for it to
    finish before re-raising. Locks held by the caller stay held until then.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait([task])
        raise


# =============================================================================
# Pipeline
# =============================================================================

class SubmissionPipeline:
    """Runs submissions through validation and publishing.
    
    One instance is shared by all submissions. Per-submission data lives in
    the graph state; repository access is serialised by repository locks.
    """
    
    def __init__(
        self,
        settings: Settings | None = None,
        runner: ProcessRunner | None = None,
        downloader: AttachmentDownloader | None = None,
    ):
        self.settings = settings or get_settings()
        self.runner = runner or SubprocessRunner(default_timeout=self.settings.command_timeout_seconds)
        self.downloader = downloader or AttachmentDownloader(timeout=self.settings.download_timeout_seconds)
        self.validator = ExternalValidator(
            self.runner,
            self.settings.validator_command,
            timeout=self.settings.validator_timeout_seconds,
        )
        self.content_repo = self._repository(self.settings.content_repo_path)
        self.registry_repo = self._repository(self.settings.registry_repo_path)
        self._graph = build_workflow(self).compile()
    
    def _repository(self, path: str) -> GitRepository:
        return GitRepository(
            path,
            runner=self.runner,
            git=self.settings.git_executable,
            gh=self.settings.gh_executable,
            timeout=self.settings.command_timeout_seconds,
        )
    
    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------
    
    @_stage
    async def fetch_node(self, state: SubmissionState) -> SubmissionState:
        """Download the attachment into the workspace."""
        request = state["request"]
        logger.info(f"[{request.submission_id}] Downloading {request.attachment_url}")
        
        download_dir = state["workspace"].create_directory()
        archive_path = os.path.join(download_dir, "theme.zip")
        size = await self.downloader.download(
            request.attachment_url,
            archive_path,
            max_bytes=self.settings.max_theme_bytes,
            expected_size=request.attachment_size,
        )
        
        logger.info(f"[{request.submission_id}] Downloaded theme zip ({size} bytes)")
        return SubmissionState(stage=PipelineStage.FETCHING, archive_path=archive_path)
    
    @_stage
    async def size_check_node(self, state: SubmissionState) -> SubmissionState:
        """Check the archive format and uncompressed size without extracting."""
        total = inspect_archive(state["archive_path"], self.settings.max_theme_bytes)
        logger.info(f"[{state['request'].submission_id}] Total extracted size will be {total} bytes")
        return SubmissionState(stage=PipelineStage.SIZE_CHECKED)
    
    @_stage
    async def extract_node(self, state: SubmissionState) -> SubmissionState:
        """Extract the theme and check for the preview image."""
        theme_path = os.path.join(state["workspace"].create_directory(), "theme")
        await _run_in_thread(
            extract_archive,
            state["archive_path"],
            theme_path,
            self.settings.max_theme_bytes,
        )
        
        preview_name = self.settings.preview_image_name
        if not os.path.isfile(os.path.join(theme_path, preview_name)):
            raise MissingRequiredAssetError(format_missing_preview_message(preview_name))
        
        logger.info(f"[{state['request'].submission_id}] Extracted zip into '{theme_path}'")
        return SubmissionState(stage=PipelineStage.EXTRACTED, theme_path=theme_path)
    
    @_stage
    async def validate_node(self, state: SubmissionState) -> SubmissionState:
        """Run the external validator against a throwaway registry clone."""
        request = state["request"]
        fixture_dir = state["workspace"].create_directory()
        
        await GitRepository.clone(
            self.settings.registry_fixture_url,
            fixture_dir,
            runner=self.runner,
            git=self.settings.git_executable,
            timeout=self.settings.command_timeout_seconds,
        )
        logger.info(f"[{request.submission_id}] Cloned registry fixture into {fixture_dir}")
        
        prepare_fixture(
            fixture_dir,
            state["theme_path"],
            self.settings.preview_image_name,
            themes_dir=self.settings.registry_themes_dir,
        )
        await self.validator.validate(fixture_dir)
        
        theme = read_theme_metadata(state["theme_path"], self.settings.metadata_file_name)
        logger.info(f"[{request.submission_id}] Theme looks good. Theme name is {theme.name}")
        return SubmissionState(stage=PipelineStage.EXTERNALLY_VALIDATED, theme=theme)
    
    @_stage
    async def publish_content_node(self, state: SubmissionState) -> SubmissionState:
        """Replace the submitter's theme directory and push it."""
        request = state["request"]
        theme = state["theme"]
        subpath = content_directory_name(
            self.settings.content_dir_prefix,
            request.submitter_id,
            theme.name,
        )
        repo = self.content_repo
        
        async with repo.lock:
            # Drops local commits a failed push left behind
            await repo.reset_hard(self.settings.content_upstream_ref)
            await repo.clean()
            await repo.pull()
            
            await _run_in_thread(
                _replace_directory,
                state["theme_path"],
                os.path.join(repo.path, subpath),
            )
            await repo.add(".")
            
            staged = await repo.staged_file_count()
            if staged <= 0:
                logger.info(f"[{request.submission_id}] No changes for {subpath}")
                return SubmissionState(
                    content_subpath=subpath,
                    outcome=SubmissionOutcome(
                        status=SubmissionStatus.NO_CHANGES,
                        message=NO_CHANGES_MESSAGE,
                        stage=PipelineStage.EXTERNALLY_VALIDATED,
                        theme_name=theme.name,
                        theme_author=theme.author,
                        content_subpath=subpath,
                    ),
                )
            
            await repo.commit(f"Adding/Updating {theme.name}")
            await repo.push()
            commit_hash = await repo.latest_commit_hash()
        
        logger.info(f"[{request.submission_id}] Pushed {staged} files to {subpath} at {commit_hash}")
        return SubmissionState(
            stage=PipelineStage.CONTENT_PUBLISHED,
            content_subpath=subpath,
            commit_hash=commit_hash,
        )
    
    @_stage
    async def publish_metadata_node(self, state: SubmissionState) -> SubmissionState:
        """Rebuild the submitter's registry branch from upstream and force-push it."""
        request = state["request"]
        theme = state["theme"]
        settings = self.settings
        branch = submission_branch_name(request.submitter_id)
        entry = RegistryEntry(
            repo_url=settings.content_repo_url,
            repo_subpath=state["content_subpath"],
            repo_commit=state["commit_hash"],
            preview_image_path=settings.preview_image_name,
        )
        repo = self.registry_repo
        
        async with repo.lock:
            await repo.reset_hard("HEAD")
            await repo.checkout(settings.registry_tracking_branch)
            await repo.fetch(settings.registry_upstream_remote)
            await repo.clean()
            await repo.reset_hard(f"{settings.registry_upstream_remote}/{settings.registry_tracking_branch}")
            
            await repo.create_branch(branch)
            await repo.checkout(branch)
            
            themes_path = os.path.join(repo.path, settings.registry_themes_dir)
            os.makedirs(themes_path, exist_ok=True)
            with open(os.path.join(themes_path, registry_entry_file_name(theme)), "w", encoding="utf-8") as f:
                json.dump(entry.model_dump(), f, indent=4)
            
            await repo.add(".")
            if await repo.staged_file_count() > 0:
                await repo.commit(f"Adding/Updating {theme.name}")
                await repo.push(force=True, remote=settings.registry_push_remote, branch=branch)
            else:
                logger.info(f"[{request.submission_id}] Registry entry already matches upstream")
        
        logger.info(f"[{request.submission_id}] Pushed registry branch {branch}")
        return SubmissionState(stage=PipelineStage.METADATA_PUBLISHED)
    
    @_stage
    async def ensure_pull_request_node(self, state: SubmissionState) -> SubmissionState:
        """Open a pull request for the submitter's branch unless one is open."""
        request = state["request"]
        theme = state["theme"]
        settings = self.settings
        branch = submission_branch_name(request.submitter_id)
        repo = self.registry_repo
        
        async with repo.lock:
            url = await repo.find_pull_request(branch, repo=settings.registry_upstream_slug)
            created = url is None
            if created:
                content_link = format_content_link(
                    settings.content_repo_url,
                    state["commit_hash"],
                    state["content_subpath"],
                )
                head = f"{settings.registry_fork_owner}:{branch}" if settings.registry_fork_owner else branch
                url = await repo.create_pull_request(
                    title=format_pull_request_title(theme),
                    body=format_pull_request_body(request, theme, content_link),
                    head=head,
                    base=settings.registry_tracking_branch,
                    repo=settings.registry_upstream_slug,
                )
        
        logger.info(
            f"[{request.submission_id}] Pull request {'created' if created else 'updated'}: {url}"
        )
        return SubmissionState(
            stage=PipelineStage.PULL_REQUEST_ENSURED,
            outcome=SubmissionOutcome(
                status=SubmissionStatus.PUBLISHED,
                message=format_published_message(theme, url, created),
                stage=PipelineStage.PULL_REQUEST_ENSURED,
                theme_name=theme.name,
                theme_author=theme.author,
                content_subpath=state["content_subpath"],
                commit_hash=state["commit_hash"],
                pull_request_url=url,
                pull_request_created=created,
            ),
        )
    
    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------
    
    async def run(self, request: SubmissionRequest) -> SubmissionOutcome:
        """Process one submission end to end.
        
        Args:
            request: The submission to process
            
        Returns:
            The terminal outcome; never raises for submission failures
        """
        settings = self.settings
        logger.info(
            f"[{request.submission_id}] Submission by {request.submitter_name or '?'} ({request.submitter_id})"
        )
        
        try:
            check_submission_policy(
                request,
                settings.max_theme_bytes,
                settings.checklist_url,
                reserved_branches=(settings.registry_tracking_branch,),
            )
        except SubmissionError as e:
            logger.info(f"[{request.submission_id}] Rejected before processing: {e.user_message}")
            return rejected_outcome(e, PipelineStage.RECEIVED)
        
        workspace = Workspace(root=settings.workspace_root)
        state = initial_state(request, workspace)
        
        async def drive() -> None:
            nonlocal state
            async for values in self._graph.astream(state, stream_mode="values"):
                state = values
        
        try:
            await asyncio.wait_for(drive(), timeout=settings.pipeline_timeout_seconds)
            outcome = state.get("outcome") or internal_error_outcome(state.get("stage", PipelineStage.RECEIVED))
        except asyncio.TimeoutError:
            logger.error(f"[{request.submission_id}] Timed out after {settings.pipeline_timeout_seconds} seconds")
            outcome = SubmissionOutcome(
                status=SubmissionStatus.REJECTED,
                kind=RejectionKind.TOOL_UNAVAILABLE,
                message=TIMEOUT_MESSAGE,
                stage=state.get("stage", PipelineStage.RECEIVED),
            )
        except Exception:
            logger.exception(f"[{request.submission_id}] Unexpected failure")
            outcome = internal_error_outcome(state.get("stage", PipelineStage.RECEIVED))
        finally:
            workspace.release()
        
        logger.info(f"[{request.submission_id}] Finished with status {outcome.status.value}")
        return outcome


# =============================================================================
# Routing Functions
# =============================================================================

def should_continue(state: SubmissionState) -> Literal["continue", "end"]:
    """Stop as soon as a node recorded an outcome."""
    return "end" if state.get("outcome") is not None else "continue"


# =============================================================================
# Workflow Builder
# =============================================================================

def build_workflow(pipeline: SubmissionPipeline) -> StateGraph:
    """Build the LangGraph workflow."""
    workflow = StateGraph(SubmissionState)
    
    steps = [
        ("fetch", pipeline.fetch_node),
        ("size_check", pipeline.size_check_node),
        ("extract", pipeline.extract_node),
        ("validate", pipeline.validate_node),
        ("publish_content", pipeline.publish_content_node),
        ("publish_metadata", pipeline.publish_metadata_node),
        ("ensure_pull_request", pipeline.ensure_pull_request_node),
    ]
    
    for name, node in steps:
        workflow.add_node(name, node)
    
    workflow.set_entry_point(steps[0][0])
    
    for (name, _), (next_name, _) in zip(steps, steps[1:]):
        workflow.add_conditional_edges(
            name,
            should_continue,
            {
                "continue": next_name,
                "end": END,
            },
        )
    
    workflow.add_edge(steps[-1][0], END)
    
    return workflow
