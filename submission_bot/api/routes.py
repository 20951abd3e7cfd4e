"""FastAPI routes for the submission bot.

Endpoints:
- POST /submissions       - Submit a theme (called by the chat command layer)
- GET  /submissions/{id}  - Get submission status and outcome
- GET  /health            - Health check

Policy violations are answered immediately. Everything else is processed in
the background; the final outcome is stored and, when a follow-up URL was
given, POSTed back to the chat layer.
"""

from __future__ import annotations

import logging
from functools import lru_cache

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from submission_bot.config import get_settings
from submission_bot.database.models import Submission, utc_now
from submission_bot.database.session import get_db
from submission_bot.errors import GENERIC_FAILURE_MESSAGE, SubmissionError
from submission_bot.pipeline.policy import check_submission_policy
from submission_bot.pipeline.workflow import SubmissionPipeline
from submission_bot.schemas import (
    PipelineStage,
    RejectionKind,
    SubmissionCreateRequest,
    SubmissionOutcome,
    SubmissionRequest,
    SubmissionResponse,
    SubmissionStatus,
)


logger = logging.getLogger(__name__)
router = APIRouter()

settings = get_settings()

QUEUED_MESSAGE = "Your theme has been received and is being processed"


@lru_cache
def get_pipeline() -> SubmissionPipeline:
    """Shared pipeline instance."""
    return SubmissionPipeline(settings)


# =============================================================================
# Health Check
# =============================================================================

@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "environment": settings.environment,
    }


# =============================================================================
# Submission Endpoints
# =============================================================================

@router.post("/submissions", response_model=SubmissionResponse)
async def create_submission(
    payload: SubmissionCreateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    pipeline: SubmissionPipeline = Depends(get_pipeline),
) -> SubmissionResponse:
    """Submit a theme.
    
    Inconsistent options are rejected in the response itself. Accepted
    submissions are queued; poll GET /submissions/{id} or wait for the
    follow-up.
    """
    request = payload.to_submission()
    
    try:
        check_submission_policy(
            request,
            pipeline.settings.max_theme_bytes,
            pipeline.settings.checklist_url,
            reserved_branches=(pipeline.settings.registry_tracking_branch,),
        )
    except SubmissionError as e:
        logger.info(f"[{request.submission_id}] Rejected before processing: {e.user_message}")
        return SubmissionResponse(
            submission_id=request.submission_id,
            status=SubmissionStatus.REJECTED,
            stage=PipelineStage.RECEIVED,
            kind=e.kind,
            message=e.user_message,
            suppress_mentions=e.suppress_mentions,
        )
    
    submission = Submission(
        submission_id=request.submission_id,
        submitter_id=request.submitter_id,
        submitter_name=request.submitter_name,
        attachment_url=request.attachment_url,
        attachment_size=request.attachment_size,
        bundle_mode=request.bundle_mode.value,
        keyboard_mode=request.keyboard_mode.value,
        status=SubmissionStatus.QUEUED.value,
        created_at=utc_now(),
    )
    
    db.add(submission)
    await db.commit()
    await db.refresh(submission)
    
    background_tasks.add_task(execute_submission_task, pipeline=pipeline, request=request)
    
    logger.info(f"Queued submission {request.submission_id}")
    
    return SubmissionResponse(
        submission_id=request.submission_id,
        status=SubmissionStatus.QUEUED,
        stage=PipelineStage.RECEIVED,
        message=QUEUED_MESSAGE,
        created_at=submission.created_at,
    )


async def execute_submission_task(pipeline: SubmissionPipeline, request: SubmissionRequest) -> None:
    """Background task to run a submission and record its outcome."""
    from submission_bot.database.session import get_session
    
    await _update_submission(request.submission_id, status=SubmissionStatus.RUNNING.value)
    
    try:
        outcome = await pipeline.run(request)
    except Exception:
        logger.exception(f"Error executing submission {request.submission_id}")
        outcome = SubmissionOutcome(
            status=SubmissionStatus.REJECTED,
            kind=RejectionKind.INTERNAL_ERROR,
            message=GENERIC_FAILURE_MESSAGE,
        )
    
    async with get_session() as db:
        result = await db.execute(
            select(Submission).where(Submission.submission_id == request.submission_id)
        )
        submission = result.scalar_one_or_none()
        
        if submission:
            submission.status = outcome.status.value
            submission.stage = outcome.stage.value
            submission.kind = outcome.kind.value if outcome.kind else None
            submission.message = outcome.message
            submission.suppress_mentions = outcome.suppress_mentions
            submission.theme_name = outcome.theme_name
            submission.content_subpath = outcome.content_subpath
            submission.commit_hash = outcome.commit_hash
            submission.pull_request_url = outcome.pull_request_url
            submission.ended_at = utc_now()
    
    if request.followup_url:
        await deliver_followup(request.followup_url, request.submission_id, outcome)
    
    logger.info(f"Completed submission {request.submission_id}: {outcome.status.value}")


async def _update_submission(submission_id: str, **fields) -> None:
    from submission_bot.database.session import get_session
    
    async with get_session() as db:
        result = await db.execute(
            select(Submission).where(Submission.submission_id == submission_id)
        )
        submission = result.scalar_one_or_none()
        if submission:
            for key, value in fields.items():
                setattr(submission, key, value)


async def deliver_followup(url: str, submission_id: str, outcome: SubmissionOutcome) -> bool:
    """POST the final outcome to the chat layer's follow-up endpoint."""
    payload = {"submission_id": submission_id, **outcome.model_dump(mode="json")}
    
    try:
        async with httpx.AsyncClient(timeout=settings.download_timeout_seconds) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Failed to deliver follow-up for {submission_id} to {url}: {e}")
        return False
    
    return True


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
) -> SubmissionResponse:
    """Get submission status by ID."""
    result = await db.execute(
        select(Submission).where(Submission.submission_id == submission_id)
    )
    submission = result.scalar_one_or_none()
    
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    
    return SubmissionResponse(
        submission_id=submission.submission_id,
        status=SubmissionStatus(submission.status),
        stage=PipelineStage(submission.stage) if submission.stage else None,
        kind=RejectionKind(submission.kind) if submission.kind else None,
        message=submission.message,
        suppress_mentions=submission.suppress_mentions,
        pull_request_url=submission.pull_request_url,
        created_at=submission.created_at,
        updated_at=submission.ended_at,
    )
