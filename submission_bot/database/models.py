"""SQLModel database tables.

Tables:
- Submission: one row per submission with its final outcome, for auditing
  and for status lookups by the chat layer
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Index, Text
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Submission(SQLModel, table=True):
    """A theme submission and its outcome."""
    
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_submitter_created", "submitter_id", "created_at"),
    )
    
    id: int | None = Field(default=None, primary_key=True)
    submission_id: str = Field(unique=True, index=True, description="UUID for the submission")
    
    # Request
    submitter_id: str = Field(index=True)
    submitter_name: str = Field(default="")
    attachment_url: str = Field(sa_column=Column(Text))
    attachment_size: int = Field(default=0)
    bundle_mode: str
    keyboard_mode: str
    
    # Status
    status: str = Field(default="queued", index=True)  # SubmissionStatus values
    stage: str | None = Field(default=None)  # PipelineStage values
    kind: str | None = Field(default=None)  # RejectionKind values
    message: str | None = Field(default=None, sa_column=Column(Text))
    suppress_mentions: bool = Field(default=True)
    
    # Result
    theme_name: str | None = Field(default=None)
    content_subpath: str | None = Field(default=None)
    commit_hash: str | None = Field(default=None)
    pull_request_url: str | None = Field(default=None)
    
    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    ended_at: datetime | None = Field(default=None)
