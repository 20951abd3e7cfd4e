"""Pydantic schemas for submission I/O contracts.

These schemas define the contracts between:
- The chat-facing API and the submission pipeline
- The pipeline and the external validator (registry entries, theme metadata)
- The process runner and its callers
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class ChecklistAcceptance(str, Enum):
    """Submitter's answer to the submission checklist."""
    ACCEPT = "accept"
    DENY = "deny"
    NOT_READ = "not_read"


class BundleMode(str, Enum):
    """How a theme bundles other themes."""
    NOT_BUNDLED = "not_bundled"
    TOGGLEABLE_BUNDLED = "toggleable_bundled"
    BUNDLED = "bundled"


class KeyboardMode(str, Enum):
    """How a theme styles the on-screen keyboard."""
    KEYBOARD_DEFAULT = "keyboard_default"
    KEYBOARD_NON_DEFAULT = "keyboard_non_default"
    SYSTEM_WIDE_TOGGLEABLE = "system_wide_toggleable"
    SYSTEM_WIDE_NON_TOGGLEABLE = "system_wide_non_toggleable"
    NO_KEYBOARD = "no_keyboard"


BUNDLE_MODE_LABELS: dict[BundleMode, str] = {
    BundleMode.NOT_BUNDLED: "This theme does not bundle other themes",
    BundleMode.TOGGLEABLE_BUNDLED: "This theme bundles other themes as toggleable items",
    BundleMode.BUNDLED: "This theme bundles other themes without them being toggleable",
}

KEYBOARD_MODE_LABELS: dict[KeyboardMode, str] = {
    KeyboardMode.KEYBOARD_DEFAULT: "This theme is a keyboard theme and is applied to the default keyboard",
    KeyboardMode.KEYBOARD_NON_DEFAULT: "This theme is a keyboard theme but is NOT applied to the default keyboard",
    KeyboardMode.SYSTEM_WIDE_TOGGLEABLE: "This theme includes a keyboard theme and is toggleable",
    KeyboardMode.SYSTEM_WIDE_NON_TOGGLEABLE: "This theme includes a keyboard theme but is NOT toggleable",
    KeyboardMode.NO_KEYBOARD: "This theme does not theme the keyboard",
}


class PipelineStage(str, Enum):
    """Furthest stage a submission reached."""
    RECEIVED = "received"
    FETCHING = "fetching"
    SIZE_CHECKED = "size_checked"
    EXTRACTED = "extracted"
    EXTERNALLY_VALIDATED = "externally_validated"
    CONTENT_PUBLISHED = "content_published"
    METADATA_PUBLISHED = "metadata_published"
    PULL_REQUEST_ENSURED = "pull_request_ensured"


class SubmissionStatus(str, Enum):
    """Lifecycle status of a submission."""
    QUEUED = "queued"
    RUNNING = "running"
    PUBLISHED = "published"
    NO_CHANGES = "no_changes"
    REJECTED = "rejected"


class RejectionKind(str, Enum):
    """Why a submission did not get published."""
    POLICY_VIOLATION = "policy_violation"
    INPUT_TOO_LARGE = "input_too_large"
    MALFORMED_ARCHIVE = "malformed_archive"
    MISSING_REQUIRED_ASSET = "missing_required_asset"
    TOOL_UNAVAILABLE = "tool_unavailable"
    VALIDATION_FAILED = "validation_failed"
    NETWORK_ERROR = "network_error"
    INTERNAL_CONTRACT_VIOLATION = "internal_contract_violation"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# Submission Schemas
# =============================================================================

SUBMITTER_ID_PATTERN = r"^[A-Za-z0-9_.-]+$"


class SubmissionRequest(BaseModel):
    """A theme submission accepted from the chat command."""
    model_config = ConfigDict(frozen=True)
    
    submission_id: str = Field(default_factory=lambda: str(uuid4()))
    submitter_id: str = Field(..., pattern=SUBMITTER_ID_PATTERN, description="Stable submitter identity")
    submitter_name: str = Field(default="", description="Display name, used for logs and PR bodies")
    attachment_url: str = Field(..., description="Where the theme zip can be downloaded")
    attachment_size: int = Field(default=0, ge=0, description="Declared size in bytes, 0 if unknown")
    checklist: ChecklistAcceptance | None = Field(default=None)
    bundle_mode: BundleMode
    keyboard_mode: KeyboardMode
    followup_url: str | None = Field(default=None, description="Where to POST the final outcome")


class ThemeMetadata(BaseModel):
    """Name and author read back from the validator-normalised theme.json."""
    model_config = ConfigDict(extra="ignore")
    
    name: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)


class RegistryEntry(BaseModel):
    """Entry file published into the metadata registry."""
    repo_url: str
    repo_subpath: str
    repo_commit: str
    preview_image_path: str


class SubmissionOutcome(BaseModel):
    """Terminal result of one pipeline run."""
    status: SubmissionStatus
    kind: RejectionKind | None = None
    message: str
    suppress_mentions: bool = True
    stage: PipelineStage = PipelineStage.RECEIVED
    theme_name: str | None = None
    theme_author: str | None = None
    content_subpath: str | None = None
    commit_hash: str | None = None
    pull_request_url: str | None = None
    pull_request_created: bool = False


# =============================================================================
# Tool Schemas
# =============================================================================

class ProcessResult(BaseModel):
    """Captured result of one external process invocation."""
    command: str
    args: list[str] = Field(default_factory=list)
    exit_code: int
    stdout: list[str] = Field(default_factory=list)
    stderr: list[str] = Field(default_factory=list)
    latency_ms: int | None = None
    
    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# =============================================================================
# API Request/Response Schemas
# =============================================================================

class SubmissionCreateRequest(BaseModel):
    """API request issued by the chat layer for `/css submit`."""
    submitter_id: str = Field(..., pattern=SUBMITTER_ID_PATTERN)
    submitter_name: str = Field(default="")
    attachment_url: str
    attachment_size: int = Field(default=0, ge=0)
    checklist: ChecklistAcceptance | None = None
    bundle_mode: BundleMode
    keyboard_mode: KeyboardMode
    followup_url: str | None = None
    
    def to_submission(self) -> SubmissionRequest:
        return SubmissionRequest(**self.model_dump())


class SubmissionResponse(BaseModel):
    """API response for submission status."""
    submission_id: str
    status: SubmissionStatus
    stage: PipelineStage | None = None
    kind: RejectionKind | None = None
    message: str | None = None
    suppress_mentions: bool = True
    pull_request_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
