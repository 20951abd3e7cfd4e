"""Pre-pipeline checks on the options a submitter declared.

These run before anything touches the network, disk or a repository.
"""

from __future__ import annotations

from submission_bot.errors import InputTooLargeError, PolicyViolationError
from submission_bot.pipeline.messages import (
    BUNDLED_NOT_TOGGLEABLE_MESSAGE,
    CHECKLIST_DENIED_MESSAGE,
    KEYBOARD_NOT_DEFAULT_MESSAGE,
    KEYBOARD_NOT_TOGGLEABLE_MESSAGE,
    RESERVED_SUBMITTER_MESSAGE,
    format_checklist_message,
)
from submission_bot.pipeline.naming import is_usable_branch_name, submission_branch_name
from submission_bot.schemas import (
    BundleMode,
    ChecklistAcceptance,
    KeyboardMode,
    SubmissionRequest,
)


def check_submission_policy(
    request: SubmissionRequest,
    max_bytes: int,
    checklist_url: str,
    reserved_branches: tuple[str, ...] = (),
) -> None:
    """Raise on the first inconsistent option or oversized declaration.
    
    ``reserved_branches`` are registry branches a submitter id must not
    collide with, such as the tracking branch.
    
    Raises:
        PolicyViolationError: declared options break a submission rule, or the
            submitter id cannot name a registry branch
        InputTooLargeError: declared attachment size exceeds ``max_bytes``
    """
    if request.checklist == ChecklistAcceptance.NOT_READ:
        raise PolicyViolationError(format_checklist_message(checklist_url))
    
    if request.checklist == ChecklistAcceptance.DENY:
        raise PolicyViolationError(CHECKLIST_DENIED_MESSAGE)
    
    if request.bundle_mode == BundleMode.BUNDLED:
        raise PolicyViolationError(BUNDLED_NOT_TOGGLEABLE_MESSAGE)
    
    if request.keyboard_mode == KeyboardMode.KEYBOARD_NON_DEFAULT:
        raise PolicyViolationError(KEYBOARD_NOT_DEFAULT_MESSAGE)
    
    if request.keyboard_mode == KeyboardMode.SYSTEM_WIDE_NON_TOGGLEABLE:
        raise PolicyViolationError(KEYBOARD_NOT_TOGGLEABLE_MESSAGE)
    
    if not is_usable_branch_name(submission_branch_name(request.submitter_id), reserved_branches):
        raise PolicyViolationError(RESERVED_SUBMITTER_MESSAGE)
    
    if request.attachment_size > max_bytes:
        raise InputTooLargeError(max_bytes)
