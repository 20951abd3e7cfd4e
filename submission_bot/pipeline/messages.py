"""User-facing messages and pull request templates."""

from __future__ import annotations

from submission_bot.schemas import (
    BUNDLE_MODE_LABELS,
    KEYBOARD_MODE_LABELS,
    SubmissionRequest,
    ThemeMetadata,
)

# =============================================================================
# Policy messages
# =============================================================================

CHECKLIST_MESSAGE = "The checklist can be found here: <{checklist_url}>"

CHECKLIST_DENIED_MESSAGE = (
    "Please contact one of the CSSLoader ThemeDB Admins. "
    "All items on the checklist need to be checked for a successful submission"
)

BUNDLED_NOT_TOGGLEABLE_MESSAGE = (
    "If you want to submit a theme that bundles other themes, they need to be toggleable. "
    "This is to encourage mixing and matching themes. Please change your theme accordingly. "
    "If you don't know how to do this, contact one of the CSSLoader ThemeDB Admins"
)

KEYBOARD_NOT_DEFAULT_MESSAGE = (
    "If you want to submit a keyboard theme, it needs to target the default keyboard. "
    "If you don't know how to do this, contact one of the CSSLoader ThemeDB Admins"
)

KEYBOARD_NOT_TOGGLEABLE_MESSAGE = (
    "If you want to submit a theme that also targets the keyboard, it needs to be toggleable. "
    "If you don't know how to do this, contact one of the CSSLoader ThemeDB Admins"
)

RESERVED_SUBMITTER_MESSAGE = (
    "Your account id cannot be used as a submission branch. "
    "Please contact one of the CSSLoader ThemeDB Admins"
)

# =============================================================================
# Pipeline messages
# =============================================================================

MISSING_PREVIEW_MESSAGE = "Theme is missing a preview image. Add '{preview_image_name}' to the root of the zip"

NO_CHANGES_MESSAGE = "No files have changed since the last upload"

TIMEOUT_MESSAGE = "Submission timed out. Please try again later"

PUBLISHED_MESSAGE = "Submitted {name} by {author}. Pull request: {url}"

UPDATED_MESSAGE = "Updated {name} by {author}. Your open pull request now has the new version: {url}"

# =============================================================================
# Pull request templates
# =============================================================================

PULL_REQUEST_TITLE = "{name} by {author}"

PULL_REQUEST_BODY = """Theme submitted by {submitter} ({submitter_id}).

## Theme
- Name: {name}
- Author: {author}
- Files: {content_link}

## Bundling
{bundle_mode}

## Keyboard
{keyboard_mode}
"""


def format_checklist_message(checklist_url: str) -> str:
    return CHECKLIST_MESSAGE.format(checklist_url=checklist_url)


def format_missing_preview_message(preview_image_name: str) -> str:
    return MISSING_PREVIEW_MESSAGE.format(preview_image_name=preview_image_name)


def format_content_link(content_repo_url: str, commit_hash: str, subpath: str) -> str:
    """Link to the published directory at the exact commit."""
    base = content_repo_url.rstrip("/")
    if base.endswith(".git"):
        base = base[: -len(".git")]
    return f"{base}/tree/{commit_hash}/{subpath}"


def format_pull_request_title(theme: ThemeMetadata) -> str:
    return PULL_REQUEST_TITLE.format(name=theme.name, author=theme.author)


def format_pull_request_body(
    request: SubmissionRequest,
    theme: ThemeMetadata,
    content_link: str,
) -> str:
    """Summarise the submitter's declared options for reviewers."""
    return PULL_REQUEST_BODY.format(
        submitter=request.submitter_name or request.submitter_id,
        submitter_id=request.submitter_id,
        name=theme.name,
        author=theme.author,
        content_link=content_link,
        bundle_mode=BUNDLE_MODE_LABELS[request.bundle_mode],
        keyboard_mode=KEYBOARD_MODE_LABELS[request.keyboard_mode],
    )


def format_published_message(theme: ThemeMetadata, url: str, created: bool) -> str:
    template = PUBLISHED_MESSAGE if created else UPDATED_MESSAGE
    return template.format(name=theme.name, author=theme.author, url=url)
