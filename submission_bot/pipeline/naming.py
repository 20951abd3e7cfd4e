"""Deterministic names derived from submitter identity and theme metadata."""

from __future__ import annotations

import re

from submission_bot.schemas import ThemeMetadata

_UNSAFE_PATH_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def safe_path_component(value: str) -> str:
    """Make ``value`` usable as a single path component."""
    cleaned = _UNSAFE_PATH_CHARS.sub("_", value).strip().strip(".").strip()
    return cleaned or "_"


def content_directory_name(prefix: str, submitter_id: str, theme_name: str) -> str:
    """Directory a submitter's theme is published under in the content repo."""
    return f"{prefix}-{submitter_id}-{safe_path_component(theme_name)}"


def registry_entry_file_name(theme: ThemeMetadata) -> str:
    """One entry file per author/theme pair."""
    return f"{safe_path_component(theme.author)}-{safe_path_component(theme.name)}.json"


def submission_branch_name(submitter_id: str) -> str:
    """Registry branch for a submitter; also the pull request idempotency key."""
    return submitter_id


def is_usable_branch_name(name: str, reserved: tuple[str, ...] = ()) -> bool:
    """Whether ``name`` is a valid branch that does not clash with ``reserved``.
    
    Covers the ``git check-ref-format`` rules reachable with the characters
    submitter ids allow, plus names git or ``branch -f`` would misread.
    """
    if not name or name == "HEAD" or name in reserved:
        return False
    if name.startswith(("-", ".")) or name.endswith((".", ".lock")):
        return False
    return ".." not in name
