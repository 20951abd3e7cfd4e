"""External theme validator adapter.

The validator is the registry's own ``main.py``. It is run inside a throwaway
clone of the registry (the fixture) whose ``themes`` directory holds exactly
one entry pointing at the extracted submission. On success it normalises the
theme's ``theme.json``, which is read back here.
"""

from __future__ import annotations

import json
import logging
import os
import shutil

from pydantic import ValidationError

from submission_bot.errors import (
    InternalContractViolationError,
    ToolUnavailableError,
    ValidationFailedError,
)
from submission_bot.schemas import RegistryEntry, ThemeMetadata
from submission_bot.tools.process import ProcessRunner


logger = logging.getLogger(__name__)

VALIDATOR_UNAVAILABLE_MESSAGE = "Validator failed to run. Please try again later"
FIXTURE_ENTRY_NAME = "theme.json"


def prepare_fixture(
    fixture_dir: str,
    theme_path: str,
    preview_image_name: str,
    themes_dir: str = "themes",
) -> str:
    """Point the fixture's themes directory at the extracted submission.
    
    Returns:
        Path of the written entry file
    """
    themes_path = os.path.join(fixture_dir, themes_dir)
    if os.path.isdir(themes_path):
        shutil.rmtree(themes_path)
    os.makedirs(themes_path)
    
    entry = RegistryEntry(
        repo_url="LOCAL",
        repo_subpath=theme_path,
        repo_commit="abcdef",
        preview_image_path=preview_image_name,
    )
    entry_path = os.path.join(themes_path, FIXTURE_ENTRY_NAME)
    with open(entry_path, "w", encoding="utf-8") as f:
        json.dump(entry.model_dump(), f)
    
    return entry_path


class ExternalValidator:
    """Runs the validator program and classifies its result."""
    
    def __init__(
        self,
        runner: ProcessRunner,
        command: list[str],
        timeout: float | None = None,
    ):
        if not command:
            raise ValueError("Validator command is empty")
        self.runner = runner
        self.command = command
        self.timeout = timeout
    
    async def validate(self, fixture_dir: str) -> None:
        """Run the validator in ``fixture_dir``.
        
        Raises:
            ToolUnavailableError: the validator could not be started or timed out
            ValidationFailedError: the validator rejected the submission
        """
        try:
            result = await self.runner.execute(
                self.command[0],
                self.command[1:],
                cwd=fixture_dir,
                timeout=self.timeout,
            )
        except ToolUnavailableError as e:
            raise ToolUnavailableError(VALIDATOR_UNAVAILABLE_MESSAGE) from e
        
        if result.exit_code != 0:
            diagnostic = _last_line(result.stderr) or _last_line(result.stdout) or (
                f"Validator exited with code {result.exit_code}"
            )
            logger.info(f"Validator rejected submission in {fixture_dir}: {diagnostic}")
            raise ValidationFailedError(f"Submission failed to validate\n{diagnostic}")


def _last_line(lines: list[str]) -> str:
    for line in reversed(lines):
        if line.strip():
            return line.strip()
    return ""


def read_theme_metadata(theme_path: str, file_name: str = "theme.json") -> ThemeMetadata:
    """Read name and author from the validator-normalised metadata file."""
    metadata_path = os.path.join(theme_path, file_name)
    
    try:
        with open(metadata_path, "r", encoding="utf-8") as f:
            return ThemeMetadata.model_validate_json(f.read())
    except OSError as e:
        raise InternalContractViolationError(f"Could not read {metadata_path}: {e}") from e
    except ValidationError as e:
        raise InternalContractViolationError(f"Invalid metadata in {metadata_path}: {e}") from e
