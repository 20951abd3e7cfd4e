"""Archive inspection and extraction for theme bundles.

Nothing is decompressed before the central directory has been checked:
- the file must be a zip
- the running total of uncompressed entry sizes must stay under the ceiling
"""

from __future__ import annotations

import logging
import os
import zipfile

from submission_bot.errors import InputTooLargeError, MalformedArchiveError


logger = logging.getLogger(__name__)

NOT_A_ZIP_MESSAGE = "Uploaded file is not a zip"


def inspect_archive(archive_path: str, max_bytes: int) -> int:
    """Check an archive without extracting it.
    
    Args:
        archive_path: Path to the downloaded bundle
        max_bytes: Ceiling for the cumulative uncompressed size
        
    Returns:
        Total uncompressed size in bytes
        
    Raises:
        MalformedArchiveError: not a readable zip
        InputTooLargeError: entries add up to more than ``max_bytes``
    """
    total = 0
    
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                total += info.file_size
                if total > max_bytes:
                    logger.info(
                        f"Archive {archive_path} exceeds {max_bytes} bytes at entry {info.filename!r}"
                    )
                    raise InputTooLargeError(max_bytes)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise MalformedArchiveError(NOT_A_ZIP_MESSAGE) from e
    
    return total


def extract_archive(archive_path: str, destination: str, max_bytes: int) -> int:
    """Inspect, then extract an archive into ``destination``.
    
    ``zipfile`` never writes more than an entry's declared size, so a passing
    inspection bounds what lands on disk.
    
    Returns:
        Total uncompressed size in bytes
    """
    total = inspect_archive(archive_path, max_bytes)
    
    os.makedirs(destination, exist_ok=True)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            archive.extractall(destination)
    except (zipfile.BadZipFile, EOFError) as e:
        raise MalformedArchiveError(NOT_A_ZIP_MESSAGE) from e
    
    return total
