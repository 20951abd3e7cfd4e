"""Temporary directories owned by a single submission."""

from __future__ import annotations

import logging
import shutil
import tempfile


logger = logging.getLogger(__name__)


class Workspace:
    """Set of temporary directories released together.
    
    ``release`` is idempotent and never raises; failures are logged.
    """
    
    def __init__(self, root: str | None = None, prefix: str = "submission-"):
        self.root = root
        self.prefix = prefix
        self.directories: list[str] = []
        self.released = False
    
    def create_directory(self) -> str:
        if self.released:
            raise RuntimeError("Workspace has already been released")
        path = tempfile.mkdtemp(prefix=self.prefix, dir=self.root)
        self.directories.append(path)
        return path
    
    def release(self) -> None:
        if self.released:
            return
        self.released = True
        
        for path in self.directories:
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to delete '{path}', {e}")
        self.directories = []
    
    def __enter__(self) -> Workspace:
        return self
    
    def __exit__(self, *exc_info) -> None:
        self.release()
