"""Application settings using pydantic-settings."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "Theme Submission Bot"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    
    # ==========================================================================
    # Database
    # ==========================================================================
    database_url: str = Field(default="sqlite+aiosqlite:///./submissions.db")
    
    # ==========================================================================
    # Submission limits
    # ==========================================================================
    max_theme_bytes: int = 0x400000  # 4 MiB, compressed and uncompressed
    preview_image_name: str = "preview.jpg"
    metadata_file_name: str = "theme.json"
    checklist_url: str = (
        "https://github.com/suchmememanyskill/CssLoader-ThemeDb/blob/main/"
        ".github/pull_request_template.md"
    )
    workspace_root: str | None = Field(
        default=None, description="Parent directory for temporary workspaces"
    )
    
    # ==========================================================================
    # Content repository
    # ==========================================================================
    content_repo_path: str = "./repos/themes"
    content_repo_url: str = "https://github.com/suchmememanyskill/CssLoader-Themes"
    content_dir_prefix: str = "CSS"
    content_upstream_ref: str = Field(
        default="@{u}", description="Ref the content checkout is hard-reset to before each publish"
    )
    
    # ==========================================================================
    # Metadata registry (a fork of the upstream ThemeDB)
    # ==========================================================================
    registry_repo_path: str = "./repos/theme-db"
    registry_fixture_url: str = "https://github.com/suchmememanyskill/CssLoader-ThemeDb"
    registry_upstream_remote: str = "upstream"
    registry_push_remote: str = "origin"
    registry_tracking_branch: str = "main"
    registry_upstream_slug: str = "suchmememanyskill/CssLoader-ThemeDb"
    registry_fork_owner: str = Field(default="", description="Owner of the fork, for cross-repo PR heads")
    registry_themes_dir: str = "themes"
    
    # ==========================================================================
    # External tools
    # ==========================================================================
    git_executable: str = "git"
    gh_executable: str = "gh"
    validator_command: list[str] = Field(default=["python3", "main.py"])
    
    # ==========================================================================
    # Timeouts
    # ==========================================================================
    command_timeout_seconds: float = 120
    validator_timeout_seconds: float = 300
    download_timeout_seconds: float = 30
    pipeline_timeout_seconds: float = 900
    
    # ==========================================================================
    # API
    # ==========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Root logging for the API and CLI entry points."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
