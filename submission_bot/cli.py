"""CLI entrypoint (Typer).

- `submission-bot submit <url> ...` runs one submission locally and prints the outcome
- `submission-bot serve` starts the HTTP API
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from submission_bot.config import configure_logging, get_settings
from submission_bot.schemas import (
    BundleMode,
    ChecklistAcceptance,
    KeyboardMode,
    SubmissionRequest,
    SubmissionStatus,
)

app = typer.Typer(help="Theme submission bot CLI.")


@app.command()
def submit(
    attachment_url: str,
    submitter: str = typer.Option(..., "--submitter", help="Submitter id, also the registry branch name"),
    bundle: BundleMode = typer.Option(BundleMode.NOT_BUNDLED, "--bundle"),
    keyboard: KeyboardMode = typer.Option(KeyboardMode.NO_KEYBOARD, "--keyboard"),
    checklist: Optional[ChecklistAcceptance] = typer.Option(None, "--checklist"),
    size: int = typer.Option(0, "--size", help="Declared attachment size in bytes"),
    name: str = typer.Option("", "--name", help="Submitter display name"),
):
    """Run one submission through the pipeline."""
    from submission_bot.pipeline.workflow import SubmissionPipeline
    
    settings = get_settings()
    configure_logging(settings)
    
    request = SubmissionRequest(
        submitter_id=submitter,
        submitter_name=name,
        attachment_url=attachment_url,
        attachment_size=size,
        checklist=checklist,
        bundle_mode=bundle,
        keyboard_mode=keyboard,
    )
    
    outcome = asyncio.run(SubmissionPipeline(settings).run(request))
    
    typer.echo(f"{outcome.status.value}: {outcome.message}")
    if outcome.pull_request_url:
        typer.echo(outcome.pull_request_url)
    
    if outcome.status == SubmissionStatus.REJECTED:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
):
    """Start the HTTP API."""
    import uvicorn
    
    settings = get_settings()
    uvicorn.run(
        "submission_bot.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    app()
