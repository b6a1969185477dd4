from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
import uvicorn

from formpilot.api.app import create_app
from formpilot.config import get_settings
from formpilot.core.runtime import get_session_manager
from formpilot.db.init import init_database
from formpilot.db.repositories import Repository
from formpilot.db.session import SessionLocal
from formpilot.logging_config import configure_logging
from formpilot.types import ApplicantProfile

app = typer.Typer(help="FormPilot CLI")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def load_profile(path: Path) -> ApplicantProfile:
    payload = json.loads(path.read_text(encoding="utf-8"))
    return ApplicantProfile.model_validate(payload)


@app.command("init")
def init_cmd() -> None:
    """Initialize the database and data directories."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@app.command("apply")
def apply_cmd(
    url: str = typer.Option(..., "--url"),
    profile_file: Path = typer.Option(..., "--profile-file", exists=True, readable=True),
    resume: Path | None = typer.Option(None, "--resume", exists=True, readable=True),
    cover_letter: Path | None = typer.Option(None, "--cover-letter", exists=True, readable=True),
    submit: bool = typer.Option(True, "--submit/--no-submit"),
) -> None:
    """Fill one application form and, unless --no-submit, submit it."""
    configure_logging()
    ensure_initialized()
    profile = load_profile(profile_file)
    manager = get_session_manager()

    async def _run() -> dict:
        session = manager.create_session(
            url,
            profile,
            resume_path=str(resume) if resume else None,
            cover_letter_path=str(cover_letter) if cover_letter else None,
            auto_submit=submit,
        )
        if submit:
            snapshot = await session.run()
        else:
            await session.start()
            while session.state in {"waiting_for_login", "ready_to_fill"}:
                await asyncio.sleep(get_settings().login_poll_interval_sec)
            snapshot = session.snapshot()
            if not snapshot.is_terminal:
                snapshot = await session.cancel("left unsubmitted for review")
        return snapshot.model_dump()

    typer.echo(json.dumps(asyncio.run(_run()), indent=2, default=str))


@app.command("bulk")
def bulk_cmd(
    urls_file: Path = typer.Option(..., "--urls-file", exists=True, readable=True),
    profile_file: Path = typer.Option(..., "--profile-file", exists=True, readable=True),
    resume: Path = typer.Option(..., "--resume"),
    cover_letter: Path | None = typer.Option(None, "--cover-letter", exists=True, readable=True),
) -> None:
    """Apply to every URL in a file, one per line."""
    configure_logging()
    ensure_initialized()
    profile = load_profile(profile_file)
    urls = [line.strip() for line in urls_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    manager = get_session_manager()

    async def _run() -> dict:
        batch_id = await manager.start_bulk(
            urls,
            profile,
            str(resume),
            str(cover_letter) if cover_letter else None,
        )
        await manager.wait_for_bulk(batch_id)
        return {"batch_id": batch_id, **manager.bulk_progress(batch_id).model_dump()}

    try:
        result = asyncio.run(_run())
    except ValueError as exc:
        typer.echo(json.dumps({"ok": False, "error": str(exc)}, indent=2))
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(result, indent=2))


@app.command("log")
def log_cmd(
    limit: int = typer.Option(20, "--limit"),
    state: str | None = typer.Option(None, "--state"),
    bulk: bool = typer.Option(False, "--bulk", help="List bulk runs instead of applications."),
) -> None:
    """Show recent application attempts."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        if bulk:
            runs = repo.list_bulk_runs(limit=limit)
            typer.echo(
                json.dumps(
                    [
                        {
                            "batch_id": run.batch_id,
                            "total": run.total_jobs,
                            "successful": run.successful_jobs,
                            "failed": run.failed_jobs,
                            "failed_urls": run.failed_urls_json,
                            "is_complete": run.is_complete,
                            "message": run.message,
                            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
                        }
                        for run in runs
                    ],
                    indent=2,
                )
            )
            return
        rows = repo.list_applications(limit=limit, state=state)
        typer.echo(
            json.dumps(
                [
                    {
                        "session_id": row.session_id,
                        "job_url": row.job_url,
                        "platform": row.platform,
                        "title": row.title,
                        "company": row.company,
                        "state": row.state,
                        "message": row.message,
                        "filled": row.filled_count,
                        "failed": row.failed_count,
                        "created_at": row.created_at.isoformat() if row.created_at else None,
                    }
                    for row in rows
                ],
                indent=2,
            )
        )


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)


if __name__ == "__main__":
    app()
