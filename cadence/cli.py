"""
Cadence CLI - run the worker and manage scheduled jobs.

Usage:
    cadence --help                                  Show all commands
    cadence worker                                  Poll and run due jobs until interrupted
    cadence schedule data-sync cust_1 -p '{...}'    Schedule a job
    cadence cancel job_abc123                       Delete a job
    cadence retry-failed                            Reschedule failed jobs with backoff
    cadence stats                                   Job counts per status
    cadence run-workflow workflow.yml               Run a workflow definition once
    cadence migrate                                 Apply database migrations
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path

import typer
import yaml

app = typer.Typer(
    name="cadence",
    help="Cadence CLI - job scheduler and workflow runner",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@app.command()
def worker():
    """Run the job queue until interrupted."""
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, lifespan

    setup_logging()

    async def run():
        async with lifespan(build_runtime()):
            await asyncio.Event().wait()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


@app.command()
def schedule(
    job_type: str = typer.Argument(..., help="Handler key, e.g. data-sync"),
    customer_id: str = typer.Argument(..., help="Owning customer"),
    run_at: datetime | None = typer.Option(
        None, "--run-at", "-t", help="Requested time (UTC); defaults to now"
    ),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
    max_retries: int | None = typer.Option(None, "--max-retries", help="Retry budget"),
):
    """Schedule a job. The run time is moved to the next whole hour."""
    from cadence.core.datetime_utils import utc_now
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, open_runtime

    setup_logging()

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        _print_error(f"Invalid JSON payload: {e}")
        raise typer.Exit(1) from None

    async def run():
        async with open_runtime(build_runtime()) as runtime:
            return await runtime.scheduler.schedule_job(
                job_type, customer_id, run_at or utc_now(), data, max_retries=max_retries
            )

    job = asyncio.run(run())
    _print_success(f"Scheduled {job.id} ({job.job_type}) for {job.next_run_at.isoformat()}")


@app.command()
def cancel(job_id: str = typer.Argument(..., help="Job to cancel")):
    """Cancel (delete) a scheduled job."""
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, open_runtime

    setup_logging()

    async def run():
        async with open_runtime(build_runtime()) as runtime:
            await runtime.scheduler.cancel_job(job_id)

    asyncio.run(run())
    _print_success(f"Cancelled {job_id}")


@app.command()
def retry_failed():
    """Reschedule every failed job that still has retries left."""
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, open_runtime

    setup_logging()

    async def run():
        async with open_runtime(build_runtime()) as runtime:
            return await runtime.scheduler.retry_failed_jobs()

    jobs = asyncio.run(run())
    if not jobs:
        _print_warning("No failed jobs to retry")
        return
    for job in jobs:
        typer.echo(f"  {job.id}: {job.status.value} (retry {job.retry_count}/{job.max_retries})")
    _print_success(f"Processed {len(jobs)} failed job(s)")


@app.command()
def stats():
    """Show job counts per status."""
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, open_runtime

    setup_logging()

    async def run():
        async with open_runtime(build_runtime()) as runtime:
            return await runtime.queue.get_stats()

    queue_stats = asyncio.run(run())
    for name, count in queue_stats.model_dump().items():
        typer.echo(f"  {name:<10} {count}")


@app.command()
def run_workflow(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML or JSON definition"),
    remote_validation: bool = typer.Option(
        False, "--remote-validation", help="Also validate with the external service"
    ),
):
    """Validate and run a workflow definition once."""
    from cadence.core.logging import setup_logging
    from cadence.main import build_runtime, open_runtime
    from cadence.schemas.workflow import ExecutionStatus, Workflow

    setup_logging()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    runtime = build_runtime(in_memory=True)
    valid, errors = runtime.validator.validate_definition(data)
    if not valid:
        for error in errors:
            _print_error(error)
        raise typer.Exit(1)

    workflow = Workflow.model_validate(data)

    async def run():
        async with open_runtime(runtime):
            if remote_validation:
                report = await runtime.validation_client.validate_workflow(workflow)
                if not report.valid:
                    return None, report
            return await runtime.workflow_executor.execute(workflow), None

    execution, report = asyncio.run(run())

    if execution is None:
        for error in report.errors or ["Rejected by validation service"]:
            _print_error(error)
        raise typer.Exit(1)

    typer.echo(json.dumps(execution.model_dump(mode="json"), indent=2))
    if execution.status != ExecutionStatus.COMPLETED:
        _print_error(f"Step {execution.current_step} failed: {execution.error}")
        raise typer.Exit(1)
    _print_success(f"Workflow {workflow.id} completed")


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


if __name__ == "__main__":
    app()
