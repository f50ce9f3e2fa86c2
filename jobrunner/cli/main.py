# jobrunner/cli/main.py
import asyncio
import json
from datetime import datetime, timedelta

import click

from jobrunner.core.config import get_settings
from jobrunner.core.enums import JobStatus
from jobrunner.core.exceptions import JobStoreError
from jobrunner.core.logging_config import configure_logging
from jobrunner.core.utils import ensure_utc, parse_delay_to_seconds, utc_now
from jobrunner.services.job_registry import JOB_REGISTRY, is_registered
from jobrunner.services.job_scheduler import JobScheduler

STATUS_COLOURS = {
    JobStatus.PENDING.value: "cyan",
    JobStatus.RUNNING.value: "yellow",
    JobStatus.COMPLETED.value: "green",
    JobStatus.FAILED.value: "red",
}


def _run(coro):
    try:
        return asyncio.run(coro)
    except JobStoreError as e:
        click.secho(f"Error: {e}", fg="red")
        raise SystemExit(1)


def _echo_job(job):
    line = (
        f"{job.id} | {job.job_type:<24} | "
        + click.style(f"{job.status.value:<9}", fg=STATUS_COLOURS.get(job.status.value))
        + f" | scheduled={job.scheduled_for.isoformat()}"
    )
    if job.status.is_terminal and job.completed_at:
        line += f" | completed={job.completed_at.isoformat()}"
    click.echo(line)
    if job.status == JobStatus.FAILED and job.error:
        click.secho(f"    error: {job.error}", fg="red")


@click.group(help="jobrunner - persisted background job scheduler")
def cli():
    configure_logging(get_settings().LOG_LEVEL)


@cli.command("schedule", help="Schedule a job")
@click.argument("job_type")
@click.option("--payload", default="{}", show_default=True, help="JSON object passed to the handler")
@click.option("--at", "run_at", default=None, help="ISO datetime; naive values are UTC")
@click.option("--delay", "delay_str", default=None, help="Run after a delay, e.g. 20s, 5m, 1h30m (exclusive with --at)")
def schedule_cmd(job_type, payload, run_at, delay_str):
    if not is_registered(job_type):
        raise click.ClickException(
            f"Unknown job type: {job_type}. Known types: {', '.join(sorted(JOB_REGISTRY))}"
        )
    if run_at and delay_str:
        raise click.ClickException("Use either --at or --delay, not both.")

    try:
        payload_dict = json.loads(payload)
        if not isinstance(payload_dict, dict):
            raise ValueError("payload must be a JSON object")
        scheduled_for = None
        if run_at:
            scheduled_for = ensure_utc(datetime.fromisoformat(run_at.replace("Z", "+00:00")))
        elif delay_str:
            scheduled_for = utc_now() + timedelta(seconds=parse_delay_to_seconds(delay_str))
    except ValueError as e:
        raise click.ClickException(str(e))

    job_id = _run(JobScheduler().schedule_job(job_type, payload_dict, scheduled_for))
    if job_id is None:
        click.secho(f"Failed to schedule {job_type}", fg="red")
        raise SystemExit(1)

    click.secho(f"Scheduled {job_type} job {job_id}", fg="green")


@cli.command("process", help="Process one batch of due jobs")
@click.option("--recent", default=10, show_default=True, type=int, help="How many recent jobs to show afterwards")
def process_cmd(recent):

    async def _process():
        scheduler = JobScheduler()
        processed = await scheduler.process_pending_jobs()
        counts = await scheduler.store.count_by_status()
        jobs = await scheduler.store.list_jobs(limit=recent) if recent > 0 else []
        return processed, counts, jobs

    processed, counts, jobs = _run(_process())

    click.secho(f"Processed {processed} jobs", fg="green")
    click.echo(json.dumps(counts, indent=2))
    for job in jobs:
        _echo_job(job)


@cli.command("init-jobs", help="Seed one pending job for each recurring type that has none")
def init_jobs_cmd():
    scheduled = _run(JobScheduler().seed_recurring_jobs())
    if not scheduled:
        click.echo("Every recurring job type already has a pending job.")
        return

    for job_type, job_id in scheduled.items():
        if job_id:
            click.secho(f"Scheduled {job_type} job {job_id}", fg="green")
        else:
            click.secho(f"Failed to schedule {job_type}", fg="red")


@cli.command("list", help="List jobs, newest first")
@click.option("--status", type=click.Choice([s.value for s in JobStatus]), default=None)
@click.option("--job-type", default=None)
@click.option("--limit", default=50, show_default=True, type=int)
def list_cmd(status, job_type, limit):
    jobs = _run(JobScheduler().store.list_jobs(status=status, job_type=job_type, limit=limit))
    if not jobs:
        click.echo("No jobs.")
        return
    for job in jobs:
        _echo_job(job)


@cli.command("status", help="Job counts by status")
def status_cmd():
    counts = _run(JobScheduler().store.count_by_status())
    click.echo(json.dumps(counts, indent=2))


@cli.command("recover", help="Fail jobs stuck in running")
@click.option("--minutes", default=None, type=int, help="Override STALE_JOB_MINUTES")
def recover_cmd(minutes):
    stale_after = timedelta(minutes=minutes) if minutes else None
    recovered = _run(JobScheduler().recover_stale_jobs(stale_after=stale_after))
    click.secho(f"Marked {recovered} abandoned jobs as failed", fg="yellow" if recovered else "green")


@cli.command("create-tables", help="Create database tables (development; use alembic in production)")
def create_tables_cmd():
    from jobrunner.database import create_tables

    asyncio.run(create_tables())
    click.secho("Tables created", fg="green")


def main():
    cli()


if __name__ == "__main__":
    main()
