# JobScheduler unit tests (in-memory store)
import asyncio
import pytest
from datetime import timedelta, timezone, datetime

from jobrunner.core.enums import JobStatus, JobType
from jobrunner.core.exceptions import JobStoreError
from jobrunner.core.utils import utc_now
from jobrunner.services.job_registry import JOB_REGISTRY, JobDefinition
from jobrunner.services.job_scheduler import JobScheduler
from tests.mocks.job_store import InMemoryJobStore


async def ok_handler(payload):
    return {"ok": True, "echo": payload}


async def failing_handler(payload):
    raise RuntimeError("provider exploded")


async def silent_failure(payload):
    raise ValueError()


async def slow_handler(payload):
    await asyncio.sleep(5)
    return {"ok": True}


async def scalar_handler(payload):
    return 42


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def registry():
    return {
        "ok_once": JobDefinition(handler=ok_handler),
        "ok_recurring": JobDefinition(handler=ok_handler, interval=timedelta(minutes=30)),
        "boom": JobDefinition(handler=failing_handler),
        "boom_recurring": JobDefinition(handler=failing_handler, interval=timedelta(hours=1)),
        "silent": JobDefinition(handler=silent_failure),
        "slow": JobDefinition(handler=slow_handler, timeout=0.05),
        "scalar": JobDefinition(handler=scalar_handler),
    }


@pytest.fixture
def scheduler(store, registry):
    return JobScheduler(store=store, registry=registry, batch_size=10, handler_timeout=5)


def past(seconds=1):
    return utc_now() - timedelta(seconds=seconds)


"""
1. schedule_job
"""

async def test_schedule_job_defaults_to_now_and_pending(scheduler, store):
    before = utc_now()
    job_id = await scheduler.schedule_job("ok_once")
    after = utc_now()

    job = await store.get(job_id)
    assert job.status == JobStatus.PENDING
    assert job.payload == {}
    assert before <= job.scheduled_for <= after


async def test_schedule_job_keeps_given_time_and_payload(scheduler, store):
    when = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    job_id = await scheduler.schedule_job("ok_once", {"limit": 5}, when)

    job = await store.get(job_id)
    assert job.scheduled_for == when
    assert job.payload == {"limit": 5}


async def test_schedule_job_treats_naive_datetime_as_utc(scheduler, store):
    job_id = await scheduler.schedule_job("ok_once", scheduled_for=datetime(2030, 1, 1, 12, 0))
    job = await store.get(job_id)
    assert job.scheduled_for == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


async def test_schedule_job_accepts_enum_members(store):
    scheduler = JobScheduler(store=store)
    job_id = await scheduler.schedule_job(JobType.REFRESH_NEWS)
    assert (await store.get(job_id)).job_type == "refresh_news"


async def test_schedule_job_returns_none_when_store_fails(scheduler, store):
    store.fail_on.add("insert")
    assert await scheduler.schedule_job("ok_once") is None
    assert store.rows == {}


async def test_schedule_job_does_not_run_anything(scheduler, store):
    job_id = await scheduler.schedule_job("ok_once")
    assert store.status_history[job_id] == ["pending"]


"""
2. process_pending_jobs
"""

async def test_process_completes_due_job(scheduler, store):
    job_id = store.add("ok_once", past(), payload={"a": 1})

    assert await scheduler.process_pending_jobs() == 1

    job = await store.get(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.result == {"ok": True, "echo": {"a": 1}}
    assert job.completed_at is not None
    assert job.error is None


async def test_second_run_with_nothing_due_returns_zero(scheduler, store):
    store.add("ok_once", past())
    assert await scheduler.process_pending_jobs() == 1
    assert await scheduler.process_pending_jobs() == 0


async def test_future_jobs_are_not_selected(scheduler, store):
    job_id = store.add("ok_once", utc_now() + timedelta(minutes=5))
    assert await scheduler.process_pending_jobs() == 0
    assert (await store.get(job_id)).status == JobStatus.PENDING


async def test_status_moves_pending_running_terminal(scheduler, store):
    ok_id = store.add("ok_once", past())
    boom_id = store.add("boom", past())

    await scheduler.process_pending_jobs()

    assert store.status_history[ok_id] == ["pending", "running", "completed"]
    assert store.status_history[boom_id] == ["pending", "running", "failed"]


async def test_failure_is_isolated_from_other_jobs(scheduler, store):
    ok_id = store.add("ok_once", past())
    boom_id = store.add("boom", past())

    assert await scheduler.process_pending_jobs() == 2

    assert (await store.get(ok_id)).status == JobStatus.COMPLETED
    failed = await store.get(boom_id)
    assert failed.status == JobStatus.FAILED
    assert failed.error == "provider exploded"
    assert failed.completed_at is not None


async def test_empty_exception_message_falls_back_to_class_name(scheduler, store):
    job_id = store.add("silent", past())
    await scheduler.process_pending_jobs()
    assert (await store.get(job_id)).error == "ValueError"


async def test_unknown_job_type_fails_without_raising(scheduler, store):
    job_id = store.add("no_such_type", past())

    assert await scheduler.process_pending_jobs() == 1

    job = await store.get(job_id)
    assert job.status == JobStatus.FAILED
    assert "no_such_type" in job.error
    # not rescheduled
    assert len(store.jobs(job_type="no_such_type")) == 1


async def test_handler_timeout_marks_job_failed(scheduler, store):
    job_id = store.add("slow", past())

    assert await scheduler.process_pending_jobs() == 1

    job = await store.get(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error.startswith("Timed out after")


async def test_non_dict_results_are_wrapped(scheduler, store):
    job_id = store.add("scalar", past())
    await scheduler.process_pending_jobs()
    assert (await store.get(job_id)).result == {"value": 42}


async def test_batch_size_limits_selection_oldest_first(store, registry):
    scheduler = JobScheduler(store=store, registry=registry, batch_size=2)
    oldest = store.add("ok_once", past(30))
    middle = store.add("ok_once", past(20))
    newest = store.add("ok_once", past(10))

    assert await scheduler.process_pending_jobs() == 2

    assert (await store.get(oldest)).status == JobStatus.COMPLETED
    assert (await store.get(middle)).status == JobStatus.COMPLETED
    assert (await store.get(newest)).status == JobStatus.PENDING


async def test_select_failure_propagates(scheduler, store):
    store.add("ok_once", past())
    store.fail_on.add("select_due")
    with pytest.raises(JobStoreError):
        await scheduler.process_pending_jobs()


async def test_lost_claim_is_skipped_and_not_counted(scheduler, store):
    won = store.add("ok_once", past())
    lost = store.add("ok_once", past())
    store.lose_claims.add(lost)

    assert await scheduler.process_pending_jobs() == 1

    assert (await store.get(won)).status == JobStatus.COMPLETED
    # the other invoker owns it now; we never wrote an outcome
    lost_job = await store.get(lost)
    assert lost_job.status == JobStatus.RUNNING
    assert lost_job.result is None


async def test_outcome_write_failure_is_logged_not_raised(scheduler, store):
    job_id = store.add("ok_once", past())
    store.fail_on.add("update")

    assert await scheduler.process_pending_jobs() == 1
    assert (await store.get(job_id)).status == JobStatus.RUNNING


async def test_batch_jobs_run_concurrently(store):
    first_started = asyncio.Event()
    second_started = asyncio.Event()

    async def first(payload):
        first_started.set()
        await second_started.wait()
        return {"job": "first"}

    async def second(payload):
        second_started.set()
        await first_started.wait()
        return {"job": "second"}

    registry = {"first": JobDefinition(handler=first), "second": JobDefinition(handler=second)}
    scheduler = JobScheduler(store=store, registry=registry, handler_timeout=1)
    first_id = store.add("first", past(2))
    second_id = store.add("second", past(1))

    # each handler only returns once the other has started
    assert await scheduler.process_pending_jobs() == 2

    assert (await store.get(first_id)).status == JobStatus.COMPLETED
    assert (await store.get(second_id)).status == JobStatus.COMPLETED


async def test_slow_jobs_do_not_add_up(store):
    async def nap(payload):
        await asyncio.sleep(0.2)
        return {}

    scheduler = JobScheduler(store=store, registry={"nap": JobDefinition(handler=nap)})
    for _ in range(3):
        store.add("nap", past())

    loop = asyncio.get_running_loop()
    started = loop.time()
    assert await scheduler.process_pending_jobs() == 3
    assert loop.time() - started < 0.5


async def test_claim_store_error_is_not_raised(scheduler, store):
    job_id = store.add("ok_once", past())
    store.fail_on.add("claim")

    assert await scheduler.process_pending_jobs() == 0
    assert (await store.get(job_id)).status == JobStatus.PENDING


"""
3. Recurrence
"""

async def test_recurring_job_reschedules_from_completion(scheduler, store):
    job_id = store.add("ok_recurring", past(), payload={"limit": 3})

    await scheduler.process_pending_jobs()

    done = await store.get(job_id)
    pending = store.jobs(job_type="ok_recurring", status=JobStatus.PENDING)
    assert len(pending) == 1
    assert pending[0].payload == {"limit": 3}
    assert pending[0].scheduled_for == done.completed_at + timedelta(minutes=30)


async def test_failed_recurring_job_still_reschedules(scheduler, store):
    job_id = store.add("boom_recurring", past())

    await scheduler.process_pending_jobs()

    assert (await store.get(job_id)).status == JobStatus.FAILED
    pending = store.jobs(job_type="boom_recurring", status=JobStatus.PENDING)
    assert len(pending) == 1
    assert pending[0].scheduled_for > utc_now() + timedelta(minutes=59)


async def test_one_off_job_is_not_rescheduled(scheduler, store):
    store.add("ok_once", past())
    await scheduler.process_pending_jobs()
    assert store.jobs(job_type="ok_once", status=JobStatus.PENDING) == []


async def test_reschedule_failure_keeps_recorded_outcome(scheduler, store, mocker):
    job_id = store.add("ok_recurring", past())
    real_insert = store.insert
    store.insert = mocker.AsyncMock(side_effect=JobStoreError("insert failed"))

    assert await scheduler.process_pending_jobs() == 1

    store.insert = real_insert
    assert (await store.get(job_id)).status == JobStatus.COMPLETED
    assert store.jobs(job_type="ok_recurring", status=JobStatus.PENDING) == []


@pytest.mark.parametrize("job_type", [t for t, d in JOB_REGISTRY.items() if d.recurring])
async def test_every_registered_recurring_type_reschedules(store, mocker, job_type):
    handler = mocker.AsyncMock(return_value={"ok": True})
    definition = JOB_REGISTRY[job_type]
    registry = {job_type: JobDefinition(handler=handler, interval=definition.interval)}
    scheduler = JobScheduler(store=store, registry=registry)
    store.add(job_type, past())

    await scheduler.process_pending_jobs()

    done = store.jobs(job_type=job_type, status=JobStatus.COMPLETED)[0]
    pending = store.jobs(job_type=job_type, status=JobStatus.PENDING)
    assert len(pending) == 1
    assert pending[0].scheduled_for == done.completed_at + definition.interval


async def test_top_assets_scenario(store, mocker):
    """A refresh_top_assets job due a second ago runs and queues the next one 30 minutes out."""
    handler = mocker.AsyncMock(return_value={"count": 200, "inserted": 200, "updated": 0})
    registry = {"refresh_top_assets": JobDefinition(handler=handler, interval=timedelta(minutes=30))}
    scheduler = JobScheduler(store=store, registry=registry)
    job_id = store.add("refresh_top_assets", past(1))

    assert await scheduler.process_pending_jobs() == 1

    done = await store.get(job_id)
    assert done.status == JobStatus.COMPLETED
    assert done.result is not None
    pending = store.jobs(job_type="refresh_top_assets", status=JobStatus.PENDING)
    assert len(pending) == 1
    expected = utc_now() + timedelta(minutes=30)
    assert abs((pending[0].scheduled_for - expected).total_seconds()) < 5


"""
4. Stale job recovery and seeding
"""

async def test_recover_stale_jobs_fails_only_old_running_rows(scheduler, store):
    stale = store.add("ok_recurring", past(3600), status=JobStatus.RUNNING, updated_at=past(3600))
    fresh = store.add("ok_once", past(60), status=JobStatus.RUNNING, updated_at=past(60))
    waiting = store.add("ok_once", past(3600), updated_at=past(3600))

    recovered = await scheduler.recover_stale_jobs(stale_after=timedelta(minutes=30))

    assert recovered == 1
    stale_job = await store.get(stale)
    assert stale_job.status == JobStatus.FAILED
    assert stale_job.error == "Abandoned: still running after 30 minutes"
    assert stale_job.completed_at is not None
    assert (await store.get(fresh)).status == JobStatus.RUNNING
    assert (await store.get(waiting)).status == JobStatus.PENDING
    # recurring chain continues
    assert len(store.jobs(job_type="ok_recurring", status=JobStatus.PENDING)) == 1


async def test_unrecorded_outcome_leaves_rescheduling_to_recovery(scheduler, store):
    job_id = store.add("ok_recurring", past())
    store.fail_on.add("update")

    assert await scheduler.process_pending_jobs() == 1
    assert (await store.get(job_id)).status == JobStatus.RUNNING
    assert store.jobs(job_type="ok_recurring", status=JobStatus.PENDING) == []

    store.fail_on.clear()
    await asyncio.sleep(0.01)
    assert await scheduler.recover_stale_jobs(stale_after=timedelta(microseconds=1)) == 1

    assert (await store.get(job_id)).status == JobStatus.FAILED
    assert len(store.jobs(job_type="ok_recurring", status=JobStatus.PENDING)) == 1


async def test_late_outcome_after_recovery_does_not_reschedule(store):
    release = asyncio.Event()

    async def stuck(payload):
        await release.wait()
        return {"late": True}

    registry = {"stuck": JobDefinition(handler=stuck, interval=timedelta(minutes=15))}
    scheduler = JobScheduler(store=store, registry=registry, handler_timeout=5)
    job_id = store.add("stuck", past())

    batch = asyncio.create_task(scheduler.process_pending_jobs())
    while (await store.get(job_id)).status != JobStatus.RUNNING:
        await asyncio.sleep(0)
    await asyncio.sleep(0.01)

    assert await scheduler.recover_stale_jobs(stale_after=timedelta(microseconds=1)) == 1
    release.set()
    assert await batch == 1

    job = await store.get(job_id)
    assert job.status == JobStatus.FAILED
    assert job.result is None
    # only the occurrence queued by recovery
    assert len(store.jobs(job_type="stuck", status=JobStatus.PENDING)) == 1


async def test_seed_recurring_jobs_skips_types_with_pending_jobs(store):
    scheduler = JobScheduler(store=store)
    store.add("refresh_news", utc_now() + timedelta(minutes=10))

    scheduled = await scheduler.seed_recurring_jobs()

    recurring = {t for t, d in JOB_REGISTRY.items() if d.recurring}
    assert set(scheduled) == recurring - {"refresh_news"}
    assert all(scheduled.values())
    assert len(store.jobs(job_type="refresh_news")) == 1

    # running it again schedules nothing new
    assert await scheduler.seed_recurring_jobs() == {}
