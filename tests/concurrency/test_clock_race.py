"""
Concurrent clock-in / clock-out.

Every thread gets its own session from the shared factory and all threads
are released together by a barrier.  Runs against SQLite by default
(writers serialize on BEGIN IMMEDIATE) and against PostgreSQL when
DATABASE_URL points at one (row locks via SELECT ... FOR UPDATE).
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from jobclock_kernel.exceptions import ErrorKind
from jobclock_kernel.models.job_log import JobLogAction
from tests.conftest import CLEANER_ID, WORKER_ID, reported

pytestmark = pytest.mark.slow_locks

THREADS = 8


def run_together(count, fn):
    """Run ``fn(i)`` on ``count`` threads released at the same moment."""
    barrier = Barrier(count)

    def _call(i):
        barrier.wait(timeout=10)
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_call, range(count)))


class TestSameJobRace:
    def test_exactly_one_clock_in(self, controller, schedule_job, read_trail):
        job_id = schedule_job()

        results = run_together(THREADS, lambda _: controller.clock_in(job_id, WORKER_ID))

        assert sum(r.success for r in results) == 1
        assert {r.error_kind for r in results if not r.success} == {
            ErrorKind.ALREADY_CLOCKED_IN
        }
        actions = [e.action for e in read_trail(job_id)]
        assert actions.count(JobLogAction.CLOCKED_IN) == 1
        assert [e.seq for e in read_trail(job_id)] == [1, 2, 3]

    def test_primary_and_secondary_race(self, controller, schedule_job, read_job):
        job_id = schedule_job(secondary_worker_ids=[CLEANER_ID])
        actors = [WORKER_ID, CLEANER_ID]

        results = run_together(2, lambda i: controller.clock_in(job_id, actors[i]))

        assert sum(r.success for r in results) == 1
        assert read_job(job_id).clock_in_at is not None

    def test_exactly_one_clock_out(
        self,
        controller,
        clocked_in_job,
        create_product,
        assign_inventory,
        read_usage,
        read_inventory,
        read_trail,
    ):
        product_id = create_product()
        assign_inventory(WORKER_ID, product_id, "10")
        job_id = clocked_in_job()

        results = run_together(
            THREADS,
            lambda _: controller.clock_out(job_id, WORKER_ID, reported((product_id, "6"))),
        )

        assert sum(r.success for r in results) == 1
        assert {r.error_kind for r in results if not r.success} == {
            ErrorKind.ALREADY_CLOCKED_OUT
        }
        (usage,) = read_usage(job_id)
        assert usage.quantity == Decimal("4")
        assert read_inventory(WORKER_ID, product_id) == Decimal("6")
        actions = [e.action for e in read_trail(job_id)]
        assert actions.count(JobLogAction.PRODUCT_USED) == 1
        assert actions.count(JobLogAction.CLOCKED_OUT) == 1


class TestSharedInventoryRace:
    def test_same_worker_product_on_two_jobs(
        self,
        controller,
        clocked_in_job,
        create_product,
        assign_inventory,
        read_usage,
        read_inventory,
    ):
        """
        Two clock-outs for one worker and product, in either order, must
        leave inventory at the lower report and record 5 units in total.
        """
        product_id = create_product()
        assign_inventory(WORKER_ID, product_id, "10")
        job_a = clocked_in_job()
        job_b = clocked_in_job()
        calls = [(job_a, "8"), (job_b, "5")]

        results = run_together(
            2,
            lambda i: controller.clock_out(
                calls[i][0], WORKER_ID, reported((product_id, calls[i][1]))
            ),
        )

        assert all(r.success for r in results)
        assert read_inventory(WORKER_ID, product_id) == Decimal("5")
        total = sum(
            (u.quantity for job_id in (job_a, job_b) for u in read_usage(job_id)),
            Decimal("0"),
        )
        assert total == Decimal("5")


class TestIndependentJobs:
    def test_distinct_jobs_all_succeed(
        self, controller, schedule_job, read_job
    ):
        job_ids = [schedule_job() for _ in range(THREADS)]

        results = run_together(
            THREADS, lambda i: controller.clock_in(job_ids[i], WORKER_ID)
        )

        assert all(r.success for r in results)
        assert all(read_job(j).clock_in_at is not None for j in job_ids)
