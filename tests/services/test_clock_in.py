"""
Clock-in through the full controller and database stack.

Verifies:
- Success sets clock_in_at to the clock's time and status IN_PROGRESS
- Every failure returns its ErrorKind and leaves the job untouched
- Audit entries are written in the same transaction
"""

from datetime import timedelta

from jobclock_kernel.exceptions import ErrorKind
from jobclock_kernel.models.job import JobStatus
from jobclock_kernel.models.job_log import JobLogAction
from tests.conftest import CLEANER_ID, NOW, OUTSIDER_ID, WORKER_ID


class TestClockInSuccess:
    def test_sets_clock_in_and_status(self, controller, schedule_job, read_job):
        job_id = schedule_job()

        result = controller.clock_in(job_id, WORKER_ID, actor_name="Sam")

        assert result.success
        assert result.job_id == job_id
        assert result.error_kind is None
        job = read_job(job_id)
        assert job.status == JobStatus.IN_PROGRESS
        assert job.clock_in_at == NOW
        assert job.clock_out_at is None

    def test_appends_clocked_in_and_status_changed(
        self, controller, schedule_job, read_trail
    ):
        job_id = schedule_job()
        controller.clock_in(job_id, WORKER_ID, actor_name="Sam")

        trail = read_trail(job_id)
        assert [e.action for e in trail] == [
            JobLogAction.CREATED,
            JobLogAction.CLOCKED_IN,
            JobLogAction.STATUS_CHANGED,
        ]
        assert [e.seq for e in trail] == [1, 2, 3]
        assert trail[1].description == "Sam clocked in"
        assert trail[1].actor_id == WORKER_ID
        assert trail[2].old_value == "SCHEDULED"
        assert trail[2].new_value == "IN_PROGRESS"

    def test_actor_name_defaults_to_id(self, controller, schedule_job, read_trail):
        job_id = schedule_job()
        controller.clock_in(job_id, WORKER_ID)
        assert read_trail(job_id)[1].description == f"{WORKER_ID} clocked in"

    def test_secondary_worker(self, controller, schedule_job, read_job):
        job_id = schedule_job(secondary_worker_ids=[CLEANER_ID])
        assert controller.clock_in(job_id, CLEANER_ID).success
        assert read_job(job_id).clock_in_at == NOW

    def test_created_job_may_clock_in(self, controller, schedule_job, read_trail):
        job_id = schedule_job(status=JobStatus.CREATED)
        assert controller.clock_in(job_id, WORKER_ID).success
        assert read_trail(job_id)[2].old_value == "CREATED"

    def test_late_clock_in_allowed(self, controller, schedule_job):
        job_id = schedule_job(scheduled_start=NOW - timedelta(hours=4))
        assert controller.clock_in(job_id, WORKER_ID).success


class TestClockInFailures:
    def test_not_found(self, controller, random_id):
        result = controller.clock_in(random_id, WORKER_ID)
        assert not result.success
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.message == "Job not found"

    def test_forbidden(self, controller, schedule_job, read_job, read_trail):
        job_id = schedule_job()

        result = controller.clock_in(job_id, OUTSIDER_ID)

        assert result.error_kind == ErrorKind.FORBIDDEN
        assert result.message == "You are not assigned to this job"
        assert read_job(job_id).clock_in_at is None
        assert len(read_trail(job_id)) == 1

    def test_already_clocked_in(self, controller, clocked_in_job, read_trail):
        job_id = clocked_in_job()

        result = controller.clock_in(job_id, WORKER_ID)

        assert result.error_kind == ErrorKind.ALREADY_CLOCKED_IN
        assert result.message == "Already clocked in"
        assert len(read_trail(job_id)) == 3

    def test_too_early(self, controller, schedule_job, read_job):
        job_id = schedule_job(scheduled_start=NOW + timedelta(minutes=40))

        result = controller.clock_in(job_id, WORKER_ID)

        assert result.error_kind == ErrorKind.TOO_EARLY
        assert result.minutes_remaining == 25
        assert result.message == (
            "You can clock in 25 minutes before the scheduled start time (at 9:25 AM)"
        )
        assert read_job(job_id).status == JobStatus.SCHEDULED

    def test_window_opens_as_clock_advances(self, controller, schedule_job, clock):
        job_id = schedule_job(scheduled_start=NOW + timedelta(minutes=16))
        assert controller.clock_in(job_id, WORKER_ID).error_kind == ErrorKind.TOO_EARLY

        clock.advance(60)

        assert controller.clock_in(job_id, WORKER_ID).success


class TestClockInLogging:
    def test_logs_started_and_completed(self, controller, schedule_job, captured_logs):
        job_id = schedule_job()
        controller.clock_in(job_id, WORKER_ID)

        records = captured_logs()
        messages = [r["message"] for r in records]
        assert "clock_in_started" in messages
        assert "clock_in_completed" in messages
        completed = next(r for r in records if r["message"] == "clock_in_completed")
        assert completed["job_id"] == str(job_id)
        assert completed["operation"] == "clock_in"

    def test_rejection_logged(self, controller, schedule_job, captured_logs):
        job_id = schedule_job()
        controller.clock_in(job_id, OUTSIDER_ID)

        rejected = [r for r in captured_logs() if r["message"] == "clock_in_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["error_kind"] == "Forbidden"
