"""
Clock-out and inventory reconciliation through the full stack.

Verifies:
- Usage is recorded only when the worker consumed something
- The worker's on-hand quantity becomes the reported value
- Only the acting worker's inventory is read or written
- Per-product outcomes explain every skipped entry
- Failures leave data and audit trail untouched
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from jobclock_kernel.domain.dtos import SkipReason
from jobclock_kernel.exceptions import ErrorKind
from jobclock_kernel.models.job import JobStatus
from jobclock_kernel.models.job_log import JobLogAction
from jobclock_kernel.services.lifecycle_controller import JobLifecycleController
from tests.conftest import CLEANER_ID, NOW, OUTSIDER_ID, WORKER_ID, reported


@pytest.fixture
def glass(create_product, assign_inventory):
    product_id = create_product("Glass Cleaner", "bottles")
    assign_inventory(WORKER_ID, product_id, "10")
    return product_id


@pytest.fixture
def polish(create_product, assign_inventory):
    product_id = create_product("Floor Polish", "litres")
    assign_inventory(WORKER_ID, product_id, "3.5")
    return product_id


class TestClockOutSuccess:
    def test_completes_job(self, controller, clocked_in_job, clock, read_job):
        job_id = clocked_in_job()
        clock.advance(7200)

        result = controller.clock_out(job_id, WORKER_ID)

        assert result.success
        assert result.outcomes == ()
        job = read_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.clock_in_at == NOW
        assert job.clock_out_at == NOW + timedelta(hours=2)

    def test_records_usage_and_updates_inventory(
        self, controller, clocked_in_job, glass, read_usage, read_inventory
    ):
        job_id = clocked_in_job()

        result = controller.clock_out(job_id, WORKER_ID, reported((glass, "6")))

        assert result.success
        (usage,) = read_usage(job_id)
        assert usage.product_id == glass
        assert usage.quantity == Decimal("4")
        assert usage.inventory_before == Decimal("10")
        assert usage.inventory_after == Decimal("6")
        assert usage.product_name == "Glass Cleaner"
        assert read_inventory(WORKER_ID, glass) == Decimal("6")

        (outcome,) = result.reconciled
        assert outcome.used == Decimal("4")

    def test_audit_trail_order(self, controller, clocked_in_job, glass, read_trail):
        job_id = clocked_in_job()
        controller.clock_out(job_id, WORKER_ID, reported((glass, 6)), actor_name="Sam")

        trail = read_trail(job_id)
        assert [e.action for e in trail] == [
            JobLogAction.CREATED,
            JobLogAction.CLOCKED_IN,
            JobLogAction.STATUS_CHANGED,
            JobLogAction.PRODUCT_USED,
            JobLogAction.CLOCKED_OUT,
            JobLogAction.STATUS_CHANGED,
        ]
        assert trail[3].description == "Used 4.00 bottles of Glass Cleaner"
        assert trail[4].description == "Sam clocked out"
        assert trail[5].new_value == "COMPLETED"

    def test_fractional_quantities_exact(
        self, controller, clocked_in_job, polish, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        controller.clock_out(job_id, WORKER_ID, reported((polish, "1.25")))

        assert read_usage(job_id)[0].quantity == Decimal("2.25")
        assert read_inventory(WORKER_ID, polish) == Decimal("1.25")

    def test_float_report_is_exact(
        self, controller, clocked_in_job, polish, read_usage
    ):
        job_id = clocked_in_job()
        controller.clock_out(job_id, WORKER_ID, reported((polish, 3.4)))
        assert read_usage(job_id)[0].quantity == Decimal("0.1")

    def test_multiple_products(
        self, controller, clocked_in_job, glass, polish, read_usage
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(
            job_id, WORKER_ID, reported((glass, "9"), (polish, "0"))
        )

        assert len(result.reconciled) == 2
        usages = {u.product_id: u.quantity for u in read_usage(job_id)}
        assert usages == {glass: Decimal("1"), polish: Decimal("3.5")}


class TestClockOutSkips:
    def test_unchanged_quantity_records_nothing(
        self, controller, clocked_in_job, glass, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(job_id, WORKER_ID, reported((glass, "10")))

        assert result.success
        assert read_usage(job_id) == ()
        assert read_inventory(WORKER_ID, glass) == Decimal("10")
        assert result.skipped[0].skip_reason == SkipReason.NO_CONSUMPTION

    def test_reported_increase_is_ignored(
        self, controller, clocked_in_job, glass, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(job_id, WORKER_ID, reported((glass, "12")))

        assert read_usage(job_id) == ()
        assert read_inventory(WORKER_ID, glass) == Decimal("10")
        assert result.skipped[0].skip_reason == SkipReason.REPORTED_INCREASE

    def test_product_never_assigned(
        self, controller, clocked_in_job, create_product, read_usage, read_inventory
    ):
        mop_heads = create_product("Mop Heads", "units")
        job_id = clocked_in_job()

        result = controller.clock_out(job_id, WORKER_ID, reported((mop_heads, "0")))

        assert result.success
        assert result.skipped[0].skip_reason == SkipReason.NO_INVENTORY_ROW
        assert read_usage(job_id) == ()
        assert read_inventory(WORKER_ID, mop_heads) is None

    def test_invalid_quantity_skipped(
        self, controller, clocked_in_job, glass, polish, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(
            job_id, WORKER_ID, reported((glass, "-1"), (polish, "3"))
        )

        assert result.success
        assert result.skipped[0].skip_reason == SkipReason.INVALID_QUANTITY
        assert read_inventory(WORKER_ID, glass) == Decimal("10")
        assert [u.product_id for u in read_usage(job_id)] == [polish]

    def test_invalid_quantity_aborts_when_configured(
        self, coordinator, clock, clocked_in_job, glass, polish, read_job, read_inventory
    ):
        strict = JobLifecycleController(
            coordinator, clock=clock, abort_on_invalid_quantity=True
        )
        job_id = clocked_in_job()

        result = strict.clock_out(
            job_id, WORKER_ID, reported((polish, "1"), (glass, "lots"))
        )

        assert not result.success
        assert result.error_kind == ErrorKind.INVALID_QUANTITY
        assert read_job(job_id).clock_out_at is None
        assert read_inventory(WORKER_ID, polish) == Decimal("3.5")


class TestDuplicateEntries:
    def test_usage_accumulates(
        self, controller, clocked_in_job, glass, read_usage, read_inventory, read_trail
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(
            job_id, WORKER_ID, reported((glass, "8"), (glass, "5"))
        )

        assert len(result.reconciled) == 2
        (usage,) = read_usage(job_id)
        assert usage.quantity == Decimal("7")
        assert usage.inventory_before == Decimal("10")
        assert usage.inventory_after == Decimal("5")
        assert read_inventory(WORKER_ID, glass) == Decimal("5")
        product_logs = [
            e.description for e in read_trail(job_id) if e.action == JobLogAction.PRODUCT_USED
        ]
        assert product_logs == [
            "Used 2.00 bottles of Glass Cleaner",
            "Used 5.00 bottles of Glass Cleaner",
        ]

    def test_last_entry_wins_for_inventory(
        self, controller, clocked_in_job, glass, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        result = controller.clock_out(
            job_id, WORKER_ID, reported((glass, "6"), (glass, "8"))
        )

        assert result.success
        assert [o.used for o in result.reconciled] == [Decimal("4"), Decimal("2")]
        (usage,) = read_usage(job_id)
        assert usage.quantity == Decimal("6")
        assert read_inventory(WORKER_ID, glass) == Decimal("8")


class TestWorkerScope:
    def test_only_acting_worker_inventory_changes(
        self,
        controller,
        clocked_in_job,
        create_product,
        assign_inventory,
        read_inventory,
    ):
        product_id = create_product()
        assign_inventory(WORKER_ID, product_id, "10")
        assign_inventory(CLEANER_ID, product_id, "10")
        job_id = clocked_in_job(secondary_worker_ids=[CLEANER_ID])

        result = controller.clock_out(job_id, CLEANER_ID, reported((product_id, "7")))

        assert result.success
        assert read_inventory(CLEANER_ID, product_id) == Decimal("7")
        assert read_inventory(WORKER_ID, product_id) == Decimal("10")

    def test_secondary_worker_without_holding(
        self, controller, clocked_in_job, glass, read_inventory
    ):
        job_id = clocked_in_job(secondary_worker_ids=[CLEANER_ID])

        result = controller.clock_out(job_id, CLEANER_ID, reported((glass, "0")))

        assert result.success
        assert result.skipped[0].skip_reason == SkipReason.NO_INVENTORY_ROW
        assert read_inventory(WORKER_ID, glass) == Decimal("10")


class TestClockOutFailures:
    def test_not_found(self, controller, random_id):
        result = controller.clock_out(random_id, WORKER_ID)
        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_forbidden_writes_nothing(
        self, controller, clocked_in_job, glass, read_inventory, read_trail
    ):
        job_id = clocked_in_job()

        result = controller.clock_out(job_id, OUTSIDER_ID, reported((glass, "1")))

        assert result.error_kind == ErrorKind.FORBIDDEN
        assert read_inventory(WORKER_ID, glass) == Decimal("10")
        assert len(read_trail(job_id)) == 3

    def test_not_clocked_in(self, controller, schedule_job, read_job):
        job_id = schedule_job()

        result = controller.clock_out(job_id, WORKER_ID)

        assert result.error_kind == ErrorKind.NOT_CLOCKED_IN
        assert result.message == "Not clocked in"
        assert read_job(job_id).status == JobStatus.SCHEDULED

    def test_already_clocked_out(
        self, controller, clocked_in_job, glass, read_usage, read_inventory
    ):
        job_id = clocked_in_job()
        assert controller.clock_out(job_id, WORKER_ID, reported((glass, "6"))).success

        result = controller.clock_out(job_id, WORKER_ID, reported((glass, "2")))

        assert result.error_kind == ErrorKind.ALREADY_CLOCKED_OUT
        assert result.message == "Already clocked out"
        assert read_usage(job_id)[0].quantity == Decimal("4")
        assert read_inventory(WORKER_ID, glass) == Decimal("6")

    def test_clock_in_after_clock_out_rejected(self, controller, clocked_in_job):
        job_id = clocked_in_job()
        controller.clock_out(job_id, WORKER_ID)
        assert controller.clock_in(job_id, WORKER_ID).error_kind == ErrorKind.ALREADY_CLOCKED_IN


class TestClockOutLogging:
    def test_completed_counts(self, controller, clocked_in_job, glass, captured_logs):
        job_id = clocked_in_job()
        controller.clock_out(job_id, WORKER_ID, reported((glass, "6"), (glass, "9")))

        completed = next(
            r for r in captured_logs() if r["message"] == "clock_out_completed"
        )
        assert completed["products_reconciled"] == 1
        assert completed["products_skipped"] == 1
