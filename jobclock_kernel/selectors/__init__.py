"""Read-only selectors for the jobclock kernel."""

from jobclock_kernel.selectors.job_selector import JobSelector

__all__ = ["JobSelector"]
