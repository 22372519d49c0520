"""Utility modules for the jobclock kernel."""

from jobclock_kernel.utils.hashing import (
    canonicalize_json,
    hash_job_log,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_job_log",
    "hash_payload",
]
