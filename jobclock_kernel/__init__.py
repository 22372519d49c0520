"""
JobClock Kernel - time tracking and inventory reconciliation engine.

A small transactional core for field-service jobs with:
- Gated clock-in / clock-out state transitions
- Consumable usage inferred from before/after on-hand counts
- Atomic writes across job, usage ledger, worker inventory and audit log
- Append-only, hash-chained job audit trail
"""

__version__ = "0.1.0"
