"""
Catering Kernel

Domain core for recurring catering agreements:
- Agreement lifecycle state machine
- Per-day work items with notice-period and immutability guards
- Fallback eligibility rules
- Datastore-backed named locks and an idempotency ledger
"""

__version__ = "0.1.0"
