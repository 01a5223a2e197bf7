"""
Gym core - attendance and membership-lifecycle engine.

Admission decisions at check-in time, the attendance ledger with its
per-member statistics, and the daily membership expiry sweep.
"""

__version__ = "1.0.0"
