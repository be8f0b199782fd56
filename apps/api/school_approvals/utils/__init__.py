"""
Utility modules.
"""

from school_approvals.utils.timezone import UTC, to_utc, utc_now

__all__ = ["UTC", "to_utc", "utc_now"]
