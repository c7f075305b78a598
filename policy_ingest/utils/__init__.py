"""Policy Ingest - Utility modules."""

from policy_ingest.utils.failpoints import get_active_failpoint, is_failpoint_enabled, maybe_fail

__all__ = [
    "maybe_fail",
    "is_failpoint_enabled",
    "get_active_failpoint",
]
