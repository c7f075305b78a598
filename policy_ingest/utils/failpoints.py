"""Policy Ingest - Failpoint injection for teardown testing.

Provides deterministic crash injection so tests can kill an ingestion job
at a known point and check what the caller and the store observe.

Safety gate: Failpoints are only active when POLICY_INGEST_ENABLE_FAILPOINTS=1.
The default is a complete no-op.

Environment variables:
- POLICY_INGEST_ENABLE_FAILPOINTS: Set to "1" to enable failpoints (default: disabled)
- POLICY_INGEST_FAILPOINT: Name of the failpoint to trigger (e.g., "INGEST_AFTER_ROW_COMMIT")
- POLICY_INGEST_FAILPOINT_EXIT_CODE: Exit code to use when crashing (default: 42)

Usage:
    from policy_ingest.utils.failpoints import maybe_fail

    maybe_fail("INGEST_AFTER_ROW_COMMIT")
"""

from __future__ import annotations

import os

_PREFIX = "FAILPOINT_"


def _normalize(name: str) -> str:
    name = name.upper()
    if name.startswith(_PREFIX):
        name = name[len(_PREFIX) :]
    return name


def maybe_fail(point: str) -> None:
    """Crash the current process if `point` is the active failpoint.

    Uses os._exit() so no finally blocks or atexit handlers run, which is
    what a killed worker process looks like to its caller.

    Args:
        point: The failpoint name, with or without the FAILPOINT_ prefix.
    """
    active = get_active_failpoint()
    if active is None or _normalize(point) != active:
        return

    try:
        exit_code = int(os.environ.get("POLICY_INGEST_FAILPOINT_EXIT_CODE", "42"))
    except ValueError:
        exit_code = 42

    os._exit(exit_code)


def is_failpoint_enabled() -> bool:
    """Check if the failpoint system is enabled.

    Returns:
        True if POLICY_INGEST_ENABLE_FAILPOINTS=1, False otherwise.
    """
    return os.environ.get("POLICY_INGEST_ENABLE_FAILPOINTS") == "1"


def get_active_failpoint() -> str | None:
    """Get the currently active failpoint name, if any.

    Returns:
        The failpoint name (without FAILPOINT_ prefix) or None.
    """
    if not is_failpoint_enabled():
        return None
    target = os.environ.get("POLICY_INGEST_FAILPOINT", "")
    if not target:
        return None
    return _normalize(target)
