"""Policy Ingest - Configuration constants.

No external config libraries. Every value can be overridden through an
environment variable; invalid overrides fall back to the default.
All paths are relative to the repository root by default.
"""

import os
from pathlib import Path

# Repository root (parent of policy_ingest/)
REPO_ROOT = Path(__file__).parent.parent.resolve()


def _get_path(env_name: str, default: Path) -> Path:
    """Get a filesystem path from the environment or use default."""
    env_val = os.environ.get(env_name)
    if env_val:
        return Path(env_val)
    return default


def _get_positive_int(env_name: str, default: int) -> int:
    """Get a positive integer from the environment or use default.

    Args:
        env_name: Environment variable to read.
        default: Value used when the variable is unset, non-numeric or <= 0.

    Returns:
        The configured integer.
    """
    env_val = os.environ.get(env_name)
    if env_val:
        try:
            value = int(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


def _get_timeout(env_name: str) -> float | None:
    """Get an optional timeout in seconds. Unset or invalid means no deadline."""
    env_val = os.environ.get(env_name)
    if env_val:
        try:
            value = float(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return None


# Data directories
DATA_DIR = _get_path("POLICY_INGEST_DATA_DIR", REPO_ROOT / "data")
UPLOAD_DIR = _get_path("POLICY_INGEST_UPLOAD_DIR", DATA_DIR / "uploads")

# Database path (SQLite default). POLICY_INGEST_DATABASE_URL overrides the
# whole SQLAlchemy URL, e.g. for PostgreSQL.
DB_PATH = _get_path("POLICY_INGEST_DB_PATH", DATA_DIR / "policy_ingest.db")
DATABASE_URL = os.environ.get("POLICY_INGEST_DATABASE_URL") or None

# Queue directory and Huey database path
QUEUE_DIR = DATA_DIR / "queue"
HUEY_DB_PATH = QUEUE_DIR / "huey.db"

# Upload limits enforced by the upload layer, never by the coordinator
MAX_UPLOAD_BYTES = _get_positive_int("POLICY_INGEST_MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
ALLOWED_FILE_TYPES = (".csv", ".xlsx", ".xls")

# Optional deadline for one isolated job (seconds)
JOB_TIMEOUT_SECONDS = _get_timeout("POLICY_INGEST_JOB_TIMEOUT_SEC")

# Default user type when the "User Type" column is blank
DEFAULT_USER_TYPE = "Customer"
