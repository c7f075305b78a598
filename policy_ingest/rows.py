"""Policy Ingest - Row processing.

Applies one row record to the store through an explicit ordered pipeline of
resolution steps:

    agent -> user -> account -> line_of_business -> carrier -> policy

The order matters: the policy step only looks up the user, account, line of
business and carrier, so those must already be written by an earlier step
of the same row or by an earlier row.

Each row is its own transaction. A row that raises is rolled back and
reported as a RowProcessingError; it never stops the job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from policy_ingest.config import DEFAULT_USER_TYPE
from policy_ingest.errors import RowProcessingError
from policy_ingest.fields import clean, parse_date
from policy_ingest.upserter import EntityKind, lookup, upsert

logger = logging.getLogger(__name__)

# --- Column contract (exact header text) ---

COL_AGENT = "Agent"
COL_FIRST_NAME = "First Name"
COL_EMAIL = "Email"
COL_DOB = "DOB"
COL_ADDRESS = "Address"
COL_PHONE = "Phone"
COL_STATE = "State"
COL_ZIP = "Zip"
COL_GENDER = "Gender"
COL_USER_TYPE = "User Type"
COL_ACCOUNT_NAME = "Account Name"
COL_CATEGORY = "Category"
COL_CARRIER = "Carrier"
COL_POLICY_NUMBER = "Policy Number"
COL_START_DATE = "Start Date"
COL_END_DATE = "End Date"


# --- Outcomes ---


@dataclass(frozen=True)
class Applied:
    """The row was committed. kinds lists every entity kind it wrote."""

    kinds: frozenset[EntityKind]


@dataclass(frozen=True)
class Failed:
    """The row was rolled back."""

    error: RowProcessingError


RowOutcome = Applied | Failed


# --- Resolution steps ---


def _field(row: Mapping[str, str], column: str) -> str:
    return clean(row.get(column))


def _has(row: Mapping[str, str], *columns: str) -> bool:
    return all(_field(row, column) for column in columns)


def _apply_agent(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_AGENT):
        return False
    upsert(session, EntityKind.AGENT, _field(row, COL_AGENT))
    return True


def _apply_user(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_FIRST_NAME, COL_EMAIL):
        return False
    upsert(
        session,
        EntityKind.USER,
        _field(row, COL_EMAIL),
        {
            "first_name": _field(row, COL_FIRST_NAME),
            "date_of_birth": parse_date(row.get(COL_DOB)),
            "address": _field(row, COL_ADDRESS),
            "phone": _field(row, COL_PHONE),
            "state": _field(row, COL_STATE),
            "zip": _field(row, COL_ZIP),
            "gender": _field(row, COL_GENDER),
            "user_type": _field(row, COL_USER_TYPE) or DEFAULT_USER_TYPE,
        },
    )
    return True


def _apply_account(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_ACCOUNT_NAME):
        return False
    upsert(session, EntityKind.ACCOUNT, _field(row, COL_ACCOUNT_NAME))
    return True


def _apply_line_of_business(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_CATEGORY):
        return False
    upsert(session, EntityKind.LINE_OF_BUSINESS, _field(row, COL_CATEGORY))
    return True


def _apply_carrier(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_CARRIER):
        return False
    upsert(session, EntityKind.CARRIER, _field(row, COL_CARRIER))
    return True


def _apply_policy(session: Session, row: Mapping[str, str]) -> bool:
    if not _has(row, COL_POLICY_NUMBER, COL_FIRST_NAME, COL_EMAIL):
        return False

    user_id = lookup(session, EntityKind.USER, _field(row, COL_EMAIL))
    if user_id is None:
        # Unresolved policy holder: the policy is skipped, the row is not an error
        logger.debug(
            "Skipping policy %r: no user with email %r",
            _field(row, COL_POLICY_NUMBER),
            _field(row, COL_EMAIL),
        )
        return False

    upsert(
        session,
        EntityKind.POLICY,
        _field(row, COL_POLICY_NUMBER),
        {
            "start_date": parse_date(row.get(COL_START_DATE)),
            "end_date": parse_date(row.get(COL_END_DATE)),
            "user_id": user_id,
            "account_id": lookup(session, EntityKind.ACCOUNT, _field(row, COL_ACCOUNT_NAME)),
            "line_of_business_id": lookup(
                session, EntityKind.LINE_OF_BUSINESS, _field(row, COL_CATEGORY)
            ),
            "carrier_id": lookup(session, EntityKind.CARRIER, _field(row, COL_CARRIER)),
        },
    )
    return True


@dataclass(frozen=True)
class ResolutionStep:
    """One stage of the per-row pipeline.

    apply returns True when it wrote an entity of `kind`.
    """

    name: str
    kind: EntityKind
    apply: Callable[[Session, Mapping[str, str]], bool]


RESOLUTION_STEPS: tuple[ResolutionStep, ...] = (
    ResolutionStep("agent", EntityKind.AGENT, _apply_agent),
    ResolutionStep("user", EntityKind.USER, _apply_user),
    ResolutionStep("account", EntityKind.ACCOUNT, _apply_account),
    ResolutionStep("line_of_business", EntityKind.LINE_OF_BUSINESS, _apply_line_of_business),
    ResolutionStep("carrier", EntityKind.CARRIER, _apply_carrier),
    ResolutionStep("policy", EntityKind.POLICY, _apply_policy),
)


def process_row(
    session: Session,
    row: Mapping[str, str],
    row_number: int,
    steps: Sequence[ResolutionStep] = RESOLUTION_STEPS,
) -> RowOutcome:
    """Apply one row record and commit it.

    Args:
        session: The job's database session.
        row: Row record (header -> raw text).
        row_number: 1-based data row index, used in error messages.
        steps: Resolution steps, run in order.

    Returns:
        Applied with the kinds written, or Failed with the row error.
    """
    touched: set[EntityKind] = set()
    try:
        for step in steps:
            if step.apply(session, row):
                touched.add(step.kind)
        session.commit()
    except Exception as e:
        session.rollback()
        error = RowProcessingError(row_number, _error_message(e))
        logger.warning("%s", error)
        return Failed(error)

    return Applied(frozenset(touched))


def _error_message(error: Exception) -> str:
    # Driver errors carry the SQL and a docs link in str(); keep the cause only
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)
