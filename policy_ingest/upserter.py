"""Policy Ingest - Entity resolution and natural-key upserts.

Every entity kind is stored in its own table with a UNIQUE natural key
column. upsert() inserts the row if the key is new and otherwise overwrites
every tracked field (last write wins, no per-field merge). lookup() only
reads.

Upserts are a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING id
statement, so the store itself serializes concurrent writes to one key.

Note:
    Neither function commits. The caller owns the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import InstrumentedAttribute, Session

from policy_ingest.models import Account, Agent, Base, Carrier, LineOfBusiness, Policy, User, utc_now

logger = logging.getLogger(__name__)


class EntityKind(StrEnum):
    """Entity kinds produced by ingestion."""

    AGENT = "agent"
    USER = "user"
    ACCOUNT = "account"
    LINE_OF_BUSINESS = "line_of_business"
    CARRIER = "carrier"
    POLICY = "policy"


@dataclass(frozen=True)
class EntitySpec:
    """Storage binding for one entity kind."""

    model: type[Base]
    natural_key: str

    @property
    def key_column(self) -> InstrumentedAttribute:
        return getattr(self.model, self.natural_key)


ENTITY_SPECS: dict[EntityKind, EntitySpec] = {
    EntityKind.AGENT: EntitySpec(Agent, "name"),
    EntityKind.USER: EntitySpec(User, "email"),
    EntityKind.ACCOUNT: EntitySpec(Account, "account_name"),
    EntityKind.LINE_OF_BUSINESS: EntitySpec(LineOfBusiness, "category_name"),
    EntityKind.CARRIER: EntitySpec(Carrier, "company_name"),
    EntityKind.POLICY: EntitySpec(Policy, "policy_number"),
}

# Columns owned by the store, never written from row data
_RESERVED_COLUMNS = frozenset({"id", "created_at", "updated_at"})

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def upsert(
    session: Session,
    kind: EntityKind,
    natural_key_value: str,
    fields: Mapping[str, Any] | None = None,
) -> int:
    """Insert or overwrite the entity identified by its natural key.

    Idempotent: repeating a call with the same key and fields leaves exactly
    one stored row with those fields.

    Args:
        session: Active database session.
        kind: Entity kind to write.
        natural_key_value: Natural key (trimmed before use).
        fields: Tracked fields other than the natural key, by column name.

    Returns:
        The surrogate id of the stored row.

    Raises:
        ValueError: If the key is blank or a field is not a column of the kind.
    """
    spec = ENTITY_SPECS[EntityKind(kind)]
    key = _normalize_key(kind, natural_key_value)

    values = dict(fields or {})
    columns = set(spec.model.__table__.columns.keys())
    unknown = set(values) - (columns - _RESERVED_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")
    values[spec.natural_key] = key

    now = utc_now()
    row = {**values, "created_at": now, "updated_at": now}
    insert = _dialect_insert(session)
    table = spec.model.__table__

    stmt = (
        insert(table)
        .values(**row)
        .on_conflict_do_update(
            index_elements=[table.c[spec.natural_key]],
            set_={col: row[col] for col in row if col not in (spec.natural_key, "created_at")},
        )
        .returning(table.c.id)
    )
    entity_id = session.execute(stmt).scalar_one()
    logger.debug("Upserted %s %r -> id=%s", kind, key, entity_id)
    return entity_id


def lookup(session: Session, kind: EntityKind, natural_key_value: str | None) -> int | None:
    """Resolve a natural key to the stored id without creating anything.

    Args:
        session: Active database session.
        kind: Entity kind to look up.
        natural_key_value: Natural key; blank or None resolves to None.

    Returns:
        The surrogate id, or None if no such entity exists.
    """
    spec = ENTITY_SPECS[EntityKind(kind)]
    key = (natural_key_value or "").strip()
    if not key:
        return None

    stmt = select(spec.model.id).where(spec.key_column == key)
    return session.execute(stmt).scalar_one_or_none()


def _normalize_key(kind: EntityKind, natural_key_value: str | None) -> str:
    key = (natural_key_value or "").strip()
    if not key:
        raise ValueError(f"Blank natural key for {kind}")
    return key


def _dialect_insert(session: Session):
    dialect = session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}") from None
