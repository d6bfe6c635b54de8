"""Append-only log of committed ledger state changes."""

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.enums import EventType
from db.models import LedgerEvents
from tokenledger.services._helpers import dump_json, load_json
from tokenledger.services._types import EventDict
from tokenledger.services.clock import BlockContext


def record_event(
    session: Session,
    ctx: BlockContext,
    event_type: EventType,
    subject: str,
    **payload: object,
) -> LedgerEvents:
    """Add an event row. Written inside the caller's savepoint, so reverted calls leave none."""
    row = LedgerEvents(
        event_type=event_type.value,
        block_number=ctx.number,
        timestamp=ctx.timestamp,
        subject=subject,
        payload=dump_json(payload),
    )
    session.add(row)
    return row


def event_to_dict(row: LedgerEvents) -> EventDict:
    return EventDict(
        id=row.id,
        event_type=row.event_type,
        block_number=row.block_number,
        timestamp=row.timestamp,
        subject=row.subject,
        payload=load_json(row.payload),
    )


def list_events(
    session: Session,
    event_type: EventType | None = None,
    subject: str | None = None,
    limit: int = 100,
) -> list[EventDict]:
    """Most recent events first."""
    stmt: Select[tuple[LedgerEvents]] = select(LedgerEvents)
    if event_type is not None:
        stmt = stmt.where(LedgerEvents.event_type == event_type.value)
    if subject is not None:
        stmt = stmt.where(LedgerEvents.subject == subject)
    stmt = stmt.order_by(LedgerEvents.id.desc()).limit(limit)
    return [event_to_dict(r) for r in session.scalars(stmt).all()]
