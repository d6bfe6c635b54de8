"""Ledger event log endpoint."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.schemas.common import EventResponse
from db.enums import EventType
from tokenledger.services.events import list_events

router = APIRouter(prefix="/api", tags=["events"])


@router.get("/events", response_model=list[EventResponse])
def get_events(
    event_type: EventType | None = None,
    subject: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[EventResponse]:
    rows = list_events(db, event_type=event_type, subject=subject, limit=limit)
    return [EventResponse.model_validate(r) for r in rows]
