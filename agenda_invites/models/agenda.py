from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Agenda(SQLModel, table=True):
    """
    Read-only view of an agenda owned by the agenda subsystem.
    Only the fields needed to authorise agenda-scoped invitation operations.
    """

    __tablename__ = "agendas"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    created_by_user_id: int = Field(foreign_key="user_accounts.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
