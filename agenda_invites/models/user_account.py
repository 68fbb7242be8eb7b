from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class UserAccount(SQLModel, table=True):
    """
    A system account that can hold invitations.

    Notes:
    - personnel_id is the organization-issued identifier shared with the
      personnel registry. It is not unique: old deactivated accounts may keep it.
    - Only is_active accounts can receive, hold or act on invitations.
    - Account management lives outside this service; rows are read here.
    """

    __tablename__ = "user_accounts"

    id: Optional[int] = Field(default=None, primary_key=True)

    username: str = Field(index=True, unique=True)
    full_name: str = Field(default="")

    personnel_id: Optional[str] = Field(default=None, index=True)

    role: AccountRole = Field(default=AccountRole.USER, index=True)
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role in (AccountRole.ADMIN, AccountRole.SUPERADMIN)
