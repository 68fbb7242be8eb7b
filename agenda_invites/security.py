from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from .database import MAX_ROW_ID, get_db
from .models.user_account import UserAccount

# Authentication happens upstream (gateway / session service). It forwards the
# authenticated account id in this header; this service only checks that the
# account exists and is active.
CALLER_HEADER = "X-User-Id"


def get_current_account(
    x_user_id: Optional[str] = Header(default=None, alias=CALLER_HEADER),
    db: Session = Depends(get_db),
) -> UserAccount:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )

    raw = (x_user_id or "").strip()
    # ascii digits only, and short enough to parse cheaply
    if not (raw.isascii() and raw.isdigit()) or len(raw) > len(str(MAX_ROW_ID)):
        raise credentials_exception

    user_id = int(raw)
    if not 1 <= user_id <= MAX_ROW_ID:
        raise credentials_exception

    account = db.get(UserAccount, user_id)
    if account is None or not account.is_active:
        raise credentials_exception
    return account
