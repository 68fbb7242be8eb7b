from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from ..config import settings
from ..errors import InfrastructureError
from ..models.user_account import UserAccount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonnelRecord:
    """
    What the personnel registry tells us about one organization-issued id.
    """
    personnel_id: str
    name: str
    active: bool


def normalize_personnel_id(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


class PersonnelDirectory:
    """
    Read-only HTTP client for the external personnel registry.

    GET {base_url}/personnel/{personnel_id}
      200 -> {"personnel_id": "...", "name": "...", "active": true}
      404 -> unknown id

    Transport failures and 5xx responses raise InfrastructureError so callers
    can retry; they are never reported as "person not found".
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s)
        self._owns_client = client is None

    def lookup(self, personnel_id: str) -> Optional[PersonnelRecord]:
        url = f"{self.base_url}/personnel/{quote(personnel_id, safe='')}"
        try:
            r = self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning("personnel registry unreachable (%s): %s", url, e)
            raise InfrastructureError("Personnel registry is unavailable") from e

        if r.status_code == 404:
            return None
        if r.status_code >= 400:
            logger.warning("personnel registry error status=%s url=%s", r.status_code, url)
            raise InfrastructureError(f"Personnel registry returned HTTP {r.status_code}")

        try:
            data = r.json()
        except ValueError as e:
            raise InfrastructureError("Personnel registry returned invalid JSON") from e
        if not isinstance(data, dict):
            raise InfrastructureError("Personnel registry returned an unexpected payload")

        return PersonnelRecord(
            personnel_id=str(data.get("personnel_id") or personnel_id),
            name=str(data.get("name") or ""),
            active=bool(data.get("active", False)),
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def directory_from_settings() -> Optional[PersonnelDirectory]:
    """
    The registry is optional; None means account state alone decides.
    """
    if not settings.personnel_registry_url:
        return None
    return PersonnelDirectory(
        settings.personnel_registry_url,
        timeout_s=settings.personnel_registry_timeout_s,
    )


class AccountResolver:
    """
    Maps a participant's personnel id to the id of an active system account.

    Pure lookup: nothing is written. Registry answers are cached for the life
    of the resolver (one request / one generation batch).
    """

    def __init__(self, session: Session, directory: Optional[PersonnelDirectory] = None) -> None:
        self.session = session
        self.directory = directory
        self._registry_cache: Dict[str, Optional[PersonnelRecord]] = {}

    def _registry_active(self, personnel_id: str) -> bool:
        if self.directory is None:
            return True
        if personnel_id not in self._registry_cache:
            self._registry_cache[personnel_id] = self.directory.lookup(personnel_id)
        record = self._registry_cache[personnel_id]
        return bool(record and record.active)

    def account_for(self, personnel_id: Any) -> Optional[UserAccount]:
        pid = normalize_personnel_id(personnel_id)
        if pid is None:
            return None

        try:
            account = self.session.exec(
                select(UserAccount)
                .where(UserAccount.personnel_id == pid, UserAccount.is_active == True)  # noqa: E712
                .order_by(UserAccount.id)
            ).first()
        except OperationalError as e:
            raise InfrastructureError("Account store is unavailable") from e

        if account is None:
            return None

        if not self._registry_active(pid):
            logger.info("personnel_id=%s has an account but is not active in the registry", pid)
            return None

        return account

    def resolve(self, personnel_id: Any) -> Optional[int]:
        account = self.account_for(personnel_id)
        return account.id if account else None
