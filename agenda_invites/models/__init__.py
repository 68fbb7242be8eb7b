# agenda_invites/models/__init__.py
# Central import surface for SQLModel table registration.

from .user_account import AccountRole, UserAccount
from .agenda import Agenda
from .invitation import (
    ALLOWED_TRANSITIONS,
    MAX_DELEGATION_DEPTH,
    InvalidDelegationChain,
    Invitation,
    InvitationStatus,
)

__all__ = [
    "AccountRole",
    "UserAccount",
    "Agenda",
    "ALLOWED_TRANSITIONS",
    "MAX_DELEGATION_DEPTH",
    "InvalidDelegationChain",
    "Invitation",
    "InvitationStatus",
]
