"""
Stable failure taxonomy for invitation operations.

Services raise these; the API layer renders them as
{"detail": <message>, "error": <kind>} with the class's status code.
Every business-rule failure is raised before anything is committed.
"""

from __future__ import annotations

from typing import Optional


class InvitationError(Exception):
    kind: str = "invitation_error"
    status_code: int = 400
    default_message: str = "Invitation request failed"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundOrForbidden(InvitationError):
    # absence and lack of access look the same to callers
    kind = "not_found_or_forbidden"
    status_code = 404
    default_message = "Invitation not found or not accessible"


class InvalidStatusValue(InvitationError):
    kind = "invalid_status_value"
    status_code = 400
    default_message = "status must be 'opened' or 'responded'"


class DelegationLimitExceeded(InvitationError):
    kind = "delegation_limit_exceeded"
    status_code = 409
    default_message = (
        "Delegation depth limit reached. "
        "If you cannot attend, please confirm with the organizer."
    )


class AlreadyDelegated(InvitationError):
    kind = "already_delegated"
    status_code = 409
    default_message = "This invitation has already been delegated"


class SelfDelegationRejected(InvitationError):
    kind = "self_delegation_rejected"
    status_code = 400
    default_message = "An invitation cannot be delegated to its own holder"


class MissingDelegateName(InvitationError):
    kind = "missing_delegate_name"
    status_code = 400
    default_message = "to_display_name is required"


class MissingDelegateTarget(InvitationError):
    kind = "missing_delegate_target"
    status_code = 400
    default_message = "Provide to_user_id or to_external_ref for the delegate"


class InvalidDelegateTarget(InvitationError):
    kind = "invalid_delegate_target"
    status_code = 422
    default_message = "Delegate account does not exist or is inactive"


class DelegateAlreadyInvited(InvitationError):
    kind = "delegate_already_invited"
    status_code = 409
    default_message = "Delegate already holds an active invitation for this agenda"


class InfrastructureError(InvitationError):
    kind = "infrastructure_error"
    status_code = 503
    default_message = "A backing service is unavailable; retry the request"
    retryable = True
