"""Error types for the governance core.

Defines a small hierarchy of exceptions raised by the skill runner, the
approval session store and the evidence ledger. ``GovernanceService`` catches
these at its boundary and hands them back inside a ``ServiceResult``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entitlements.models import LimitDecision


class GovernanceError(Exception):
    """Base error for all governance exceptions."""


class SkillFailure(GovernanceError):
    """Raised when a skill cannot turn its input into a proposal."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InputError(SkillFailure):
    """Raised for empty or malformed skill input. The user may re-enter it."""


class ClassificationFailure(SkillFailure):
    """Raised when a skill could not classify its input. The user may retry."""


class SessionStateError(GovernanceError):
    """Raised when a transition is requested from a state that does not allow it."""

    def __init__(self, session_id: str, message: str = "already decided") -> None:
        super().__init__(f"Approval session '{session_id}': {message}")
        self.session_id = session_id


class SessionNotFoundError(SessionStateError):
    """Raised when no approval session exists for the given id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, "not found")


class StorageError(GovernanceError):
    """Raised when a durable write or read against a backing store fails.

    A decision whose evidence append raised this error is not durable and must
    be treated as not recorded.
    """


class QuotaExceededError(GovernanceError):
    """Raised by the service when the quota gate blocks a metered action."""

    def __init__(self, decision: "LimitDecision") -> None:
        super().__init__(decision.reason or "Limit reached")
        self.decision = decision
