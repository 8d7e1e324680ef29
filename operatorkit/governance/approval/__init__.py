"""Approval sessions: routing proposals to human review and recording decisions."""

from .session_store import ApprovalSessionStore

__all__ = ["ApprovalSessionStore"]
