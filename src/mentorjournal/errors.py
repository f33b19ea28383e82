"""Exceptions raised by the journaling flow and its collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import JournalingSession


class JournalingError(Exception):
    """Base error for the journaling service."""


class AIServiceError(JournalingError):
    """Text generation failed (network, timeout, empty or malformed reply)."""


class TemplateNotFoundError(JournalingError):
    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class SessionNotFoundError(JournalingError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidTransitionError(JournalingError):
    """The requested action is not allowed in the session's current state."""


class SessionBusyError(JournalingError):
    """An AI request is already in flight for this session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"A response is already being generated for session {session_id}")
        self.session_id = session_id


class SessionPersistenceError(JournalingError):
    """The session store rejected a write."""


class TurnFailedError(JournalingError):
    """A conversational turn could not be completed.

    Carries the user-facing message and the session as it was left, so the
    caller can still render it and offer "Complete Anyway" when allowed.
    """

    def __init__(
        self,
        message: str,
        session: JournalingSession | None = None,
        can_complete_anyway: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.session = session
        self.can_complete_anyway = can_complete_anyway


class SaveFailedError(JournalingError):
    """Saving a completed session as a journal entry failed."""


class NothingToExportError(JournalingError):
    """The session has no messages yet."""
