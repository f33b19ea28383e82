"""Structured journaling session flow.

A session walks the user through a template's questions one at a time, with
AI mentor messages in between, and ends as a saved journal entry or discarded.
"""

from .completion import CompletionGate
from .conversation import ConversationLog
from .export import conversation_summary, export_subject, export_text
from .flow import (
    COMPLETED_WITHOUT_REPLY,
    SAVE_FAILED,
    START_FAILED,
    TURN_FAILED,
    JournalingFlow,
    TurnResult,
    close_journaling_flow,
    get_journaling_flow_async,
)
from .lifecycle import SessionEvent, next_status

__all__ = [
    "COMPLETED_WITHOUT_REPLY",
    "CompletionGate",
    "ConversationLog",
    "JournalingFlow",
    "SAVE_FAILED",
    "START_FAILED",
    "SessionEvent",
    "TURN_FAILED",
    "TurnResult",
    "close_journaling_flow",
    "conversation_summary",
    "export_subject",
    "export_text",
    "get_journaling_flow_async",
    "next_status",
]
