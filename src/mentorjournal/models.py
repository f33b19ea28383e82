import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class MessageSender(str, Enum):
    USER = "user"
    MENTOR = "mentor"


class FieldType(str, Enum):
    TEXT = "text"
    LONG_TEXT = "long_text"
    SCALE = "scale"
    MULTIPLE_CHOICE = "multiple_choice"
    CHECKLIST = "checklist"
    DATETIME = "datetime"
    DURATION = "duration"
    NUMBER = "number"
    LINKED_GOAL = "linked_goal"
    LINKED_HABIT = "linked_habit"

    @property
    def display_name(self) -> str:
        return _FIELD_TYPE_NAMES[self]

    @classmethod
    def parse(cls, value: str | None) -> "FieldType":
        """Decode a stored value; unknown types fall back to plain text."""
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


_FIELD_TYPE_NAMES = {
    FieldType.TEXT: "Short Text",
    FieldType.LONG_TEXT: "Long Text",
    FieldType.SCALE: "Scale (1-10)",
    FieldType.MULTIPLE_CHOICE: "Multiple Choice",
    FieldType.CHECKLIST: "Checklist",
    FieldType.DATETIME: "Date/Time",
    FieldType.DURATION: "Duration",
    FieldType.NUMBER: "Number",
    FieldType.LINKED_GOAL: "Link to Goal",
    FieldType.LINKED_HABIT: "Link to Habit",
}


class TemplateCategory(str, Enum):
    THERAPY = "therapy"
    WELLNESS = "wellness"
    PRODUCTIVITY = "productivity"
    CREATIVE = "creative"
    CUSTOM = "custom"


class SessionStatus(str, Enum):
    """Lifecycle of a journaling session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    AWAITING_SAVE = "awaiting_save"
    SAVED = "saved"
    DISCARDED = "discarded"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.SAVED, SessionStatus.DISCARDED)


@dataclass(frozen=True)
class Message:
    """A single conversation message. Never mutated once appended."""

    content: str
    sender: MessageSender
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class TemplateField:
    """One question of a journal template."""

    id: str
    label: str
    prompt: str
    type: FieldType = FieldType.TEXT
    required: bool = True
    help_text: str | None = None
    ai_coaching: str | None = None
    validation: Dict[str, Any] | None = None


@dataclass(frozen=True)
class JournalTemplate:
    """Ordered question schema driving a session."""

    id: str
    name: str
    fields: Tuple[TemplateField, ...]
    description: str = ""
    emoji: str | None = None
    ai_guidance: str | None = None
    completion_message: str | None = None
    show_progress_indicator: bool = True
    allow_skip_fields: bool = False
    category: TemplateCategory | None = None
    is_system_defined: bool = False

    @property
    def required_field_count(self) -> int:
        return sum(1 for f in self.fields if f.required)

    @property
    def title(self) -> str:
        return f"{self.emoji or ''} {self.name}".strip()


@dataclass
class JournalingSession:
    """Per-session journaling state (conversation, step, completion)."""

    id: str
    template_id: str
    template_name: str = ""
    conversation: List[Message] = field(default_factory=list)
    current_step: int = 0
    is_complete: bool = False
    extracted_data: Dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    status: SessionStatus = SessionStatus.IN_PROGRESS


@dataclass(frozen=True)
class JournalEntry:
    """Journal entry derived from a saved session."""

    structured_session_id: str
    content: str
    structured_data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    type: str = "structured_journal"
    id: str = field(default_factory=new_id)
