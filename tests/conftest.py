import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from mentorjournal.ai import AIService  # noqa: E402
from mentorjournal.journaling import JournalingFlow  # noqa: E402
from mentorjournal.models import JournalTemplate, TemplateField  # noqa: E402
from mentorjournal.services.journal_repository import InMemoryJournalRepository  # noqa: E402
from mentorjournal.services.session_store import InMemorySessionStore  # noqa: E402
from mentorjournal.settings import Settings  # noqa: E402
from mentorjournal.templates import TemplateRegistry  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="test-key", redis_url=None, compact_prompts=False, ai_provider="cloud")


@pytest.fixture
def three_field_template() -> JournalTemplate:
    """Three questions, the last one optional."""
    return JournalTemplate(
        id="evening_check",
        name="Evening Check",
        description="Short end-of-day reflection",
        emoji="🌙",
        fields=(
            TemplateField(id="mood", label="Mood", prompt="How are you feeling tonight?"),
            TemplateField(id="win", label="Win", prompt="What went well today?"),
            TemplateField(id="note", label="Note", prompt="Anything else?", required=False),
        ),
        completion_message="Sleep well!",
    )


@pytest.fixture
def mock_ai() -> MagicMock:
    """AI service whose replies are numbered mentor messages."""
    m = MagicMock(spec=AIService)
    replies = (f"mentor reply {i}" for i in range(1, 100))
    m.generate = AsyncMock(side_effect=lambda prompt: next(replies))
    return m


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def journal() -> InMemoryJournalRepository:
    return InMemoryJournalRepository()


@pytest.fixture
def flow(
    settings: Settings,
    three_field_template: JournalTemplate,
    mock_ai: MagicMock,
    session_store: InMemorySessionStore,
    journal: InMemoryJournalRepository,
) -> JournalingFlow:
    return JournalingFlow(
        store=session_store,
        journal=journal,
        templates=TemplateRegistry([three_field_template]),
        ai=mock_ai,
        settings=settings,
    )
