import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mentorjournal.errors import (
    AIServiceError,
    InvalidTransitionError,
    NothingToExportError,
    SaveFailedError,
    SessionBusyError,
    SessionNotFoundError,
    TemplateNotFoundError,
    TurnFailedError,
)
from mentorjournal.journaling import (
    COMPLETED_WITHOUT_REPLY,
    START_FAILED,
    TURN_FAILED,
    JournalingFlow,
)
from mentorjournal.models import JournalTemplate, MessageSender, SessionStatus
from mentorjournal.services.journal_repository import InMemoryJournalRepository
from mentorjournal.services.session_store import InMemorySessionStore
from mentorjournal.settings import Settings
from mentorjournal.templates import TemplateRegistry


class BlockingAI:
    """Replies only once released, so a request can be held in flight."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.started.set()
        await self.release.wait()
        return f"reply {len(self.prompts)}"


async def _answer(flow: JournalingFlow, session_id: str, *answers: str) -> None:
    for text in answers:
        await flow.submit_user_response(session_id, text)


@pytest.mark.asyncio
async def test_start_session_adds_opening_message(
    flow: JournalingFlow, mock_ai: MagicMock, session_store: InMemorySessionStore
) -> None:
    result = await flow.start_session("evening_check")
    session = result.session
    assert session.current_step == 0
    assert session.is_complete is False
    assert session.status is SessionStatus.IN_PROGRESS
    assert [(m.sender, m.content) for m in session.conversation] == [(MessageSender.MENTOR, "mentor reply 1")]
    assert "Greet the user warmly and ask the first question." in mock_ai.generate.call_args[0][0]

    stored = await session_store.get(session.id)
    assert stored is not None and len(stored.conversation) == 1


@pytest.mark.asyncio
async def test_start_session_unknown_template(flow: JournalingFlow) -> None:
    with pytest.raises(TemplateNotFoundError):
        await flow.start_session("nope")


@pytest.mark.asyncio
async def test_start_session_ai_failure_keeps_session(
    flow: JournalingFlow, mock_ai: MagicMock, session_store: InMemorySessionStore
) -> None:
    mock_ai.generate.side_effect = AIServiceError("offline")
    with pytest.raises(TurnFailedError) as exc_info:
        await flow.start_session("evening_check")
    assert exc_info.value.message == START_FAILED
    stored = await session_store.get(exc_info.value.session.id)
    assert stored is not None
    assert stored.conversation == []
    assert stored.status is SessionStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_walk_through_all_fields(flow: JournalingFlow, mock_ai: MagicMock) -> None:
    session_id = (await flow.start_session("evening_check")).session.id

    steps = []
    for text in ("Calm", "Finished the report", "Nothing else"):
        result = await flow.submit_user_response(session_id, text)
        steps.append(result.session.current_step)
        assert result.notice is None

    assert steps == [1, 2, 3]
    session = await flow.get_session(session_id)
    assert session.is_complete is True
    assert session.status is SessionStatus.AWAITING_SAVE
    assert [m.sender for m in session.conversation] == [MessageSender.MENTOR, MessageSender.USER] * 3 + [
        MessageSender.MENTOR
    ]

    prompts = [c[0][0] for c in mock_ai.generate.call_args_list]
    assert "Move to the next question." in prompts[1]
    assert "Provide a warm summary and closing message." in prompts[3]
    assert prompts[3].endswith("user: Nothing else")


@pytest.mark.asyncio
async def test_no_responses_after_completion(flow: JournalingFlow) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "a", "b", "c")
    with pytest.raises(InvalidTransitionError):
        await flow.submit_user_response(session_id, "d")


@pytest.mark.asyncio
async def test_empty_response_rejected(flow: JournalingFlow) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    with pytest.raises(ValueError):
        await flow.submit_user_response(session_id, "   ")


@pytest.mark.asyncio
async def test_unknown_session(flow: JournalingFlow) -> None:
    with pytest.raises(SessionNotFoundError):
        await flow.submit_user_response("missing", "hi")


@pytest.mark.asyncio
async def test_ai_failure_mid_session_offers_complete_anyway(flow: JournalingFlow, mock_ai: MagicMock) -> None:
    """Two of three fields are required: after two answers the user may finish early."""
    session_id = (await flow.start_session("evening_check")).session.id

    mock_ai.generate.side_effect = AIServiceError("rate limited")
    with pytest.raises(TurnFailedError) as first:
        await flow.submit_user_response(session_id, "Calm")
    assert first.value.message == TURN_FAILED
    assert first.value.can_complete_anyway is False

    mock_ai.generate.side_effect = None
    mock_ai.generate.return_value = "What went well today?"
    await flow.submit_user_response(session_id, "Calm")

    mock_ai.generate.side_effect = AIServiceError("rate limited")
    with pytest.raises(TurnFailedError) as second:
        await flow.submit_user_response(session_id, "Finished the report")
    assert second.value.can_complete_anyway is True

    session = await flow.get_session(session_id)
    assert session.current_step == 1
    assert session.is_complete is False
    assert session.conversation[-1].content == "Finished the report"


@pytest.mark.asyncio
async def test_ai_failure_on_last_field_still_completes(flow: JournalingFlow, mock_ai: MagicMock) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm", "Finished the report")

    mock_ai.generate.side_effect = AIServiceError("timeout")
    result = await flow.submit_user_response(session_id, "Nothing else")
    assert result.notice == COMPLETED_WITHOUT_REPLY

    session = await flow.get_session(session_id)
    assert session.is_complete is True
    assert session.current_step == 3
    assert session.status is SessionStatus.AWAITING_SAVE
    assert session.conversation[-1].sender is MessageSender.USER


@pytest.mark.asyncio
async def test_persistence_failure_surfaces_like_ai_failure(
    flow: JournalingFlow, session_store: InMemorySessionStore
) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    session_store.save = AsyncMock(return_value=False)  # type: ignore[method-assign]
    with pytest.raises(TurnFailedError) as exc_info:
        await flow.submit_user_response(session_id, "Calm")
    assert exc_info.value.message == TURN_FAILED


@pytest.mark.asyncio
async def test_manual_completion(flow: JournalingFlow) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm")
    with pytest.raises(InvalidTransitionError):
        await flow.manually_complete(session_id)

    await _answer(flow, session_id, "Finished the report")
    assert flow.can_manually_complete(await flow.get_session(session_id)) is True

    session = await flow.manually_complete(session_id)
    assert session.is_complete is True
    assert session.current_step == 2
    assert session.status is SessionStatus.AWAITING_SAVE
    assert flow.can_manually_complete(session) is False


@pytest.mark.asyncio
async def test_save_creates_one_entry_and_removes_session(
    flow: JournalingFlow,
    mock_ai: MagicMock,
    journal: InMemoryJournalRepository,
    session_store: InMemorySessionStore,
) -> None:
    started = await flow.start_session("evening_check")
    session_id = started.session.id
    await _answer(flow, session_id, "Calm", "Finished the report", "Nothing else")

    mock_ai.generate.side_effect = None
    mock_ai.generate.return_value = '{"Mood": "Calm", "Win": "Finished the report", "Note": null}'
    entry = await flow.save_session(session_id)

    assert await journal.list_entries() == [entry]
    assert await session_store.get(session_id) is None
    assert entry.structured_session_id == session_id
    assert entry.structured_data == {"Mood": "Calm", "Win": "Finished the report", "Note": None}
    assert entry.created_at == started.session.created_at
    assert entry.content.startswith("🌙 Evening Check\n\nHow are you feeling tonight?\nCalm")


@pytest.mark.asyncio
async def test_save_with_failed_extraction_still_saves(
    flow: JournalingFlow, mock_ai: MagicMock, journal: InMemoryJournalRepository
) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm", "Good day")
    await flow.manually_complete(session_id)

    mock_ai.generate.side_effect = AIServiceError("down")
    entry = await flow.save_session(session_id)
    assert entry.structured_data == {}
    assert len(await journal.list_entries()) == 1


@pytest.mark.asyncio
async def test_save_requires_completion(flow: JournalingFlow, journal: InMemoryJournalRepository) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm")
    with pytest.raises(InvalidTransitionError):
        await flow.save_session(session_id)
    assert await journal.list_entries() == []


@pytest.mark.asyncio
async def test_save_failure_keeps_session(
    flow: JournalingFlow, journal: InMemoryJournalRepository, session_store: InMemorySessionStore
) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "a", "b", "c")
    journal.add_entry = AsyncMock(return_value=False)  # type: ignore[method-assign]
    with pytest.raises(SaveFailedError):
        await flow.save_session(session_id)
    stored = await session_store.get(session_id)
    assert stored is not None and stored.status is SessionStatus.AWAITING_SAVE


@pytest.mark.asyncio
async def test_saved_session_left_behind_cannot_be_saved_twice(
    flow: JournalingFlow, journal: InMemoryJournalRepository, session_store: InMemorySessionStore
) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "a", "b", "c")

    session_store.delete = AsyncMock(return_value=False)  # type: ignore[method-assign]
    await flow.save_session(session_id)
    stored = await session_store.get(session_id)
    assert stored is not None and stored.status is SessionStatus.SAVED

    del session_store.delete
    with pytest.raises(InvalidTransitionError):
        await flow.save_session(session_id)
    assert len(await journal.list_entries()) == 1


@pytest.mark.asyncio
async def test_discard_removes_session(flow: JournalingFlow) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    session = await flow.discard_session(session_id)
    assert session.status is SessionStatus.DISCARDED
    with pytest.raises(SessionNotFoundError):
        await flow.get_session(session_id)


@pytest.mark.asyncio
async def test_export(flow: JournalingFlow) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    subject, text = await flow.export_session(session_id)
    assert subject == "1-to-1 Session: Evening Check"
    assert "Mentor:\nmentor reply 1" in text


@pytest.mark.asyncio
async def test_export_without_messages(flow: JournalingFlow, mock_ai: MagicMock) -> None:
    mock_ai.generate.side_effect = AIServiceError("offline")
    with pytest.raises(TurnFailedError) as exc_info:
        await flow.start_session("evening_check")
    with pytest.raises(NothingToExportError):
        await flow.export_session(exc_info.value.session.id)


@pytest.fixture
def blocking_flow(
    settings: Settings, three_field_template: JournalTemplate, journal: InMemoryJournalRepository
) -> tuple[JournalingFlow, BlockingAI]:
    ai = BlockingAI()
    flow = JournalingFlow(
        store=InMemorySessionStore(),
        journal=journal,
        templates=TemplateRegistry([three_field_template]),
        ai=ai,  # type: ignore[arg-type]
        settings=settings,
    )
    return flow, ai


@pytest.mark.asyncio
async def test_second_request_while_busy_is_rejected(blocking_flow: tuple[JournalingFlow, BlockingAI]) -> None:
    flow, ai = blocking_flow
    ai.release.set()
    session_id = (await flow.start_session("evening_check")).session.id

    ai.release.clear()
    ai.started.clear()
    task = asyncio.create_task(flow.submit_user_response(session_id, "Calm"))
    await ai.started.wait()

    assert flow.is_busy(session_id)
    with pytest.raises(SessionBusyError):
        await flow.submit_user_response(session_id, "Calm again")
    with pytest.raises(SessionBusyError):
        await flow.manually_complete(session_id)

    ai.release.set()
    result = await task
    assert result.session.current_step == 1
    assert not flow.is_busy(session_id)
    assert len(ai.prompts) == 2


@pytest.mark.asyncio
async def test_reply_dropped_when_discarded_in_flight(blocking_flow: tuple[JournalingFlow, BlockingAI]) -> None:
    flow, ai = blocking_flow
    ai.release.set()
    session_id = (await flow.start_session("evening_check")).session.id

    ai.release.clear()
    ai.started.clear()
    task = asyncio.create_task(flow.submit_user_response(session_id, "Calm"))
    await ai.started.wait()
    await flow.discard_session(session_id)

    ai.release.set()
    result = await task
    assert result.dropped is True
    assert result.session.status is SessionStatus.DISCARDED
    with pytest.raises(SessionNotFoundError):
        await flow.get_session(session_id)


@pytest.mark.asyncio
async def test_discard_during_save_writes_no_entry(
    blocking_flow: tuple[JournalingFlow, BlockingAI], journal: InMemoryJournalRepository
) -> None:
    flow, ai = blocking_flow
    ai.release.set()
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm", "Finished the report", "Nothing else")

    ai.release.clear()
    ai.started.clear()
    task = asyncio.create_task(flow.save_session(session_id))
    await ai.started.wait()
    discarded = await flow.discard_session(session_id)
    assert discarded.status is SessionStatus.DISCARDED

    ai.release.set()
    with pytest.raises(InvalidTransitionError):
        await task
    assert await journal.list_entries() == []
    with pytest.raises(SessionNotFoundError):
        await flow.get_session(session_id)


@pytest.mark.asyncio
async def test_manual_completion_holds_the_session(
    flow: JournalingFlow, session_store: InMemorySessionStore
) -> None:
    session_id = (await flow.start_session("evening_check")).session.id
    await _answer(flow, session_id, "Calm", "Finished the report")

    busy_while_loading = []
    load = session_store.get

    async def get(sid: str):
        busy_while_loading.append(flow.is_busy(sid))
        return await load(sid)

    session_store.get = get  # type: ignore[method-assign]
    await flow.manually_complete(session_id)
    assert busy_while_loading == [True]
    assert not flow.is_busy(session_id)
