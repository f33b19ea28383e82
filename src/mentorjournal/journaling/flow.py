import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Set

from ..ai import AIService, PromptGenerator, StructuredDataExtractor
from ..errors import (
    AIServiceError,
    InvalidTransitionError,
    NothingToExportError,
    SaveFailedError,
    SessionBusyError,
    SessionNotFoundError,
    SessionPersistenceError,
    TurnFailedError,
)
from ..models import (
    JournalEntry,
    JournalingSession,
    JournalTemplate,
    SessionStatus,
    new_id,
    utcnow,
)
from ..services.journal_repository import close_journal_repository, get_journal_repository_async
from ..services.session_store import close_session_store, get_session_store_async
from ..settings import Settings, get_settings
from ..templates import TemplateRegistry
from .completion import CompletionGate
from .conversation import ConversationLog
from .export import conversation_summary, export_subject, export_text
from .lifecycle import SessionEvent, next_status

logger = logging.getLogger(__name__)

START_FAILED = "Failed to start session. Please try again."
TURN_FAILED = "Failed to get response. Please try again."
COMPLETED_WITHOUT_REPLY = "Session complete! AI response failed but you can still save."
SAVE_FAILED = "Failed to save entry. Please try again."


class SessionStoreLike(Protocol):
    async def get(self, session_id: str) -> JournalingSession | None: ...

    async def save(self, session: JournalingSession) -> bool: ...

    async def delete(self, session_id: str) -> bool: ...


class JournalRepositoryLike(Protocol):
    async def add_entry(self, entry: JournalEntry) -> bool: ...


@dataclass
class TurnResult:
    """Outcome of a conversational turn.

    ``notice`` carries user-facing text when the turn succeeded only partially;
    ``dropped`` is set when the session was discarded while the AI was replying.
    """

    session: JournalingSession
    notice: str | None = None
    dropped: bool = False


class JournalingFlow:
    """Drives a guided journaling session from first question to saved entry."""

    def __init__(
        self,
        store: SessionStoreLike,
        journal: JournalRepositoryLike,
        templates: TemplateRegistry,
        ai: AIService,
        prompts: PromptGenerator | None = None,
        extractor: StructuredDataExtractor | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._journal = journal
        self._templates = templates
        self._ai = ai
        self._prompts = prompts or PromptGenerator(self._settings)
        self._extractor = extractor or StructuredDataExtractor(ai, self._prompts)
        self._gate = CompletionGate()
        self._in_flight: Set[str] = set()
        self._discarded: Set[str] = set()

    @property
    def templates(self) -> TemplateRegistry:
        return self._templates

    @property
    def compact(self) -> bool:
        return self._settings.use_compact_prompts

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._in_flight

    @asynccontextmanager
    async def _busy(self, session_id: str) -> AsyncIterator[None]:
        # Check and mark happen without an await in between.
        if session_id in self._in_flight:
            raise SessionBusyError(session_id)
        self._in_flight.add(session_id)
        try:
            yield
        finally:
            self._in_flight.discard(session_id)
            self._discarded.discard(session_id)

    def _was_discarded(self, session: JournalingSession) -> bool:
        if session.id not in self._discarded:
            return False
        logger.info("Session %s discarded during AI request; dropping reply", session.id)
        session.status = SessionStatus.DISCARDED
        return True

    async def _persist(self, session: JournalingSession) -> None:
        session.last_updated = utcnow()
        if not await self._store.save(session):
            raise SessionPersistenceError(f"Could not persist session {session.id}")

    def _log_failure(self, message: str, session: JournalingSession, **metadata: object) -> None:
        logger.exception(
            message,
            extra={
                "category": "journaling",
                "metadata": {
                    "session_id": session.id,
                    "template_id": session.template_id,
                    "current_step": session.current_step,
                    **metadata,
                },
            },
        )

    async def get_session(self, session_id: str) -> JournalingSession:
        session = await self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def template_for(self, session: JournalingSession) -> JournalTemplate:
        return self._templates.get(session.template_id)

    def can_manually_complete(self, session: JournalingSession) -> bool:
        return self._gate.can_manually_complete(self.template_for(session), session)

    async def start_session(self, template_id: str) -> TurnResult:
        """Create a session and ask the mentor for its opening message.

        Raises:
            TemplateNotFoundError: unknown template.
            TurnFailedError: the opening message could not be produced; the
                session (if it was stored) is attached and stays in progress.
        """
        template = self._templates.get(template_id)
        session = JournalingSession(
            id=new_id(),
            template_id=template.id,
            template_name=template.name,
            status=SessionStatus.NOT_STARTED,
        )
        session.status = next_status(session.status, SessionEvent.START)

        async with self._busy(session.id):
            try:
                await self._persist(session)
            except SessionPersistenceError:
                self._log_failure("Failed to create session", session)
                raise TurnFailedError(START_FAILED) from None

            log = ConversationLog(session.conversation)
            try:
                reply = await self._ai.generate(self._prompts.opening_prompt(template, self.compact))
                if self._was_discarded(session):
                    return TurnResult(session, dropped=True)
                log.add_mentor(reply)
                await self._persist(session)
            except (AIServiceError, SessionPersistenceError):
                self._log_failure("Failed to send initial message", session)
                raise TurnFailedError(START_FAILED, session=session) from None

        logger.info("Started session %s with template %s", session.id, template.id)
        return TurnResult(session)

    def _advance(self, session: JournalingSession, template: JournalTemplate, next_step: int) -> None:
        session.current_step = max(session.current_step, self._gate.bounded_step(template, next_step))
        if self._gate.reaches_end(template, next_step) and not session.is_complete:
            session.status = next_status(session.status, SessionEvent.FINISH)
            session.is_complete = True

    async def submit_user_response(self, session_id: str, text: str) -> TurnResult:
        """Record the user's answer and ask the mentor for the next turn.

        Raises:
            ValueError: empty answer.
            SessionNotFoundError / InvalidTransitionError / SessionBusyError.
            TurnFailedError: the mentor reply failed before the last field.
        """
        text = text.strip()
        if not text:
            raise ValueError("Empty message")

        async with self._busy(session_id):
            session = await self.get_session(session_id)
            template = self.template_for(session)
            next_status(session.status, SessionEvent.RESPOND)

            log = ConversationLog(session.conversation)
            log.add_user(text)
            next_step = session.current_step + 1
            prompt = self._prompts.turn_prompt(template, next_step, log, self.compact)

            try:
                await self._persist(session)
                reply = await self._ai.generate(prompt)
                if self._was_discarded(session):
                    return TurnResult(session, dropped=True)
                log.add_mentor(reply)
                self._advance(session, template, next_step)
                await self._persist(session)
            except (AIServiceError, SessionPersistenceError):
                self._log_failure("Failed to generate AI response", session, next_step=next_step)
                return await self._recover_turn(session, template, next_step)

        if session.is_complete:
            logger.info("Session %s answered all %d fields", session.id, len(template.fields))
        return TurnResult(session)

    async def _recover_turn(
        self, session: JournalingSession, template: JournalTemplate, next_step: int
    ) -> TurnResult:
        if self._was_discarded(session):
            return TurnResult(session, dropped=True)

        if not self._gate.reaches_end(template, next_step):
            raise TurnFailedError(
                TURN_FAILED,
                session=session,
                can_complete_anyway=self._gate.can_manually_complete(template, session),
            )

        # Last field answered: complete without the closing summary so the
        # user can still save.
        self._advance(session, template, next_step)
        try:
            await self._persist(session)
        except SessionPersistenceError:
            self._log_failure("Failed to persist completed session", session)
            raise TurnFailedError(TURN_FAILED, session=session) from None
        return TurnResult(session, notice=COMPLETED_WITHOUT_REPLY)

    async def manually_complete(self, session_id: str) -> JournalingSession:
        """Finish early once every required field has an answer."""
        async with self._busy(session_id):
            session = await self.get_session(session_id)
            template = self.template_for(session)
            if not self._gate.can_manually_complete(template, session):
                raise InvalidTransitionError(
                    "Answer all required questions before completing the session"
                )
            session.status = next_status(session.status, SessionEvent.MANUAL_COMPLETE)
            session.is_complete = True
            await self._persist(session)
        logger.info("Session %s completed manually at step %d", session.id, session.current_step)
        return session

    def _abort_if_discarded(self, session: JournalingSession) -> None:
        if self._was_discarded(session):
            raise InvalidTransitionError(f"Session {session.id} was discarded")

    async def save_session(self, session_id: str) -> JournalEntry:
        """Turn a completed session into a journal entry and drop the session record.

        A discard that lands while the answers are being extracted wins: no
        entry is written and the record stays deleted.

        Raises:
            InvalidTransitionError: the session is not complete yet, or was
                discarded while saving.
            SaveFailedError: the session or the entry could not be written.
        """
        async with self._busy(session_id):
            session = await self.get_session(session_id)
            template = self.template_for(session)
            status = next_status(session.status, SessionEvent.SAVE)

            data = await self._extractor.extract(template, session.conversation)
            self._abort_if_discarded(session)
            session.extracted_data = data
            session.is_complete = True
            try:
                await self._persist(session)
            except SessionPersistenceError:
                self._log_failure("Failed to save session", session)
                raise SaveFailedError(SAVE_FAILED) from None
            if session_id in self._discarded:
                await self._store.delete(session_id)
                self._abort_if_discarded(session)

            entry = JournalEntry(
                structured_session_id=session.id,
                structured_data=data,
                content=conversation_summary(template, session),
                created_at=session.created_at,
            )
            if not await self._journal.add_entry(entry):
                logger.error(
                    "Failed to add journal entry for session %s",
                    session.id,
                    extra={"category": "journaling", "metadata": {"template_id": template.id}},
                )
                raise SaveFailedError(SAVE_FAILED)

            # A record left behind must not be saveable a second time.
            session.status = status
            if not await self._store.save(session):
                logger.warning("Could not mark session %s as saved", session.id)
            if not await self._store.delete(session.id):
                logger.warning("Could not delete saved session %s; it expires with its TTL", session.id)

        logger.info(
            "Saved structured journal entry",
            extra={"metadata": {"template_id": template.id, "session_id": session.id}},
        )
        return entry

    async def discard_session(self, session_id: str) -> JournalingSession:
        """Drop an unsaved session. An in-flight reply for it is ignored."""
        session = await self.get_session(session_id)
        session.status = next_status(session.status, SessionEvent.DISCARD)
        if session_id in self._in_flight:
            self._discarded.add(session_id)
        await self._store.delete(session_id)
        logger.info("Discarded session %s", session_id)
        return session

    async def export_session(self, session_id: str) -> tuple[str, str]:
        """Return (subject, text) for sharing the session."""
        session = await self.get_session(session_id)
        if not session.conversation:
            raise NothingToExportError("No messages to export")
        template = self.template_for(session)
        return export_subject(template), export_text(template, session)


_flow_instance: JournalingFlow | None = None


async def get_journaling_flow_async() -> JournalingFlow:
    """Return the process-wide flow, wiring stores and AI on first use."""
    global _flow_instance
    if _flow_instance is None:
        settings = get_settings()
        _flow_instance = JournalingFlow(
            store=await get_session_store_async(),
            journal=await get_journal_repository_async(),
            templates=TemplateRegistry(),
            ai=AIService(settings),
            settings=settings,
        )
    return _flow_instance


async def close_journaling_flow() -> None:
    global _flow_instance
    _flow_instance = None
    await close_session_store()
    await close_journal_repository()
