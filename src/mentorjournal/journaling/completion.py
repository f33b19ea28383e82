from ..models import JournalingSession, JournalTemplate
from .conversation import ConversationLog


class CompletionGate:
    """Decides when a session is complete and when it may be completed early."""

    @staticmethod
    def reaches_end(template: JournalTemplate, step: int) -> bool:
        return step >= len(template.fields)

    @staticmethod
    def bounded_step(template: JournalTemplate, step: int) -> int:
        return min(step, len(template.fields))

    @staticmethod
    def has_required_answers(template: JournalTemplate, session: JournalingSession) -> bool:
        """At least one user answer per required field."""
        answers = ConversationLog(session.conversation).user_messages()
        return len(answers) >= template.required_field_count

    @classmethod
    def can_manually_complete(cls, template: JournalTemplate, session: JournalingSession) -> bool:
        if session.is_complete or session.status.is_terminal:
            return False
        return cls.has_required_answers(template, session)
