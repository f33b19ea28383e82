"""Plain-text renderings of a session: journal summary and share export."""

from typing import List

from ..models import JournalingSession, JournalTemplate, MessageSender

SEPARATOR = "=" * 50


def conversation_summary(template: JournalTemplate, session: JournalingSession) -> str:
    """Readable summary of the user's answers, used as journal entry content.

    Answers are paired with their question by position; answers beyond the
    template's fields are listed on their own.
    """
    blocks: List[str] = []
    answers = [m for m in session.conversation if m.sender is MessageSender.USER]
    for index, message in enumerate(answers):
        if index < len(template.fields):
            blocks.append(f"{template.fields[index].prompt}\n{message.content}")
        else:
            blocks.append(message.content)
    return f"{template.title}\n\n" + "\n\n".join(blocks) if blocks else template.title


def export_text(template: JournalTemplate, session: JournalingSession) -> str:
    """Share-sheet text for a session."""
    lines = [
        "1-to-1 Mentor Session Export",
        f"Session: {template.title}",
        f"Created: {session.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Status: {'Complete' if session.is_complete else 'In Progress'}",
        f"Messages: {len(session.conversation)}",
        "",
        SEPARATOR,
        "",
    ]
    for message in session.conversation:
        sender = "You" if message.sender is MessageSender.USER else "Mentor"
        lines.append(f"[{message.timestamp.strftime('%H:%M')}] {sender}:")
        lines.append(message.content)
        lines.append("")
    return "\n".join(lines)


def export_subject(template: JournalTemplate) -> str:
    return f"1-to-1 Session: {template.name}"
