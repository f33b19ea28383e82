from typing import Iterator, List

from ..models import Message, MessageSender


class ConversationLog:
    """Append-only view over a session's message list."""

    def __init__(self, messages: List[Message]) -> None:
        self._messages = messages

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, content: str, sender: MessageSender) -> Message:
        message = Message(content=content, sender=sender)
        self._messages.append(message)
        return message

    def add_user(self, content: str) -> Message:
        return self.append(content, MessageSender.USER)

    def add_mentor(self, content: str) -> Message:
        return self.append(content, MessageSender.MENTOR)

    def user_messages(self) -> List[Message]:
        return [m for m in self._messages if m.sender is MessageSender.USER]
