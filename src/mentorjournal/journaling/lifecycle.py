from enum import Enum
from typing import Dict, Tuple

from ..errors import InvalidTransitionError
from ..models import SessionStatus


class SessionEvent(str, Enum):
    START = "start"
    RESPOND = "respond"
    FINISH = "finish"
    MANUAL_COMPLETE = "manual_complete"
    SAVE = "save"
    DISCARD = "discard"


S = SessionStatus
E = SessionEvent

# FINISH is a RESPOND that answered the last field.
TRANSITIONS: Dict[Tuple[SessionStatus, SessionEvent], SessionStatus] = {
    (S.NOT_STARTED, E.START): S.IN_PROGRESS,
    (S.IN_PROGRESS, E.RESPOND): S.IN_PROGRESS,
    (S.IN_PROGRESS, E.FINISH): S.AWAITING_SAVE,
    (S.IN_PROGRESS, E.MANUAL_COMPLETE): S.AWAITING_SAVE,
    (S.AWAITING_SAVE, E.SAVE): S.SAVED,
    (S.NOT_STARTED, E.DISCARD): S.DISCARDED,
    (S.IN_PROGRESS, E.DISCARD): S.DISCARDED,
    (S.AWAITING_SAVE, E.DISCARD): S.DISCARDED,
}


def next_status(current: SessionStatus, event: SessionEvent) -> SessionStatus:
    """Return the status reached from current via event.

    Raises:
        InvalidTransitionError: if event is not allowed in current.
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {event.value} a session that is {current.value.replace('_', ' ')}"
        ) from None
