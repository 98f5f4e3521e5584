"""In-process registry of running sessions, keyed by a random id.

Nothing is persisted: restarting the server ends every ride.
"""

import logging
import uuid

from where_are_we.session import SessionController

logger = logging.getLogger(__name__)

_sessions: dict[str, SessionController] = {}


def add(controller: SessionController) -> str:
    session_id = uuid.uuid4().hex[:12]
    _sessions[session_id] = controller
    logger.info("session %s registered (%d active)", session_id, len(_sessions))
    return session_id


def get(session_id: str) -> SessionController | None:
    return _sessions.get(session_id)


def remove(session_id: str) -> bool:
    controller = _sessions.pop(session_id, None)
    if controller is None:
        return False
    controller.quit()
    logger.info("session %s removed", session_id)
    return True


def clear() -> None:
    for session_id in list(_sessions):
        remove(session_id)
