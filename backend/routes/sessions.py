"""Game session endpoints: one taxi ride per session id.

Every action returns {"id", "session": <snapshot>} plus action-specific
fields. Notifications raised by an action are drained into that response.
"""

import base64
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException

from backend import factory, registry
from where_are_we import config
from where_are_we.errors import (
    InvalidGuessError,
    PhaseError,
    RoundFinishedError,
    SessionStartError,
    TurnInProgressError,
    UnknownNpcError,
    UnknownTranslationError,
)
from where_are_we.services import SpeechError, decode_audio
from where_are_we.session import DriverTurn, SessionController

from .models import ChatBody, GuessBody, VoiceBody

router = APIRouter()


@contextmanager
def _game_errors():
    """Translate game errors into HTTP errors."""
    try:
        yield
    except (UnknownNpcError, UnknownTranslationError) as e:
        raise HTTPException(404, str(e))
    except InvalidGuessError as e:
        raise HTTPException(400, str(e))
    except TurnInProgressError as e:
        raise HTTPException(429, str(e))
    except (PhaseError, RoundFinishedError) as e:
        raise HTTPException(409, str(e))
    except SessionStartError as e:
        raise HTTPException(503, str(e))


def _controller(session_id: str) -> SessionController:
    controller = registry.get(session_id)
    if controller is None or not controller.active:
        raise HTTPException(404, "Session not found")
    return controller


def _view(session_id: str, controller: SessionController, **extra) -> dict:
    return {
        "id": session_id,
        "session": controller.snapshot(drain=True).model_dump(mode="json"),
        **extra,
    }


def _turn(turn: DriverTurn | None) -> dict | None:
    if turn is None:
        return None
    data = turn.model_dump(mode="json", exclude={"audio"})
    data["audio"] = base64.b64encode(turn.audio).decode() if turn.audio else None
    return data


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.post("/sessions")
async def create_session():
    """Start a new game: load the first location and stop at the intro."""
    controller = factory.build_controller(config.get_config())
    with _game_errors():
        await controller.start_game()
    session_id = registry.add(controller)
    return _view(session_id, controller)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Current snapshot (time remaining, log, totals)."""
    controller = _controller(session_id)
    return {"id": session_id, "session": controller.snapshot().model_dump(mode="json")}


@router.delete("/sessions/{session_id}")
async def quit_session(session_id: str):
    """Quit to the menu, dropping the session."""
    if not registry.remove(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True}


@router.post("/sessions/{session_id}/start-round")
async def start_round(session_id: str):
    controller = _controller(session_id)
    with _game_errors():
        controller.start_round()
    return _view(session_id, controller)


# ---------------------------------------------------------------------------
# In-round actions
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/guess")
async def guess(session_id: str, body: GuessBody):
    controller = _controller(session_id)
    with _game_errors():
        outcome = controller.submit_guess(body.guess)
    return _view(session_id, controller, correct=outcome.correct)


@router.post("/sessions/{session_id}/hint")
async def hint(session_id: str):
    """Reveal the next progressive hint through the driver."""
    controller = _controller(session_id)
    with _game_errors():
        revealed = controller.request_hint()
    return _view(session_id, controller, hint=revealed.model_dump() if revealed else None)


@router.post("/sessions/{session_id}/npcs/{npc_id}")
async def reveal_npc(session_id: str, npc_id: str):
    """Show an NPC's clue (counts as a hint the first time)."""
    controller = _controller(session_id)
    with _game_errors():
        npc = controller.reveal_npc_hint(npc_id)
    return _view(session_id, controller, npc=npc.model_dump(mode="json") if npc else None)


@router.post("/sessions/{session_id}/translations/{target_id}")
async def reveal_translation(session_id: str, target_id: str):
    controller = _controller(session_id)
    with _game_errors():
        counted = controller.reveal_translation(target_id)
    return _view(session_id, controller, counted=counted)


@router.post("/sessions/{session_id}/chat")
async def chat(session_id: str, body: ChatBody):
    """Send a typed question to the driver."""
    controller = _controller(session_id)
    with _game_errors():
        turn = await controller.ask_driver(body.message)
    return _view(session_id, controller, turn=_turn(turn))


@router.post("/sessions/{session_id}/voice")
async def voice(session_id: str, body: VoiceBody):
    """Send a recorded question (base64 audio) to the driver."""
    controller = _controller(session_id)
    try:
        audio = decode_audio(body.audio)
    except SpeechError as e:
        raise HTTPException(400, str(e))
    with _game_errors():
        turn = await controller.ask_driver_by_voice(audio)
    return _view(session_id, controller, turn=_turn(turn))


# ---------------------------------------------------------------------------
# Between rounds
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/next")
async def next_step(session_id: str):
    """Result → summary."""
    controller = _controller(session_id)
    with _game_errors():
        controller.next()
    return _view(session_id, controller)


@router.post("/sessions/{session_id}/review")
async def review(session_id: str):
    """Reopen a solved round read-only."""
    controller = _controller(session_id)
    with _game_errors():
        controller.review_round()
    return _view(session_id, controller)


@router.post("/sessions/{session_id}/back-to-summary")
async def back_to_summary(session_id: str):
    controller = _controller(session_id)
    with _game_errors():
        controller.back_to_summary()
    return _view(session_id, controller)


async def _advance(session_id: str, controller: SessionController, from_review: bool) -> dict:
    with _game_errors():
        if from_review:
            await controller.next_ride_from_review()
        else:
            await controller.continue_ride()
    if controller.active:
        return _view(session_id, controller, finished=False)

    report = controller.report
    registry.remove(session_id)
    return {
        "id": session_id,
        "finished": True,
        "report": report.model_dump(mode="json") if report else None,
    }


@router.post("/sessions/{session_id}/continue")
async def continue_ride(session_id: str):
    """Summary → next round, or finish the ride after the last one."""
    return await _advance(session_id, _controller(session_id), from_review=False)


@router.post("/sessions/{session_id}/next-ride-from-review")
async def next_ride_from_review(session_id: str):
    return await _advance(session_id, _controller(session_id), from_review=True)
