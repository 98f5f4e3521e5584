"""Session controller: drives a six-round ride from menu back to menu.

Phases (SessionState.phase) and transitions:

  intro    → playing   start_round()
  playing  → result    submit_guess() correct, or timer reaches zero
  result   → summary   next()
  result   → playing   review_round()  [review_mode, only after a correct guess]
  playing* → summary   back_to_summary()        (* review mode)
  playing* → playing   next_ride_from_review()
  summary  → playing   continue_ride() when rounds remain (fresh counters)
  summary  → menu      continue_ride() after the last round (session ends)

The controller is the only writer of the session aggregates (total_points,
current_round_index, visited_location_names). The live RoundEngine owns
everything inside a round. Each round gets a new epoch; timer ticks and
async replies carrying an older epoch are dropped.

External services (scenario, dialogue, speech) are injected callables.
Their failures become Notifications and log warnings, never corrupted
state. The only fatal case is a session that cannot get any location at
all (SessionStartError).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from where_are_we import scoring
from where_are_we.errors import (
    CollaboratorError,
    PhaseError,
    SessionStartError,
    TurnInProgressError,
    UnknownNpcError,
)
from where_are_we.fallback import pick_fallback
from where_are_we.models import (
    ChatMessage,
    DialogueReply,
    DialogueRequest,
    Difficulty,
    GamePhase,
    HintText,
    Location,
    Notification,
    NotificationLevel,
    Npc,
    RoundResult,
    ScenarioRequest,
    SessionReport,
    SpeechRequest,
    Transcription,
)
from where_are_we.round import GuessOutcome, RoundEngine
from where_are_we.timer import RoundTimer

logger = logging.getLogger(__name__)

ScenarioSource = Callable[[ScenarioRequest], Awaitable[Location]]
DialogueSource = Callable[[DialogueRequest], Awaitable[DialogueReply]]
Synthesizer = Callable[[SpeechRequest], Awaitable[bytes]]
Transcriber = Callable[[bytes], Awaitable[Transcription]]
FallbackPicker = Callable[[int], "Location | None"]


# ---------------------------------------------------------------------------
# State and views
# ---------------------------------------------------------------------------

class SessionState(BaseModel):
    """Cross-round state. Lives from start_game() to the return to menu."""

    total_points: int = 0
    current_round_index: int = 0
    total_rounds: int = scoring.TOTAL_ROUNDS
    visited_location_names: list[str] = Field(default_factory=list)
    phase: GamePhase = "intro"
    review_mode: bool = False
    processing: bool = False
    loading_scenario: bool = False
    locations: list[Location] = Field(default_factory=list)
    results: list[RoundResult] = Field(default_factory=list)
    last_result: RoundResult | None = None
    notifications: list[Notification] = Field(default_factory=list)

    @property
    def current_location(self) -> Location | None:
        if self.current_round_index < len(self.locations):
            return self.locations[self.current_round_index]
        return None

    @property
    def is_last_round(self) -> bool:
        return self.current_round_index + 1 >= self.total_rounds


class RoundView(BaseModel):
    epoch: int
    round_index: int
    location: Location
    time_remaining: int
    revealed_hint_ids: list[str]
    revealed_translation_ids: list[str]
    wrong_guess_count: int
    hints_remaining: int
    current_score: int
    conversation_log: list[ChatMessage]


class SessionSnapshot(BaseModel):
    """Read-only view handed to the UI."""

    total_points: int
    current_round_index: int
    total_rounds: int
    visited_location_names: list[str]
    phase: GamePhase
    review_mode: bool
    processing: bool
    can_guess: bool
    last_result: RoundResult | None
    results: list[RoundResult]
    round: RoundView | None
    notifications: list[Notification]


class DriverTurn(BaseModel):
    player_message: ChatMessage
    driver_message: ChatMessage
    reply: DialogueReply
    audio: bytes | None = None


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class SessionController:
    """Owns SessionState and the single live RoundEngine.

    Args:
        scenario:      Async callable returning a Location for a
                       ScenarioRequest. None means offline: fallback only.
        dialogue:      Async callable answering a DialogueRequest.
        synthesizer:   Optional text-to-speech callable.
        transcriber:   Optional speech-to-text callable.
        cap_npc_hints: Let NPC reveals share the three-hint cap.
        voice_enabled: Speak driver replies when a synthesizer is set.
        fallback:      Picks a pre-baked location by used-location count.
        tick_interval: Seconds between timer ticks.
    """

    def __init__(
        self,
        scenario: ScenarioSource | None,
        dialogue: DialogueSource | None = None,
        synthesizer: Synthesizer | None = None,
        transcriber: Transcriber | None = None,
        *,
        cap_npc_hints: bool = False,
        voice_enabled: bool = True,
        fallback: FallbackPicker = pick_fallback,
        tick_interval: float = 1.0,
    ) -> None:
        self._scenario = scenario
        self._dialogue = dialogue
        self._synthesizer = synthesizer
        self._transcriber = transcriber
        self._fallback = fallback
        self.cap_npc_hints = cap_npc_hints
        self.voice_enabled = voice_enabled

        self.state: SessionState | None = None
        self.round: RoundEngine | None = None
        self.report: SessionReport | None = None
        self._epoch = 0
        self._timer = RoundTimer(self.tick, interval=tick_interval)
        self._visited_recorded = False

    # ------------------------------------------------------------------
    # Guards and helpers
    # ------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self.state is not None

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    def _require_state(self) -> SessionState:
        if self.state is None:
            raise PhaseError("No game in progress")
        return self.state

    def _require_phase(self, *phases: GamePhase) -> SessionState:
        state = self._require_state()
        if state.phase not in phases:
            raise PhaseError(f"Not allowed during {state.phase!r}")
        return state

    def _live_round(self) -> RoundEngine:
        """The round accepting player input: playing, not review, no result yet."""
        state = self._require_phase("playing")
        if state.review_mode:
            raise PhaseError("Round is in review mode")
        if self.round is None or self.round.finished:
            raise PhaseError("No live round")
        return self.round

    def _is_live(self, state: SessionState, epoch: int) -> bool:
        return (
            self.state is state
            and self.round is not None
            and self.round.epoch == epoch
            and not self.round.finished
            and state.phase == "playing"
            and not state.review_mode
        )

    def _notify(self, level: NotificationLevel, title: str, description: str = "") -> None:
        if self.state is not None:
            self.state.notifications.append(
                Notification(level=level, title=title, description=description)
            )

    def drain_notifications(self) -> list[Notification]:
        if self.state is None:
            return []
        pending = self.state.notifications
        self.state.notifications = []
        return pending

    async def _acquire_location(self, state: SessionState, difficulty: Difficulty) -> Location:
        """Ask the generator for a location; fall back to a pre-baked one."""
        used = [loc.name for loc in state.locations]
        cause: Exception | None = None
        if self._scenario is not None:
            state.loading_scenario = True
            try:
                return await self._scenario(
                    ScenarioRequest(used_location_names=used, difficulty=difficulty)
                )
            except CollaboratorError as e:
                logger.warning("scenario generation failed, using fallback: %s", e)
                cause = e
                if self.state is state:
                    self._notify(
                        "warning",
                        "Using fallback scenario due to generation error",
                        str(e),
                    )
            finally:
                state.loading_scenario = False

        location = self._fallback(len(state.locations))
        if location is None:
            raise SessionStartError("No scenario available: generation and fallback both failed") from cause
        logger.info("using fallback location %s", location.name)
        return location

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_game(self) -> SessionState:
        """Reset everything and load the first location. Phase → intro."""
        self._timer.cancel()
        state = SessionState()
        self.state = state
        self.round = None
        self.report = None
        self._visited_recorded = False

        try:
            location = await self._acquire_location(state, scoring.difficulty_for_round(0))
        except SessionStartError:
            if self.state is state:
                self.state = None
            raise
        if self.state is not state:
            logger.info("session replaced while loading its first scenario")
            return state
        state.locations.append(location)
        logger.info("session started at %s", location.name)
        return state

    def start_round(self) -> RoundEngine:
        """intro → playing for the current location."""
        self._require_phase("intro")
        return self._begin_round()

    def _begin_round(self) -> RoundEngine:
        state = self._require_state()
        location = state.current_location
        if location is None:
            raise PhaseError("No location loaded for this round")

        self._epoch += 1
        engine = RoundEngine(
            location, state.current_round_index, self._epoch,
            cap_npc_hints=self.cap_npc_hints,
        )
        engine.begin()
        self.round = engine
        self._visited_recorded = False

        state.phase = "playing"
        state.review_mode = False
        state.processing = False
        state.last_result = None
        self._timer.start(self._epoch)
        logger.info(
            "round %d/%d started at %s (epoch %d)",
            state.current_round_index + 1, state.total_rounds, location.name, self._epoch,
        )
        return engine

    def _record_result(self, result: RoundResult) -> None:
        state = self._require_state()
        self._timer.cancel()
        state.total_points += result.points_earned
        state.results.append(result)
        state.last_result = result
        state.phase = "result"
        state.processing = False

    def _mark_visited(self) -> None:
        state = self._require_state()
        if not self._visited_recorded and self.round is not None:
            state.visited_location_names.append(self.round.location.name)
            self._visited_recorded = True

    def return_to_menu(self) -> None:
        """Drop the session. Any pending timer or reply becomes stale."""
        self._timer.cancel()
        self.state = None
        self.round = None

    quit = return_to_menu

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def tick(self, epoch: int) -> bool:
        """Timer entry point. Returns True when the countdown should stop."""
        state = self.state
        if state is None or not self._is_live(state, epoch):
            return True

        result = self.round.tick()
        if result is None:
            return False

        self._notify("warning", "Time's up!", "Moving to the results...")
        self._record_result(result)
        return True

    # ------------------------------------------------------------------
    # In-round player actions
    # ------------------------------------------------------------------

    def submit_guess(self, guess: str) -> GuessOutcome:
        engine = self._live_round()
        outcome = engine.submit_guess(guess)
        if outcome.correct:
            self._record_result(outcome.result)
        else:
            self._notify(
                "error", "Wrong guess!",
                f"Try again! (-{scoring.WRONG_GUESS_PENALTY} points penalty)",
            )
        return outcome

    def request_hint(self) -> HintText | None:
        engine = self._live_round()
        hint = engine.request_hint()
        if hint is None:
            self._notify("info", "No hints remaining")
        else:
            self._notify("info", f"Hint requested (-{scoring.HINT_PENALTY} points)")
        return hint

    def reveal_npc_hint(self, npc_id: str) -> Npc | None:
        """Show an NPC's clue. In review mode this is read-only."""
        state = self._require_phase("playing")
        if state.review_mode:
            npc = self.round.location.npc(npc_id) if self.round else None
            if npc is None:
                raise UnknownNpcError(f"No NPC {npc_id!r} here")
            return npc

        engine = self._live_round()
        was_new = npc_id not in engine.revealed_hint_ids
        npc = engine.reveal_npc_hint(npc_id)
        if npc is None:
            self._notify("info", "No hints remaining")
        elif was_new:
            self._notify("info", "Hint revealed", "Using hints will reduce your final points")
        return npc

    def reveal_translation(self, target_id: str) -> bool:
        self._require_phase("playing")
        if self.round is None:
            raise PhaseError("No live round")
        first = self.round.reveal_translation(target_id)
        if first:
            self._notify(
                "info", "Translation revealed",
                "Using translations will reduce your final points",
            )
        return first

    # ------------------------------------------------------------------
    # Conversation with the driver
    # ------------------------------------------------------------------

    async def ask_driver(self, text: str) -> DriverTurn | None:
        """Send one player utterance to the driver.

        At most one turn is in flight; a second call raises
        TurnInProgressError. Returns None when the reply failed or arrived
        for a round that is no longer live.
        """
        engine = self._live_round()
        state = self._require_state()
        if state.processing:
            raise TurnInProgressError("The driver is still answering")
        if not text or not text.strip():
            return None
        if self._dialogue is None:
            raise PhaseError("No dialogue service configured")

        epoch = engine.epoch
        history = list(engine.conversation_log)
        player_message = engine.record_player_message(text.strip())
        state.processing = True
        try:
            reply = await self._dialogue(
                DialogueRequest(
                    player_question=text.strip(),
                    location=engine.location,
                    difficulty=engine.location.difficulty,
                    conversation_history=history,
                    hints_given=len(engine.revealed_hint_ids),
                )
            )
        except CollaboratorError as e:
            logger.warning("driver reply failed: %s", e)
            if self._is_live(state, epoch):
                self._notify("warning", "Failed to get driver response")
            return None
        finally:
            state.processing = False

        if not self._is_live(state, epoch):
            logger.info("dropping driver reply for stale round (epoch %d)", epoch)
            return None

        driver_message = engine.record_driver_reply(reply)
        if reply.is_hint and reply.hint_level:
            self._notify("info", f"Hint given (-{scoring.HINT_PENALTY} points)")

        audio = await self.speak(reply.response)
        return DriverTurn(
            player_message=player_message,
            driver_message=driver_message,
            reply=reply,
            audio=audio,
        )

    async def ask_driver_by_voice(self, audio: bytes) -> DriverTurn | None:
        """Transcribe recorded audio, then ask the driver."""
        self._live_round()
        if self._transcriber is None:
            self._notify("warning", "Voice input is not available")
            return None
        try:
            transcription = await self._transcriber(audio)
        except CollaboratorError as e:
            logger.warning("transcription failed: %s", e)
            self._notify("warning", "Failed to transcribe audio. Please try again.")
            return None
        if not transcription.transcription.strip():
            self._notify("info", "Didn't catch that", "Try speaking again")
            return None
        return await self.ask_driver(transcription.transcription)

    async def speak(self, text: str, language_codes: list[str] | None = None) -> bytes | None:
        """Synthesize speech for a line. Returns None when voice is off or fails."""
        if not self.voice_enabled or self._synthesizer is None:
            return None
        if language_codes is None:
            language_codes = list(self.round.location.driver.languages) if self.round else []
        try:
            return await self._synthesizer(SpeechRequest(text=text, language_codes=language_codes))
        except CollaboratorError as e:
            logger.warning("speech synthesis failed, staying text-only: %s", e)
            return None

    # ------------------------------------------------------------------
    # Between rounds
    # ------------------------------------------------------------------

    def next(self) -> None:
        """result → summary."""
        state = self._require_phase("result")
        self._mark_visited()
        state.phase = "summary"
        state.review_mode = False

    def review_round(self) -> None:
        """result → playing in review mode. Only after a correct guess."""
        state = self._require_phase("result")
        if state.last_result is None or not state.last_result.correct:
            raise PhaseError("Only a correctly solved round can be reviewed")
        state.phase = "playing"
        state.review_mode = True

    def back_to_summary(self) -> None:
        state = self._require_phase("playing")
        if not state.review_mode:
            raise PhaseError("Not in review mode")
        self._mark_visited()
        state.phase = "summary"
        state.review_mode = False

    async def next_ride_from_review(self) -> RoundEngine | None:
        self.back_to_summary()
        return await self.continue_ride()

    async def continue_ride(self) -> RoundEngine | None:
        """summary → next round, or back to the menu after the last one.

        Returns the new round, or None when the session ended.
        """
        state = self._require_phase("summary")
        if state.loading_scenario:
            raise TurnInProgressError("Next location is already loading")

        if state.is_last_round:
            self.report = SessionReport(
                total_points=state.total_points,
                visited_location_names=list(state.visited_location_names),
                results=list(state.results),
            )
            logger.info(
                "session finished: %d points over %d rounds",
                state.total_points, len(state.results),
            )
            self.return_to_menu()
            return None

        next_index = state.current_round_index + 1
        location = await self._acquire_location(state, scoring.difficulty_for_round(next_index))
        if self.state is not state or state.phase != "summary":
            logger.info("session moved on while loading round %d; discarding", next_index)
            return None

        state.locations.append(location)
        state.current_round_index = next_index
        state.last_result = None
        return self._begin_round()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self, drain: bool = False) -> SessionSnapshot:
        state = self._require_state()
        round_view = None
        if self.round is not None:
            r = self.round
            round_view = RoundView(
                epoch=r.epoch,
                round_index=r.round_index,
                location=r.location,
                time_remaining=r.time_remaining,
                revealed_hint_ids=sorted(r.revealed_hint_ids),
                revealed_translation_ids=sorted(r.revealed_translation_ids),
                wrong_guess_count=r.wrong_guess_count,
                hints_remaining=r.hints_remaining,
                current_score=r.current_score(),
                conversation_log=list(r.conversation_log),
            )
        notifications = self.drain_notifications() if drain else list(state.notifications)
        return SessionSnapshot(
            total_points=state.total_points,
            current_round_index=state.current_round_index,
            total_rounds=state.total_rounds,
            visited_location_names=list(state.visited_location_names),
            phase=state.phase,
            review_mode=state.review_mode,
            processing=state.processing,
            can_guess=state.phase == "playing" and not state.review_mode,
            last_result=state.last_result,
            results=list(state.results),
            round=round_view,
            notifications=notifications,
        )
