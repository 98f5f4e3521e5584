"""Round engine: per-round state and in-round events.

A RoundEngine lives from "start round" until its result is recorded and
the next round replaces it. It owns:

  time_remaining            seconds left, starts at 300, never negative
  revealed_hint_ids         hint ids counted for scoring (progressive
                            "hint-N" ids, NPC ids, driver-flagged hints)
  revealed_translation_ids  ids whose translation was revealed at least once
  wrong_guess_count         one per rejected guess
  conversation_log          append-only list of ChatMessage

The round ends exactly once: on a correct guess or when the timer reaches
zero. After that every mutating call raises RoundFinishedError, except
tick() which becomes a no-op and reveal_translation() which stays allowed
for review but no longer changes the score.

The engine never touches session totals. The controller reads `result`
and does the accounting.
"""

from __future__ import annotations

import itertools
import logging

from pydantic import BaseModel

from where_are_we import scoring
from where_are_we.errors import (
    InvalidGuessError,
    RoundFinishedError,
    UnknownNpcError,
    UnknownTranslationError,
)
from where_are_we.models import ChatMessage, DialogueReply, HintText, Location, Npc, RoundResult

logger = logging.getLogger(__name__)

HINT_REQUEST_TEXT = "Can you give me a hint?"


def hint_id(level: int) -> str:
    return f"hint-{level}"


class GuessOutcome(BaseModel):
    correct: bool
    wrong_guess_count: int
    result: RoundResult | None = None


class RoundEngine:
    """Mutable state of one live round.

    Args:
        location:      The scenario for this round.
        round_index:   0-based index within the session.
        epoch:         Token identifying this round; timer ticks and
                       in-flight replies carrying another epoch are stale.
        cap_npc_hints: When True, NPC portrait reveals share the three-slot
                       hint cap. Off by default: NPC clicks are uncapped.
    """

    def __init__(
        self,
        location: Location,
        round_index: int,
        epoch: int,
        cap_npc_hints: bool = False,
    ) -> None:
        self.location = location
        self.round_index = round_index
        self.epoch = epoch
        self.cap_npc_hints = cap_npc_hints

        self.time_remaining: int = scoring.ROUND_SECONDS
        self.revealed_hint_ids: set[str] = set()
        self.revealed_translation_ids: set[str] = set()
        self.wrong_guess_count: int = 0
        self.conversation_log: list[ChatMessage] = []
        self.result: RoundResult | None = None

        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @property
    def finished(self) -> bool:
        return self.result is not None

    @property
    def progressive_hints_used(self) -> int:
        return sum(
            1 for level in range(1, scoring.MAX_PROGRESSIVE_HINTS + 1)
            if hint_id(level) in self.revealed_hint_ids
        )

    @property
    def hints_remaining(self) -> int:
        """Explicit requests left. Every counted hint id uses up a slot."""
        return max(0, scoring.MAX_PROGRESSIVE_HINTS - len(self.revealed_hint_ids))

    def current_score(self) -> int:
        """Points the round would earn if it ended correctly right now."""
        return scoring.score(
            self.time_remaining,
            len(self.revealed_hint_ids),
            len(self.revealed_translation_ids),
            self.wrong_guess_count,
        )

    def _require_live(self) -> None:
        if self.finished:
            raise RoundFinishedError(f"Round {self.round_index} already has a result")

    def _append(
        self,
        speaker: str,
        text: str,
        *,
        id_prefix: str,
        translation: str | None = None,
        romanization: str | None = None,
        character_id: str | None = None,
    ) -> ChatMessage:
        msg = ChatMessage(
            id=f"{id_prefix}-{self.epoch}-{next(self._ids)}",
            speaker=speaker,
            text=text,
            translation=translation,
            romanization=romanization,
            character_id=character_id,
            translation_revealed=bool(character_id and character_id in self.revealed_translation_ids),
        )
        self.conversation_log.append(msg)
        return msg

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self) -> ChatMessage:
        """Seed the log with the driver's opening line."""
        driver = self.location.driver
        return self._append(
            "driver", driver.opening_line,
            id_prefix="opening",
            translation=driver.opening_line_translation,
            character_id="opening",
        )

    def tick(self) -> RoundResult | None:
        """Advance the clock by one second.

        Returns the timeout result on the tick that reaches zero, None
        otherwise. Ticks after the round finished do nothing.
        """
        if self.finished:
            return None
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            logger.info("round %d timed out at %s", self.round_index, self.location.name)
            return self._finish(correct=False, guess=None)
        return None

    def _finish(self, correct: bool, guess: str | None) -> RoundResult:
        hints = len(self.revealed_hint_ids)
        translations = len(self.revealed_translation_ids)
        points = scoring.breakdown(
            self.time_remaining, hints, translations, self.wrong_guess_count,
        )
        self.result = RoundResult(
            round_index=self.round_index,
            location_name=self.location.name,
            correct=correct,
            player_guess=guess,
            time_remaining=self.time_remaining,
            hints_used=hints,
            translations_used=translations,
            wrong_guesses=self.wrong_guess_count,
            points_earned=points.total,
            breakdown=points,
            excellent=scoring.is_excellent(points.total),
        )
        return self.result

    # ------------------------------------------------------------------
    # Guessing
    # ------------------------------------------------------------------

    def submit_guess(self, guess: str) -> GuessOutcome:
        """Check a guess. Wrong guesses cost a penalty and leave the round open."""
        self._require_live()
        if not guess or not guess.strip():
            raise InvalidGuessError("Guess must not be empty")

        if scoring.is_correct_guess(guess, self.location.acceptable_answers):
            result = self._finish(correct=True, guess=guess)
            logger.info(
                "round %d solved (%s) for %d points",
                self.round_index, self.location.name, result.points_earned,
            )
            return GuessOutcome(correct=True, wrong_guess_count=self.wrong_guess_count, result=result)

        self.wrong_guess_count += 1
        logger.debug("round %d wrong guess #%d: %r", self.round_index, self.wrong_guess_count, guess)
        return GuessOutcome(correct=False, wrong_guess_count=self.wrong_guess_count)

    # ------------------------------------------------------------------
    # Hints and translations
    # ------------------------------------------------------------------

    def request_hint(self) -> HintText | None:
        """Reveal the next progressive hint (climate, culture, landmark).

        Appends the player's request and the driver's hint line to the log.
        Returns None once three hints of any kind (progressive, NPC or
        driver-flagged) have been counted.
        """
        self._require_live()
        if len(self.revealed_hint_ids) >= scoring.MAX_PROGRESSIVE_HINTS:
            return None
        # Lowest tier not yet given; a driver-flagged hint may already hold one
        level = next(
            (n for n in range(1, scoring.MAX_PROGRESSIVE_HINTS + 1)
             if hint_id(n) not in self.revealed_hint_ids),
            None,
        )
        if level is None:
            return None

        hint = self.location.progressive_hints.ordered()[level - 1]
        self._append("player", HINT_REQUEST_TEXT, id_prefix="player-hint")
        self._append(
            "driver", hint.text,
            id_prefix=hint_id(level),
            translation=hint.translation,
            romanization=hint.romanization,
            character_id=hint_id(level),
        )
        self.revealed_hint_ids.add(hint_id(level))
        return hint

    def reveal_npc_hint(self, npc_id: str) -> Npc | None:
        """Reveal an NPC's clue and count it as a hint.

        Re-revealing a known NPC is free. Returns None only when
        cap_npc_hints is on and the hint budget is spent.
        """
        self._require_live()
        npc = self.location.npc(npc_id)
        if npc is None:
            raise UnknownNpcError(f"No NPC {npc_id!r} at {self.location.name}")
        if npc_id in self.revealed_hint_ids:
            return npc
        if self.cap_npc_hints and len(self.revealed_hint_ids) >= scoring.MAX_PROGRESSIVE_HINTS:
            return None
        self.revealed_hint_ids.add(npc_id)
        return npc

    def reveal_translation(self, target_id: str) -> bool:
        """Reveal a translation. Returns True only the first time for an id.

        After the round finished the log is still updated (review mode) but
        nothing is counted. Unknown targets raise UnknownTranslationError.
        """
        if not self._is_translation_target(target_id):
            raise UnknownTranslationError(
                f"Nothing to translate for {target_id!r} at {self.location.name}"
            )
        for msg in self.conversation_log:
            if msg.character_id == target_id:
                msg.translation_revealed = True
        if self.finished or target_id in self.revealed_translation_ids:
            return False
        self.revealed_translation_ids.add(target_id)
        return True

    def _is_translation_target(self, target_id: str) -> bool:
        if self.location.npc(target_id) is not None:
            return True
        return any(msg.character_id == target_id for msg in self.conversation_log)

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def record_player_message(self, text: str) -> ChatMessage:
        self._require_live()
        return self._append("player", text, id_prefix="player")

    def record_driver_reply(self, reply: DialogueReply) -> ChatMessage:
        """Append the driver's reply. A hint-flagged reply counts as that hint level."""
        self._require_live()
        character_id = None
        if reply.is_hint and reply.hint_level:
            character_id = hint_id(reply.hint_level)
            self.revealed_hint_ids.add(character_id)
        return self._append(
            "driver", reply.response,
            id_prefix="driver-chat",
            character_id=character_id,
        )

    def record_system_message(self, text: str) -> ChatMessage:
        return self._append("system", text, id_prefix="system")
