"""Core domain models.

Every round, session and collaborator boundary operates on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Difficulty = Literal["Easy", "Medium", "Hard"]

GamePhase = Literal["intro", "playing", "result", "summary"]

Speaker = Literal["player", "driver", "system"]

NpcMood = Literal["happy", "neutral", "mysterious", "excited", "tired"]

NpcRole = Literal["chef", "guide", "artist", "local", "vendor", "worker"]

NotificationLevel = Literal["info", "warning", "error"]


# ---------------------------------------------------------------------------
# Location (scenario): immutable once fetched
# ---------------------------------------------------------------------------

class HintText(BaseModel):
    """A line of clue text with optional English translation and romanization."""

    model_config = ConfigDict(frozen=True)

    text: str
    translation: str | None = None
    romanization: str | None = None


class ProgressiveHints(BaseModel):
    """The three hint tiers, revealed in fixed order on explicit request."""

    model_config = ConfigDict(frozen=True)

    climate: HintText
    culture: HintText
    landmark: HintText

    def ordered(self) -> list[HintText]:
        return [self.climate, self.culture, self.landmark]


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 50
    y: float = 60


class Npc(BaseModel):
    """A background character seen through the taxi window."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    hint: str
    translation: str | None = None
    romanization: str | None = None
    color: str = "#10b981"
    mood: NpcMood = "neutral"
    role: NpcRole = "local"
    description: str = ""
    position: Position = Field(default_factory=Position)


class Driver(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    languages: list[str] = Field(default_factory=lambda: ["EN"])
    opening_line: str
    opening_line_translation: str | None = None


class Location(BaseModel):
    """One generated (or pre-baked) destination.

    Exactly three NPCs and three progressive hints; at least one usable
    acceptable answer.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    city: str
    country: str
    image: str = ""
    difficulty: Difficulty = "Medium"
    difficulty_description: str = ""
    npcs: list[Npc] = Field(min_length=3, max_length=3)
    acceptable_answers: list[str] = Field(min_length=1)
    driver: Driver
    progressive_hints: ProgressiveHints
    famous_landmark: str | None = None

    @field_validator("acceptable_answers")
    @classmethod
    def _answers_not_blank(cls, answers: list[str]) -> list[str]:
        if not any(a.strip() for a in answers):
            raise ValueError("acceptable_answers must contain a non-blank answer")
        return answers

    @model_validator(mode="after")
    def _unique_npc_ids(self) -> Location:
        ids = [npc.id for npc in self.npcs]
        if len(set(ids)) != len(ids):
            raise ValueError(f"NPC ids must be unique, got {ids}")
        return self

    def npc(self, npc_id: str) -> Npc | None:
        for npc in self.npcs:
            if npc.id == npc_id:
                return npc
        return None

    @property
    def accent_color(self) -> str:
        """Colour used for driver bubbles (first NPC's colour)."""
        return self.npcs[0].color


# ---------------------------------------------------------------------------
# Conversation and round outcomes
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    """A single entry in a round's append-only conversation log."""

    id: str
    speaker: Speaker
    text: str
    translation: str | None = None
    romanization: str | None = None
    character_id: str | None = None
    translation_revealed: bool = False


class PointsBreakdown(BaseModel):
    base: int
    time_bonus: int
    hint_penalty: int
    translation_penalty: int
    wrong_guess_penalty: int
    total: int


class RoundResult(BaseModel):
    round_index: int
    location_name: str
    correct: bool
    player_guess: str | None = None  # None when the timer ran out
    time_remaining: int
    hints_used: int
    translations_used: int
    wrong_guesses: int
    points_earned: int
    breakdown: PointsBreakdown
    excellent: bool = False


class Notification(BaseModel):
    """A user-visible, non-blocking message (toast)."""

    level: NotificationLevel
    title: str
    description: str = ""


class SessionReport(BaseModel):
    """What is left of a session once it returns to the menu."""

    total_points: int
    visited_location_names: list[str]
    results: list[RoundResult]


# ---------------------------------------------------------------------------
# Collaborator wire shapes
# ---------------------------------------------------------------------------

class ScenarioRequest(BaseModel):
    used_location_names: list[str] = Field(default_factory=list)
    difficulty: Difficulty = "Medium"


class DialogueRequest(BaseModel):
    player_question: str
    location: Location
    difficulty: Difficulty
    conversation_history: list[ChatMessage] = Field(default_factory=list)
    hints_given: int = 0

    @property
    def progressive_hints(self) -> ProgressiveHints:
        return self.location.progressive_hints


class DialogueReply(BaseModel):
    response: str
    is_hint: bool = False
    hint_level: Literal[1, 2, 3] | None = None


class SpeechRequest(BaseModel):
    text: str
    language_codes: list[str] = Field(default_factory=list)


class Transcription(BaseModel):
    transcription: str
