"""Pydantic request bodies for API endpoints."""

from pydantic import BaseModel

from where_are_we.models import Difficulty


class GuessBody(BaseModel):
    guess: str


class ChatBody(BaseModel):
    message: str


class VoiceBody(BaseModel):
    audio: str  # base64, data: URL prefix allowed


class GenerateGameBody(BaseModel):
    used_locations: list[str] = []
    difficulty: Difficulty = "Medium"


class TranscribeBody(BaseModel):
    audio: str
