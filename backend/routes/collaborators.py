"""Stand-alone collaborator endpoints: scenario, driver reply, speech."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from backend import factory
from where_are_we import config
from where_are_we.llm import LLMError
from where_are_we.models import DialogueRequest, SpeechRequest
from where_are_we.services import ScenarioError, SpeechError

from .models import GenerateGameBody, TranscribeBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-game")
async def generate_game(body: GenerateGameBody):
    """Generate one location for the given difficulty, avoiding used names."""
    generator = factory.build_scenario(config.get_config())
    try:
        location = await generator.generate(body.used_locations, body.difficulty)
    except ScenarioError as e:
        logger.warning("generate-game failed: %s", e)
        raise HTTPException(502, str(e))
    return location.model_dump(mode="json")


@router.post("/driver-response")
async def driver_response(body: DialogueRequest):
    """Ask the taxi driver one question, with the round context supplied."""
    dialogue = factory.build_dialogue(config.get_config())
    try:
        reply = await dialogue(body)
    except LLMError as e:
        logger.warning("driver-response failed: %s", e)
        raise HTTPException(502, str(e))
    return reply.model_dump(mode="json")


@router.post("/tts")
async def text_to_speech(body: SpeechRequest):
    """Speak a line in a voice matching its language. Returns audio/mpeg."""
    synthesizer = factory.build_synthesizer(config.get_config())
    if synthesizer is None:
        raise HTTPException(503, "Text-to-speech API key not configured")
    try:
        audio = await synthesizer(body)
    except SpeechError as e:
        logger.warning("tts failed: %s", e)
        raise HTTPException(502, str(e))
    return Response(content=audio, media_type="audio/mpeg")


@router.post("/transcribe")
async def transcribe(body: TranscribeBody):
    """Transcribe base64-encoded audio to text."""
    transcriber = factory.build_transcriber(config.get_config())
    try:
        result = await transcriber.transcribe_base64(body.audio)
    except SpeechError as e:
        logger.warning("transcribe failed: %s", e)
        raise HTTPException(502, str(e))
    return result.model_dump()
