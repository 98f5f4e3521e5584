"""Build collaborators and session controllers from the stored config.

Every request reads config fresh, so a PATCH /api/settings takes effect on
the next session or stand-alone call without a restart.
"""

from typing import Any

from where_are_we.llm import HttpLLM
from where_are_we.services import (
    DriverDialogue,
    ImageGenerator,
    ScenarioGenerator,
    SpeechSynthesizer,
    SpeechTranscriber,
)
from where_are_we.session import SessionController


def build_llm(config: dict[str, Any]) -> HttpLLM:
    llm = config["llm"]
    return HttpLLM(
        provider_url=llm["provider_url"],
        api_key=llm["api_key"],
        provider_format=llm["provider_format"],
        model=llm["model"],
        timeout=float(llm["timeout"]),
    )


def build_scenario(config: dict[str, Any]) -> ScenarioGenerator:
    images = config["images"]
    generator = None
    if images["api_key"]:
        generator = ImageGenerator(
            provider_url=images["provider_url"],
            api_key=images["api_key"],
            model=images["model"],
            size=images["size"],
        )
    return ScenarioGenerator(build_llm(config), images=generator)


def build_dialogue(config: dict[str, Any]) -> DriverDialogue:
    return DriverDialogue(build_llm(config))


def build_synthesizer(config: dict[str, Any]) -> SpeechSynthesizer | None:
    speech = config["speech"]
    if not speech["tts_api_key"]:
        return None
    return SpeechSynthesizer(
        provider_url=speech["tts_url"],
        api_key=speech["tts_api_key"],
        model=speech["tts_model"],
    )


def build_transcriber(config: dict[str, Any]) -> SpeechTranscriber:
    speech = config["speech"]
    return SpeechTranscriber(
        provider_url=speech["transcribe_url"],
        api_key=speech["transcribe_api_key"],
        model=speech["transcribe_model"],
    )


def build_controller(config: dict[str, Any]) -> SessionController:
    game = config["game"]
    return SessionController(
        build_scenario(config),
        build_dialogue(config),
        build_synthesizer(config),
        build_transcriber(config),
        cap_npc_hints=bool(game["cap_npc_hints"]),
        voice_enabled=bool(game["npc_voice_enabled"]),
    )
