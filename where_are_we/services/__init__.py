"""Clients for the external AI services a session talks to.

  scenario   location generation (chat completion + image generation)
  dialogue   the taxi driver's replies
  speech     text-to-speech and transcription
  voices     language → TTS voice mapping
"""

from .dialogue import DriverDialogue  # noqa: F401
from .scenario import ImageGenerator, ScenarioError, ScenarioGenerator  # noqa: F401
from .speech import SpeechError, SpeechSynthesizer, SpeechTranscriber, decode_audio  # noqa: F401
