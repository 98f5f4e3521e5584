"""Taxi driver dialogue.

The driver answers one player utterance at a time, in character, with the
full round context in the system prompt. The reply says itself whether it
gave away one of the progressive hints (`is_hint`, `hint_level`); the game
only counts a hint when the reply is flagged, never by reading the text.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from where_are_we.llm import LLM, LLMError, parse_json_output
from where_are_we.models import DialogueReply, DialogueRequest
from where_are_we.prompts import DRIVER_SYSTEM_PROMPT, PromptError, driver_context, render_prompt

logger = logging.getLogger(__name__)


class DriverDialogue:
    def __init__(self, llm: LLM) -> None:
        self._llm = llm

    async def __call__(self, request: DialogueRequest) -> DialogueReply:
        """Return the driver's reply. Raises LLMError on any failure."""
        try:
            system = render_prompt(
                DRIVER_SYSTEM_PROMPT,
                driver_context(
                    request.location,
                    request.difficulty,
                    request.conversation_history,
                    request.hints_given,
                ),
            )
        except PromptError as e:
            raise LLMError(f"Driver prompt failed to render: {e}") from e

        output = await self._llm(
            "driver",
            [
                {"role": "system", "content": system},
                {"role": "user", "content": request.player_question},
            ],
            json_mode=True,
        )

        data = parse_json_output(output)
        if data is None:
            raise LLMError("Driver returned invalid JSON")
        try:
            reply = DialogueReply.model_validate(data)
        except ValidationError as e:
            raise LLMError(f"Driver reply has the wrong shape: {e}") from e

        if reply.is_hint and reply.hint_level is None:
            logger.warning("driver flagged a hint without a level; not counted")
        return reply
