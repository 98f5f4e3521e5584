"""Scenario generation: one new Location per round.

Flow:
  1. Render the scenario prompt (difficulty language mix, names to avoid).
  2. Ask the LLM for a JSON location record and validate it as a Location
     (exactly 3 NPCs, 3 progressive hints, non-empty answers).
  3. Ask the image backend for a street view of the famous landmark and
     attach its URL.

Every failure surfaces as ScenarioError; the session controller catches
it and falls back to a pre-baked location.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from where_are_we.errors import CollaboratorError
from where_are_we.llm import LLM, LLMError, parse_json_output
from where_are_we.models import Difficulty, Location, ScenarioRequest
from where_are_we.prompts import (
    IMAGE_PROMPT,
    SCENARIO_SYSTEM_PROMPT,
    SCENARIO_USER_PROMPT,
    PromptError,
    image_context,
    render_prompt,
    scenario_context,
)

logger = logging.getLogger(__name__)


class ScenarioError(CollaboratorError):
    """Raised when a location cannot be generated."""


class ImageGenerator:
    """OpenAI-compatible image client: POST /v1/images/generations.

    Response: {"data": [{"url": "..."}]}
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        model: str = "dall-e-3",
        size: str = "1792x1024",
        timeout: float = 90.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._size = size
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def __call__(self, prompt: str) -> str:
        url = f"{self._base_url}/v1/images/generations"
        body = {"model": self._model, "prompt": prompt, "n": 1, "size": self._size}
        logger.debug("image call url=%s prompt_len=%d", url, len(prompt))
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ScenarioError(f"Cannot connect to image backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise ScenarioError(f"Image backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise ScenarioError(f"Image backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise ScenarioError(f"Image backend request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise ScenarioError("Image backend returned a non-JSON body") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict) or not data[0].get("url"):
            raise ScenarioError("Unexpected response format from image backend")
        return data[0]["url"]


class ScenarioGenerator:
    """Builds a Location from an LLM and an optional image generator.

    Args:
        llm:    Chat-completion callable (see where_are_we.llm.LLM).
        images: Image generator. When None the location keeps an empty image.
    """

    def __init__(self, llm: LLM, images: ImageGenerator | None = None) -> None:
        self._llm = llm
        self._images = images

    async def generate(
        self, used_location_names: list[str], difficulty: Difficulty = "Medium"
    ) -> Location:
        request = ScenarioRequest(used_location_names=used_location_names, difficulty=difficulty)
        return await self(request)

    async def __call__(self, request: ScenarioRequest) -> Location:
        try:
            ctx = scenario_context(request.used_location_names, request.difficulty)
            messages = [
                {"role": "system", "content": render_prompt(SCENARIO_SYSTEM_PROMPT, ctx)},
                {"role": "user", "content": render_prompt(SCENARIO_USER_PROMPT, ctx)},
            ]
            output = await self._llm("scenario", messages, json_mode=True)
        except (LLMError, PromptError) as e:
            raise ScenarioError(f"Scenario generation failed: {e}") from e

        location = self._parse(output, request.difficulty)

        if location.name in request.used_location_names:
            logger.warning("scenario generator repeated %s despite the avoid list", location.name)

        if self._images is not None:
            try:
                prompt = render_prompt(IMAGE_PROMPT, image_context(location))
            except PromptError as e:
                raise ScenarioError(f"Image prompt failed to render: {e}") from e
            image_url = await self._images(prompt)
            location = location.model_copy(update={"image": image_url})

        logger.info("generated scenario %s (%s)", location.name, location.difficulty)
        return location

    def _parse(self, output: str, difficulty: Difficulty) -> Location:
        data = parse_json_output(output)
        if data is None:
            raise ScenarioError("Scenario generator returned invalid JSON")
        data.setdefault("difficulty", difficulty)
        try:
            return Location.model_validate(data)
        except ValidationError as e:
            raise ScenarioError(f"Scenario does not describe a valid location: {e}") from e
