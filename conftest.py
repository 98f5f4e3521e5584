import shutil
from pathlib import Path
from types import SimpleNamespace

import pytest

from backend import registry
from where_are_we import config
from where_are_we.models import (
    DialogueReply,
    DialogueRequest,
    Driver,
    HintText,
    Location,
    Npc,
    ProgressiveHints,
    ScenarioRequest,
)

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data(monkeypatch):
    """Wipe and re-init data-tests/ before every test, with no real API keys."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    config.init_config(TEST_DATA_DIR)
    yield
    registry.clear()
    # leave data-tests around after tests for inspection; CI can ignore it


# ── Builders and stub collaborators ─────────────────────────


def build_location(name: str = "Eiffel Tower", city: str = "Paris", country: str = "France",
                   answers: list[str] | None = None, difficulty: str = "Easy") -> Location:
    return Location(
        name=name,
        city=city,
        country=country,
        difficulty=difficulty,
        npcs=[
            Npc(id="npc-1", name="Baker", hint="Fresh baguettes every morning!", translation="Des baguettes"),
            Npc(id="npc-2", name="Painter", hint="The light on the river is perfect today."),
            Npc(id="npc-3", name="Guide", hint="The iron lady is 330 meters tall."),
        ],
        acceptable_answers=answers or [city, name],
        driver=Driver(
            name="Jean",
            languages=["FR", "EN"],
            opening_line="Bonjour ! On y va ?",
            opening_line_translation="Hello! Shall we go?",
        ),
        progressive_hints=ProgressiveHints(
            climate=HintText(text="Mild summers, grey winters."),
            culture=HintText(text="Croissants and cafés.", translation="Croissants et cafés"),
            landmark=HintText(text="An iron tower over the river."),
        ),
        famous_landmark=name,
    )


class StubLLM:
    """Returns queued outputs in order and records every call."""

    def __init__(self, *outputs: str | Exception) -> None:
        self.outputs = list(outputs)
        self.calls: list[dict] = []

    async def __call__(self, stage, messages, *, json_mode=False):
        self.calls.append({"stage": stage, "messages": messages, "json_mode": json_mode})
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        return out


class StubScenario:
    """Hands out locations (or raises) in order; records requests."""

    def __init__(self, *items: Location | Exception) -> None:
        self.items = list(items)
        self.requests: list[ScenarioRequest] = []

    async def __call__(self, request: ScenarioRequest) -> Location:
        self.requests.append(request)
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class StubDialogue:
    def __init__(self, *replies: DialogueReply | Exception) -> None:
        self.replies = list(replies)
        self.requests: list[DialogueRequest] = []

    async def __call__(self, request: DialogueRequest) -> DialogueReply:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def make_location():
    return build_location


@pytest.fixture
def location() -> Location:
    return build_location()


@pytest.fixture
def stubs():
    """Namespace of stub collaborator classes."""
    return SimpleNamespace(llm=StubLLM, scenario=StubScenario, dialogue=StubDialogue)
