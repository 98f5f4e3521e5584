"""Pre-baked locations used when scenario generation fails.

Loaded from presets/locations.json and cycled by how many locations the
session has already used, so consecutive fallbacks do not repeat until the
pool wraps around.
"""

import json
from functools import lru_cache
from pathlib import Path

from where_are_we.models import Location

PRESETS_FILE = Path(__file__).parent / "presets" / "locations.json"


@lru_cache(maxsize=None)
def _load(path: Path) -> tuple[Location, ...]:
    if not path.is_file():
        return ()
    return tuple(Location.model_validate(raw) for raw in json.loads(path.read_text()))


def fallback_locations(path: Path = PRESETS_FILE) -> list[Location]:
    return list(_load(path))


def pick_fallback(used_count: int, path: Path = PRESETS_FILE) -> Location | None:
    """Return the pool entry for the `used_count`-th location, or None if the pool is empty."""
    pool = _load(path)
    if not pool:
        return None
    return pool[used_count % len(pool)]
