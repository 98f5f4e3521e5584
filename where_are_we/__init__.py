"""Where Are We?: round scoring and game progression for a taxi geography game."""

from where_are_we.models import Location, RoundResult  # noqa: F401
from where_are_we.round import RoundEngine  # noqa: F401
from where_are_we.scoring import score  # noqa: F401
from where_are_we.session import SessionController  # noqa: F401
