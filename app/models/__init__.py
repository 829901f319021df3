from app import db  # noqa: F401 - imported for model imports

from .game import Game
from .pick import Pick, PickError
from .season import Season
from .user import User
from .weekly_payment import WeeklyPayment
from .weekly_winner import WeeklyWinner

__all__ = [
    "User",
    "Season",
    "Game",
    "Pick",
    "PickError",
    "WeeklyPayment",
    "WeeklyWinner",
]
