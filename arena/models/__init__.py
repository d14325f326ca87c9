"""Database models."""
from arena.models.base import Base
from arena.models.profile import Profile
from arena.models.news import News
from arena.models.tournament import Tournament
from arena.models.participant import TournamentParticipant
from arena.models.result import TournamentResult
from arena.models.account import Account, LoginSession  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "Profile",
    "News",
    "Tournament",
    "TournamentParticipant",
    "TournamentResult",
    "Account",
    "LoginSession",
]
