from tournex.core.database import Base

# Import all models here to ensure they are registered with Base
from .user import User
from .tournament import Tournament
from .participant import Participant
from .match import Match
from .match_report import MatchReport
from .notification import Notification

__all__ = ["Base", "User", "Tournament", "Participant", "Match", "MatchReport", "Notification"]
