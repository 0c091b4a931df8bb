from enum import Enum


class UserRole(str, Enum):
    PLAYER = "player"
    SUPER_ADMIN = "super_admin"


class TournamentStatus(str, Enum):
    PENDING = "pending"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_TOURNAMENT_STATUSES = {TournamentStatus.COMPLETED.value, TournamentStatus.CANCELLED.value}


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    CHECKED_IN = "checked_in"
    ELIMINATED = "eliminated"
    WINNER = "winner"
    BANNED = "banned"


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


ACTIVE_MATCH_STATUSES = {MatchStatus.PENDING.value, MatchStatus.IN_PROGRESS.value}

# Only power-of-two brackets are offered
ALLOWED_MAX_PARTICIPANTS = (2, 4, 8, 16, 32)
