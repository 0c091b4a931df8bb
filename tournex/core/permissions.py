from tournex.core.exceptions import UnauthorizedError
from tournex.models.enums import UserRole


def is_super_admin(user) -> bool:
    return user is not None and user.role == UserRole.SUPER_ADMIN.value


def can_manage_tournament(tournament, user) -> bool:
    """True when the user owns the tournament or is a super admin."""
    if user is None:
        return False
    return tournament.owner_id == user.id or is_super_admin(user)


def ensure_can_manage(tournament, user, action: str = "manage this tournament"):
    if not can_manage_tournament(tournament, user):
        raise UnauthorizedError(f"Not authorized to {action}")
