"""Role-based access rules."""

from typing import Dict, Iterable, Tuple

from app.core.exceptions import ForbiddenException
from app.models.user import User, UserRole

ANY_ROLE: Tuple[UserRole, ...] = (UserRole.ADMIN, UserRole.USER)
ADMIN_ONLY: Tuple[UserRole, ...] = (UserRole.ADMIN,)

# Roles allowed per user endpoint
ENDPOINT_ROLES: Dict[str, Tuple[UserRole, ...]] = {
    "get_profile": ANY_ROLE,
    "update_profile_image": ANY_ROLE,
    "update_cover_images": ANY_ROLE,
    "update_password": ANY_ROLE,
    "freeze_account": ANY_ROLE,
    "unfreeze_account": ADMIN_ONLY,
    "delete_account": ADMIN_ONLY,
}


def authorize(principal: User, allowed_roles: Iterable[UserRole]) -> None:
    """Raise ``ForbiddenException`` unless the principal holds one of the roles."""
    allowed = {UserRole(role).value for role in allowed_roles}
    if principal is None or principal.role not in allowed:
        raise ForbiddenException("Access denied")
