"""
Admin authorization.

Admins are identity subjects listed in the ADMIN_USER_IDS allowlist.
"""

from app.config.settings import settings
from app.utils.exceptions import AuthorizationError


class AdminAuthorizer:
    """Allowlist membership check."""

    def __init__(self, admin_ids: list[str] | None = None) -> None:
        self.admin_ids = frozenset(admin_ids if admin_ids is not None else settings.get_admin_ids())

    def is_admin(self, subject: str | None) -> bool:
        return bool(subject) and subject in self.admin_ids

    def require(self, subject: str | None) -> str:
        """
        Return the subject if it is an admin.

        Raises:
            AuthorizationError: Subject missing or not on the allowlist
        """
        if not self.is_admin(subject):
            raise AuthorizationError("Unauthorized", subject=subject)
        return subject
