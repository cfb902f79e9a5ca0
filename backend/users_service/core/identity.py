from dataclasses import dataclass
from typing import Optional
from users_service.models.user import Role


@dataclass(frozen=True)
class Identity:
    """
    The authenticated caller, resolved once per request by the auth gate.

    role is None when the stored role is not one of the known roles; such an
    identity can still read its own profile but nothing role-gated.
    """
    user_id: int
    username: str
    role: Optional[Role]

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def is_self(self, user_id: Optional[int]) -> bool:
        return user_id is not None and self.user_id == user_id
