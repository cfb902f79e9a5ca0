"""
Authorization policy for user-management actions.

Pure rules over an Identity: no database and no FastAPI. Routes call
``require`` before delegating to the user service.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from users_service.core.exceptions import Forbidden
from users_service.core.identity import Identity
from users_service.models.user import Role
from users_service.schemas.user import UserPatch

logger = logging.getLogger(__name__)


class Action(str, Enum):
    LIST_USERS = "list_users"
    SEARCH_USERS = "search_users"
    READ_USER = "read_user"
    UPDATE_USER = "update_user"
    UPDATE_LAST_LOGIN = "update_last_login"
    CREATE_USER = "create_user"
    DELETE_USER = "delete_user"
    UPDATE_ROLE = "update_role"
    READ_SELF = "read_self"
    VIEW_STATS = "view_stats"


# Actions reserved to Admin identities
ADMIN_ONLY_ACTIONS = frozenset({
    Action.CREATE_USER,
    Action.DELETE_USER,
    Action.UPDATE_ROLE,
    Action.VIEW_STATS,
})

# Actions on a single user record that the record's owner may also perform
OWNER_ACTIONS = frozenset({
    Action.READ_USER,
    Action.UPDATE_USER,
    Action.UPDATE_LAST_LOGIN,
})

MEMBER_ROLES = frozenset({Role.ADMIN, Role.ADHERANT})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


def authorize(identity: Identity, action: Action, target_user_id: Optional[int] = None) -> Decision:
    """Decide whether identity may perform action, optionally on target_user_id"""
    if action is Action.READ_SELF:
        return Decision.allow()

    if action in (Action.LIST_USERS, Action.SEARCH_USERS):
        if identity.role in MEMBER_ROLES:
            return Decision.allow()
        return Decision.deny("Listing users requires the Admin or Adherant role")

    if action in OWNER_ACTIONS:
        if identity.is_admin:
            return Decision.allow()
        if not identity.is_self(target_user_id):
            return Decision.deny("Only an Admin can access another user's record")
        # Stamping one's own last login needs no particular role
        if action is Action.UPDATE_LAST_LOGIN or identity.role in MEMBER_ROLES:
            return Decision.allow()
        return Decision.deny("Accessing your record requires the Admin or Adherant role")

    if action in ADMIN_ONLY_ACTIONS:
        if identity.is_admin:
            return Decision.allow()
        return Decision.deny("This action requires the Admin role")

    raise ValueError(f"Unhandled action: {action!r}")


def require(identity: Identity, action: Action, target_user_id: Optional[int] = None) -> None:
    """Raise Forbidden when the policy denies the action"""
    decision = authorize(identity, action, target_user_id)
    if not decision.allowed:
        logger.info(
            f"Denied {action.value} for user {identity.user_id} "
            f"(target={target_user_id}): {decision.reason}"
        )
        raise Forbidden(decision.reason)


def strip_role_change(identity: Identity, patch: UserPatch) -> UserPatch:
    """
    Drop a role change the identity is not allowed to make.

    The rest of the patch still applies; the caller gets no error.
    """
    if "role" not in patch:
        return patch
    if authorize(identity, Action.UPDATE_ROLE).allowed:
        return patch
    logger.info(f"Ignoring role change requested by non-admin user {identity.user_id}")
    return patch.without("role")
