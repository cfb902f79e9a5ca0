import logging
from datetime import datetime, timezone, date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from users_service.core.exceptions import (
    DuplicateEmail,
    DuplicatePhoneNumber,
    DuplicateUsername,
    NotFound,
    UserConflict,
)
from users_service.core.security import get_password_hash
from users_service.models.user import DEFAULT_STATUS, Role, User
from users_service.repositories.user_repository import user_repository
from users_service.schemas.user import (
    CreateUserRequest,
    TRIMMED_FIELDS,
    UserPatch,
    UserResponse,
    UserStatsResponse,
)

logger = logging.getLogger(__name__)

# Filter value meaning "do not filter on this dimension"
ALL_FILTER = "all"


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _filter_value(value: Optional[str]) -> Optional[str]:
    if value is None or value == ALL_FILTER:
        return None
    return value


class UserService:
    """
    Business rules on top of the user repository.

    This is the only write path into the users table. Every method that
    returns a user returns its projection, never the ORM row.
    """

    @staticmethod
    def to_response(user: User) -> UserResponse:
        return UserResponse(
            id=user.id,
            username=user.username,
            name=user.name,
            email=user.email,
            address=user.address,
            phone_number=user.phone_number,
            bio=user.bio,
            role=user.role,
            status=user.status,
            last_login=user.last_login,
            avatar=user.avatar,
        )

    @staticmethod
    def _get_or_404(user_id: int, db: Session) -> User:
        user = user_repository.find_by_id(user_id, db)
        if user is None:
            raise NotFound(f"User not found with id: {user_id}")
        return user

    @staticmethod
    def _save(user: User, db: Session) -> User:
        try:
            return user_repository.save(user, db)
        except IntegrityError:
            # Two concurrent writers passed the existence checks; the table's
            # unique constraints rejected the second one
            logger.warning(f"Unique constraint rejected write for username {user.username}")
            raise UserConflict()

    def get_all_users(self, db: Session) -> List[UserResponse]:
        return [self.to_response(user) for user in user_repository.find_all(db)]

    def get_user_by_id(self, user_id: int, db: Session) -> UserResponse:
        return self.to_response(self._get_or_404(user_id, db))

    def get_users_by_filters(
        self,
        db: Session,
        name: Optional[str] = ALL_FILTER,
        role: Optional[str] = ALL_FILTER,
        status: Optional[str] = ALL_FILTER,
    ) -> List[UserResponse]:
        """
        Search users. "all" disables a filter; any other value, including an
        empty string, is applied. A role filter matches case-insensitively on
        known roles since roles are stored in canonical form.
        """
        role_filter = _filter_value(role)
        if role_filter is not None:
            parsed = Role.parse(role_filter)
            if parsed is not None:
                role_filter = parsed.value
        users = user_repository.find_by_filters(
            db,
            name=_filter_value(name),
            role=role_filter,
            status=_filter_value(status),
        )
        return [self.to_response(user) for user in users]

    def get_user_stats(self, db: Session) -> UserStatsResponse:
        return UserStatsResponse(
            total_users=user_repository.count_all(db),
            active_users=user_repository.count_by_status(DEFAULT_STATUS, db),
            adherant_users=user_repository.count_by_role(Role.ADHERANT.value, db),
            admin_users=user_repository.count_by_role(Role.ADMIN.value, db),
        )

    def create_user(self, request: CreateUserRequest, db: Session) -> UserResponse:
        """Create a user with a hashed password and lastLogin stamped to today"""
        if request.email is not None and user_repository.exists_by_email(request.email, db):
            raise DuplicateEmail(f"Email already exists: {request.email}")

        if user_repository.exists_by_username(request.username, db):
            raise DuplicateUsername(f"Username already exists: {request.username}")

        if request.phone_number is not None and user_repository.exists_by_phone_number(request.phone_number, db):
            raise DuplicatePhoneNumber(f"Phone number already exists: {request.phone_number}")

        user = User(
            username=request.username,
            password=get_password_hash(request.password),
            role=request.role.value,
            name=request.name,
            email=request.email,
            address=request.address,
            bio=request.bio,
            phone_number=request.phone_number,
            status=DEFAULT_STATUS,
            last_login=_today(),
        )
        user = self._save(user, db)
        logger.info(f"Created user {user.id} ({user.username}) with role {user.role}")
        return self.to_response(user)

    def update_user(self, user_id: int, patch: UserPatch, db: Session) -> UserResponse:
        """
        Apply the fields present in patch and leave every other field as stored.

        Role changes must already have passed the authorization policy.
        """
        user = self._get_or_404(user_id, db)

        if "email" in patch:
            email = patch.get("email")
            if email != user.email:
                if user_repository.exists_by_email(email, db):
                    raise DuplicateEmail(f"Email already exists: {email}")
                user.email = email

        for field_name in TRIMMED_FIELDS:
            if field_name not in patch:
                continue
            value = patch.get(field_name)
            if field_name == "phone_number":
                # Cleared phone numbers are stored as NULL so they never collide under UNIQUE
                if value == "":
                    value = None
                elif value != user.phone_number and user_repository.exists_by_phone_number(value, db):
                    raise DuplicatePhoneNumber(f"Phone number already exists: {value}")
            setattr(user, field_name, value)

        if "role" in patch:
            user.role = patch.get("role").value

        if "status" in patch:
            user.status = patch.get("status")

        user = self._save(user, db)
        logger.info(f"Updated user {user.id}: {', '.join(sorted(patch.changes)) or 'no changes'}")
        return self.to_response(user)

    def delete_user(self, user_id: int, db: Session) -> None:
        if user_repository.find_by_id(user_id, db) is None:
            raise NotFound(f"User not found with id: {user_id}")
        user_repository.delete_by_id(user_id, db)
        logger.info(f"Deleted user {user_id}")

    def update_last_login(self, user_id: int, db: Session) -> UserResponse:
        user = self._get_or_404(user_id, db)
        user.last_login = _today()
        return self.to_response(self._save(user, db))

    def ensure_bootstrap_admin(
        self,
        username: str,
        password: str,
        db: Session,
        email: Optional[str] = None,
    ) -> Optional[UserResponse]:
        """
        Create the first Admin account unless a user with that username exists.

        Returns the created user, or None when nothing was created.
        """
        if user_repository.exists_by_username(username, db):
            return None
        request = CreateUserRequest(
            username=username,
            password=password,
            role=Role.ADMIN,
            email=email,
        )
        try:
            created = self.create_user(request, db)
        except UserConflict as e:
            # e.g. the configured email already belongs to another user
            logger.warning(f"Could not bootstrap admin account {username}: {e.message}")
            return None
        logger.info(f"Bootstrapped admin account {created.username}")
        return created


user_service = UserService()
