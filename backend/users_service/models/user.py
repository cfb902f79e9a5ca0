from enum import Enum
from typing import Optional
from sqlalchemy import Column, Integer, String, Date
from users_service.core.database import Base

DEFAULT_STATUS = "Active"


class Role(str, Enum):
    """Closed set of roles a user can hold"""
    ADMIN = "Admin"
    ADHERANT = "Adherant"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Case-insensitive lookup by value or name, None when unknown"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().lower()
        for role in cls:
            if wanted in (role.value.lower(), role.name.lower()):
                return role
        return None


class User(Base):
    """
    User account.

    Passwords are stored as bcrypt hashes, never plaintext. Username, email and
    phone number carry UNIQUE constraints so concurrent writers that both pass
    the application-level existence checks still cannot store duplicates.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.ADHERANT.value)
    name = Column(String, nullable=True)
    # NULLs do not collide under UNIQUE, so users without email/phone are fine
    email = Column(String, unique=True, index=True, nullable=True)
    status = Column(String, nullable=False, default=DEFAULT_STATUS)
    last_login = Column(Date, nullable=True)
    address = Column(String, nullable=True)
    bio = Column(String, nullable=True)
    phone_number = Column(String, unique=True, nullable=True)
    avatar = Column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"
