import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from users_service.models.user import Role

PHONE_NUMBER_PATTERN = r"^\+?[1-9]\d{1,14}$"

# Text fields stripped of surrounding whitespace before an update applies them
TRIMMED_FIELDS = ("name", "bio", "address", "phone_number")


def _parse_role(value):
    role = Role.parse(value)
    if role is None:
        allowed = ", ".join(r.value for r in Role)
        raise ValueError(f"Role must be one of: {allowed}")
    return role


class CamelModel(BaseModel):
    """JSON uses camelCase keys (phoneNumber, lastLogin); snake_case is accepted on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateUserRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    role: Role = Role.ADHERANT
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, pattern=PHONE_NUMBER_PATTERN)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Username is required")
        return value

    @field_validator("password")
    @classmethod
    def password_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Password is required")
        return value

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        # Explicit null falls back to the default role
        if value is None:
            return Role.ADHERANT
        return _parse_role(value)

    @field_validator("email", "phone_number", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class UserPatch:
    """
    The fields an update actually carries.

    A field absent from ``changes`` leaves the stored value untouched. A field
    present with an empty string clears the stored value.
    """
    changes: Dict[str, Any] = field(default_factory=dict)

    def __contains__(self, name: str) -> bool:
        return name in self.changes

    def get(self, name: str, default: Any = None) -> Any:
        return self.changes.get(name, default)

    def without(self, name: str) -> "UserPatch":
        return UserPatch({k: v for k, v in self.changes.items() if k != name})

    def is_empty(self) -> bool:
        return not self.changes


class UpdateUserRequest(CamelModel):
    """
    Text fields are trimmed before any other check, so length and format
    rules apply to the value that gets stored. An empty string after
    trimming is accepted and clears the field.
    """
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    address: Optional[str] = Field(default=None, max_length=200)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    role: Optional[Role] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @field_validator(*TRIMMED_FIELDS, mode="before")
    @classmethod
    def trim_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("name")
    @classmethod
    def name_length(cls, value: Optional[str]) -> Optional[str]:
        if value and len(value) < 2:
            raise ValueError("Name must be between 2 and 100 characters")
        return value

    @field_validator("phone_number")
    @classmethod
    def phone_format(cls, value: Optional[str]) -> Optional[str]:
        if value and not re.match(PHONE_NUMBER_PATTERN, value):
            raise ValueError("Phone number should be valid")
        return value

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if value is None:
            return None
        return _parse_role(value)

    def to_patch(self) -> UserPatch:
        """Keep only fields that were sent with a non-null value"""
        changes = {}
        for name in type(self).model_fields:
            if name not in self.model_fields_set:
                continue
            value = getattr(self, name)
            if value is None:
                continue
            changes[name] = value
        return UserPatch(changes)


class UserResponse(CamelModel):
    """Outward projection of a user - the password hash is never part of it"""
    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    role: str
    status: Optional[str] = None
    last_login: Optional[date] = None
    avatar: Optional[str] = None


class UserStatsResponse(CamelModel):
    total_users: int
    active_users: int
    adherant_users: int
    admin_users: int
