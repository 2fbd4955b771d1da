"""User model with profile and favorites helpers."""
from datetime import datetime, timezone
from email.utils import parseaddr
from typing import Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


def normalize_email(value: str) -> str:
    """
    Normalize and validate an email address to lowercase.

    Args:
        value: Input email string.

    Returns:
        Lowercased email string if valid.

    Raises:
        ValueError: If the email address is malformed.
    """
    lowered = value.strip().lower()
    parsed = parseaddr(lowered)[1]
    if "@" not in parsed or parsed != lowered:
        raise ValueError("Invalid email address format.")
    return lowered


def dedupe_favorites(favorites: list[UUID]) -> list[UUID]:
    '''Drop repeated facility references, keeping the first occurrence.'''
    seen: set[UUID] = set()
    unique: list[UUID] = []
    for facility_id in favorites:
        if facility_id not in seen:
            seen.add(facility_id)
            unique.append(facility_id)
    return unique


class User(BaseModel):
    """Platform user with contact info, preferences and favorite facilities."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    sport_preferences: list[str] = Field(default_factory=list)
    role: Literal["user", "admin", "trainer", "facility_owner"] = "user"
    favorites: list[UUID] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), frozen=True)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("favorites", "sport_preferences", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("favorites", mode="after")
    @classmethod
    def unique_favorites(cls, value: list[UUID]) -> list[UUID]:
        return dedupe_favorites(value)

    def has_favorite(self, facility_id: UUID) -> bool:
        return facility_id in self.favorites

    def with_favorite(self, facility_id: UUID) -> list[UUID]:
        """Favorites after adding ``facility_id`` (set union, order kept)."""
        return dedupe_favorites([*self.favorites, facility_id])

    def without_favorite(self, facility_id: UUID) -> list[UUID]:
        """Favorites after removing ``facility_id`` (set difference)."""
        return [fav for fav in self.favorites if fav != facility_id]

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "avatar": self.avatar,
            "sport_preferences": list(self.sport_preferences),
            "role": self.role,
            "favorites": [str(fav) for fav in self.favorites],
            "created_at": self.created_at.isoformat(),
            }


class UserProfile(BaseModel):
    """Public view of a user returned by profile and auth endpoints."""

    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    avatar: Optional[str] = None
    sport_preferences: list[str] = Field(default_factory=list)
    created_at: datetime
    role: str

    @classmethod
    def from_record(cls, record: dict) -> "UserProfile":
        user = User(**{k: v for k, v in record.items() if k in User.model_fields})
        return cls(**user.model_dump(exclude={"favorites"}))
