"""Shared API request and response models for the SportsBook API."""

from typing import Optional

from pydantic import BaseModel

from Users.user import UserProfile
from Facilities.structure import Facility
from Facilities.booking import Booking
from Athletes.financial_aid import FinancialAidApplication
from Athletes.donation import Donation


class ProfileFields(BaseModel):
    """Payload accepted when updating the caller's profile."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    sport_preferences: Optional[list[str]] = None


class RegisterRequest(BaseModel):

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None


class LoginRequest(BaseModel):

    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):

    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):

    token: Optional[str] = None
    password: Optional[str] = None


class FavoriteRequest(BaseModel):
    """Body of an add-to-favorites call."""

    facility_id: Optional[str] = None


class MessageResponse(BaseModel):
    """Envelope for simple string responses."""

    status: int
    message: str


class ProfileResponse(BaseModel):
    """Envelope for responses that include the caller's profile."""

    status: int
    user: UserProfile


class AuthResponse(BaseModel):
    """Envelope returned by register, login and reset-password."""

    status: int
    token: str
    user: UserProfile


class FavoriteListResponse(BaseModel):

    status: int
    favorites: list[Facility]


class BookingListResponse(BaseModel):

    status: int
    bookings: list[Booking]


class FinancialAidListResponse(BaseModel):

    status: int
    applications: list[FinancialAidApplication]


class DonationListResponse(BaseModel):

    status: int
    donations: list[Donation]
