"""Routes acting on the authenticated caller's own records."""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from Athletes.donation import Donation
from Athletes.financial_aid import FinancialAidApplication
from Database.db import (
    ATHLETES_TABLE_NAME,
    BOOKINGS_TABLE_NAME,
    DONATIONS_TABLE_NAME,
    FACILITIES_TABLE_NAME,
    FINANCIAL_AID_TABLE_NAME,
    TRAINERS_TABLE_NAME,
    USERS_TABLE_NAME,
)
from Database.deps import get_db, get_storage
from Database.storage import AvatarStorage, best_effort_delete
from Facilities.booking import Booking
from Users.auth import Identity
from Users.user import UserProfile, normalize_email

from .errors import InvalidInput, PayloadTooLarge, StoreError
from .models import (
    BookingListResponse,
    DonationListResponse,
    FinancialAidListResponse,
    MessageResponse,
    ProfileFields,
    ProfileResponse,
)
from .security import get_current_identity
from .utils import _fetch_user_record, _run_query

logger = logging.getLogger(__name__)

# Maximum avatar size: 5MB
MAX_AVATAR_SIZE = 5 * 1024 * 1024

ALLOWED_AVATAR_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

BOOKING_COLUMNS = (
    f"*, facility:{FACILITIES_TABLE_NAME}(id, name, location, images), "
    f"trainer:{TRAINERS_TABLE_NAME}(id, name, specialization, avatar)"
)
DONATION_COLUMNS = f"*, athlete:{ATHLETES_TABLE_NAME}(id, name)"

# mount api router
user_router = APIRouter()


@user_router.get("/health", response_model=MessageResponse)
async def health_check() -> MessageResponse:
    """Quick liveness check for the user service."""

    return MessageResponse(status=status.HTTP_200_OK, message="User service is healthy")


@user_router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> ProfileResponse:
    """Return the caller's profile."""

    record = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to retrieve profile due to an internal error."
    )
    return ProfileResponse(status=status.HTTP_200_OK, user=UserProfile.from_record(record))


@user_router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    fields: ProfileFields,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_db),
) -> ProfileResponse:
    """
    Update the caller's profile.

    Empty name, email and sport preferences are ignored; phone and address
    may be cleared with an empty string.

    Args:
        fields: Partial update payload with allowed fields.
        identity: Authenticated caller.
        db: Supabase client injected via dependency.

    Returns:
        ProfileResponse wrapping the updated profile.
    """

    updates: dict = {}
    if fields.name:
        updates["name"] = fields.name.strip()
    if fields.email:
        try:
            updates["email"] = normalize_email(fields.email)
        except ValueError as exc:
            raise InvalidInput("Please provide a valid email address") from exc
    if fields.phone is not None:
        updates["phone"] = fields.phone
    if fields.address is not None:
        updates["address"] = fields.address
    if fields.sport_preferences:
        updates["sport_preferences"] = fields.sport_preferences

    if not updates:
        raise InvalidInput("At least one field must be provided for update.")

    user_id = str(identity.user_id)
    _ = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to update profile due to an internal error."
    )

    await _run_query(
        lambda: db.table(USERS_TABLE_NAME).update(updates).eq("id", user_id).execute(),
        failure_detail="Unable to update profile due to an internal error.",
        log_message="Failed to update profile",
        log_context={"user_id": user_id, "fields": sorted(updates)},
        conflict_detail=f"User with email {updates.get('email')} already exists",
    )

    refreshed = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to update profile due to an internal error."
    )
    logger.info("Profile updated", extra={"user_id": user_id})
    return ProfileResponse(status=status.HTTP_200_OK, user=UserProfile.from_record(refreshed))


def avatar_path(user_id: str, content_type: str) -> str:
    """Storage path for a new avatar: one folder per user, unique file name."""

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    extension = ALLOWED_AVATAR_TYPES[content_type]
    return f"avatars/{user_id}/{timestamp}_{uuid4().hex[:8]}{extension}"


def _validate_avatar(file: UploadFile) -> None:
    if file.content_type not in ALLOWED_AVATAR_TYPES:
        allowed = ", ".join(sorted(ALLOWED_AVATAR_TYPES))
        raise InvalidInput(f"Invalid file type. Allowed: {allowed}")


@user_router.put("/profile/avatar", response_model=ProfileResponse)
async def update_avatar(
    avatar: UploadFile | None = File(None, description="Avatar image"),
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_db),
    storage: AvatarStorage = Depends(get_storage),
) -> ProfileResponse:
    """
    Replace the caller's avatar.

    The previous uploaded avatar is deleted on a best-effort basis once the
    new path is saved: a failed deletion is logged and the update still
    succeeds.
    """

    if avatar is None:
        raise InvalidInput("No file uploaded")
    _validate_avatar(avatar)

    content = await avatar.read()
    if not content:
        raise InvalidInput("No file uploaded")
    if len(content) > MAX_AVATAR_SIZE:
        logger.warning(
            "Avatar too large",
            extra={"user_id": str(identity.user_id), "size": len(content)},
        )
        raise PayloadTooLarge(f"File too large. Maximum size: {MAX_AVATAR_SIZE // (1024 * 1024)}MB")

    user_id = str(identity.user_id)
    record = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to update avatar due to an internal error."
    )
    previous = record.get("avatar")

    new_path = avatar_path(user_id, avatar.content_type)  # type: ignore[arg-type]
    await _run_query(
        lambda: storage.put(new_path, content, avatar.content_type),  # type: ignore[arg-type]
        failure_detail="Unable to store avatar due to an internal error.",
        log_message="Failed to upload avatar",
        log_context={"user_id": user_id, "path": new_path},
    )

    try:
        await _set_avatar(db, user_id, new_path)
    except StoreError:
        await run_in_threadpool(best_effort_delete, storage, new_path)
        raise
    await run_in_threadpool(best_effort_delete, storage, previous)

    refreshed = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to update avatar due to an internal error."
    )
    logger.info("Avatar updated", extra={"user_id": user_id, "path": new_path})
    return ProfileResponse(status=status.HTTP_200_OK, user=UserProfile.from_record(refreshed))


@user_router.delete("/profile/avatar", response_model=ProfileResponse)
async def remove_avatar(
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_db),
    storage: AvatarStorage = Depends(get_storage),
) -> ProfileResponse:
    """Remove the caller's avatar; the default avatar is never deleted."""

    user_id = str(identity.user_id)
    record = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to remove avatar due to an internal error."
    )

    await run_in_threadpool(best_effort_delete, storage, record.get("avatar"))

    await _set_avatar(db, user_id, None)
    refreshed = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to remove avatar due to an internal error."
    )
    logger.info("Avatar removed", extra={"user_id": user_id})
    return ProfileResponse(status=status.HTTP_200_OK, user=UserProfile.from_record(refreshed))


async def _set_avatar(db, user_id: str, path: str | None) -> None:
    await _run_query(
        lambda: db.table(USERS_TABLE_NAME).update({"avatar": path}).eq("id", user_id).execute(),
        failure_detail="Unable to update avatar due to an internal error.",
        log_message="Failed to save avatar path",
        log_context={"user_id": user_id},
    )


@user_router.get("/bookings", response_model=BookingListResponse)
async def get_bookings(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> BookingListResponse:
    """Caller's bookings with facility and trainer details, newest date first."""

    user_id = str(identity.user_id)
    result = await _run_query(
        lambda: db.table(BOOKINGS_TABLE_NAME)
        .select(BOOKING_COLUMNS)
        .eq("user_id", user_id)
        .order("date", desc=True)
        .execute(),
        failure_detail="Unable to retrieve bookings due to an internal error.",
        log_message="Failed to fetch bookings",
        log_context={"user_id": user_id},
    )

    bookings = [Booking(**row) for row in result.data or []]
    logger.info("Bookings retrieved", extra={"user_id": user_id, "count": len(bookings)})
    return BookingListResponse(status=status.HTTP_200_OK, bookings=bookings)


@user_router.get("/financial-aid", response_model=FinancialAidListResponse)
async def get_financial_aid_applications(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> FinancialAidListResponse:
    user_id = str(identity.user_id)
    result = await _run_query(
        lambda: db.table(FINANCIAL_AID_TABLE_NAME)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute(),
        failure_detail="Unable to retrieve financial aid applications due to an internal error.",
        log_message="Failed to fetch financial aid applications",
        log_context={"user_id": user_id},
    )

    applications = [FinancialAidApplication(**row) for row in result.data or []]
    return FinancialAidListResponse(status=status.HTTP_200_OK, applications=applications)


@user_router.get("/donations/history", response_model=DonationListResponse)
async def get_donation_history(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> DonationListResponse:
    """Donations made by the caller, most recent first."""

    user_id = str(identity.user_id)
    result = await _run_query(
        lambda: db.table(DONATIONS_TABLE_NAME)
        .select(DONATION_COLUMNS)
        .eq("donor_id", user_id)
        .order("donation_date", desc=True)
        .execute(),
        failure_detail="Unable to retrieve donation history due to an internal error.",
        log_message="Failed to fetch donations",
        log_context={"user_id": user_id},
    )

    donations = [Donation(**row) for row in result.data or []]
    return DonationListResponse(status=status.HTTP_200_OK, donations=donations)
