"""Favorite facilities of the authenticated caller."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status

from Database.db import FACILITIES_TABLE_NAME, USERS_TABLE_NAME
from Database.deps import get_db
from Facilities.structure import Facility
from Users.auth import Identity
from Users.user import User

from .errors import InvalidInput, NotFound
from .models import FavoriteListResponse, FavoriteRequest
from .security import get_current_identity
from .utils import _fetch_user_record, _parse_id, _run_query

logger = logging.getLogger(__name__)

FACILITY = "facility"

# mount api router
favorite_router = APIRouter()


async def _load_facilities(db: Any, favorites: list[UUID], user_id: str) -> list[Facility]:
    """
    Resolve facility references to facility records, keeping favorites order.

    References to facilities that no longer exist are skipped.
    """

    if not favorites:
        return []

    ids = [str(fav) for fav in favorites]
    result = await _run_query(
        lambda: db.table(FACILITIES_TABLE_NAME).select("*").in_("id", ids).execute(),
        failure_detail="Unable to retrieve favorites due to an internal error.",
        log_message="Failed to fetch favorite facilities",
        log_context={"user_id": user_id},
    )

    by_id = {str(row["id"]): row for row in result.data or []}
    return [Facility(**by_id[fav]) for fav in ids if fav in by_id]


async def _load_user(db: Any, identity: Identity, failure_detail: str) -> User:
    record = await _fetch_user_record(db, identity.user_id, failure_detail=failure_detail)
    return User(**record)


async def _save_favorites(db: Any, user_id: str, favorites: list[UUID], failure_detail: str) -> None:
    payload = {"favorites": [str(fav) for fav in favorites]}
    await _run_query(
        lambda: db.table(USERS_TABLE_NAME).update(payload).eq("id", user_id).execute(),
        failure_detail=failure_detail,
        log_message="Failed to save favorites",
        log_context={"user_id": user_id},
    )


@favorite_router.get("", response_model=FavoriteListResponse)
async def get_favorites(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> FavoriteListResponse:
    """Return the caller's favorite facilities."""

    user = await _load_user(
        db, identity, failure_detail="Unable to retrieve favorites due to an internal error."
    )
    facilities = await _load_facilities(db, user.favorites, identity.key)
    return FavoriteListResponse(status=status.HTTP_200_OK, favorites=facilities)


@favorite_router.post("", response_model=FavoriteListResponse)
async def add_favorite(
    payload: FavoriteRequest,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_db),
) -> FavoriteListResponse:
    """
    Add a facility to the caller's favorites.

    Args:
        payload: Body carrying the facility identifier.
        identity: Authenticated caller.
        db: Supabase client injected via dependency.

    Returns:
        FavoriteListResponse with the updated, populated favorites.

    Raises:
        InvalidInput: 400 when the id is missing, malformed or already a
            favorite.
        NotFound: 404 when the facility or the user does not exist.
    """

    if not payload.facility_id:
        raise InvalidInput("Facility ID is required")

    facility_id = _parse_id(payload.facility_id, logger, FACILITY)
    facility = await _run_query(
        lambda: db.table(FACILITIES_TABLE_NAME).select("id").eq("id", str(facility_id)).execute(),
        failure_detail="Unable to add favorite due to an internal error.",
        log_message="Failed to fetch facility",
        log_context={"facility_id": str(facility_id)},
    )
    if not facility.data:
        raise NotFound("Facility not found")

    failure_detail = "Unable to add favorite due to an internal error."
    user = await _load_user(db, identity, failure_detail=failure_detail)
    if user.has_favorite(facility_id):
        raise InvalidInput("Facility already in favorites")

    favorites = user.with_favorite(facility_id)
    await _save_favorites(db, identity.key, favorites, failure_detail=failure_detail)

    logger.info(
        "Favorite added", extra={"user_id": identity.key, "facility_id": str(facility_id)}
    )
    facilities = await _load_facilities(db, favorites, identity.key)
    return FavoriteListResponse(status=status.HTTP_200_OK, favorites=facilities)


@favorite_router.delete("/{facility_id}", response_model=FavoriteListResponse)
async def remove_favorite(
    facility_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_db),
) -> FavoriteListResponse:
    """Remove a facility from the caller's favorites."""

    guid = _parse_id(facility_id, logger, FACILITY)

    failure_detail = "Unable to remove favorite due to an internal error."
    user = await _load_user(db, identity, failure_detail=failure_detail)
    if not user.has_favorite(guid):
        raise InvalidInput("Facility not in favorites")

    favorites = user.without_favorite(guid)
    await _save_favorites(db, identity.key, favorites, failure_detail=failure_detail)

    logger.info("Favorite removed", extra={"user_id": identity.key, "facility_id": facility_id})
    facilities = await _load_facilities(db, favorites, identity.key)
    return FavoriteListResponse(status=status.HTTP_200_OK, favorites=facilities)
