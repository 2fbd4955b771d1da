import logging
from logging import Logger
from typing import Any, Callable, Literal, Optional
from uuid import UUID

from fastapi.concurrency import run_in_threadpool
from postgrest.exceptions import APIError

from Database.db import USERS_TABLE_NAME
from .errors import Conflict, InvalidInput, NotFound, StoreError

logger = logging.getLogger(__name__)

EntityType = Literal['user', 'facility', 'booking', 'undefined_entity']

# Columns safe to hand back to the caller; the password hash and reset
# token never leave the store layer.
USER_PUBLIC_COLUMNS = (
    "id, name, email, phone, address, avatar, sport_preferences, role, favorites, created_at"
)


def _parse_id(
        id: str,
        logger: Logger,
        entity: EntityType = 'undefined_entity'
    ) -> UUID:
    """Validate and normalize a GUID identifier for any entity among:
    - user
    - facility
    - booking
    - undefined entity.
    """

    try:
        return UUID(str(id))
    except ValueError as exc:
        logger.warning(f"Invalid GUID supplied for {entity}_id", extra={f"{entity}_id": id})
        raise InvalidInput(f"The supplied {entity} id is not a valid UUID.") from exc


async def _run_query(
    query: Callable[[], Any],
    failure_detail: str,
    log_message: str,
    log_context: dict[str, Any],
    conflict_detail: Optional[str] = None,
) -> Any:
    """
    Execute a blocking store query in the threadpool.

    Raises:
        Conflict: 409 when ``conflict_detail`` is given and the store
            rejects the write on a unique constraint.
        StoreError: 500 when the store call fails.
    """

    try:
        return await run_in_threadpool(query)
    except Exception as exc:
        if conflict_detail is not None and _is_unique_violation(exc):
            logger.info("Write blocked by unique constraint", extra=log_context)
            raise Conflict(conflict_detail) from exc
        logger.exception(log_message, extra=log_context)
        raise StoreError(failure_detail) from exc


async def _fetch_user_record(
    db: Any,
    guid: UUID,
    failure_detail: str,
    columns: str = USER_PUBLIC_COLUMNS,
) -> dict[str, Any]:
    """
    Retrieve the caller's user record or raise.

    Args:
        db: Database client.
        guid: Identifier of the user to fetch.
        failure_detail: Message returned when the database query fails.
        columns: Columns to select.

    Returns:
        The matching user record as a dictionary.

    Raises:
        NotFound: 404 when the user no longer exists.
        StoreError: 500 on query failures.
    """

    result = await _run_query(
        lambda: db.table(USERS_TABLE_NAME).select(columns).eq("id", str(guid)).execute(),
        failure_detail=failure_detail,
        log_message="Failed to fetch user",
        log_context={"user_id": str(guid)},
    )

    if not result.data:
        raise NotFound("User not found")

    return result.data[0]


def _is_unique_violation(error: Exception) -> bool:
    """
    Determine whether an API error represents a uniqueness constraint violation.

    Args:
        error: Exception raised by the persistence layer.

    Returns:
        True if the error indicates a duplicate/unique constraint conflict.
    """

    if isinstance(error, APIError) and error.code == "23505":
        return True

    message = str(error).lower()
    return "duplicate key value" in message or "unique constraint" in message
