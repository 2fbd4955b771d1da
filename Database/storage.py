"""File storage for user avatars, backed by a Supabase Storage bucket."""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "/images/default-avatar.png"


class AvatarStorage:
    """Put and delete avatar objects addressed by their path inside a bucket."""

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self._client.storage.from_(self.bucket)

    def put(self, path: str, content: bytes, content_type: str) -> str:
        """
        Upload an object and return its path.

        Args:
            path: Object path inside the bucket.
            content: Raw file bytes.
            content_type: MIME type stored with the object.

        Returns:
            The path the object was stored under.
        """
        self._bucket().upload(
            path=path,
            file=content,
            file_options={"content-type": content_type},
        )
        return path

    def delete(self, path: str) -> None:
        self._bucket().remove([path])

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)


def is_custom_avatar(avatar: Optional[str]) -> bool:
    '''True when the avatar points at an uploaded object rather than the default image.'''
    return bool(avatar) and avatar != DEFAULT_AVATAR


def best_effort_delete(storage: AvatarStorage, path: Optional[str]) -> bool:
    """
    Delete a stored avatar without ever failing the caller.

    Deletion errors are logged and swallowed: the object store is allowed to
    keep stale files, the primary operation must still go through.

    Returns:
        True if a deletion was attempted and succeeded, False otherwise.
    """
    if not is_custom_avatar(path):
        return False

    try:
        storage.delete(path)  # type: ignore[arg-type]
    except Exception:
        logger.exception("Error deleting avatar file", extra={"path": path})
        return False

    logger.info("Avatar deleted", extra={"path": path})
    return True
