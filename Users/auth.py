"""Credential verification, token issuing and password hashing."""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel

from Database.db import USERS_TABLE_NAME

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

_password_hasher = PasswordHasher()


class InvalidCredentials(Exception):
    """Raised for every credential failure, whatever the underlying cause."""


class Identity(BaseModel):
    """Authenticated caller resolved from a bearer token."""

    user_id: UUID
    role: str = "user"

    @property
    def key(self) -> str:
        return str(self.user_id)


def hash_password(password: str) -> str:
    return _password_hasher.hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    '''Check a password against a stored argon2 hash.'''
    if not password_hash:
        return False
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token() -> tuple[str, str]:
    """
    Create a password reset token.

    Returns:
        The raw token handed to the user and the hash stored on the account.
    """
    raw = secrets.token_hex(20)
    return raw, hash_reset_token(raw)


class TokenService:
    """Issue and decode HS256 access tokens signed with a shared secret."""

    def __init__(self, secret: str, expire_days: int = 30) -> None:
        if not secret:
            raise ValueError("A token secret is required.")
        self._secret = secret
        self.expire_days = expire_days

    def issue(self, user_id: UUID | str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": str(user_id),
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(days=self.expire_days),
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> str:
        """
        Verify a token and return its subject.

        Raises:
            InvalidCredentials: If the token is malformed, tampered with or expired.
        """
        if not token:
            raise InvalidCredentials("Missing token")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except InvalidTokenError as exc:
            raise InvalidCredentials("Invalid token") from exc
        return str(payload["sub"])


class CredentialVerifier:
    """
    Resolve a bearer token to an existing account.

    The token is verified against the shared secret, its subject is
    extracted, and the subject must still resolve to a row in ``users``.
    Any failure is reported as the same InvalidCredentials so callers cannot
    tell an unknown account from a bad signature.
    """

    def __init__(self, db: Any, tokens: TokenService) -> None:
        self._db = db
        self._tokens = tokens

    def verify(self, token: str) -> Identity:
        subject = self._tokens.decode(token)
        try:
            user_id = UUID(subject)
        except ValueError as exc:
            raise InvalidCredentials("Invalid token subject") from exc

        try:
            result = (
                self._db.table(USERS_TABLE_NAME)
                .select("id, role")
                .eq("id", str(user_id))
                .execute()
            )
        except Exception as exc:
            logger.exception("Account lookup failed during token verification")
            raise InvalidCredentials("Account lookup failed") from exc

        if not result.data:
            raise InvalidCredentials("Account not found")

        record = result.data[0]
        return Identity(user_id=user_id, role=record.get("role") or "user")
