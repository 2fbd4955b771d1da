"""Bearer authentication for HTTP routes."""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from Database.deps import get_db
from settings import Settings, get_settings
from Users.auth import CredentialVerifier, Identity, InvalidCredentials, TokenService

from .errors import Unauthenticated

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings.jwt_secret, settings.jwt_expire_days)


def get_verifier(
    db=Depends(get_db), tokens: TokenService = Depends(get_token_service)
) -> CredentialVerifier:
    return CredentialVerifier(db, tokens)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> Identity:
    """
    Resolve the bearer token of the request to the caller's identity.

    Raises:
        Unauthenticated: 401 for a missing token or any verification failure.
    """

    if credentials is None:
        raise Unauthenticated("Not authorized, no token")

    try:
        return await run_in_threadpool(verifier.verify, credentials.credentials)
    except InvalidCredentials as exc:
        logger.info("Bearer authentication failed")
        raise Unauthenticated() from exc
