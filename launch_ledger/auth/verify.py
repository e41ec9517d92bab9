"""
verify.py
---------
Purpose:
    Caller verification for the three kinds of callers the ledger serves.

Notes:
    - Voters: encrypted voting token in the `token` query parameter.
    - Admins: HS256 JWT bearer signed with ADMIN_JWT_SECRET, role=admin.
    - Scheduler: `Authorization: Bearer <CRON_SECRET>`.
    - Settings come from the service container so tests can swap them.
"""

import hmac

import jwt
from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from launch_ledger.infrastructure.observability.logging import get_logger
from launch_ledger.services.container import ServiceContainer, get_services
from launch_ledger.services.infrastructure.encryption_service import (
    VoterTokenError,
    voter_id_from_token,
)

logger = get_logger(__name__)

ADMIN_ROLE = "admin"

_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_admin_jwt(token: str, secret: str | None) -> dict:
    if not secret:
        logger.error("ADMIN_JWT_SECRET not configured; rejecting admin call")
        raise _unauthorized("Admin authentication not configured")

    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"verify_exp": True},
        )
    except jwt.PyJWTError as e:
        raise _unauthorized(f"Invalid authentication token: {e}") from e

    if decoded.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return decoded


def admin_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    if credentials is None:
        raise _unauthorized("Missing bearer token")
    return verify_admin_jwt(credentials.credentials, services.settings.ADMIN_JWT_SECRET)


def verify_cron_secret(provided: str, secret: str | None) -> bool:
    if not secret:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))


def cron_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    services: ServiceContainer = Depends(get_services),
) -> None:
    if credentials is None or not verify_cron_secret(
        credentials.credentials, services.settings.CRON_SECRET
    ):
        logger.warning("Rejected cron call with missing or invalid secret")
        raise _unauthorized("Unauthorized")


def resolve_voter_id(token: str | None, secret: str | None) -> str:
    """
    Turn a voting token into a voter id.

    Raises:
        HTTPException: 401 when the token is missing or cannot be authenticated
    """
    if not token:
        raise _unauthorized("Missing voting token")
    try:
        return voter_id_from_token(token, secret)
    except VoterTokenError as e:
        logger.warning("Rejected voting token", error=str(e))
        raise _unauthorized("Invalid voting token") from e


def voter_dependency(
    token: str | None = Query(default=None),
    services: ServiceContainer = Depends(get_services),
) -> str:
    return resolve_voter_id(token, services.settings.VOTING_TOKEN_SECRET)
