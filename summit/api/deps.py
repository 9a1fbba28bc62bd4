"""
summit.api.deps — FastAPI dependency injection
================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from summit.config import SummitConfig, load_config
from summit.database.engine import create_db_engine
from summit.engine.cache import CatalogCache
from summit.engine.changes import ChangeFeed
from summit.errors import AuthRequired
from summit.services.context import MemberContext

_WEAK_SECRETS = frozenset({
    "summit-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> SummitConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_feed() -> ChangeFeed:
    return ChangeFeed()


@lru_cache(maxsize=1)
def get_cache() -> CatalogCache:
    """Process-wide catalog cache; loaded and attached in the app lifespan."""
    return CatalogCache(get_engine())


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


# ---------------------------------------------------------------------------
# Member identity
# ---------------------------------------------------------------------------
def member_from_token(token: str, default_timezone: str = "UTC") -> MemberContext:
    """Decode a bearer token into a :class:`MemberContext`.

    Raises :class:`AuthRequired` if the token is invalid or has no ``sub``.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise AuthRequired("Invalid token.") from None
    member_id = payload.get("sub")
    if not member_id:
        raise AuthRequired("Token has no subject.")
    return MemberContext(
        member_id=str(member_id),
        display_name=payload.get("username"),
        timezone=payload.get("tz") or default_timezone,
        is_admin=bool(payload.get("is_admin")),
    )


def get_optional_member(
    authorization: Annotated[str | None, Header()] = None,
    cfg: SummitConfig = Depends(get_config),
) -> MemberContext | None:
    """The signed-in member, or None for anonymous callers."""
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise AuthRequired("Missing token.")
    return member_from_token(authorization.split(" ", 1)[1], cfg.default_timezone)


def get_member_context(
    member: MemberContext | None = Depends(get_optional_member),
) -> MemberContext:
    """Validate the bearer token and return the acting member.  401 if absent."""
    if member is None:
        raise AuthRequired()
    return member


def get_current_admin(
    member: MemberContext = Depends(get_member_context),
) -> MemberContext:
    """Acting member, who must carry the ``is_admin`` claim.  403 otherwise."""
    if not member.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return member
