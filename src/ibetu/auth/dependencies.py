"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.auth.service import get_or_create_user
from ibetu.auth.tokens import verify_token
from ibetu.database import get_session
from ibetu.db.models import User
from ibetu.errors import AuthenticationError

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the provider token and return the caller's User row.

    Always the first step of an operation; raises AuthenticationError when
    there is no verified identity.
    """
    if credentials is None:
        raise AuthenticationError
    try:
        claims = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise AuthenticationError from e

    user, _ = await get_or_create_user(db, claims)
    return user
