"""FastAPI dependency injection providers."""

import uuid
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.db.session import async_session_factory
from krolist.models.user import User
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.page_fetcher import PageFetcher
from krolist.services.auth_service import AuthService, decode_access_token

_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: committed on success, rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token's subject to an active user.

    Raises 401 if the token is missing, invalid, or names no active user.
    """
    if not credentials:
        raise _unauthorized("Authentication required")

    subject = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(subject or "")
    except ValueError:
        raise _unauthorized("Invalid token")

    user = await AuthService(db).get_user_by_id(user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found")

    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Admin role check for administrative endpoints (403 otherwise)."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def get_partner_client() -> AmazonPartnerClient:
    """PA-API client built from the configured credentials."""
    return AmazonPartnerClient()


def get_page_fetcher() -> PageFetcher:
    """Static page fetcher used by price refreshes."""
    return PageFetcher()
