from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import User
from learnify.auth.schemas import CurrentUser
from learnify.auth.security import decode_access_token
from learnify.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth", auto_error=False)


def _to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        status=user.status,
        school_id=user.school_id,
        school_name=user.school_name,
        onboarding_step=user.onboarding_step,
    )


async def _load_user_from_token(db: AsyncSession, token: str) -> Optional[User]:
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    user_id_str = payload.get("sub")
    if not user_id_str:
        return None
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        return None
    return await db.get(User, user_id)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the authenticated user from the access token. Role, school and status come from the store.

    A status change does not end sessions issued before it; rejected and disabled users are refused
    at login and placed on the blocked view by the route guard.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user = await _load_user_from_token(db, token)
    if user is None:
        raise credentials_exception
    return _to_current_user(user)


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentUser]:
    """Like get_current_user but resolves to None instead of failing."""
    if not token:
        return None
    user = await _load_user_from_token(db, token)
    if user is None:
        return None
    return _to_current_user(user)


async def get_current_school_id(
    current_user: CurrentUser = Depends(get_current_user),
) -> UUID:
    """Dependency: the caller's school. Users who have not created or joined a school get 409."""
    if current_user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Create or join a school first",
        )
    return current_user.school_id
