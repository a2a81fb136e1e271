import logging
from typing import Optional

from fastapi import Depends, HTTPException, Response, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.auth.security import verify_token, create_user_token
from app.services.accounts import provision_guest

logger = logging.getLogger(__name__)

NEW_TOKEN_HEADER = "X-New-Token"

security = HTTPBearer(auto_error=False)


def _resolve_user(token: str, response: Response, db: Session) -> User:
    payload = verify_token(token, expected_type="access")
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token payload",
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is not None:
        return user

    # The account behind a valid token was removed: heal the session with a new guest
    user = provision_guest(db)
    response.headers[NEW_TOKEN_HEADER] = create_user_token(user)
    logger.warning(
        "Token referenced missing user %s; issued replacement guest %s", user_id, user.id
    )
    return user


async def get_current_user(
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Dependency to get current authenticated user from JWT token"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _resolve_user(credentials.credentials, response, db)


async def get_optional_user(
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of a 401"""
    if credentials is None or not credentials.credentials:
        return None
    return _resolve_user(credentials.credentials, response, db)


def require_role(*allowed_roles: UserRole):
    """Factory to create role-based access control dependency"""

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(r.value for r in allowed_roles)}",
            )
        return current_user
    return role_checker


require_admin = require_role(UserRole.ADMIN)
