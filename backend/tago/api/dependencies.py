"""
Shared FastAPI dependencies: current user and the SSE connection registry.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, sessionmaker
from tago.core.security import decode_access_token
from tago.db.session import get_db, get_session_factory
from tago.models.user import User
from tago.services.connection_registry import ConnectionRegistry

bearer_scheme = HTTPBearer(auto_error=False)


def _user_from_token(token: Optional[str], db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    payload = decode_access_token(token)
    if not payload or payload.get("user_id") is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == payload["user_id"]).first()
    if not user:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the user from the Authorization bearer token."""
    token = credentials.credentials if credentials else None
    return _user_from_token(token, db)


def get_stream_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token: Optional[str] = Query(None, description="Access token, for EventSource clients that cannot set headers"),
    session_factory: sessionmaker = Depends(get_session_factory)
) -> User:
    """
    Like get_current_user, but also accepts the token as a query parameter.

    Uses its own session, closed before the stream starts, so no pooled
    connection stays checked out while the stream is open.
    """
    if credentials:
        token = credentials.credentials
    with session_factory() as db:
        return _user_from_token(token, db)


def get_connection_registry(request: Request) -> ConnectionRegistry:
    """Process-wide registry created in tago.main."""
    return request.app.state.connection_registry
