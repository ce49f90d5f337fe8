"""
Dependencies for authentication, database sessions, and external collaborators.
"""
from typing import Generator
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from mailslot import database
from mailslot.integrations import (
    ArtifactStore,
    LocalArtifactStore,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    PaymentGateway,
    create_payment_gateway,
)
from mailslot.models.db import User
from mailslot.models.db.enums import UserRole
from mailslot.utils import get_logger

logger = get_logger(__name__)
security = HTTPBearer()

_payment_gateway: PaymentGateway | None = None
_notification_dispatcher: NotificationDispatcher | None = None
_artifact_store: ArtifactStore | None = None

def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Ensures proper session lifecycle management with automatic cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = database.SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the bearer API key to an active user.

    Raises:
        HTTPException: If API key is invalid or user is inactive
    """
    api_key = credentials.credentials

    user = db.query(User).filter(
        User.api_key == api_key,
        User.is_active == True  # noqa: E712
    ).first()

    if not user:
        logger.warning(
            "Authentication failed: invalid or inactive API key",
            api_key_prefix=api_key[:6] + "..." if len(api_key) > 6 else api_key
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or inactive API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("User authenticated", user_id=user.id, user_role=user.role)
    return user

def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Dependency that requires ADMIN role.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.role != UserRole.ADMIN:
        logger.warning(
            "Access denied: admin required",
            user_id=current_user.id,
            user_role=current_user.role
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user

def ensure_owner_or_admin(resource_user_id: int, current_user: User) -> None:
    if current_user.role == UserRole.ADMIN or current_user.id == resource_user_id:
        return
    logger.warning("Access denied: not the resource owner", user_id=current_user.id,
                   owner_id=resource_user_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

# ---- External collaborators (process-wide singletons, overridable in tests) ----

def get_payment_gateway() -> PaymentGateway:
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = create_payment_gateway()
    return _payment_gateway

def get_notification_dispatcher() -> NotificationDispatcher:
    global _notification_dispatcher
    if _notification_dispatcher is None:
        _notification_dispatcher = LoggingNotificationDispatcher()
    return _notification_dispatcher

def get_artifact_store() -> ArtifactStore:
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = LocalArtifactStore()
    return _artifact_store
