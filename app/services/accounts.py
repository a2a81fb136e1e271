"""Account helpers shared by the auth router and the auth dependency."""
import logging
import uuid

from sqlalchemy.orm import Session

from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

GUEST_EMAIL_DOMAIN = "guest.telegramsecrets.local"


def guest_email() -> str:
    return f"guest_{uuid.uuid4().hex[:16]}@{GUEST_EMAIL_DOMAIN}"


def provision_guest(db: Session) -> User:
    """Create a passwordless GUEST user with a fresh unique email."""
    user = User(email=guest_email(), password_hash=None, role=UserRole.GUEST)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Provisioned guest user %s", user.id)
    return user
