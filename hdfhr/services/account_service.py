import logging
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from hdfhr.core import config
from hdfhr.core.errors import ValidationError, EmailDeliveryError
from hdfhr.core.security import (
    hash_password, generate_reset_token, generate_temporary_password,
    validate_email, validate_password_strength, normalize_email,
)
from hdfhr.models.models import User, UserStatus
from hdfhr.services.email_service import EmailSender, send_welcome_email

log = logging.getLogger(__name__)


def create_account(db: Session, email: str, password: str | None) -> tuple[User, str | None]:
    """Create an active ``users`` row.

    Without a password the account gets a random one plus an invite token
    that the welcome email turns into a set-password link.
    """
    email = normalize_email(email)
    if not validate_email(email):
        raise ValidationError("Invalid email address")
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already in use")

    invite_token = None
    if password:
        ok, message = validate_password_strength(password)
        if not ok:
            raise ValidationError(message)
    else:
        password = generate_temporary_password()
        invite_token = generate_reset_token()

    user = User(
        email=email,
        password_hash=hash_password(password),
        status=UserStatus.ACTIVE,
    )
    if invite_token:
        user.reset_token = invite_token
        user.reset_token_expires = datetime.utcnow() + timedelta(hours=config.INVITE_TOKEN_EXPIRE_HOURS)
    db.add(user)
    db.flush()
    return user, invite_token


def send_invite(sender: EmailSender, user: User, name: str, invite_token: str | None) -> bool:
    """Email the set-password link. The account stays usable if mail fails."""
    if not invite_token:
        return False
    try:
        send_welcome_email(sender, user.email, name, invite_token)
    except EmailDeliveryError as e:
        log.error("Welcome email for user %s not sent: %s", user.id, e)
        return False
    return True
