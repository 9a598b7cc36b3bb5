"""Account authentication: sign-in/up, session verification and password reset.

Role resolution always reads the ``admin`` and ``company_user`` tables;
the role claim inside an access token is informational only.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from sqlalchemy.orm import Session
from hdfhr.core import config
from hdfhr.core.errors import AuthError, ValidationError, EmailDeliveryError
from hdfhr.core.policies import Principal, apply_jwt_claims
from hdfhr.core.security import (
    hash_password, verify_password, needs_rehash, generate_reset_token, generate_temporary_password,
    validate_email, validate_password_strength, normalize_email,
)
from hdfhr.core.tokens import create_access_token, decode_access_token
from hdfhr.models.models import (
    User, UserStatus, UserRole, Admin, CompanyUser, ActivityType, gen_uuid,
)
from hdfhr.services.activity_service import log_activity
from hdfhr.services.email_service import EmailSender, send_password_reset_email

log = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
COMPANY_ADMIN_ROLES = ("admin", "companyadmin")


@dataclass
class RoleInfo:
    role: UserRole | None = None
    company_id: str | None = None
    name: str | None = None


@dataclass
class SignInResult:
    access_token: str
    user: dict
    role: UserRole | None
    company_id: str | None = None


def resolve_role(db: Session, user_id: str) -> RoleInfo:
    """Admin table first, then company_user. Unknown role strings resolve to None."""
    admin = db.query(Admin).filter(Admin.id == user_id, Admin.deleted_at.is_(None)).first()
    if admin and admin.role and admin.status:
        if admin.role.lower() == UserRole.SUPER_ADMIN.value:
            return RoleInfo(UserRole.SUPER_ADMIN, None, admin.name)

    member = db.query(CompanyUser).filter(
        CompanyUser.id == user_id, CompanyUser.deleted_at.is_(None)
    ).first()
    if member and member.role:
        role = member.role.lower()
        if role in COMPANY_ADMIN_ROLES:
            return RoleInfo(UserRole.COMPANY_ADMIN, member.company_id, member.full_name)
        if role == UserRole.EMPLOYEE.value:
            return RoleInfo(UserRole.EMPLOYEE, member.company_id, member.full_name)
        log.warning("Unknown company user role %r for user %s", member.role, user_id)
    return RoleInfo()


def user_to_dict(user: User, role_info: RoleInfo | None = None) -> dict:
    data = {
        "id": user.id,
        "email": user.email,
        "status": user.status.value if hasattr(user.status, "value") else user.status,
        "last_login": user.last_login,
        "created_at": user.created_at,
    }
    if role_info is not None:
        data["role"] = role_info.role.value if role_info.role else None
        data["company_id"] = role_info.company_id
        data["name"] = role_info.name
    return data


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(generate_temporary_password())


def _bind_user(db: Session, user: User) -> None:
    # before a role is known the SQL policies only need the caller's id
    apply_jwt_claims(db, Principal(user_id=user.id, email=user.email, role=None))


class AuthService:
    def __init__(self, db: Session, email_sender: EmailSender | None = None):
        self.db = db
        self.email_sender = email_sender or EmailSender()

    def _get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def sign_in(self, email: str, password: str, ip_address: str | None = None,
                user_agent: str | None = None) -> SignInResult:
        user = self._get_by_email(email)
        if user is None:
            # same hashing cost as a real account, so timing does not reveal the email
            verify_password(password, _dummy_hash())
            log.info("Sign-in failed: unknown email")
            raise AuthError(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            log.info("Sign-in failed: bad password for user %s", user.id)
            raise AuthError(INVALID_CREDENTIALS)
        if user.status != UserStatus.ACTIVE:
            log.info("Sign-in failed: user %s has status %s", user.id, user.status)
            raise AuthError("Account is not active")

        _bind_user(self.db, user)
        now = datetime.utcnow()
        user.last_login = now
        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)

        role_info = resolve_role(self.db, user.id)
        role_value = role_info.role.value if role_info.role else None
        token = create_access_token(user.id, user.email, role_value)

        log_activity(
            self.db, user.id, ActivityType.LOGIN, "User signed in",
            company_id=role_info.company_id, ip_address=ip_address, user_agent=user_agent,
        )
        self.db.commit()
        self.db.refresh(user)
        log.info("User %s signed in with role %s", user.id, role_value)
        return SignInResult(
            access_token=token, user=user_to_dict(user, role_info),
            role=role_info.role, company_id=role_info.company_id,
        )

    def verify_session(self, token: str) -> tuple[User, Principal]:
        """Verify ``token`` and rebuild the caller's identity from the database."""
        claims = decode_access_token(token)
        user = self.db.query(User).filter(User.id == claims["sub"]).first()
        if user is None:
            raise AuthError("User not found")
        if user.status != UserStatus.ACTIVE:
            raise AuthError("Account is not active")
        _bind_user(self.db, user)
        role_info = resolve_role(self.db, user.id)
        principal = Principal(
            user_id=user.id, email=user.email,
            role=role_info.role, company_id=role_info.company_id,
        )
        return user, principal

    def sign_up(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError("Invalid email address")
        ok, message = validate_password_strength(password)
        if not ok:
            raise ValidationError(message)
        if self._get_by_email(email) is not None:
            raise ValidationError("User with this email already exists")

        user = User(
            id=gen_uuid(),
            email=email,
            password_hash=hash_password(password),
            status=UserStatus.PENDING_CONFIRMATION,
        )
        _bind_user(self.db, user)
        self.db.add(user)
        self.db.flush()
        log_activity(self.db, user.id, ActivityType.ACCOUNT_CREATION, "User registered")
        self.db.commit()
        self.db.refresh(user)
        return user

    def sign_out(self, principal: Principal) -> None:
        log_activity(
            self.db, principal.user_id, ActivityType.LOGOUT, "User signed out",
            company_id=principal.company_id,
        )
        self.db.commit()

    def issue_reset_token(self, user: User, expires_in: timedelta | None = None) -> str:
        token = generate_reset_token()
        user.reset_token = token
        user.reset_token_expires = datetime.utcnow() + (
            expires_in or timedelta(minutes=config.RESET_TOKEN_EXPIRE_MINUTES)
        )
        return token

    def forgot_password(self, email: str) -> None:
        user = self._get_by_email(email)
        if user is None:
            # same answer whether or not the account exists
            log.info("Password reset requested for unknown email")
            return
        _bind_user(self.db, user)
        token = self.issue_reset_token(user)
        self.db.commit()
        try:
            send_password_reset_email(self.email_sender, user.email, token)
        except EmailDeliveryError as e:
            log.error("Failed to send reset email to user %s: %s", user.id, e)
            raise EmailDeliveryError("Failed to send reset email")
        log.info("Reset email sent to user %s", user.id)

    def reset_password(self, token: str, new_password: str) -> User:
        if not token:
            raise ValidationError("Reset token is required")
        user = self.db.query(User).filter(User.reset_token == token).first()
        if user is None:
            raise ValidationError("Invalid or expired reset token")
        if user.reset_token_expires is None or datetime.utcnow() > user.reset_token_expires:
            raise ValidationError("Reset token has expired")
        ok, message = validate_password_strength(new_password)
        if not ok:
            raise ValidationError(message)

        _bind_user(self.db, user)
        user.password_hash = hash_password(new_password)
        user.reset_token = None
        user.reset_token_expires = None
        user.updated_at = datetime.utcnow()
        log_activity(self.db, user.id, ActivityType.PASSWORD_CHANGE, "Password reset via email link")
        self.db.commit()
        self.db.refresh(user)
        return user

    def change_password(self, principal: Principal, current_password: str, new_password: str) -> None:
        user = self.db.query(User).filter(User.id == principal.user_id).first()
        if user is None or not verify_password(current_password, user.password_hash):
            raise AuthError("Current password is incorrect")
        ok, message = validate_password_strength(new_password)
        if not ok:
            raise ValidationError(message)
        user.password_hash = hash_password(new_password)
        log_activity(
            self.db, user.id, ActivityType.PASSWORD_CHANGE, "Password changed",
            company_id=principal.company_id,
        )
        self.db.commit()
