from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from hdfhr.core.errors import AuthError, to_http
from hdfhr.core.policies import Principal, apply_jwt_claims
from hdfhr.db.session import get_db
from hdfhr.models.models import UserRole
from hdfhr.services.auth_service import AuthService
from hdfhr.services.email_service import EmailSender, get_email_sender

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_auth_service(
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
) -> AuthService:
    return AuthService(db, email_sender)


def get_current_principal(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        _, principal = AuthService(db).verify_session(token)
    except AuthError as e:
        raise to_http(e)
    apply_jwt_claims(db, principal)
    return principal


def require_roles(*roles: UserRole):
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return principal
    return dependency


require_super_admin = require_roles(UserRole.SUPER_ADMIN)
require_admin = require_roles(UserRole.SUPER_ADMIN, UserRole.COMPANY_ADMIN)
