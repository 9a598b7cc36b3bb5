from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from hdfhr.core.auth import get_auth_service, get_current_principal
from hdfhr.core.errors import HDFHRError, to_http
from hdfhr.core.policies import Principal
from hdfhr.db.session import get_db
from hdfhr.models.models import User
from hdfhr.services.auth_service import AuthService, resolve_role, user_to_dict
from hdfhr.schemas.schemas import (
    LoginRequest, TokenResponse, RegisterRequest, UserResponse, SessionUser,
    ForgotPasswordRequest, ResetPasswordRequest, ChangePasswordRequest, MessageResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a reset link has been sent"


def _client_info(request: Request) -> tuple[str | None, str | None]:
    host = request.client.host if request.client else None
    return host, request.headers.get("user-agent")


def _login(auth: AuthService, email: str, password: str, request: Request) -> TokenResponse:
    ip, agent = _client_info(request)
    try:
        result = auth.sign_in(email, password, ip_address=ip, user_agent=agent)
    except HDFHRError as e:
        raise to_http(e)
    return TokenResponse(access_token=result.access_token, user=SessionUser(**result.user))


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, request: Request, auth: AuthService = Depends(get_auth_service)):
    return _login(auth, data.email, data.password, request)


@router.post("/token", response_model=TokenResponse, include_in_schema=False)
def login_form(request: Request, form: OAuth2PasswordRequestForm = Depends(),
               auth: AuthService = Depends(get_auth_service)):
    return _login(auth, form.username, form.password, request)


@router.post("/register", response_model=UserResponse)
def register(data: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        user = auth.sign_up(data.email, data.password)
    except HDFHRError as e:
        raise to_http(e)
    return UserResponse(id=user.id, email=user.email, status=user.status.value, created_at=user.created_at)


@router.get("/me", response_model=SessionUser)
def get_me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == principal.user_id).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return SessionUser(**user_to_dict(user, resolve_role(db, user.id)))


@router.post("/logout", response_model=MessageResponse)
def logout(principal: Principal = Depends(get_current_principal),
           auth: AuthService = Depends(get_auth_service)):
    auth.sign_out(principal)
    return {"message": "Signed out"}


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(data: ForgotPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        auth.forgot_password(data.email)
    except HDFHRError as e:
        raise to_http(e)
    return {"message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(data: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        auth.reset_password(data.token, data.new_password)
    except HDFHRError as e:
        raise to_http(e)
    return {"message": "Password has been reset"}


@router.post("/change-password", response_model=MessageResponse)
def change_password(data: ChangePasswordRequest,
                    principal: Principal = Depends(get_current_principal),
                    auth: AuthService = Depends(get_auth_service)):
    try:
        auth.change_password(principal, data.current_password, data.new_password)
    except HDFHRError as e:
        raise to_http(e)
    return {"message": "Password changed"}
