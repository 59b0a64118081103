from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.apps.api.deps import (
    email_sender_dep,
    get_current_user,
    get_db,
    identity_verifier_dep,
)
from docanalyzer.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docanalyzer.apps.api.response import SuccessEnvelope, success_response
from docanalyzer.core.config import get_settings
from docanalyzer.domain.models import User
from docanalyzer.services.auth import accounts, federation, password_reset
from docanalyzer.services.auth.accounts import AuthResult
from docanalyzer.services.auth.oidc import IdentityProviderVerifier
from docanalyzer.services.notifications.email import EmailSender


router = APIRouter(prefix="/auth", tags=["auth"], responses=DEFAULT_ERROR_RESPONSES)


class SignupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1, max_length=1024)


class SignupResponse(BaseModel):
    message: str
    dev_otp: str | None = None


class VerifyOtpRequest(BaseModel):
    email: str
    # Numbers are passed through uncoerced so they fail as an invalid code.
    otp: str | int


class LoginRequest(BaseModel):
    email: str
    password: str


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(alias="idToken", min_length=1)

    model_config = {"populate_by_name": True}


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")


class ChangePasswordRequest(BaseModel):
    current_password: str | None = None
    new_password: str = Field(min_length=1, max_length=1024)


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=1, max_length=1024)


class SessionResponse(BaseModel):
    id: str
    name: str
    email: str
    token: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    is_verified: bool
    has_password: bool
    federated: bool
    last_login_at: str | None
    created_at: str | None


class MessageResponse(BaseModel):
    message: str


class ResetPasswordResponse(BaseModel):
    message: str
    token: str


def _session_payload(result: AuthResult) -> SessionResponse:
    return SessionResponse(
        id=result.user.id,
        name=result.user.name,
        email=result.user.email,
        token=result.token,
    )


def _user_payload(user: User) -> UserResponse:
    # Never expose password, OTP, or reset material.
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        is_verified=user.is_verified,
        has_password=user.password_hash is not None,
        federated=user.google_id is not None,
        last_login_at=user.last_login_at.isoformat() if user.last_login_at else None,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )


@router.post("/signup", status_code=201, response_model=SuccessEnvelope[SignupResponse])
async def signup(
    request: Request,
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(email_sender_dep),
) -> dict:
    pending = await accounts.begin_registration(
        db,
        email=payload.email,
        name=payload.name,
        password=payload.password,
        email_sender=email_sender,
    )
    response = SignupResponse(message="OTP sent to email. Please verify.")
    if get_settings().auth_dev_expose_otp:
        response.dev_otp = pending.otp_code
    return success_response(request=request, data=response)


@router.post("/verify-otp", response_model=SuccessEnvelope[SessionResponse])
async def verify_otp(
    request: Request,
    payload: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await accounts.redeem_otp(db, email=payload.email, code=payload.otp)
    return success_response(request=request, data=_session_payload(result))


@router.post("/login", response_model=SuccessEnvelope[SessionResponse])
async def login(
    request: Request,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await accounts.authenticate(db, email=payload.email, password=payload.password)
    return success_response(request=request, data=_session_payload(result))


@router.post("/google-login", response_model=SuccessEnvelope[SessionResponse])
async def google_login(
    request: Request,
    payload: GoogleLoginRequest,
    db: AsyncSession = Depends(get_db),
    verifier: IdentityProviderVerifier = Depends(identity_verifier_dep),
) -> dict:
    result = await federation.federated_login(db, id_token=payload.id_token, verifier=verifier)
    return success_response(request=request, data=_session_payload(result))


@router.get("/google/callback", response_class=RedirectResponse, status_code=302)
async def google_callback(
    code: str = Query(min_length=1),
    db: AsyncSession = Depends(get_db),
    verifier: IdentityProviderVerifier = Depends(identity_verifier_dep),
) -> RedirectResponse:
    # Browser flow: hand the token back to the frontend in the URL fragment, not JSON.
    result = await federation.federated_callback(db, code=code, verifier=verifier)
    return RedirectResponse(url=federation.build_success_redirect(result.token), status_code=302)


@router.get("/me", response_model=SuccessEnvelope[UserResponse])
async def get_me(request: Request, user: User = Depends(get_current_user)) -> dict:
    return success_response(request=request, data=_user_payload(user))


@router.put("/me", response_model=SuccessEnvelope[SessionResponse])
async def update_me(
    request: Request,
    payload: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await accounts.update_profile(
        db, user_id=user.id, name=payload.name, email=payload.email
    )
    return success_response(request=request, data=_session_payload(result))


@router.put("/me/password", response_model=SuccessEnvelope[SessionResponse])
async def change_my_password(
    request: Request,
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await accounts.change_password(
        db,
        user_id=user.id,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return success_response(request=request, data=_session_payload(result))


@router.post("/forgot-password", response_model=SuccessEnvelope[MessageResponse])
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(email_sender_dep),
) -> dict:
    # The raw token only leaves by email; the response never carries it.
    raw_token = await password_reset.request_password_reset(db, email=payload.email)
    await password_reset.send_password_reset_email(
        email=payload.email, raw_token=raw_token, email_sender=email_sender
    )
    return success_response(
        request=request, data=MessageResponse(message="Password reset link sent to email")
    )


@router.put("/reset-password/{token}", response_model=SuccessEnvelope[ResetPasswordResponse])
async def reset_password(
    request: Request,
    token: str,
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await password_reset.redeem_password_reset(
        db, raw_token=token, new_password=payload.password
    )
    return success_response(
        request=request,
        data=ResetPasswordResponse(message="Password reset successful", token=result.token),
    )
