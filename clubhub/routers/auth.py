from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import get_current_principal, get_current_user
from clubhub.models.user import User
from clubhub.schemas.auth import (
    ChangePasswordIn,
    EmailOnlyRequest,
    LoginRequest,
    LoginResponse,
    PasswordResetRequest,
    SignupRequest,
    UserOut,
)
from clubhub.services import auth as auth_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, db: AsyncSession = Depends(get_db)):
    try:
        return await auth_service.signup(db, name=payload.name, email=payload.email, password=payload.password)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/verify-email")
async def verify_email(
    token: str = Query(default=""),
    email: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
):
    try:
        await auth_service.verify_email(db, token=token, email=email)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        token, user = await auth_service.login(db, email=payload.email, password=payload.password)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return LoginResponse(access_token=token, user=UserOut.model_validate(user))


@router.post("/logout")
async def logout(_=Depends(get_current_principal)):
    # tokens are stateless; the client drops its copy
    return {"message": "Logged out"}


@router.post("/password-reset-request")
async def password_reset_request(payload: EmailOnlyRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.request_password_reset(db, email=payload.email)


@router.post("/password-reset")
async def password_reset(payload: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    try:
        await auth_service.reset_password(
            db, token=payload.token, email=payload.email, new_password=payload.new_password
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Password has been reset successfully"}


@router.post("/resend-verification")
async def resend_verification(payload: EmailOnlyRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.resend_verification(db, email=payload.email)


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        await auth_service.change_password(
            db,
            current_user,
            current=payload.current_password,
            new=payload.new_password,
            confirm=payload.confirm_new_password,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Password changed successfully."}
