import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import User, ClientRegistration
from ..schemas.auth import LoginRequest, TokenResponse, MeResponse
from ..schemas.clients import ClientSignupRequest, RegistrationResponse
from ..schemas.staff import AccessLevel
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    claims_for_user,
    decode_token,
    get_current_user,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_tokens(user: User) -> TokenResponse:
    access = create_access_token(claims_for_user(user))
    refresh = create_refresh_token(str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.lower()).first()
    if not user or not user.is_active or not verify_password(req.password, user.password_hash):
        logger.info("login_failed", email=req.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(token: str, db: Session = Depends(get_db)):
    # Claims are re-read from the user row so role changes (e.g. an approved client) take effect
    payload = decode_token(token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    return _issue_tokens(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=str(user.id),
        email=user.email,
        tenant_id=user.tenant_id,
        access_level=user.access_level,
        role=user.role,
        super_admin=bool(user.super_admin),
    )


@router.post("/client-signup", response_model=RegistrationResponse, status_code=201)
def client_signup(req: ClientSignupRequest, db: Session = Depends(get_db)):
    """
    Self-service signup for client companies. The account exists straight
    away but has no tenant or client until an admin approves the registration.
    """
    email = req.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")
    user = User(
        email=email,
        password_hash=get_password_hash(req.password),
        access_level=AccessLevel.client.value,
    )
    db.add(user)
    db.flush()
    registration = ClientRegistration(
        user_id=user.id,
        company_name=req.company_name,
        contact_name=req.contact_name,
        email=email,
        phone=req.phone,
        status="Pending",
        requested_at=datetime.now(timezone.utc),
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info("client_registration_requested", registration_id=str(registration.id), company=req.company_name)
    return registration
