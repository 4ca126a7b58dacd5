import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockmate.auth import (
    authenticate_user,
    create_access_token,
    get_allowed_modules,
    get_current_user,
    grant_modules,
    hash_password,
    seed_modules,
)
from stockmate.db import get_db
from stockmate.models import User
from stockmate.module_keys import MODULE_KEYS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginPayload(BaseModel):
    email: str
    password: str


class BootstrapAdminPayload(BaseModel):
    email: str
    password: str = Field(min_length=10)
    full_name: str | None = None


class BootstrapStatusResponse(BaseModel):
    needs_bootstrap: bool


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    is_admin: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MeResponse(UserResponse):
    allowed_modules: list[str]


def _has_users(db: Session) -> bool:
    return bool(db.query(func.count(User.id)).scalar())


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(access_token=create_access_token(user), user=UserResponse.model_validate(user))


@router.get("/bootstrap/status", response_model=BootstrapStatusResponse)
def bootstrap_status(db: Session = Depends(get_db)):
    return BootstrapStatusResponse(needs_bootstrap=not _has_users(db))


@router.post("/bootstrap/admin", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminPayload, db: Session = Depends(get_db)):
    """Create the first admin; refused once any user exists."""
    try:
        if db.bind and db.bind.dialect.name == "postgresql":
            db.execute(text("LOCK TABLE users IN EXCLUSIVE MODE"))
        if _has_users(db):
            raise HTTPException(status_code=409, detail="Bootstrap already completed")

        seed_modules(db)
        admin = User(
            email=payload.email,
            full_name=payload.full_name,
            password_hash=hash_password(payload.password),
            is_admin=True,
            is_active=True,
        )
        db.add(admin)
        db.flush()
        grant_modules(db, admin.id, MODULE_KEYS)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Bootstrap already completed")

    db.refresh(admin)
    logger.info("Bootstrap admin created: user_id=%s", admin.id)
    return _token_response(admin)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    if not _has_users(db):
        raise HTTPException(status_code=403, detail="Bootstrap required before login")

    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user), allowed_modules: list[str] = Depends(get_allowed_modules)):
    return MeResponse(**UserResponse.model_validate(current_user).model_dump(), allowed_modules=allowed_modules)
