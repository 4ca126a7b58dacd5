from datetime import datetime, timedelta, timezone
from typing import Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from stockmate.config import get_settings
from stockmate.db import get_db
from stockmate.errors import ValidationError
from stockmate.models import Module, User, UserModuleAccess
from stockmate.module_keys import MODULE_DEFINITIONS, MODULE_KEYS, MODULE_KEY_SET, ModuleKey

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user.id), "is_admin": user.is_admin, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int | None:
    """Return the user id carried by a valid token, or None."""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    subject = claims.get("sub")
    if subject is None or not str(subject).isdigit():
        return None
    return int(subject)


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


def allowed_module_keys(db: Session, user: User) -> list[str]:
    if user.is_admin:
        return list(MODULE_KEYS)

    granted = {
        key
        for (key,) in db.query(Module.key)
        .join(UserModuleAccess, UserModuleAccess.module_id == Module.id)
        .filter(UserModuleAccess.user_id == user.id)
        .all()
    }
    return [key for key in MODULE_KEYS if key in granted]


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user_id = decode_access_token(token)
    user = db.get(User, user_id) if user_id is not None else None
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_allowed_modules(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[str]:
    return allowed_module_keys(db, current_user)


def require_module(module_key: ModuleKey):
    """Router dependency: admins always pass, other users need the module granted."""
    key = ModuleKey(module_key).value

    def dependency(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
        if current_user.is_admin or key in allowed_module_keys(db, current_user):
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized for module '{key}'",
        )

    return dependency


def seed_modules(db: Session) -> int:
    existing = {key for (key,) in db.query(Module.key).all()}
    missing = [(module_key.value, name) for module_key, name in MODULE_DEFINITIONS if module_key.value not in existing]
    db.add_all([Module(key=key, name=name) for key, name in missing])
    return len(missing)


def grant_modules(db: Session, user_id: int, module_keys: Iterable[str]) -> list[str]:
    """Replace a user's module grants with exactly `module_keys`."""
    module_keys = list(dict.fromkeys(module_keys))
    unknown = [key for key in module_keys if key not in MODULE_KEY_SET]
    if unknown:
        raise ValidationError(f"Unknown module keys: {', '.join(unknown)}")

    modules = db.query(Module).filter(Module.key.in_(module_keys)).all() if module_keys else []
    if len(modules) != len(module_keys):
        found = {module.key for module in modules}
        raise ValidationError(f"Modules not seeded yet: {', '.join(key for key in module_keys if key not in found)}")

    db.query(UserModuleAccess).filter(UserModuleAccess.user_id == user_id).delete()
    db.add_all([UserModuleAccess(user_id=user_id, module_id=module.id) for module in modules])
    return module_keys
