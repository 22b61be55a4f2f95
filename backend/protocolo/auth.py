"""Session cookie handling, credential checks and capability gates."""

from datetime import datetime, timedelta, timezone
import logging
import os

import bcrypt
from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from . import models

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = "HS256"
SESSION_COOKIE = "session"
SESSION_TTL = timedelta(hours=int(os.getenv("SESSION_TTL_HOURS", "24")))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

ALL_PERMISSIONS = "all"
KNOWN_PERMISSIONS = (
    ALL_PERMISSIONS,
    "create_protocol",
    "view_protocol",
    "manage_users",
    "manage_templates",
)


def get_password_hash(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_session_token(user: models.User, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or SESSION_TTL)
    claims = {"id": user.id, "username": user.username, "exp": expire}
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Return the ``{id, username}`` claims of a session token.

    Raises ``JWTError`` when the token is tampered with, expired or malformed.
    """
    claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    if "id" not in claims or "username" not in claims:
        raise JWTError("session token missing claims")
    return {"id": claims["id"], "username": claims["username"]}


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(SESSION_TTL.total_seconds()),
        httponly=True,
        secure=True,
        samesite="none",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, httponly=True, secure=True, samesite="none")


def load_user(db: Session, user_id) -> models.User | None:
    """Fetch a user together with its role; users without a role are not returned."""
    return (
        db.query(models.User)
        .join(models.Role, models.User.role_id == models.Role.id)
        .options(joinedload(models.User.role))
        .filter(models.User.id == user_id)
        .first()
    )


def authenticate(db: Session, username: str, password: str) -> models.User | None:
    user = (
        db.query(models.User)
        .join(models.Role, models.User.role_id == models.Role.id)
        .options(joinedload(models.User.role))
        .filter(models.User.username == username)
        .first()
    )
    if not user or not verify_password(password, user.password):
        return None
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> models.User:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Não autenticado")
    try:
        claims = decode_session_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Sessão inválida")
    user = load_user(db, claims["id"])
    if not user:
        raise HTTPException(status_code=401, detail="Usuário não encontrado")
    return user


def has_permission(permissions, permission: str) -> bool:
    if not permissions:
        return False
    return ALL_PERMISSIONS in permissions or permission in permissions


def require_permission(permission: str):
    """Dependency factory rejecting callers whose role lacks ``permission``."""

    def check_permission(user: models.User = Depends(get_current_user)) -> models.User:
        if not has_permission(user.role.permissions, permission):
            logger.info("User %s denied %s", user.username, permission)
            raise HTTPException(status_code=403, detail="Permissão insuficiente")
        return user

    return check_permission
