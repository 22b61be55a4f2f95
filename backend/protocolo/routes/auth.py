from fastapi import APIRouter, Depends, HTTPException, Request, Response
from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
import os
from ..database import get_db
from .. import models, schemas, audit
from ..auth import (
    SESSION_COOKIE,
    authenticate,
    clear_session_cookie,
    create_session_token,
    decode_session_token,
    get_current_user,
    set_session_cookie,
)
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"

def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)

router = APIRouter(prefix="/api", tags=["auth"])


def session_user(user: models.User) -> schemas.SessionUser:
    return schemas.SessionUser(
        id=user.id,
        username=user.username,
        role=user.role.name,
        permissions=user.role.permissions or [],
    )


@router.post("/login", response_model=schemas.SessionUser)
@rate_limit("10/minute")
async def login(
    request: Request,
    response: Response,
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    user = authenticate(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Credenciais inválidas")
    set_session_cookie(response, create_session_token(user))
    audit.log_action(db, user.id, "Login", f"Usuário {user.username} entrou no sistema")
    return session_user(user)


@router.post("/logout", response_model=schemas.SuccessOut)
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            claims = decode_session_token(token)
            audit.log_action(
                db, claims["id"], "Logout", f"Usuário {claims['username']} saiu do sistema"
            )
        except (JWTError, SQLAlchemyError):
            db.rollback()
            logger.exception("Error logging logout")
    clear_session_cookie(response)
    return schemas.SuccessOut()


@router.get("/me", response_model=schemas.SessionUser)
async def me(current_user: models.User = Depends(get_current_user)):
    return session_user(current_user)
