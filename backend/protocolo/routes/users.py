import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas, auth, audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[schemas.UserOut])
async def list_users(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    rows = (
        db.query(models.User.id, models.User.username, models.Role.name)
        .join(models.Role, models.User.role_id == models.Role.id)
        .order_by(models.User.id)
        .all()
    )
    return [
        schemas.UserOut(id=user_id, username=username, role=role)
        for user_id, username, role in rows
    ]


@router.post("", response_model=schemas.SuccessOut, status_code=201)
async def create_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.require_permission("manage_users")),
):
    if not db.get(models.Role, user.role_id):
        raise HTTPException(status_code=400, detail="Perfil não encontrado")
    try:
        db.add(
            models.User(
                username=user.username,
                password=auth.get_password_hash(user.password),
                role_id=user.role_id,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Usuário já existe")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Erro ao criar usuário %s", user.username)
        raise HTTPException(status_code=500, detail="Erro ao criar usuário")
    audit.log_action(db, current_user.id, "Criação de Usuário", f"Usuário criado: {user.username}")
    return schemas.SuccessOut()
