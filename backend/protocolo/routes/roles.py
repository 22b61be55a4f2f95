import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_permission
from .. import models, schemas, audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/roles", tags=["roles"])


@router.get("", response_model=list[schemas.RoleOut])
async def list_roles(
    db: Session = Depends(get_db), user: models.User = Depends(get_current_user)
):
    return db.query(models.Role).order_by(models.Role.id).all()


@router.post("", response_model=schemas.SuccessOut, status_code=201)
async def create_role(
    role: schemas.RoleCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_permission("manage_users")),
):
    try:
        db.add(models.Role(name=role.name, permissions=role.permissions or []))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Perfil já existe")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Erro ao criar perfil %s", role.name)
        raise HTTPException(status_code=500, detail="Erro ao criar perfil")
    audit.log_action(db, user.id, "Criação de Perfil", f"Perfil criado: {role.name}")
    return schemas.SuccessOut()
