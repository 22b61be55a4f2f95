import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_permission
from ..protocol_ids import generate_protocol_id
from .. import models, schemas, audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/protocols", tags=["protocols"])


def resolve_template(db: Session, template_id: int | None) -> models.Template | None:
    if not template_id:
        return None
    return db.get(models.Template, template_id)


@router.get("", response_model=list[schemas.ProtocolOut])
async def list_protocols(
    db: Session = Depends(get_db), user: models.User = Depends(get_current_user)
):
    return (
        db.query(models.Protocol)
        .order_by(models.Protocol.created_at.desc(), models.Protocol.id.desc())
        .all()
    )


@router.post("", response_model=schemas.ProtocolCreated, status_code=201)
async def create_protocol(
    protocol: schemas.ProtocolCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_permission("create_protocol")),
):
    protocol_id = generate_protocol_id()
    try:
        template = resolve_template(db, protocol.template_id)
        db_protocol = models.Protocol(
            id=protocol_id,
            title=protocol.title,
            description=protocol.description,
            doc_type=template.name if template else models.DEFAULT_DOC_TYPE,
            data=protocol.data,
            template_id=template.id if template else None,
            created_by=user.id,
        )
        db.add(db_protocol)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Erro ao criar protocolo %s", protocol_id)
        raise HTTPException(status_code=500, detail="Erro ao criar protocolo no banco de dados")
    audit.log_action(
        db, user.id, "Criação de Protocolo", f"Protocolo {protocol_id} criado: {protocol.title}"
    )
    return schemas.ProtocolCreated(id=protocol_id)
