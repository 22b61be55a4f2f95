from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends
from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas, audit

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("", response_model=list[schemas.LogEntryOut])
async def list_logs(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return audit.recent_logs(db)
