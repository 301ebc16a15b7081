from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_actor
from models.AuditTrail import AuditTrail, AuditEntityEnum
from permissions import Action, authorize
from schemas.AuditSchemas import AuditTrailResponse
from schemas.PaginatedResponseSchemas import PaginatedResponse
from schemas.UserSchemas import Actor
from utils import page_offset, total_pages

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AuditTrailResponse])
def get_audit_trails(
        entity_type: Optional[AuditEntityEnum] = None,
        entity_id: Optional[str] = None,
        user_name: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=1000),
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
):
    authorize(actor, Action.REPORT_READ)
    query = db.query(AuditTrail)

    if entity_type:
        query = query.filter(AuditTrail.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditTrail.entity_id == entity_id)

    if user_name:
        query = query.filter(AuditTrail.user_name.ilike(f"%{user_name}%"))

    query = query.order_by(AuditTrail.timestamp.desc(), AuditTrail.id.desc())
    total = query.count()
    items = query.offset(page_offset(page, limit)).limit(limit).all()

    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(total, limit),
    }
