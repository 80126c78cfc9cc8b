"""Audit logs routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user
from riskreg.models.user import User
from riskreg.models.audit_log import AuditLog
from riskreg.schemas.audit_log import AuditLogResponse

router = APIRouter()


@router.get("/", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g., Risk, OrgUnit)"),
    entity_id: Optional[int] = Query(None, description="Filter by specific entity ID"),
    action: Optional[str] = Query(None, description="Filter by action (CREATE, UPDATE, DELETE)"),
    user_id: Optional[int] = Query(None, description="Filter by user who made the change"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List audit logs with optional filters, newest first."""
    query = db.query(AuditLog).options(joinedload(AuditLog.user))

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)

    return query.order_by(AuditLog.timestamp.desc(), AuditLog.log_id.desc()).offset(offset).limit(limit).all()


@router.get("/entity-types", response_model=List[str])
def get_entity_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get all unique entity types from audit logs."""
    result = db.query(AuditLog.entity_type).distinct().all()
    return sorted(r[0] for r in result)
