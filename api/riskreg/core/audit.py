"""Audit trail helpers shared by the routers."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from riskreg.models.audit_log import AuditLog


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id: int,
    action: str,
    user_id: Optional[int],
    changes: Optional[dict] = None
) -> AuditLog:
    """Add an audit log entry to the session (caller commits)."""
    if changes:
        changes = {
            key: {k: _json_safe(v) for k, v in value.items()} if isinstance(value, dict) else _json_safe(value)
            for key, value in changes.items()
        }
    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        changes=changes
    )
    db.add(audit_log)
    return audit_log


def apply_update(obj: Any, update_data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Set attributes from a PATCH payload and return {field: {old, new}} for changed ones."""
    changes = {}
    for field, value in update_data.items():
        old_value = getattr(obj, field, None)
        if old_value != value:
            changes[field] = {"old": old_value, "new": value}
            setattr(obj, field, value)
    return changes
