"""Existing control routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_master_data_editor
from riskreg.models.control import ExistingControl
from riskreg.models.risk import Risk
from riskreg.models.user import User
from riskreg.schemas.control import ControlCreate, ControlUpdate, ControlResponse, EFFECTIVENESS_PATTERN

router = APIRouter()


def get_control_or_404(db: Session, control_id: int) -> ExistingControl:
    control = db.query(ExistingControl).filter(ExistingControl.control_id == control_id).first()
    if not control:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Control not found"
        )
    return control


@router.get("/", response_model=List[ControlResponse])
def list_controls(
    risk_id: Optional[int] = Query(None),
    effectiveness_rating: Optional[str] = Query(None, pattern=EFFECTIVENESS_PATTERN),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(ExistingControl)
    if risk_id is not None:
        query = query.filter(ExistingControl.risk_id == risk_id)
    if effectiveness_rating:
        query = query.filter(ExistingControl.effectiveness_rating == effectiveness_rating)
    return query.order_by(ExistingControl.created_at.desc(), ExistingControl.control_id.desc()).all()


@router.get("/{control_id}", response_model=ControlResponse)
def get_control(
    control_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_control_or_404(db, control_id)


@router.post("/", response_model=ControlResponse, status_code=status.HTTP_201_CREATED)
def create_control(
    control_data: ControlCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    if not db.query(Risk).filter(Risk.risk_id == control_data.risk_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Risk not found"
        )

    control = ExistingControl(**control_data.model_dump())
    db.add(control)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="ExistingControl",
        entity_id=control.control_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"risk_id": control.risk_id, "effectiveness_rating": control.effectiveness_rating}
    )
    db.commit()
    db.refresh(control)
    return control


@router.patch("/{control_id}", response_model=ControlResponse)
def update_control(
    control_id: int,
    control_data: ControlUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    control = get_control_or_404(db, control_id)
    changes = apply_update(control, control_data.model_dump(exclude_unset=True))
    if changes:
        create_audit_log(
            db=db,
            entity_type="ExistingControl",
            entity_id=control.control_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(control)
    return control


@router.delete("/{control_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_control(
    control_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    control = get_control_or_404(db, control_id)
    create_audit_log(
        db=db,
        entity_type="ExistingControl",
        entity_id=control.control_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"risk_id": control.risk_id}
    )
    db.delete(control)
    db.commit()
    return None
