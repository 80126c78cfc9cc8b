"""Key risk indicator routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_master_data_editor
from riskreg.models.kri import KeyRiskIndicator
from riskreg.models.risk import Risk
from riskreg.models.user import User
from riskreg.schemas.kri import KRICreate, KRIUpdate, KRIResponse

router = APIRouter()


def get_kri_or_404(db: Session, kri_id: int) -> KeyRiskIndicator:
    kri = db.query(KeyRiskIndicator).filter(KeyRiskIndicator.kri_id == kri_id).first()
    if not kri:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="KRI not found"
        )
    return kri


@router.get("/", response_model=List[KRIResponse])
def list_kris(
    risk_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(KeyRiskIndicator)
    if risk_id is not None:
        query = query.filter(KeyRiskIndicator.risk_id == risk_id)
    return query.order_by(KeyRiskIndicator.created_at.desc(), KeyRiskIndicator.kri_id.desc()).all()


@router.get("/{kri_id}", response_model=KRIResponse)
def get_kri(
    kri_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_kri_or_404(db, kri_id)


@router.post("/", response_model=KRIResponse, status_code=status.HTTP_201_CREATED)
def create_kri(
    kri_data: KRICreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    if not db.query(Risk).filter(Risk.risk_id == kri_data.risk_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Risk not found"
        )

    kri = KeyRiskIndicator(**kri_data.model_dump())
    db.add(kri)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="KeyRiskIndicator",
        entity_id=kri.kri_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"risk_id": kri.risk_id, "indicator_name": kri.indicator_name}
    )
    db.commit()
    db.refresh(kri)
    return kri


@router.patch("/{kri_id}", response_model=KRIResponse)
def update_kri(
    kri_id: int,
    kri_data: KRIUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    kri = get_kri_or_404(db, kri_id)
    changes = apply_update(kri, kri_data.model_dump(exclude_unset=True))
    if changes:
        create_audit_log(
            db=db,
            entity_type="KeyRiskIndicator",
            entity_id=kri.kri_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(kri)
    return kri


@router.delete("/{kri_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_kri(
    kri_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    kri = get_kri_or_404(db, kri_id)
    create_audit_log(
        db=db,
        entity_type="KeyRiskIndicator",
        entity_id=kri.kri_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"risk_id": kri.risk_id}
    )
    db.delete(kri)
    db.commit()
    return None
