"""Risk criteria (scale definition) routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin, require_master_data_editor
from riskreg.models.criteria import RiskCriteria
from riskreg.models.user import User
from riskreg.schemas.criteria import RiskCriteriaCreate, RiskCriteriaUpdate, RiskCriteriaResponse

router = APIRouter()


def get_criteria_or_404(db: Session, criteria_id: int) -> RiskCriteria:
    criteria = db.query(RiskCriteria).filter(RiskCriteria.criteria_id == criteria_id).first()
    if not criteria:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Criteria not found"
        )
    return criteria


def _ensure_unique(db: Session, criteria_type: str, value: int, exclude_id: Optional[int] = None) -> None:
    query = db.query(RiskCriteria).filter(
        RiskCriteria.criteria_type == criteria_type,
        RiskCriteria.value == value
    )
    if exclude_id is not None:
        query = query.filter(RiskCriteria.criteria_id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{criteria_type} criteria with value {value} already exists"
        )


@router.get("/", response_model=List[RiskCriteriaResponse])
def list_criteria(
    criteria_type: Optional[str] = Query(None, pattern="^(IMPACT|PROBABILITY)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List scale definitions ordered by type then value."""
    query = db.query(RiskCriteria)
    if criteria_type:
        query = query.filter(RiskCriteria.criteria_type == criteria_type)
    return query.order_by(RiskCriteria.criteria_type, RiskCriteria.value).all()


@router.post("/", response_model=RiskCriteriaResponse, status_code=status.HTTP_201_CREATED)
def create_criteria(
    criteria_data: RiskCriteriaCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    _ensure_unique(db, criteria_data.criteria_type, criteria_data.value)

    criteria = RiskCriteria(**criteria_data.model_dump())
    db.add(criteria)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="RiskCriteria",
        entity_id=criteria.criteria_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"criteria_type": criteria.criteria_type, "value": criteria.value}
    )
    db.commit()
    db.refresh(criteria)
    return criteria


@router.patch("/{criteria_id}", response_model=RiskCriteriaResponse)
def update_criteria(
    criteria_id: int,
    criteria_data: RiskCriteriaUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    criteria = get_criteria_or_404(db, criteria_id)
    update_data = criteria_data.model_dump(exclude_unset=True)

    if "criteria_type" in update_data or "value" in update_data:
        _ensure_unique(
            db,
            update_data.get("criteria_type", criteria.criteria_type),
            update_data.get("value", criteria.value),
            exclude_id=criteria_id
        )

    changes = apply_update(criteria, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="RiskCriteria",
            entity_id=criteria.criteria_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(criteria)
    return criteria


@router.delete("/{criteria_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_criteria(
    criteria_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    criteria = get_criteria_or_404(db, criteria_id)
    create_audit_log(
        db=db,
        entity_type="RiskCriteria",
        entity_id=criteria.criteria_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"criteria_type": criteria.criteria_type, "value": criteria.value}
    )
    db.delete(criteria)
    db.commit()
    return None
