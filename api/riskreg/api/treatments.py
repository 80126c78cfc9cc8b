"""Treatment plan and realization routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload, selectinload

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_master_data_editor
from riskreg.models.risk import Risk
from riskreg.models.treatment import TreatmentPlan, TreatmentRealization
from riskreg.models.user import User
from riskreg.schemas.treatment import (
    TreatmentCreate,
    TreatmentUpdate,
    TreatmentResponse,
    RealizationCreate,
    RealizationResponse,
    TREATMENT_OPTION_PATTERN,
)

router = APIRouter()


def _treatment_query(db: Session):
    return db.query(TreatmentPlan).options(
        joinedload(TreatmentPlan.pic),
        selectinload(TreatmentPlan.realizations),
    )


def get_treatment_or_404(db: Session, treatment_id: int) -> TreatmentPlan:
    treatment = _treatment_query(db).filter(TreatmentPlan.treatment_id == treatment_id).first()
    if not treatment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Treatment plan not found"
        )
    return treatment


def _check_pic(db: Session, pic_id: int) -> None:
    if not db.query(User).filter(User.user_id == pic_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="PIC user not found"
        )


@router.get("/", response_model=List[TreatmentResponse])
def list_treatments(
    risk_id: Optional[int] = Query(None),
    pic_id: Optional[int] = Query(None),
    treatment_option: Optional[str] = Query(None, pattern=TREATMENT_OPTION_PATTERN),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List treatment plans, each with its latest realization."""
    query = _treatment_query(db)
    if risk_id is not None:
        query = query.filter(TreatmentPlan.risk_id == risk_id)
    if pic_id is not None:
        query = query.filter(TreatmentPlan.pic_id == pic_id)
    if treatment_option:
        query = query.filter(TreatmentPlan.treatment_option == treatment_option)
    return query.order_by(TreatmentPlan.created_at.desc(), TreatmentPlan.treatment_id.desc()).all()


@router.get("/{treatment_id}", response_model=TreatmentResponse)
def get_treatment(
    treatment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_treatment_or_404(db, treatment_id)


@router.post("/", response_model=TreatmentResponse, status_code=status.HTTP_201_CREATED)
def create_treatment(
    treatment_data: TreatmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    if not db.query(Risk).filter(Risk.risk_id == treatment_data.risk_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Risk not found"
        )
    _check_pic(db, treatment_data.pic_id)

    treatment = TreatmentPlan(**treatment_data.model_dump())
    db.add(treatment)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="TreatmentPlan",
        entity_id=treatment.treatment_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={
            "risk_id": treatment.risk_id,
            "pic_id": treatment.pic_id,
            "treatment_option": treatment.treatment_option,
        }
    )
    db.commit()
    return get_treatment_or_404(db, treatment.treatment_id)


@router.patch("/{treatment_id}", response_model=TreatmentResponse)
def update_treatment(
    treatment_id: int,
    treatment_data: TreatmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    treatment = get_treatment_or_404(db, treatment_id)
    update_data = treatment_data.model_dump(exclude_unset=True)
    if update_data.get("pic_id") is not None:
        _check_pic(db, update_data["pic_id"])

    changes = apply_update(treatment, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="TreatmentPlan",
            entity_id=treatment.treatment_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.expire_all()
    return get_treatment_or_404(db, treatment_id)


@router.delete("/{treatment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_treatment(
    treatment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Delete a treatment plan and its realizations."""
    treatment = get_treatment_or_404(db, treatment_id)
    create_audit_log(
        db=db,
        entity_type="TreatmentPlan",
        entity_id=treatment.treatment_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"risk_id": treatment.risk_id}
    )
    db.delete(treatment)
    db.commit()
    return None


# ---------------------------------------------------------------------------
# Realizations
# ---------------------------------------------------------------------------

@router.get("/{treatment_id}/realizations", response_model=List[RealizationResponse])
def list_realizations(
    treatment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Realizations of a plan, newest period first."""
    return get_treatment_or_404(db, treatment_id).realizations


@router.post(
    "/{treatment_id}/realizations",
    response_model=RealizationResponse,
    status_code=status.HTTP_201_CREATED
)
def create_realization(
    treatment_id: int,
    realization_data: RealizationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    treatment = get_treatment_or_404(db, treatment_id)
    realization = TreatmentRealization(treatment_id=treatment.treatment_id, **realization_data.model_dump())
    db.add(realization)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="TreatmentRealization",
        entity_id=realization.realization_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={
            "treatment_id": treatment.treatment_id,
            "period": realization.period,
            "status": realization.status,
        }
    )
    db.commit()
    db.refresh(realization)
    return realization


@router.delete("/{treatment_id}/realizations/{realization_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_realization(
    treatment_id: int,
    realization_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    realization = db.query(TreatmentRealization).filter(
        TreatmentRealization.realization_id == realization_id,
        TreatmentRealization.treatment_id == treatment_id
    ).first()
    if not realization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Realization not found"
        )

    create_audit_log(
        db=db,
        entity_type="TreatmentRealization",
        entity_id=realization.realization_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"treatment_id": treatment_id}
    )
    db.delete(realization)
    db.commit()
    return None
