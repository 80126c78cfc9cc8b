"""Strategic objective routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin, require_master_data_editor
from riskreg.models.objective import StrategicObjective
from riskreg.models.org_unit import OrgUnit
from riskreg.models.risk import Risk
from riskreg.models.user import User
from riskreg.schemas.objective import ObjectiveCreate, ObjectiveUpdate, ObjectiveResponse

router = APIRouter()


def get_objective_or_404(db: Session, objective_id: int) -> StrategicObjective:
    objective = db.query(StrategicObjective).options(
        joinedload(StrategicObjective.unit)
    ).filter(StrategicObjective.objective_id == objective_id).first()
    if not objective:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Objective not found"
        )
    return objective


def _check_unit(db: Session, unit_id: int) -> None:
    if not db.query(OrgUnit).filter(OrgUnit.unit_id == unit_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organizational unit not found"
        )


def _risk_count(db: Session, objective_id: int) -> int:
    return db.query(func.count(Risk.risk_id)).filter(Risk.objective_id == objective_id).scalar() or 0


def objective_to_response(db: Session, objective: StrategicObjective) -> dict:
    response = ObjectiveResponse.model_validate(objective).model_dump()
    response["risk_count"] = _risk_count(db, objective.objective_id)
    return response


@router.get("/", response_model=List[ObjectiveResponse])
def list_objectives(
    unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(StrategicObjective).options(joinedload(StrategicObjective.unit))
    if unit_id is not None:
        query = query.filter(StrategicObjective.unit_id == unit_id)
    objectives = query.order_by(StrategicObjective.objective_id).all()
    return [objective_to_response(db, o) for o in objectives]


@router.get("/{objective_id}", response_model=ObjectiveResponse)
def get_objective(
    objective_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return objective_to_response(db, get_objective_or_404(db, objective_id))


@router.post("/", response_model=ObjectiveResponse, status_code=status.HTTP_201_CREATED)
def create_objective(
    objective_data: ObjectiveCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    _check_unit(db, objective_data.unit_id)

    objective = StrategicObjective(**objective_data.model_dump())
    db.add(objective)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="StrategicObjective",
        entity_id=objective.objective_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"unit_id": objective.unit_id, "objective": objective.objective}
    )
    db.commit()
    return objective_to_response(db, get_objective_or_404(db, objective.objective_id))


@router.patch("/{objective_id}", response_model=ObjectiveResponse)
def update_objective(
    objective_id: int,
    objective_data: ObjectiveUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    objective = get_objective_or_404(db, objective_id)
    update_data = objective_data.model_dump(exclude_unset=True)
    if "unit_id" in update_data:
        _check_unit(db, update_data["unit_id"])

    changes = apply_update(objective, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="StrategicObjective",
            entity_id=objective.objective_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.expire_all()
    return objective_to_response(db, get_objective_or_404(db, objective_id))


@router.delete("/{objective_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_objective(
    objective_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete an objective (Admin only). Blocked while risks reference it."""
    objective = get_objective_or_404(db, objective_id)
    count = _risk_count(db, objective_id)
    if count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete objective referenced by {count} risk(s)"
        )

    create_audit_log(
        db=db,
        entity_type="StrategicObjective",
        entity_id=objective.objective_id,
        action="DELETE",
        user_id=current_user.user_id
    )
    db.delete(objective)
    db.commit()
    return None
