"""Organizational unit routes."""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin, require_master_data_editor
from riskreg.models.objective import StrategicObjective
from riskreg.models.org_unit import OrgUnit
from riskreg.models.risk import Risk
from riskreg.models.user import User
from riskreg.schemas.org_unit import OrgUnitCreate, OrgUnitUpdate, OrgUnitResponse

router = APIRouter()


def get_unit_or_404(db: Session, unit_id: int) -> OrgUnit:
    unit = db.query(OrgUnit).filter(OrgUnit.unit_id == unit_id).first()
    if not unit:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organizational unit not found"
        )
    return unit


def get_usage_counts(db: Session, unit_id: int) -> dict:
    """Count users, risks and objectives referencing a unit."""
    return {
        "user_count": db.query(func.count(User.user_id)).filter(User.unit_id == unit_id).scalar() or 0,
        "risk_count": db.query(func.count(Risk.risk_id)).filter(Risk.owner_unit_id == unit_id).scalar() or 0,
        "objective_count": db.query(func.count(StrategicObjective.objective_id)).filter(
            StrategicObjective.unit_id == unit_id
        ).scalar() or 0,
    }


def unit_to_response(db: Session, unit: OrgUnit) -> dict:
    return {
        "unit_id": unit.unit_id,
        "code": unit.code,
        "name": unit.name,
        "hierarchy_level": unit.hierarchy_level,
        "created_at": unit.created_at,
        "updated_at": unit.updated_at,
        **get_usage_counts(db, unit.unit_id),
    }


@router.get("/", response_model=List[OrgUnitResponse])
def list_units(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List units ordered by code, with usage counts."""
    units = db.query(OrgUnit).order_by(OrgUnit.code).all()
    return [unit_to_response(db, u) for u in units]


@router.get("/{unit_id}", response_model=OrgUnitResponse)
def get_unit(
    unit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return unit_to_response(db, get_unit_or_404(db, unit_id))


@router.post("/", response_model=OrgUnitResponse, status_code=status.HTTP_201_CREATED)
def create_unit(
    unit_data: OrgUnitCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Create a unit. Codes are unique."""
    if db.query(OrgUnit).filter(OrgUnit.code == unit_data.code).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unit code '{unit_data.code}' already exists"
        )

    unit = OrgUnit(**unit_data.model_dump())
    db.add(unit)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="OrgUnit",
        entity_id=unit.unit_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"code": unit.code, "name": unit.name}
    )
    db.commit()
    db.refresh(unit)
    return unit_to_response(db, unit)


@router.patch("/{unit_id}", response_model=OrgUnitResponse)
def update_unit(
    unit_id: int,
    unit_data: OrgUnitUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    unit = get_unit_or_404(db, unit_id)
    update_data = unit_data.model_dump(exclude_unset=True)

    if "code" in update_data and update_data["code"] != unit.code:
        if db.query(OrgUnit).filter(OrgUnit.code == update_data["code"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unit code '{update_data['code']}' already exists"
            )

    changes = apply_update(unit, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="OrgUnit",
            entity_id=unit.unit_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(unit)
    return unit_to_response(db, unit)


@router.delete("/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_unit(
    unit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a unit (Admin only). Blocked while users, risks or objectives reference it."""
    unit = get_unit_or_404(db, unit_id)
    counts = get_usage_counts(db, unit_id)
    if any(counts.values()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Cannot delete unit in use ({counts['user_count']} users, "
                f"{counts['risk_count']} risks, {counts['objective_count']} objectives)"
            )
        )

    create_audit_log(
        db=db,
        entity_type="OrgUnit",
        entity_id=unit.unit_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"code": unit.code, "name": unit.name}
    )
    db.delete(unit)
    db.commit()
    return None
