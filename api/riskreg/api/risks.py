"""Risk register routes: CRUD, assessments and the risk matrix."""
import io
import logging
import math
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_master_data_editor
from riskreg.core.risk_matrix import build_matrix, collect_matrix_risks, matrix_to_csv
from riskreg.core.risk_scoring import RiskLevel, score_risk
from riskreg.core.time import utc_now
from riskreg.models.objective import StrategicObjective
from riskreg.models.org_unit import OrgUnit
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.treatment import TreatmentPlan
from riskreg.models.user import User
from riskreg.schemas.risk import RiskCreate, RiskUpdate, RiskResponse, RiskDetailResponse, RiskListResponse
from riskreg.schemas.risk_assessment import RiskAssessmentUpsert, RiskAssessmentResponse, RiskAssessmentPair

logger = logging.getLogger(__name__)

router = APIRouter()

MATRIX_TYPE_PATTERN = "^(inherent|residual)$"


def _risk_query(db: Session):
    return db.query(Risk).options(
        joinedload(Risk.owner_unit),
        joinedload(Risk.category),
        joinedload(Risk.objective),
        selectinload(Risk.assessments),
    )


def get_risk_or_404(db: Session, risk_id: int, detail: bool = False) -> Risk:
    query = _risk_query(db)
    if detail:
        query = query.options(
            selectinload(Risk.controls),
            selectinload(Risk.kris),
            selectinload(Risk.treatments).selectinload(TreatmentPlan.realizations),
            selectinload(Risk.treatments).joinedload(TreatmentPlan.pic),
        )
    risk = query.filter(Risk.risk_id == risk_id).first()
    if not risk:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Risk not found"
        )
    return risk


def _check_references(
    db: Session,
    objective_id: Optional[int] = None,
    owner_unit_id: Optional[int] = None,
    category_id: Optional[int] = None
) -> None:
    """Reject writes that point at missing objectives, units or categories."""
    checks = [
        (objective_id, StrategicObjective, StrategicObjective.objective_id, "Objective"),
        (owner_unit_id, OrgUnit, OrgUnit.unit_id, "Organizational unit"),
        (category_id, RiskTaxonomy, RiskTaxonomy.taxonomy_id, "Risk category"),
    ]
    for value, model, column, label in checks:
        if value is not None and not db.query(model).filter(column == value).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{label} not found"
            )


def generate_risk_number(db: Session) -> str:
    """Next RISK-NNNN number (count + 1), skipping numbers already taken."""
    sequence = (db.query(func.count(Risk.risk_id)).scalar() or 0) + 1
    while True:
        candidate = f"RISK-{sequence:04d}"
        if not db.query(Risk).filter(Risk.risk_number == candidate).first():
            return candidate
        sequence += 1


# ---------------------------------------------------------------------------
# Risk matrix (declared before /{risk_id} routes)
# ---------------------------------------------------------------------------

@router.get("/matrix")
def get_risk_matrix(
    type: str = Query("residual", pattern=MATRIX_TYPE_PATTERN, description="inherent or residual"),
    unit_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """5x5 probability/impact matrix of assessed risks."""
    return build_matrix(db, assessment_type=type.upper(), unit_id=unit_id)


@router.get("/matrix/export")
def export_risk_matrix(
    type: str = Query("residual", pattern=MATRIX_TYPE_PATTERN),
    unit_id: Optional[int] = Query(None),
    format: str = Query("csv", pattern="^(csv|json)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Export the flat matrix risk list as CSV or JSON."""
    risks = collect_matrix_risks(db, assessment_type=type.upper(), unit_id=unit_id)
    if format == "json":
        return {"risks": risks, "total": len(risks), "exported_at": utc_now()}

    filename = f"risk_matrix_{type}_{utc_now().strftime('%Y-%m-%d')}.csv"
    return StreamingResponse(
        io.BytesIO(matrix_to_csv(risks).encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


# ---------------------------------------------------------------------------
# Risk CRUD
# ---------------------------------------------------------------------------

@router.get("/", response_model=RiskListResponse)
def list_risks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    search: Optional[str] = Query(None, description="Matches name, description or risk number"),
    category_id: Optional[int] = Query(None),
    unit_id: Optional[int] = Query(None),
    level: Optional[RiskLevel] = Query(None, description="Inherent or residual level"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Paginated risk register."""
    query = _risk_query(db)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Risk.name.ilike(pattern),
            Risk.description.ilike(pattern),
            Risk.risk_number.ilike(pattern),
        ))
    if category_id is not None:
        query = query.filter(Risk.category_id == category_id)
    if unit_id is not None:
        query = query.filter(Risk.owner_unit_id == unit_id)
    if level is not None:
        query = query.filter(Risk.assessments.any(RiskAssessment.level == level.value))

    total = query.order_by(None).count()
    risks = query.order_by(Risk.created_at.desc(), Risk.risk_id.desc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "data": risks,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("/", response_model=RiskResponse, status_code=status.HTTP_201_CREATED)
def create_risk(
    risk_data: RiskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Register a risk. A RISK-NNNN number is generated when none is given."""
    _check_references(db, risk_data.objective_id, risk_data.owner_unit_id, risk_data.category_id)

    data = risk_data.model_dump()
    if data.get("risk_number"):
        if db.query(Risk).filter(Risk.risk_number == data["risk_number"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Risk number '{data['risk_number']}' already exists"
            )
    else:
        data["risk_number"] = generate_risk_number(db)

    risk = Risk(**data)
    db.add(risk)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="Risk",
        entity_id=risk.risk_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"risk_number": risk.risk_number, "name": risk.name}
    )
    db.commit()
    return get_risk_or_404(db, risk.risk_id)


@router.get("/{risk_id}", response_model=RiskDetailResponse)
def get_risk(
    risk_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Risk with assessments, controls, KRIs and treatment plans."""
    return get_risk_or_404(db, risk_id, detail=True)


@router.patch("/{risk_id}", response_model=RiskResponse)
def update_risk(
    risk_id: int,
    risk_data: RiskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    risk = get_risk_or_404(db, risk_id)
    update_data = risk_data.model_dump(exclude_unset=True)

    _check_references(
        db,
        update_data.get("objective_id"),
        update_data.get("owner_unit_id"),
        update_data.get("category_id"),
    )
    if "risk_number" in update_data and update_data["risk_number"] != risk.risk_number:
        if db.query(Risk).filter(Risk.risk_number == update_data["risk_number"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Risk number '{update_data['risk_number']}' already exists"
            )

    changes = apply_update(risk, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="Risk",
            entity_id=risk.risk_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.expire_all()
    return get_risk_or_404(db, risk_id)


@router.delete("/{risk_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_risk(
    risk_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Delete a risk together with its assessments, controls, KRIs and treatments."""
    risk = get_risk_or_404(db, risk_id, detail=True)
    create_audit_log(
        db=db,
        entity_type="Risk",
        entity_id=risk.risk_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"risk_number": risk.risk_number, "name": risk.name}
    )
    db.delete(risk)
    db.commit()
    return None


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

@router.get("/{risk_id}/assessment", response_model=RiskAssessmentPair)
def get_risk_assessments(
    risk_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Inherent and residual assessments of a risk (either may be null)."""
    risk = get_risk_or_404(db, risk_id)
    return {
        "inherent": risk.inherent_assessment,
        "residual": risk.residual_assessment,
    }


@router.post("/{risk_id}/assessment", response_model=RiskAssessmentResponse)
def upsert_risk_assessment(
    risk_id: int,
    assessment_data: RiskAssessmentUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Create or replace the assessment of the given type.

    Exposure and level are computed from the probability and impact scales.
    """
    risk = get_risk_or_404(db, risk_id)
    score = score_risk(assessment_data.probability_scale, assessment_data.impact_scale)

    values = assessment_data.model_dump(exclude={"assessment_type"})
    values["exposure"] = score.exposure
    values["level"] = score.level.value

    assessment = risk.get_assessment(assessment_data.assessment_type)
    if assessment is None:
        assessment = RiskAssessment(
            risk_id=risk.risk_id,
            assessment_type=assessment_data.assessment_type,
            **values
        )
        db.add(assessment)
        db.flush()
        action = "CREATE"
        changes = {k: values[k] for k in ("probability_scale", "impact_scale", "exposure", "level")}
    else:
        action = "UPDATE"
        changes = apply_update(assessment, values)

    create_audit_log(
        db=db,
        entity_type="RiskAssessment",
        entity_id=assessment.assessment_id,
        action=action,
        user_id=current_user.user_id,
        changes={"risk_id": risk.risk_id, "assessment_type": assessment.assessment_type, **changes}
    )
    db.commit()
    db.refresh(assessment)
    logger.info(
        "%s assessment for %s set to %s (exposure %d)",
        assessment.assessment_type, risk.risk_number, assessment.level, assessment.exposure
    )
    return assessment
