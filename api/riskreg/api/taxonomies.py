"""Risk taxonomy routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin, require_master_data_editor
from riskreg.models.risk import Risk
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.user import User
from riskreg.schemas.taxonomy import RiskTaxonomyCreate, RiskTaxonomyUpdate, RiskTaxonomyResponse

router = APIRouter()


def get_taxonomy_or_404(db: Session, taxonomy_id: int) -> RiskTaxonomy:
    taxonomy = db.query(RiskTaxonomy).filter(RiskTaxonomy.taxonomy_id == taxonomy_id).first()
    if not taxonomy:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Taxonomy not found"
        )
    return taxonomy


def _risk_count(db: Session, taxonomy_id: int) -> int:
    return db.query(func.count(Risk.risk_id)).filter(Risk.category_id == taxonomy_id).scalar() or 0


def taxonomy_to_response(db: Session, taxonomy: RiskTaxonomy) -> dict:
    return {
        "taxonomy_id": taxonomy.taxonomy_id,
        "category": taxonomy.category,
        "subcategory": taxonomy.subcategory,
        "description": taxonomy.description,
        "created_at": taxonomy.created_at,
        "risk_count": _risk_count(db, taxonomy.taxonomy_id),
    }


def _ensure_unique(db: Session, category: str, subcategory: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(RiskTaxonomy).filter(
        RiskTaxonomy.category == category,
        RiskTaxonomy.subcategory == subcategory
    )
    if exclude_id is not None:
        query = query.filter(RiskTaxonomy.taxonomy_id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Taxonomy with this category and subcategory already exists"
        )


@router.get("/", response_model=List[RiskTaxonomyResponse])
def list_taxonomies(
    category: Optional[str] = Query(None, description="Filter by top-level category"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List taxonomy entries ordered by category, with risk counts."""
    query = db.query(RiskTaxonomy)
    if category:
        query = query.filter(RiskTaxonomy.category == category)
    taxonomies = query.order_by(RiskTaxonomy.category, RiskTaxonomy.subcategory).all()
    return [taxonomy_to_response(db, t) for t in taxonomies]


@router.get("/{taxonomy_id}", response_model=RiskTaxonomyResponse)
def get_taxonomy(
    taxonomy_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return taxonomy_to_response(db, get_taxonomy_or_404(db, taxonomy_id))


@router.post("/", response_model=RiskTaxonomyResponse, status_code=status.HTTP_201_CREATED)
def create_taxonomy(
    taxonomy_data: RiskTaxonomyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    _ensure_unique(db, taxonomy_data.category, taxonomy_data.subcategory)

    taxonomy = RiskTaxonomy(**taxonomy_data.model_dump())
    db.add(taxonomy)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="RiskTaxonomy",
        entity_id=taxonomy.taxonomy_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"category": taxonomy.category, "subcategory": taxonomy.subcategory}
    )
    db.commit()
    db.refresh(taxonomy)
    return taxonomy_to_response(db, taxonomy)


@router.patch("/{taxonomy_id}", response_model=RiskTaxonomyResponse)
def update_taxonomy(
    taxonomy_id: int,
    taxonomy_data: RiskTaxonomyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    taxonomy = get_taxonomy_or_404(db, taxonomy_id)
    update_data = taxonomy_data.model_dump(exclude_unset=True)

    if "category" in update_data or "subcategory" in update_data:
        _ensure_unique(
            db,
            update_data.get("category", taxonomy.category),
            update_data.get("subcategory", taxonomy.subcategory),
            exclude_id=taxonomy_id
        )

    changes = apply_update(taxonomy, update_data)
    if changes:
        create_audit_log(
            db=db,
            entity_type="RiskTaxonomy",
            entity_id=taxonomy.taxonomy_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(taxonomy)
    return taxonomy_to_response(db, taxonomy)


@router.delete("/{taxonomy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_taxonomy(
    taxonomy_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a taxonomy entry (Admin only). Blocked while risks use it."""
    taxonomy = get_taxonomy_or_404(db, taxonomy_id)
    count = _risk_count(db, taxonomy_id)
    if count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete taxonomy used by {count} risk(s)"
        )

    create_audit_log(
        db=db,
        entity_type="RiskTaxonomy",
        entity_id=taxonomy.taxonomy_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"category": taxonomy.category, "subcategory": taxonomy.subcategory}
    )
    db.delete(taxonomy)
    db.commit()
    return None
