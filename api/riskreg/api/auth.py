"""Authentication and user management routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from riskreg.core.audit import create_audit_log
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin
from riskreg.core.roles import RoleCode, get_role_display
from riskreg.core.security import verify_password, get_password_hash, create_access_token
from riskreg.models.org_unit import OrgUnit
from riskreg.models.user import User
from riskreg.schemas.user import LoginRequest, Token, UserResponse, UserCreate, UserStatsResponse, UserUpdate

router = APIRouter()


def _check_unit(db: Session, unit_id: Optional[int]) -> None:
    if unit_id is not None and not db.query(OrgUnit).filter(OrgUnit.unit_id == unit_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organizational unit not found"
        )


@router.post("/login", response_model=Token)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Login endpoint."""
    user = db.query(User).filter(User.email == login_data.email).first()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    access_token = create_access_token(data={"sub": user.email})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get current user."""
    return current_user


@router.get("/users", response_model=List[UserResponse])
def list_users(
    unit_id: Optional[int] = Query(None),
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List users, optionally filtered by unit or role."""
    query = db.query(User).options(joinedload(User.unit))
    if unit_id is not None:
        query = query.filter(User.unit_id == unit_id)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.full_name).all()


@router.get("/users/stats", response_model=UserStatsResponse)
def get_user_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """User totals, per-role counts and the five most recently created accounts."""
    total_users = db.query(func.count(User.user_id)).scalar()
    active_users = db.query(func.count(User.user_id)).filter(User.is_active.is_(True)).scalar()
    role_rows = dict(db.query(User.role, func.count(User.user_id)).group_by(User.role).all())
    total_admins = role_rows.get(RoleCode.ADMIN.value, 0)

    recent_users = db.query(User).options(joinedload(User.unit)).order_by(
        User.created_at.desc(), User.user_id.desc()
    ).limit(5).all()

    return {
        "total_users": total_users,
        "active_users": active_users,
        "total_admins": total_admins,
        "total_regular_users": total_users - total_admins,
        "users_by_role": [
            {"role": role.value, "role_display": get_role_display(role.value), "count": role_rows.get(role.value, 0)}
            for role in RoleCode
        ],
        "recent_users": recent_users,
    }


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific user by ID."""
    user = db.query(User).options(joinedload(User.unit)).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a user (Admin only)."""
    if db.query(User).filter(User.email == user_data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    _check_unit(db, user_data.unit_id)

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        password_hash=get_password_hash(user_data.password),
        role=user_data.role,
        unit_id=user_data.unit_id
    )
    db.add(user)
    db.flush()

    create_audit_log(
        db=db,
        entity_type="User",
        entity_id=user.user_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"email": user.email, "role": user.role}
    )
    db.commit()
    db.refresh(user)
    return user


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a user (Admin only)."""
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    update_data = user_data.model_dump(exclude_unset=True)
    if "email" in update_data and update_data["email"] != user.email:
        if db.query(User).filter(User.email == update_data["email"]).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )
    if "unit_id" in update_data:
        _check_unit(db, update_data["unit_id"])

    changes = {}
    password = update_data.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)
        changes["password"] = "changed"

    for field, value in update_data.items():
        old_value = getattr(user, field)
        if old_value != value:
            changes[field] = {"old": old_value, "new": value}
            setattr(user, field, value)

    if changes:
        create_audit_log(
            db=db,
            entity_type="User",
            entity_id=user.user_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Deactivate a user (Admin only). Users stay referenced by treatment plans."""
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if user.user_id == current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    user.is_active = False
    create_audit_log(
        db=db,
        entity_type="User",
        entity_id=user.user_id,
        action="DEACTIVATE",
        user_id=current_user.user_id
    )
    db.commit()
    return None
