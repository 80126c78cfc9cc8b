"""User model."""
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from riskreg.core.roles import RoleCode, get_role_display
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.org_unit import OrgUnit


class User(Base):
    """Application user; also the PIC (person in charge) of treatment plans."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('ADMIN', 'DIRECTOR', 'RISK_MANAGER', 'RISK_OWNER', 'AUDITOR')",
            name="chk_user_role"
        ),
    )

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=RoleCode.RISK_OWNER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("org_units.unit_id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Organizational unit the user belongs to"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    unit: Mapped[Optional["OrgUnit"]] = relationship("OrgUnit", back_populates="users")

    @property
    def role_display(self) -> Optional[str]:
        return get_role_display(self.role, self.role)
