"""Role codes and permission helpers."""
from __future__ import annotations

import enum
from typing import Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from riskreg.models.user import User


class RoleCode(str, enum.Enum):
    ADMIN = "ADMIN"
    DIRECTOR = "DIRECTOR"
    RISK_MANAGER = "RISK_MANAGER"
    RISK_OWNER = "RISK_OWNER"
    AUDITOR = "AUDITOR"


ROLE_CODE_TO_DISPLAY: Dict[str, str] = {
    RoleCode.ADMIN.value: "Admin",
    RoleCode.DIRECTOR.value: "Director",
    RoleCode.RISK_MANAGER.value: "Risk Manager",
    RoleCode.RISK_OWNER.value: "Risk Owner",
    RoleCode.AUDITOR.value: "Auditor",
}

# Roles allowed to create and edit master data (units, taxonomy, criteria...)
MASTER_DATA_EDITORS = {
    RoleCode.ADMIN.value,
    RoleCode.RISK_MANAGER.value,
    RoleCode.RISK_OWNER.value,
}


def get_role_display(role_code: str | None, fallback: str | None = None) -> Optional[str]:
    if not role_code:
        return fallback
    return ROLE_CODE_TO_DISPLAY.get(role_code, fallback)


def is_admin(user: "User") -> bool:
    return user.role == RoleCode.ADMIN.value


def can_edit_master_data(user: "User") -> bool:
    return user.role in MASTER_DATA_EDITORS
