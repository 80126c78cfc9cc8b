"""Dashboard routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user
from riskreg.core.risk_analytics import dashboard_stats
from riskreg.models.user import User

router = APIRouter()


@router.get("/stats")
def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Overview counts, inherent level distribution, categories and the five newest risks."""
    return dashboard_stats(db)
