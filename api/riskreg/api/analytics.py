"""Analytics routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user
from riskreg.core.risk_analytics import analytics_dashboard, analytics_engine
from riskreg.models.user import User

router = APIRouter()


@router.get("/dashboard")
def get_analytics_dashboard(
    unit_id: Optional[int] = Query(None),
    months: int = Query(6, ge=1, le=36, description="Number of months in the trend"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Monthly trend, residual level distribution, categories, KRIs and treatment progress."""
    return analytics_dashboard(db, unit_id=unit_id, months=months)


@router.get("/engine")
def get_analytics_engine(
    analysis: str = Query("heatmap", pattern="^(heatmap|predictive|drilldown)$"),
    period: str = Query("3months", pattern="^(1month|3months|6months|1year)$"),
    category: Optional[str] = Query(None, description="Taxonomy category name"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Heat map, exposure trend projection or drill-down over recently registered risks."""
    return analytics_engine(db, analysis=analysis, period=period, category=category)
