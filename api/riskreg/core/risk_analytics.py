"""Aggregations behind the dashboard, analytics page and PDF reports."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session, joinedload, selectinload

from riskreg.core.risk_scoring import (
    HIGH_LEVELS,
    LEVEL_LABELS,
    RiskLevel,
    classify_exposure,
    level_rank,
    score_risk,
)
from riskreg.core.time import month_start, utc_now
from riskreg.models.kri import KeyRiskIndicator
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.treatment import TreatmentPlan


def _load_risks(db: Session, unit_id: Optional[int] = None) -> List[Risk]:
    query = db.query(Risk).options(
        joinedload(Risk.owner_unit),
        joinedload(Risk.category),
        selectinload(Risk.assessments),
    )
    if unit_id is not None:
        query = query.filter(Risk.owner_unit_id == unit_id)
    return query.order_by(Risk.risk_number).all()


def _load_treatments(db: Session, unit_id: Optional[int] = None) -> List[TreatmentPlan]:
    query = db.query(TreatmentPlan).options(selectinload(TreatmentPlan.realizations))
    if unit_id is not None:
        query = query.join(Risk).filter(Risk.owner_unit_id == unit_id)
    return query.all()


def _load_kris(db: Session, unit_id: Optional[int] = None) -> List[KeyRiskIndicator]:
    query = db.query(KeyRiskIndicator).options(joinedload(KeyRiskIndicator.risk))
    if unit_id is not None:
        query = query.join(Risk).filter(Risk.owner_unit_id == unit_id)
    return query.all()


def assessment_level(assessment: Optional[RiskAssessment]) -> Optional[RiskLevel]:
    """Level of an assessment recomputed from its scales."""
    if assessment is None:
        return None
    return score_risk(assessment.probability_scale, assessment.impact_scale).level


def _distribution(levels: List[Optional[RiskLevel]]) -> List[Dict[str, Any]]:
    assessed = [lvl for lvl in levels if lvl is not None]
    total = len(assessed)
    rows = []
    for level in RiskLevel:
        count = sum(1 for lvl in assessed if lvl == level)
        rows.append({
            "level": level.value,
            "label": LEVEL_LABELS[level],
            "count": count,
            "percentage": round(count * 100 / total, 1) if total else 0.0,
        })
    return rows


def _category_counts(risks: List[Risk]) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    for risk in risks:
        name = risk.category.category if risk.category else "Uncategorized"
        counts[name] = counts.get(name, 0) + 1
    return [
        {"category": name, "count": count}
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def _risk_brief(risk: Risk) -> Dict[str, Any]:
    current = risk.current_assessment
    score = score_risk(current.probability_scale, current.impact_scale) if current else None
    return {
        "risk_id": risk.risk_id,
        "risk_number": risk.risk_number,
        "name": risk.name,
        "unit": risk.owner_unit.name if risk.owner_unit else None,
        "category": risk.category.category if risk.category else None,
        "exposure": score.exposure if score else None,
        "level": score.level.value if score else None,
        "created_at": risk.created_at,
    }


def dashboard_stats(db: Session) -> Dict[str, Any]:
    """Overview counts, inherent level distribution, categories and recent risks."""
    risks = _load_risks(db)
    now = utc_now()
    this_month = month_start(now)

    recent = sorted(risks, key=lambda r: (r.created_at, r.risk_id), reverse=True)[:5]

    return {
        "overview": {
            "total_risks": len(risks),
            "pending_assessments": sum(1 for r in risks if r.inherent_assessment is None),
            "new_risks_this_month": sum(1 for r in risks if r.created_at >= this_month),
        },
        "level_distribution": _distribution([assessment_level(r.inherent_assessment) for r in risks]),
        "category_stats": _category_counts(risks),
        "recent_risks": [_risk_brief(r) for r in recent],
    }


def monthly_trend(
    risks: List[Risk],
    treatments: List[TreatmentPlan],
    kris: List[KeyRiskIndicator],
    months: int,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Month-end snapshots for the last ``months`` months, oldest first.

    Each row counts what existed at the end of that month:
    - total_risks / high_risks (residual level HIGH or VERY_HIGH)
    - treatments / treatments_without_realization
    - kri_alerts: KRIs with a configured threshold
    - compliance_score: % of treatment plans with at least one realization
    """
    now = now or utc_now()
    current = month_start(now)
    rows = []
    for offset in range(months - 1, -1, -1):
        start = current - relativedelta(months=offset)
        end = start + relativedelta(months=1)

        month_risks = [r for r in risks if r.created_at < end]
        month_treatments = [t for t in treatments if t.created_at < end]
        realized = [
            t for t in month_treatments
            if any(real.created_at < end for real in t.realizations)
        ]

        rows.append({
            "month": start.strftime("%Y-%m"),
            "label": start.strftime("%b %Y"),
            "total_risks": len(month_risks),
            "high_risks": sum(
                1 for r in month_risks if assessment_level(r.residual_assessment) in HIGH_LEVELS
            ),
            "treatments": len(month_treatments),
            "treatments_without_realization": len(month_treatments) - len(realized),
            "kri_alerts": sum(
                1 for k in kris if k.created_at < end and k.threshold_value is not None
            ),
            "compliance_score": round(len(realized) * 100 / len(month_treatments), 1)
            if month_treatments else 0.0,
        })
    return rows


def analytics_dashboard(db: Session, unit_id: Optional[int] = None, months: int = 6) -> Dict[str, Any]:
    """Trend, residual distribution, categories, KRIs and treatment effectiveness."""
    risks = _load_risks(db, unit_id)
    treatments = _load_treatments(db, unit_id)
    kris = _load_kris(db, unit_id)

    kri_performance = [
        {
            "kri_id": k.kri_id,
            "risk_number": k.risk.risk_number if k.risk else None,
            "indicator_name": k.indicator_name,
            "unit_of_measure": k.unit_of_measure,
            "threshold_category": k.threshold_category,
            "threshold_value": float(k.threshold_value) if k.threshold_value is not None else None,
        }
        for k in sorted(kris, key=lambda k: k.kri_id)
    ]

    effectiveness = []
    for t in sorted(treatments, key=lambda t: t.treatment_id):
        latest = t.latest_realization
        effectiveness.append({
            "treatment_id": t.treatment_id,
            "risk_id": t.risk_id,
            "treatment_option": t.treatment_option,
            "status": latest.status if latest else None,
            "absorption_pct": float(latest.absorption_pct) if latest and latest.absorption_pct is not None else None,
            "progress": latest.progress if latest else None,
            "realization_count": len(t.realizations),
        })

    return {
        "monthly_trend": monthly_trend(risks, treatments, kris, months),
        "level_distribution": _distribution([assessment_level(r.residual_assessment) for r in risks]),
        "by_category": _category_counts(risks),
        "kri_performance": kri_performance,
        "treatment_effectiveness": effectiveness,
    }


def risk_summary(db: Session, unit_id: Optional[int] = None, top: int = 10) -> Dict[str, Any]:
    """Executive summary data: level statistics and top risks by exposure.

    Each risk is classified by its residual assessment, falling back to
    inherent. Unassessed risks are counted separately.
    """
    risks = _load_risks(db, unit_id)
    briefs = [_risk_brief(r) for r in risks]
    assessed = [b for b in briefs if b["level"] is not None]

    level_stats = {level.value: 0 for level in RiskLevel}
    for b in assessed:
        level_stats[b["level"]] += 1

    top_risks = sorted(
        assessed,
        key=lambda b: (-b["exposure"], -level_rank(b["level"]), b["risk_number"])
    )[:top]

    return {
        "total_risks": len(risks),
        "assessed_risks": len(assessed),
        "unassessed_risks": len(risks) - len(assessed),
        "high_risks": sum(level_stats[lvl.value] for lvl in HIGH_LEVELS),
        "level_stats": level_stats,
        "top_risks": top_risks,
    }


# ---------------------------------------------------------------------------
# Analytics engine: heat map, trend projection and drill-down
# ---------------------------------------------------------------------------

ENGINE_ANALYSES = ("heatmap", "predictive", "drilldown")
ENGINE_PERIODS = {"1month": 1, "3months": 3, "6months": 6, "1year": 12}
PREDICTIVE_HISTORY_MONTHS = 6
PREDICTION_HORIZON = 3
TREND_SLOPE_THRESHOLD = 0.1


def _load_engine_risks(db: Session, since: datetime, category: Optional[str] = None) -> List[Risk]:
    query = db.query(Risk).options(
        joinedload(Risk.owner_unit),
        joinedload(Risk.category),
        selectinload(Risk.assessments),
        selectinload(Risk.controls),
        selectinload(Risk.kris),
        selectinload(Risk.treatments),
    ).filter(Risk.created_at >= since)
    if category:
        query = query.join(Risk.category).filter(RiskTaxonomy.category == category)
    return query.order_by(Risk.created_at, Risk.risk_id).all()


def _current_score(risk: Risk):
    current = risk.current_assessment
    if current is None:
        return None
    return score_risk(current.probability_scale, current.impact_scale)


def _engine_row(risk: Risk) -> Dict[str, Any]:
    current = risk.current_assessment
    score = _current_score(risk)
    return {
        "risk_id": risk.risk_id,
        "risk_number": risk.risk_number,
        "name": risk.name,
        "category": risk.category.category if risk.category else "Uncategorized",
        "owner": risk.owner_unit.name if risk.owner_unit else "Unassigned",
        "probability": current.probability_scale if current else None,
        "impact": current.impact_scale if current else None,
        "exposure": score.exposure if score else None,
        "level": score.level.value if score else None,
        "control_count": len(risk.controls),
        "treatment_count": len(risk.treatments),
        "kri_count": len(risk.kris),
        "created_at": risk.created_at,
    }


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def heatmap_analysis(risks: List[Risk]) -> Dict[str, Any]:
    """
    5x5 heat map indexed ``matrix[probability - 1][impact - 1]``.

    Cells use the probability and impact scales of each risk's current
    assessment (residual, else inherent). Unassessed risks are left out of
    the grid and counted separately.
    """
    matrix = [[0] * 5 for _ in range(5)]
    details: List[List[List[Dict[str, Any]]]] = [[[] for _ in range(5)] for _ in range(5)]
    rows = [_engine_row(r) for r in risks]
    assessed = [row for row in rows if row["level"] is not None]

    for row in assessed:
        matrix[row["probability"] - 1][row["impact"] - 1] += 1
        details[row["probability"] - 1][row["impact"] - 1].append(row)

    level_counts = {level.value: 0 for level in RiskLevel}
    for row in assessed:
        level_counts[row["level"]] += 1

    return {
        "matrix": matrix,
        "risk_details": details,
        "summary": {
            "total_risks": len(rows),
            "assessed_risks": len(assessed),
            "unassessed_risks": len(rows) - len(assessed),
            "level_counts": level_counts,
            "high_risks": sum(level_counts[lvl.value] for lvl in HIGH_LEVELS),
            "categories": sorted({row["category"] for row in rows}),
            "avg_exposure": _average([row["exposure"] for row in assessed]),
            "with_controls": sum(1 for row in rows if row["control_count"]),
            "with_treatments": sum(1 for row in rows if row["treatment_count"]),
        },
    }


def linear_projection(points: List[Tuple[int, float]], next_indexes: List[int]) -> Optional[Dict[str, Any]]:
    """Least-squares line through (month index, average exposure) points.

    Returns None with fewer than two points.
    """
    if len(points) < 2:
        return None
    n = len(points)
    x_mean = sum(x for x, _ in points) / n
    y_mean = sum(y for _, y in points) / n
    denominator = sum((x - x_mean) ** 2 for x, _ in points)
    slope = sum((x - x_mean) * (y - y_mean) for x, y in points) / denominator if denominator else 0.0
    intercept = y_mean - slope * x_mean

    if slope > TREND_SLOPE_THRESHOLD:
        trend = "increasing"
    elif slope < -TREND_SLOPE_THRESHOLD:
        trend = "decreasing"
    else:
        trend = "stable"

    return {
        "slope": round(slope, 4),
        "intercept": round(intercept, 4),
        "trend": trend,
        "confidence": round(max(0.5, 1 - abs(slope) * 0.1), 2),
        "values": [max(0.0, slope * x + intercept) for x in next_indexes],
    }


def predictive_analysis(risks: List[Risk], since: datetime, now: datetime) -> Dict[str, Any]:
    """Monthly history of newly registered risks and a three-month projection of average exposure."""
    first = month_start(since)
    current = month_start(now)
    history = []
    cursor = first
    while cursor <= current:
        end = cursor + relativedelta(months=1)
        month_risks = [r for r in risks if cursor <= r.created_at < end]
        scores = [s for s in (_current_score(r) for r in month_risks) if s is not None]
        history.append({
            "month": cursor.strftime("%Y-%m"),
            "new_risks": len(month_risks),
            "assessed_risks": len(scores),
            "avg_exposure": _average([s.exposure for s in scores]) if scores else None,
            "high_risk_count": sum(1 for s in scores if s.level in HIGH_LEVELS),
        })
        cursor = end

    points = [(i, row["avg_exposure"]) for i, row in enumerate(history) if row["avg_exposure"] is not None]
    next_indexes = list(range(len(history), len(history) + PREDICTION_HORIZON))
    fit = linear_projection(points, next_indexes)

    prediction = None
    if fit is not None:
        predictions = []
        for step, value in enumerate(fit.pop("values"), start=1):
            exposure = min(25, max(1, round(value)))
            predictions.append({
                "month": (current + relativedelta(months=step)).strftime("%Y-%m"),
                "predicted_exposure": round(value, 2),
                "predicted_level": classify_exposure(exposure).value,
            })
        prediction = {**fit, "predictions": predictions}

    measured = [row for row in history if row["avg_exposure"] is not None]
    return {
        "historical": history,
        "prediction": prediction,
        "insights": _trend_insights(measured),
        "recommendations": _trend_recommendations(measured),
    }


def _trend_insights(measured: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    insights = []
    if len(measured) < 2:
        return insights
    previous, recent = measured[-2], measured[-1]
    if recent["avg_exposure"] > previous["avg_exposure"] * 1.1:
        insights.append({
            "type": "warning",
            "impact": "high",
            "message": f"Average exposure rose from {previous['avg_exposure']} to {recent['avg_exposure']}",
        })
    if recent["high_risk_count"] > previous["high_risk_count"]:
        insights.append({
            "type": "alert",
            "impact": "high",
            "message": "Number of high-level risks has increased",
        })
    return insights


def _trend_recommendations(measured: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    if not measured:
        return []
    recent = measured[-1]
    recommendations = []
    if recent["avg_exposure"] >= 10:
        recommendations.append({
            "priority": "high",
            "action": "Review and update risk mitigation strategies",
            "reason": "Average exposure is at or above the Moderate band",
        })
    if recent["high_risk_count"] > 5:
        recommendations.append({
            "priority": "high",
            "action": "Prioritise treatment of high-level risks",
            "reason": f"{recent['high_risk_count']} high-level risks were registered last month",
        })
    recommendations.append({
        "priority": "medium",
        "action": "Keep a regular risk assessment schedule",
        "reason": "Consistent reassessment keeps the register current",
    })
    return recommendations


def drilldown_analysis(risks: List[Risk]) -> Dict[str, Any]:
    """Distributions by category, owner unit and level, plus one row per risk."""
    rows = [_engine_row(r) for r in risks]

    by_category: Dict[str, List[Dict[str, Any]]] = {}
    by_owner: Dict[str, int] = {}
    by_level: Dict[str, int] = {}
    for row in rows:
        by_category.setdefault(row["category"], []).append(row)
        by_owner[row["owner"]] = by_owner.get(row["owner"], 0) + 1
        key = row["level"] or "UNASSESSED"
        by_level[key] = by_level.get(key, 0) + 1

    return {
        "summary": {
            "total_risks": len(rows),
            "distributions": {
                "by_category": [
                    {
                        "name": name,
                        "count": len(members),
                        "avg_exposure": _average([m["exposure"] for m in members if m["exposure"] is not None]),
                    }
                    for name, members in sorted(by_category.items())
                ],
                "by_owner": [{"name": name, "count": count} for name, count in sorted(by_owner.items())],
                "by_level": [
                    {"name": name, "count": by_level[name]}
                    for name in sorted(by_level, key=lambda name: -level_rank(name))
                ],
            },
        },
        "detailed": rows,
    }


def analytics_engine(
    db: Session,
    analysis: str = "heatmap",
    period: str = "3months",
    category: Optional[str] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Run one engine analysis over risks registered within ``period``.

    The predictive analysis also reads the six months before the period.
    """
    if analysis not in ENGINE_ANALYSES:
        raise ValueError(f"Unknown analysis '{analysis}'")
    if period not in ENGINE_PERIODS:
        raise ValueError(f"Unknown period '{period}'")

    now = now or utc_now()
    since = now - relativedelta(months=ENGINE_PERIODS[period])
    if analysis == "predictive":
        since = since - relativedelta(months=PREDICTIVE_HISTORY_MONTHS)
    risks = _load_engine_risks(db, since, category)

    if analysis == "heatmap":
        result = heatmap_analysis(risks)
    elif analysis == "predictive":
        result = predictive_analysis(risks, since, now)
    else:
        result = drilldown_analysis(risks)

    return {"analysis": analysis, "period": period, "category": category, "since": since, **result}
