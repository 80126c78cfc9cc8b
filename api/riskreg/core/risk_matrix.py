"""5x5 risk matrix aggregation.

Builds the probability/impact heat map shown on the matrix page and embedded
in PDF reports. Cell levels and per-risk levels come from
riskreg.core.risk_scoring.
"""
import csv
import io
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, joinedload

from riskreg.core.risk_scoring import RiskLevel, SCALE_VALUES, classify_exposure, score_risk
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment

CSV_HEADERS = [
    "Risk Number", "Risk Name", "Category", "Unit",
    "Probability", "Impact", "Exposure", "Level",
]


def collect_matrix_risks(
    db: Session,
    assessment_type: str = "RESIDUAL",
    unit_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Flat list of risks holding an assessment of the given type."""
    query = db.query(RiskAssessment).join(Risk).options(
        joinedload(RiskAssessment.risk).joinedload(Risk.category),
        joinedload(RiskAssessment.risk).joinedload(Risk.owner_unit),
    ).filter(RiskAssessment.assessment_type == assessment_type)
    if unit_id is not None:
        query = query.filter(Risk.owner_unit_id == unit_id)

    entries = []
    for assessment in query.order_by(Risk.risk_number).all():
        risk = assessment.risk
        score = score_risk(assessment.probability_scale, assessment.impact_scale)
        entries.append({
            "risk_id": risk.risk_id,
            "risk_number": risk.risk_number,
            "name": risk.name,
            "category": risk.category.category if risk.category else None,
            "unit": risk.owner_unit.name if risk.owner_unit else None,
            "probability": assessment.probability_scale,
            "impact": assessment.impact_scale,
            "exposure": score.exposure,
            "level": score.level.value,
        })
    return entries


def build_matrix(
    db: Session,
    assessment_type: str = "RESIDUAL",
    unit_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Aggregate risks into the 5x5 grid.

    Returns:
        Dict with:
        - matrix_grid: 5 rows (impact 5 down to 1) of 5 cells (probability 1 to 5)
        - level_stats: count of risks per level (every level present)
        - total_risks: number of assessed risks
        - risks: flat list from collect_matrix_risks
    """
    risks = collect_matrix_risks(db, assessment_type, unit_id)

    cells: Dict[tuple, List[Dict[str, Any]]] = {}
    for entry in risks:
        cells.setdefault((entry["impact"], entry["probability"]), []).append(entry)

    grid = []
    for impact in reversed(SCALE_VALUES):
        row = []
        for probability in SCALE_VALUES:
            cell_risks = cells.get((impact, probability), [])
            exposure = impact * probability
            row.append({
                "impact": impact,
                "probability": probability,
                "exposure": exposure,
                "level": classify_exposure(exposure).value,
                "count": len(cell_risks),
                "risks": [
                    {"risk_id": r["risk_id"], "risk_number": r["risk_number"], "name": r["name"]}
                    for r in cell_risks
                ],
            })
        grid.append(row)

    level_stats = {level.value: 0 for level in RiskLevel}
    for entry in risks:
        level_stats[entry["level"]] += 1

    return {
        "assessment_type": assessment_type,
        "matrix_grid": grid,
        "level_stats": level_stats,
        "total_risks": len(risks),
        "risks": risks,
    }


def matrix_to_csv(risks: List[Dict[str, Any]]) -> str:
    """Render the flat matrix risk list as CSV text."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for r in risks:
        writer.writerow([
            r["risk_number"],
            r["name"],
            r["category"] or "",
            r["unit"] or "",
            r["probability"],
            r["impact"],
            r["exposure"],
            r["level"],
        ])
    return output.getvalue()
