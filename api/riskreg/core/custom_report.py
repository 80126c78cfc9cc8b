"""Ad-hoc tabular reports over the risk register.

A report is a set of filters, a list of columns picked from COLUMN_REGISTRY,
an optional sort and an optional grouping. Risk levels in every column come
from riskreg.core.risk_scoring.
"""
from datetime import datetime, time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session, joinedload, selectinload

from riskreg.core.risk_scoring import LEVEL_LABELS, RiskLevel, level_rank, score_risk
from riskreg.core.time import utc_now
from riskreg.models.org_unit import OrgUnit
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.treatment import RealizationStatus, TreatmentPlan
from riskreg.schemas.report import CustomReportConfig

PREVIEW_LIMIT = 10
CHART_TYPES = ["table", "bar", "pie", "line"]


class ColumnDef(NamedTuple):
    label: str
    type: str
    extract: Callable[[Risk], Any]


def _score(assessment: Optional[RiskAssessment]):
    if assessment is None:
        return None
    return score_risk(assessment.probability_scale, assessment.impact_scale)


def _scale(assessment_attr: str, field: str) -> Callable[[Risk], Any]:
    def extract(risk: Risk):
        assessment = getattr(risk, assessment_attr)
        return getattr(assessment, field) if assessment else None
    return extract


def _exposure(assessment_attr: str) -> Callable[[Risk], Any]:
    def extract(risk: Risk):
        score = _score(getattr(risk, assessment_attr))
        return score.exposure if score else None
    return extract


def _level(assessment_attr: str) -> Callable[[Risk], Any]:
    def extract(risk: Risk):
        score = _score(getattr(risk, assessment_attr))
        return score.level.value if score else None
    return extract


def _latest_treatment_status(risk: Risk) -> Optional[str]:
    latest = None
    for treatment in risk.treatments:
        realization = treatment.latest_realization
        if realization and (latest is None or realization.period > latest.period):
            latest = realization
    return latest.status if latest else None


COLUMN_REGISTRY: Dict[str, ColumnDef] = {
    "risk_number": ColumnDef("Risk Number", "text", lambda r: r.risk_number),
    "name": ColumnDef("Risk Name", "text", lambda r: r.name),
    "description": ColumnDef("Description", "text", lambda r: r.description),
    "category": ColumnDef("Category", "text", lambda r: r.category.category if r.category else None),
    "subcategory": ColumnDef("Subcategory", "text", lambda r: r.category.subcategory if r.category else None),
    "unit": ColumnDef("Unit", "text", lambda r: r.owner_unit.name if r.owner_unit else None),
    "objective": ColumnDef("Objective", "text", lambda r: r.objective.objective if r.objective else None),
    "inherent_probability": ColumnDef(
        "Inherent Probability", "number", _scale("inherent_assessment", "probability_scale")
    ),
    "inherent_impact": ColumnDef("Inherent Impact", "number", _scale("inherent_assessment", "impact_scale")),
    "inherent_exposure": ColumnDef("Inherent Exposure", "number", _exposure("inherent_assessment")),
    "inherent_level": ColumnDef("Inherent Level", "status", _level("inherent_assessment")),
    "residual_probability": ColumnDef(
        "Residual Probability", "number", _scale("residual_assessment", "probability_scale")
    ),
    "residual_impact": ColumnDef("Residual Impact", "number", _scale("residual_assessment", "impact_scale")),
    "residual_exposure": ColumnDef("Residual Exposure", "number", _exposure("residual_assessment")),
    "residual_level": ColumnDef("Residual Level", "status", _level("residual_assessment")),
    "level": ColumnDef("Current Level", "status", _level("current_assessment")),
    "control_count": ColumnDef("Controls", "number", lambda r: len(r.controls)),
    "kri_count": ColumnDef("KRIs", "number", lambda r: len(r.kris)),
    "treatment_count": ColumnDef("Treatments", "number", lambda r: len(r.treatments)),
    "treatment_status": ColumnDef("Treatment Status", "status", _latest_treatment_status),
    "created_at": ColumnDef("Created", "date", lambda r: r.created_at),
}

# Values every row carries for filtering, regardless of the selected columns
_FILTER_FIELDS = ("level", "treatment_status")


def report_schema(db: Session) -> Dict[str, Any]:
    """Filters, columns and chart types the builder UI can offer."""
    units = db.query(OrgUnit).order_by(OrgUnit.code).all()
    categories = db.query(RiskTaxonomy).order_by(RiskTaxonomy.category, RiskTaxonomy.subcategory).all()
    return {
        "filters": {
            "units": [{"unit_id": u.unit_id, "code": u.code, "name": u.name} for u in units],
            "categories": [
                {"taxonomy_id": c.taxonomy_id, "category": c.category, "subcategory": c.subcategory}
                for c in categories
            ],
            "risk_levels": [{"value": lvl.value, "label": LEVEL_LABELS[lvl]} for lvl in RiskLevel],
            "treatment_statuses": [s.value for s in RealizationStatus],
        },
        "columns": [
            {"field": field, "label": col.label, "type": col.type}
            for field, col in COLUMN_REGISTRY.items()
        ],
        "chart_types": CHART_TYPES,
    }


def _query_risks(db: Session, config: CustomReportConfig) -> List[Risk]:
    filters = config.filters
    query = db.query(Risk).options(
        joinedload(Risk.owner_unit),
        joinedload(Risk.category),
        joinedload(Risk.objective),
        selectinload(Risk.assessments),
        selectinload(Risk.controls),
        selectinload(Risk.kris),
        selectinload(Risk.treatments).selectinload(TreatmentPlan.realizations),
    )
    if filters.unit_ids:
        query = query.filter(Risk.owner_unit_id.in_(filters.unit_ids))
    if filters.category_ids:
        query = query.filter(Risk.category_id.in_(filters.category_ids))
    if filters.date_range:
        if filters.date_range.start:
            query = query.filter(Risk.created_at >= datetime.combine(filters.date_range.start, time.min))
        if filters.date_range.end:
            query = query.filter(Risk.created_at <= datetime.combine(filters.date_range.end, time.max))
    return query.order_by(Risk.risk_number).all()


def _sort_key(field: str):
    def key(row: Dict[str, Any]):
        value = row[field]
        return level_rank(value) if field.endswith("level") else value
    return key


def build_rows(db: Session, config: CustomReportConfig) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Filtered and sorted rows.

    Returns (visible_rows, full_rows). Visible rows hold only the visible
    columns; full rows also carry the filter, sort and group fields. Unknown
    column fields yield None.
    """
    visible_fields = [c.field for c in config.columns if c.visible]
    fields = list(dict.fromkeys(
        list(_FILTER_FIELDS)
        + visible_fields
        + ([config.sort_by.field] if config.sort_by else [])
        + ([config.group_by] if config.group_by else [])
    ))

    rows = []
    for risk in _query_risks(db, config):
        row = {}
        for field in fields:
            definition = COLUMN_REGISTRY.get(field)
            row[field] = definition.extract(risk) if definition else None
        rows.append(row)

    levels = set(config.filters.risk_levels)
    if levels:
        rows = [r for r in rows if r["level"] in levels]
    statuses = set(config.filters.treatment_statuses)
    if statuses:
        rows = [r for r in rows if r["treatment_status"] in statuses]

    if config.sort_by:
        field = config.sort_by.field
        present = [r for r in rows if r[field] is not None]
        missing = [r for r in rows if r[field] is None]
        rows = sorted(present, key=_sort_key(field), reverse=config.sort_by.direction == "desc") + missing

    return [{field: row[field] for field in visible_fields} for row in rows], rows


def run_custom_report(db: Session, config: CustomReportConfig, limit: Optional[int] = None) -> Dict[str, Any]:
    """Execute a report config, optionally truncated to ``limit`` rows."""
    rows, full_rows = build_rows(db, config)

    groups = None
    if config.group_by:
        groups = {}
        for row in full_rows:
            value = row[config.group_by]
            label = str(value) if value is not None else "N/A"
            groups[label] = groups.get(label, 0) + 1

    return {
        "name": config.name,
        "columns": [c for c in config.columns if c.visible],
        "rows": rows[:limit] if limit is not None else rows,
        "total": len(rows),
        "generated_at": utc_now(),
        "groups": groups,
    }
