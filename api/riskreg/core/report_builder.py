"""Assemble report data per report type and render it to PDF."""
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from riskreg.core.pdf_generator import RiskReportPDF
from riskreg.core.risk_analytics import analytics_dashboard, risk_summary
from riskreg.core.risk_matrix import build_matrix
from riskreg.core.risk_scoring import RiskLevel
from riskreg.core.time import utc_now
from riskreg.models.reporting import ReportTemplate, ReportType

logger = logging.getLogger(__name__)

SUMMARY_TYPES = {ReportType.RISK_SUMMARY.value, ReportType.MONTHLY.value, ReportType.ANNUAL.value}
ANALYTICS_TYPES = {ReportType.ANALYTICS_DASHBOARD.value, ReportType.QUARTERLY.value}
MATRIX_TYPES = {ReportType.RISK_MATRIX.value, ReportType.CUSTOM.value}


def compute_period(report_type: str, reference: Optional[date] = None) -> Dict[str, Any]:
    """
    Reporting period parameters for a scheduled run.

    Monthly reports cover the previous calendar month, quarterly reports the
    previous calendar quarter and annual reports the previous calendar year.
    Other types cover the month to date.

    Returns:
        Dict with start_date, end_date (ISO dates, end inclusive), period label
        and months (trend length for analytics sections)
    """
    if reference is None:
        reference = utc_now()
    if isinstance(reference, datetime):
        reference = reference.date()
    first_of_month = reference.replace(day=1)

    if report_type == ReportType.MONTHLY.value:
        start = first_of_month - relativedelta(months=1)
        end = first_of_month - relativedelta(days=1)
        label = start.strftime("%B %Y")
        months = 1
    elif report_type == ReportType.QUARTERLY.value:
        current_quarter_start = date(reference.year, 3 * ((reference.month - 1) // 3) + 1, 1)
        start = current_quarter_start - relativedelta(months=3)
        end = current_quarter_start - relativedelta(days=1)
        label = f"Q{(start.month - 1) // 3 + 1} {start.year}"
        months = 3
    elif report_type == ReportType.ANNUAL.value:
        start = date(reference.year - 1, 1, 1)
        end = date(reference.year - 1, 12, 31)
        label = str(start.year)
        months = 12
    else:
        start = first_of_month
        end = reference
        label = reference.strftime("%B %Y")
        months = 6

    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "period": label,
        "months": months,
    }


def parse_template(template: ReportTemplate) -> Dict[str, Any]:
    """Template JSON as a dict; invalid JSON is logged and treated as empty."""
    try:
        parsed = json.loads(template.template or "{}")
    except json.JSONDecodeError:
        logger.warning("Report template %s holds invalid JSON, ignoring layout", template.template_id)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _level_stats_table(level_stats: Dict[str, int], title: str = "Risk Level Statistics") -> Dict[str, Any]:
    total = sum(level_stats.values())
    rows = []
    for level in reversed(list(RiskLevel)):
        count = level_stats.get(level.value, 0)
        pct = f"{count * 100 / total:.1f}%" if total else "0.0%"
        rows.append([level.value, count, pct])
    return {
        "type": "table",
        "title": title,
        "headers": ["Level", "Risks", "Share"],
        "rows": rows,
        "level_column": 0,
        "col_widths": (80, 50, 50),
    }


def summary_sections(db: Session, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    summary = risk_summary(db, unit_id=parameters.get("unit_id"))
    overview = (
        f"{summary['total_risks']} risks are registered, of which {summary['assessed_risks']} "
        f"have been assessed. {summary['high_risks']} risks are rated High or Very High."
    )
    if summary["unassessed_risks"]:
        overview += f" {summary['unassessed_risks']} risks still await assessment."

    top_rows = [
        [r["risk_number"], r["name"], r["unit"] or "", r["exposure"], r["level"]]
        for r in summary["top_risks"]
    ]
    return [
        {"type": "text", "title": "Executive Summary", "content": overview},
        _level_stats_table(summary["level_stats"]),
        {"type": "chart", "title": "Risk Level Distribution", "level_stats": summary["level_stats"]},
        {
            "type": "table",
            "title": "Top Risks by Exposure",
            "headers": ["Risk Number", "Risk Name", "Unit", "Exposure", "Level"],
            "rows": top_rows,
            "level_column": 4,
            "col_widths": (25, 75, 40, 18, 22),
        },
    ]


def analytics_sections(db: Session, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    months = int(parameters.get("months") or 6)
    data = analytics_dashboard(db, unit_id=parameters.get("unit_id"), months=months)
    trend_rows = [
        [
            row["label"],
            row["total_risks"],
            row["high_risks"],
            row["treatments"],
            row["treatments_without_realization"],
            row["kri_alerts"],
            f"{row['compliance_score']:.1f}%",
        ]
        for row in data["monthly_trend"]
    ]
    level_stats = {row["level"]: row["count"] for row in data["level_distribution"]}
    return [
        {
            "type": "table",
            "title": "Monthly Metrics",
            "headers": ["Month", "Risks", "High", "Treatments", "Unrealized", "KRI Alerts", "Compliance"],
            "rows": trend_rows,
        },
        _level_stats_table(level_stats, title="Residual Risk Levels"),
        {
            "type": "table",
            "title": "Risks by Category",
            "headers": ["Category", "Risks"],
            "rows": [[c["category"], c["count"]] for c in data["by_category"]],
            "col_widths": (140, 40),
        },
    ]


def matrix_sections(db: Session, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    assessment_type = str(parameters.get("assessment_type") or "RESIDUAL").upper()
    matrix = build_matrix(db, assessment_type=assessment_type, unit_id=parameters.get("unit_id"))
    return [
        {
            "type": "risk-matrix",
            "title": f"{assessment_type.title()} Risk Matrix",
            "matrix_grid": matrix["matrix_grid"],
            "level_stats": matrix["level_stats"],
        },
        _level_stats_table(matrix["level_stats"], title="Matrix Distribution"),
    ]


def build_sections(db: Session, report_type: str, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Data sections for a report type. Unknown types fall back to the risk summary."""
    if report_type in SUMMARY_TYPES:
        return summary_sections(db, parameters)
    if report_type in ANALYTICS_TYPES:
        return analytics_sections(db, parameters)
    if report_type in MATRIX_TYPES:
        return matrix_sections(db, parameters)
    logger.warning("Unknown report type %r, falling back to risk summary", report_type)
    return summary_sections(db, parameters)


def render_report(
    db: Session,
    template: ReportTemplate,
    parameters: Optional[Dict[str, Any]] = None,
    generated_at: Optional[datetime] = None
) -> bytes:
    """Render a template to PDF bytes.

    Static ``text`` sections declared in the template JSON are placed before
    the data sections of the report type.
    """
    parameters = dict(parameters or {})
    layout = parse_template(template)
    static_sections = [
        s for s in layout.get("sections", [])
        if isinstance(s, dict) and s.get("type") == "text"
    ]
    sections = static_sections + build_sections(db, template.report_type, parameters)

    title = parameters.get("title") or layout.get("title") or template.name
    period = parameters.get("period")
    if not period and parameters.get("start_date") and parameters.get("end_date"):
        period = f"{parameters['start_date']} to {parameters['end_date']}"

    pdf = RiskReportPDF(title=title, sections=sections, period=period, generated_at=generated_at or utc_now())
    content = pdf.generate()
    logger.info("Rendered %s report '%s' (%d bytes)", template.report_type, template.name, len(content))
    return content

