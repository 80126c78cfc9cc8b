"""Seed reference and demo data."""
import json
import os
import sys
from datetime import date
from decimal import Decimal
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from riskreg.core.config import settings
from riskreg.core.database import SessionLocal
from riskreg.core.risk_scoring import normalize_level_label, score_risk
from riskreg.core.security import get_password_hash
from riskreg.models import (
    EmailTemplate, ExistingControl, KeyRiskIndicator, OrgUnit, ReportTemplate, Risk, RiskAssessment,
    RiskCriteria, RiskTaxonomy, StrategicObjective, TreatmentPlan, TreatmentRealization, User
)
from riskreg.services.email_service import DEFAULT_HTML, DEFAULT_SUBJECT, DEFAULT_TEXT, REPORT_TEMPLATE_NAME


def is_production_env() -> bool:
    return settings.ENVIRONMENT.lower() == "production"


def get_seed_admin_password() -> str | None:
    password = os.getenv("SEED_ADMIN_PASSWORD")
    if password:
        password = password.strip()
    if is_production_env():
        if password == "admin123":
            print("FATAL: SEED_ADMIN_PASSWORD cannot be the default in production.", file=sys.stderr)
            sys.exit(1)
        return password
    return password or "admin123"


ORG_UNITS = [
    {"code": "DIR", "name": "Board of Directors", "hierarchy_level": "Second Line"},
    {"code": "RM", "name": "Risk Management", "hierarchy_level": "Second Line"},
    {"code": "IA", "name": "Internal Audit", "hierarchy_level": "Third Line"},
    {"code": "OPS", "name": "Operations", "hierarchy_level": "First Line"},
    {"code": "FIN", "name": "Finance", "hierarchy_level": "First Line"},
    {"code": "HR", "name": "Human Resources", "hierarchy_level": "First Line"},
    {"code": "IT", "name": "Information Technology", "hierarchy_level": "First Line"},
]

USERS = [
    {"email": "director@example.com", "full_name": "Dana Director", "role": "DIRECTOR", "unit": "DIR",
     "password": "director123"},
    {"email": "riskmanager@example.com", "full_name": "Rina Manager", "role": "RISK_MANAGER", "unit": "RM",
     "password": "manager123"},
    {"email": "owner.ops@example.com", "full_name": "Oscar Operations", "role": "RISK_OWNER", "unit": "OPS",
     "password": "owner123"},
    {"email": "owner.it@example.com", "full_name": "Ita Technology", "role": "RISK_OWNER", "unit": "IT",
     "password": "owner123"},
    {"email": "auditor@example.com", "full_name": "Andi Auditor", "role": "AUDITOR", "unit": "IA",
     "password": "auditor123"},
]

TAXONOMY = [
    ("Strategic Risk", "Corporate Risk", "Risks tied to corporate strategy"),
    ("Operational Risk", "Business Process Risk", "Risks arising from operational processes"),
    ("Operational Risk", "Human Resources Risk", "Risks in managing people"),
    ("Operational Risk", "Information Technology Risk", "Risks in systems and technology"),
    ("Financial Risk", "Credit Risk", "Losses from counterparty default"),
    ("Financial Risk", "Liquidity Risk", "Inability to meet obligations"),
    ("Financial Risk", "Market Risk", "Adverse changes in market conditions"),
    ("Compliance Risk", "Regulatory Risk", "Breaches of laws and regulations"),
    ("Reputational Risk", "Corporate Image Risk", "Damage to the company's reputation"),
]

CRITERIA = [
    ("IMPACT", "Very Low", 1, "Financial impact below 1 billion"),
    ("IMPACT", "Low", 2, "Financial impact of 1-5 billion"),
    ("IMPACT", "Moderate", 3, "Financial impact of 5-10 billion"),
    ("IMPACT", "High", 4, "Financial impact of 10-25 billion"),
    ("IMPACT", "Very High", 5, "Financial impact above 25 billion"),
    ("PROBABILITY", "Rare", 1, "Likelihood below 5%"),
    ("PROBABILITY", "Unlikely", 2, "Likelihood of 5-25%"),
    ("PROBABILITY", "Possible", 3, "Likelihood of 25-50%"),
    ("PROBABILITY", "Likely", 4, "Likelihood of 50-75%"),
    ("PROBABILITY", "Almost Certain", 5, "Likelihood above 75%"),
]

OBJECTIVES = [
    {"unit": "OPS", "objective": "Keep core service availability above 99.5%",
     "strategy": "Preventive maintenance and redundancy", "expected_outcome": "Uninterrupted operations",
     "risk_value": "Low", "risk_limit": "Downtime below 4 hours per quarter"},
    {"unit": "FIN", "objective": "Maintain a healthy liquidity position",
     "strategy": "Rolling cash-flow forecasting", "expected_outcome": "Current ratio above 1.5",
     "risk_value": "Moderate", "risk_limit": "Current ratio not below 1.2"},
    {"unit": "IT", "objective": "Protect customer data",
     "strategy": "Security controls aligned with ISO 27001", "expected_outcome": "No material data breach",
     "risk_value": "Very Low", "risk_limit": "Zero reportable incidents"},
    {"unit": "HR", "objective": "Retain critical talent",
     "strategy": "Succession planning and competitive remuneration", "expected_outcome": "Key staff turnover below 5%",
     "risk_value": "Low", "risk_limit": "Key staff turnover not above 10%"},
]

# Stored levels are legacy labels from the previous register; the classifier decides the actual level
RISKS = [
    {
        "risk_number": "RISK-0001", "name": "Core system outage", "unit": "IT", "objective": 2,
        "category": ("Operational Risk", "Information Technology Risk"),
        "description": "Unplanned outage of the core transaction platform.",
        "inherent": (4, 5, "Sangat Tinggi"), "residual": (3, 4, "Tinggi"),
        "controls": [("Preventive", "Redundant data centre with automatic failover", "EFFECTIVE")],
        "kris": [("Monthly unplanned downtime", "hours", "Danger", "4")],
        "treatment": ("MITIGATE", "Migrate to an active-active cluster", "Active-active cluster in production",
                      "2500000000", 12, "DELAYED"),
    },
    {
        "risk_number": "RISK-0002", "name": "Customer data breach", "unit": "IT", "objective": 2,
        "category": ("Operational Risk", "Information Technology Risk"),
        "description": "Unauthorized access to customer personal data.",
        "inherent": (3, 5, "High"), "residual": (2, 5, "Moderate"),
        "controls": [("Detective", "Security operations centre monitoring", "FAIRLY_EFFECTIVE")],
        "kris": [("Critical vulnerabilities open over 30 days", "count", "Caution", "0")],
        "treatment": ("MITIGATE", "Roll out data loss prevention tooling", "DLP enabled on all endpoints",
                      "750000000", 6, "ON_TRACK"),
    },
    {
        "risk_number": "RISK-0003", "name": "Liquidity shortfall", "unit": "FIN", "objective": 1,
        "category": ("Financial Risk", "Liquidity Risk"),
        "description": "Cash inflows insufficient to meet short-term obligations.",
        "inherent": (3, 4, "Sedang"), "residual": (2, 3, "Rendah"),
        "controls": [("Preventive", "Weekly cash-flow forecast review", "VERY_EFFECTIVE")],
        "kris": [("Current ratio", "ratio", "Caution", "1.2")],
        "treatment": ("ACCEPT", "Maintain a standby credit facility", "Committed facility signed",
                      "100000000", 3, "COMPLETED"),
    },
    {
        "risk_number": "RISK-0004", "name": "Loss of key personnel", "unit": "HR", "objective": 4,
        "category": ("Operational Risk", "Human Resources Risk"),
        "description": "Departure of staff in critical roles without successors.",
        "inherent": (3, 3, "Moderate"), "residual": None,
        "controls": [],
        "kris": [("Key staff turnover", "%", "Caution", "10")],
        "treatment": None,
    },
    {
        "risk_number": "RISK-0005", "name": "Equipment failure in operations", "unit": "OPS", "objective": 0,
        "category": ("Operational Risk", "Business Process Risk"),
        "description": "Breakdown of production equipment interrupting service.",
        "inherent": (2, 3, "Low"), "residual": (1, 3, "Very Low"),
        "controls": [("Preventive", "Scheduled preventive maintenance", "EFFECTIVE")],
        "kris": [],
        "treatment": ("TRANSFER", "Equipment breakdown insurance", "Policy renewed annually",
                      "50000000", 12, "IN_PROGRESS"),
    },
]

REPORT_TEMPLATES = [
    {"name": "Monthly Risk Summary", "report_type": "MONTHLY",
     "description": "Executive summary of the risk register for the previous month",
     "template": {"title": "Monthly Risk Summary", "sections": [
         {"type": "text", "title": "Purpose",
          "content": "This report summarizes the risk profile of the organization."}]}},
    {"name": "Quarterly Analytics", "report_type": "QUARTERLY",
     "description": "Monthly metrics for the previous quarter", "template": {"sections": []}},
    {"name": "Residual Risk Matrix", "report_type": "RISK_MATRIX",
     "description": "5x5 residual risk matrix", "template": {"sections": []}},
]


def seed_org_units(db: Session) -> dict:
    units = {}
    created = 0
    for data in ORG_UNITS:
        unit = db.query(OrgUnit).filter(OrgUnit.code == data["code"]).first()
        if not unit:
            unit = OrgUnit(**data)
            db.add(unit)
            created += 1
        units[data["code"]] = unit
    db.commit()
    print(f"✓ Org units: {created} created, {len(ORG_UNITS) - created} existing")
    return units


def seed_users(db: Session, units: dict) -> dict:
    users = {}
    admin_password = get_seed_admin_password()
    admin = db.query(User).filter(User.email == "admin@example.com").first()
    if not admin:
        if admin_password is None:
            print("FATAL: SEED_ADMIN_PASSWORD is required to create the admin user in production.", file=sys.stderr)
            sys.exit(1)
        admin = User(
            email="admin@example.com",
            full_name="Admin User",
            password_hash=get_password_hash(admin_password),
            role="ADMIN",
            unit_id=units["RM"].unit_id
        )
        db.add(admin)
        db.commit()
        print("✓ Created admin user (admin@example.com)")
    else:
        print("✓ Admin user already exists")
    users["ADMIN"] = admin

    if is_production_env():
        return users

    for data in USERS:
        user = db.query(User).filter(User.email == data["email"]).first()
        if not user:
            user = User(
                email=data["email"],
                full_name=data["full_name"],
                password_hash=get_password_hash(data["password"]),
                role=data["role"],
                unit_id=units[data["unit"]].unit_id
            )
            db.add(user)
            print(f"✓ Created {data['role'].lower()} user ({data['email']})")
        users[data["email"]] = user
    db.commit()
    return users


def seed_taxonomy(db: Session) -> dict:
    taxonomy = {}
    for category, subcategory, description in TAXONOMY:
        row = db.query(RiskTaxonomy).filter(
            RiskTaxonomy.category == category,
            RiskTaxonomy.subcategory == subcategory
        ).first()
        if not row:
            row = RiskTaxonomy(category=category, subcategory=subcategory, description=description)
            db.add(row)
        taxonomy[(category, subcategory)] = row
    db.commit()
    print(f"✓ Seeded {len(TAXONOMY)} risk categories")
    return taxonomy


def seed_criteria(db: Session) -> None:
    for criteria_type, scale_label, value, description in CRITERIA:
        exists = db.query(RiskCriteria).filter(
            RiskCriteria.criteria_type == criteria_type,
            RiskCriteria.value == value
        ).first()
        if not exists:
            db.add(RiskCriteria(
                criteria_type=criteria_type, scale_label=scale_label, value=value, description=description
            ))
    db.commit()
    print(f"✓ Seeded {len(CRITERIA)} risk criteria")


def seed_objectives(db: Session, units: dict) -> list:
    objectives = []
    for data in OBJECTIVES:
        values = {k: v for k, v in data.items() if k != "unit"}
        row = db.query(StrategicObjective).filter(StrategicObjective.objective == data["objective"]).first()
        if not row:
            row = StrategicObjective(unit_id=units[data["unit"]].unit_id, **values)
            db.add(row)
        objectives.append(row)
    db.commit()
    print(f"✓ Seeded {len(objectives)} strategic objectives")
    return objectives


def _assessment(risk: Risk, assessment_type: str, values) -> RiskAssessment:
    probability, impact, legacy_label = values
    score = score_risk(probability, impact)
    legacy = normalize_level_label(legacy_label)
    if legacy is not None and legacy != score.level:
        print(
            f"  ! {risk.risk_number} {assessment_type.lower()} label '{legacy_label}' "
            f"replaced by computed level {score.level.value} (exposure {score.exposure})"
        )
    return RiskAssessment(
        risk_id=risk.risk_id,
        assessment_type=assessment_type,
        probability_scale=probability,
        impact_scale=impact,
        exposure=score.exposure,
        level=score.level.value,
    )


def seed_risks(db: Session, units: dict, taxonomy: dict, objectives: list, pic: User) -> None:
    created = 0
    today = date.today()
    for data in RISKS:
        if db.query(Risk).filter(Risk.risk_number == data["risk_number"]).first():
            continue
        risk = Risk(
            risk_number=data["risk_number"],
            name=data["name"],
            description=data["description"],
            objective_id=objectives[data["objective"]].objective_id,
            owner_unit_id=units[data["unit"]].unit_id,
            category_id=taxonomy[data["category"]].taxonomy_id,
        )
        db.add(risk)
        db.flush()

        db.add(_assessment(risk, "INHERENT", data["inherent"]))
        if data["residual"]:
            db.add(_assessment(risk, "RESIDUAL", data["residual"]))

        for control_type, description, rating in data["controls"]:
            db.add(ExistingControl(
                risk_id=risk.risk_id,
                control_type=control_type,
                impact_description=description,
                effectiveness_rating=rating
            ))
        for name, unit_of_measure, threshold_category, threshold_value in data["kris"]:
            db.add(KeyRiskIndicator(
                risk_id=risk.risk_id,
                indicator_name=name,
                unit_of_measure=unit_of_measure,
                threshold_category=threshold_category,
                threshold_value=Decimal(threshold_value)
            ))

        if data["treatment"]:
            option, plan, output, cost, months, status = data["treatment"]
            treatment = TreatmentPlan(
                risk_id=risk.risk_id,
                pic_id=pic.user_id,
                treatment_option=option,
                treatment_plan=plan,
                output=output,
                cost=Decimal(cost),
                timeline_months=months,
            )
            db.add(treatment)
            db.flush()
            for offset in (2, 1):
                period = (today - relativedelta(months=offset)).replace(day=1)
                db.add(TreatmentRealization(
                    treatment_id=treatment.treatment_id,
                    period=period,
                    plan_realization=f"Progress update for {period.strftime('%B %Y')}",
                    cost_realization=Decimal(cost) / 4,
                    absorption_pct=Decimal("25.00") if offset == 2 else Decimal("50.00"),
                    status=status if offset == 1 else "IN_PROGRESS",
                    progress="50%" if offset == 1 else "25%",
                ))
        created += 1
    db.commit()
    print(f"✓ Seeded {created} risks with assessments, controls, KRIs and treatments")


def seed_report_templates(db: Session, admin: User) -> None:
    created = 0
    for data in REPORT_TEMPLATES:
        if db.query(ReportTemplate).filter(ReportTemplate.name == data["name"]).first():
            continue
        db.add(ReportTemplate(
            name=data["name"],
            description=data["description"],
            report_type=data["report_type"],
            template=json.dumps(data["template"]),
            created_by_id=admin.user_id
        ))
        created += 1

    if not db.query(EmailTemplate).filter(EmailTemplate.name == REPORT_TEMPLATE_NAME).first():
        db.add(EmailTemplate(
            name=REPORT_TEMPLATE_NAME,
            subject=DEFAULT_SUBJECT,
            html_content=DEFAULT_HTML,
            text_content=DEFAULT_TEXT,
            is_default=True
        ))
        print("✓ Created default report email template")
    db.commit()
    print(f"✓ Seeded {created} report templates")


def seed_database():
    """Seed reference data, and demo data outside production."""
    db = SessionLocal()
    try:
        print("Starting database seeding...")
        units = seed_org_units(db)
        users = seed_users(db, units)
        taxonomy = seed_taxonomy(db)
        seed_criteria(db)
        seed_report_templates(db, users["ADMIN"])

        if is_production_env():
            print("✓ Production environment, skipping demo data")
            return

        objectives = seed_objectives(db, units)
        seed_risks(db, units, taxonomy, objectives, pic=users["riskmanager@example.com"])
        print("✓ Seeding complete")
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
