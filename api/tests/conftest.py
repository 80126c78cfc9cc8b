"""Pytest fixtures for API testing."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from riskreg.main import app
from riskreg.core.database import get_db
from riskreg.core.risk_scoring import score_risk
from riskreg.core.security import get_password_hash, create_access_token
from riskreg.models.base import Base
from riskreg.models.objective import StrategicObjective
from riskreg.models.org_unit import OrgUnit
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.user import User

# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client with database override."""
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


def make_user(db_session, email: str, role: str, unit_id=None, password: str = "secret123") -> User:
    user = User(
        email=email,
        full_name=email.split("@")[0].replace(".", " ").title(),
        password_hash=get_password_hash(password),
        role=role,
        unit_id=unit_id
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def add_assessment(db_session, risk: Risk, assessment_type: str, probability: int, impact: int) -> RiskAssessment:
    """Store an assessment with exposure and level computed by the classifier."""
    score = score_risk(probability, impact)
    assessment = RiskAssessment(
        risk_id=risk.risk_id,
        assessment_type=assessment_type,
        probability_scale=probability,
        impact_scale=impact,
        exposure=score.exposure,
        level=score.level.value
    )
    db_session.add(assessment)
    db_session.commit()
    db_session.refresh(assessment)
    return assessment


@pytest.fixture
def org_units(db_session):
    """Two organizational units."""
    ops = OrgUnit(code="OPS", name="Operations", hierarchy_level="First Line")
    fin = OrgUnit(code="FIN", name="Finance", hierarchy_level="First Line")
    db_session.add_all([ops, fin])
    db_session.commit()
    return {"ops": ops, "fin": fin}


@pytest.fixture
def admin_user(db_session, org_units):
    return make_user(db_session, "admin@example.com", "ADMIN", org_units["ops"].unit_id, "admin123")


@pytest.fixture
def admin_headers(admin_user):
    return make_headers(admin_user)


@pytest.fixture
def risk_owner(db_session, org_units):
    return make_user(db_session, "owner@example.com", "RISK_OWNER", org_units["ops"].unit_id)


@pytest.fixture
def owner_headers(risk_owner):
    return make_headers(risk_owner)


@pytest.fixture
def auditor_user(db_session, org_units):
    return make_user(db_session, "auditor@example.com", "AUDITOR", org_units["fin"].unit_id)


@pytest.fixture
def auditor_headers(auditor_user):
    return make_headers(auditor_user)


@pytest.fixture
def taxonomy(db_session):
    row = RiskTaxonomy(
        category="Operational Risk",
        subcategory="Information Technology Risk",
        description="Risks in systems and technology"
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def objective(db_session, org_units):
    row = StrategicObjective(
        unit_id=org_units["ops"].unit_id,
        objective="Keep core service availability above 99.5%",
        strategy="Redundancy",
        risk_value="Low",
        risk_limit="Downtime below 4 hours per quarter"
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def make_risk(db_session, org_units, taxonomy, objective):
    """Factory for risks owned by the OPS unit unless told otherwise."""
    counter = {"n": 0}

    def _make(name="Core system outage", unit=None, risk_number=None):
        counter["n"] += 1
        risk = Risk(
            risk_number=risk_number or f"RISK-{counter['n']:04d}",
            name=name,
            description=f"{name} description",
            objective_id=objective.objective_id,
            owner_unit_id=(unit or org_units["ops"]).unit_id,
            category_id=taxonomy.taxonomy_id
        )
        db_session.add(risk)
        db_session.commit()
        db_session.refresh(risk)
        return risk

    return _make


@pytest.fixture
def sample_risk(make_risk):
    return make_risk()
