import pytest
import os
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ANALYTICS_ENABLED"] = "false"
os.environ["RATE_LIMIT_LOGIN"] = "1000/minute"
os.environ["READ_RETRY_DELAY_SECONDS"] = "0"
os.environ.pop("ONESIGNAL_APP_ID", None)
os.environ.pop("ONESIGNAL_REST_API_KEY", None)

from appraisal_api.core.config import settings
from appraisal_api.database import Base, get_db
from appraisal_api.main import app
from appraisal_api.models.appraisal_cycle import AppraisalCycle, CycleStatus
from appraisal_api.models.department import Department
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.models.question import AppraisalQuestion, AppraisalQuestionSection, ScoringType
from appraisal_api.services import auth as auth_service
from appraisal_api.services import push_client
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def committed_db():
    """
    A session that really commits, for tests that need a failed commit to
    roll back only its own changes. Rows are deleted afterwards.
    """
    session = TestingSessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def make_profile(db_session):
    def _make_profile(email, role=UserRole.STAFF, first_name="Test", last_name="User", **kwargs):
        profile = Profile(
            email=email,
            hashed_password=auth_service.get_password_hash(kwargs.pop("password", DEFAULT_PASSWORD)),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db_session.add(profile)
        db_session.commit()
        return profile
    return _make_profile


@pytest.fixture(scope="function")
def department(db_session):
    dept = Department(name="Sales", description="Field and inside sales")
    db_session.add(dept)
    db_session.commit()
    return dept


@pytest.fixture(scope="function")
def admin_user(make_profile):
    return make_profile("admin@acme.com", UserRole.ADMIN, "Ada", "Admin")


@pytest.fixture(scope="function")
def hr_user(make_profile):
    return make_profile("hr@acme.com", UserRole.HR, "Harriet", "Hughes")


@pytest.fixture(scope="function")
def manager_user(make_profile, department):
    return make_profile("manager@acme.com", UserRole.MANAGER, "Mark", "Manning", department_id=department.id)


@pytest.fixture(scope="function")
def staff_user(make_profile, department, manager_user):
    return make_profile(
        "staff@acme.com", UserRole.STAFF, "Sam", "Staff",
        department_id=department.id, line_manager_id=manager_user.id,
    )


@pytest.fixture(scope="function")
def other_staff(make_profile, department):
    return make_profile("other@acme.com", UserRole.STAFF, "Olive", "Other", department_id=department.id)


@pytest.fixture(scope="function")
def active_cycle(db_session):
    cycle = AppraisalCycle(
        name="Q1 Review", quarter=1, year=2026,
        start_date=date(2026, 1, 1), end_date=date(2026, 3, 31),
        status=CycleStatus.ACTIVE.value,
    )
    db_session.add(cycle)
    db_session.commit()
    return cycle


@pytest.fixture(scope="function")
def question_bank(db_session):
    """
    Three sections: two rating sections and one free-text section.
    Returns a dict of section name -> list of questions.
    """
    financial = AppraisalQuestionSection(name="Financial Performance", sort_order=1)
    behavioural = AppraisalQuestionSection(name="Behavioural Competencies", sort_order=2)
    goals = AppraisalQuestionSection(name="Goals", sort_order=3, scoring_type=ScoringType.TEXT.value)
    db_session.add_all([financial, behavioural, goals])
    db_session.flush()

    questions = {
        "financial": [
            AppraisalQuestion(section_id=financial.id, question_text="Met revenue targets", sort_order=1),
            AppraisalQuestion(section_id=financial.id, question_text="Controlled costs", sort_order=2),
        ],
        "behavioural": [
            AppraisalQuestion(section_id=behavioural.id, question_text="Works well with others", sort_order=3),
        ],
        "goals": [
            AppraisalQuestion(
                section_id=goals.id, question_text="Goals for next quarter",
                question_type=ScoringType.TEXT.value, is_required=False, sort_order=4,
            ),
        ],
    }
    for group in questions.values():
        db_session.add_all(group)
    db_session.commit()
    return questions


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a profile."""
    def _get_token(profile):
        return auth_service.create_access_token(data=auth_service.token_payload_for(profile))
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(profile):
        return {"Authorization": f"Bearer {get_token(profile)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def push_enabled(monkeypatch):
    monkeypatch.setattr(settings.push, "onesignal_app_id", "app-123")
    monkeypatch.setattr(settings.push, "onesignal_rest_api_key", "secret-key")


class _AcceptedResponse:
    status_code = 200

    def raise_for_status(self):
        pass


@pytest.fixture
def sent(monkeypatch):
    """Captures OneSignal requests instead of sending them."""
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return _AcceptedResponse()

    monkeypatch.setattr(push_client.requests, "post", fake_post)
    return calls
