import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError
from appraisal_api.core.config import settings
from appraisal_api.models.appraisal import Appraisal, AppraisalResponse, AppraisalStatus
from appraisal_api.models.performance_analytics import PerformanceAnalytics
from appraisal_api.services import analytics_service
from appraisal_api.services.analytics_service import AnalyticsService, run_analytics_job


class _SharedSession:
    """Hands the test session to code that closes its session when done."""

    def __init__(self, session):
        self._session = session

    def __getattr__(self, name):
        return getattr(self._session, name)

    def close(self):
        pass


class _FlakySession(_SharedSession):
    """Raises `error` from the first `failures` queries, then behaves normally."""

    def __init__(self, session, error, failures=1):
        super().__init__(session)
        self.error = error
        self.failures = failures
        self.queries = 0

    def query(self, *entities):
        self.queries += 1
        if self.queries <= self.failures:
            raise self.error
        return self._session.query(*entities)


def _db_error(cls):
    return cls("SELECT performance_analytics", {}, Exception("database is locked"))


@pytest.fixture
def completed_appraisal(db_session, staff_user, active_cycle, question_bank):
    financial = question_bank["financial"]
    behavioural = question_bank["behavioural"]
    goals = question_bank["goals"]
    appraisal = Appraisal(
        employee_id=staff_user.id,
        cycle_id=active_cycle.id,
        status=AppraisalStatus.COMPLETED.value,
        noteworthy="financial",
        overall_score=80,
        performance_band="Very Good",
        responses=[
            AppraisalResponse(question_id=financial[0].id, emp_rating=3, mgr_rating=4, committee_rating=4),
            AppraisalResponse(question_id=financial[1].id, emp_rating=5, committee_rating=5),
            AppraisalResponse(question_id=behavioural[0].id, emp_rating=2, mgr_rating=3, committee_rating=3),
            AppraisalResponse(question_id=goals[0].id, emp_comment="Expand"),
        ],
    )
    db_session.add(appraisal)
    db_session.commit()
    return appraisal


def test_calculate_performance_score(db_session, completed_appraisal):
    service = AnalyticsService(db_session)
    result = service.calculate_performance_score(service.load_appraisal(completed_appraisal.id))

    sections = {s["section_name"]: s for s in result["sections"]}
    # manager rating wins, employee rating is the fallback: (4 + 5) / 10 = 90%, capped at 50
    assert sections["Financial Performance"]["score"] == 50.0
    assert sections["Financial Performance"]["is_noteworthy"] is True
    # 3 / 5 = 60%, capped at 15
    assert sections["Behavioural Competencies"]["score"] == 15.0
    assert sections["Goals"]["score"] == 0.0
    assert [s["section_name"] for s in result["sections"]] == [
        "Financial Performance", "Behavioural Competencies", "Goals",
    ]

    assert result["base_score"] == 21.67
    # 10% of the financial section
    assert result["noteworthy_bonus"] == 5.0
    assert result["overall_score"] == 26.67
    assert result["performance_band"] == "Poor"


def test_calculate_and_save_upserts(db_session, completed_appraisal):
    service = AnalyticsService(db_session)
    first = service.calculate_and_save(completed_appraisal.id)
    second = service.calculate_and_save(completed_appraisal.id)

    assert first.id == second.id
    rows = db_session.query(PerformanceAnalytics).filter(
        PerformanceAnalytics.employee_id == completed_appraisal.employee_id,
        PerformanceAnalytics.cycle_id == completed_appraisal.cycle_id,
    ).all()
    assert len(rows) == 1
    assert rows[0].overall_score == 26.67
    assert rows[0].section_scores["noteworthy_bonus"] == 5.0


def test_calculate_and_save_missing_appraisal(db_session):
    assert AnalyticsService(db_session).calculate_and_save(424242) is None


def test_background_job_swallows_errors(db_session, monkeypatch):
    def boom(self, appraisal_id):
        raise RuntimeError("analytics store unavailable")

    monkeypatch.setattr(AnalyticsService, "calculate_and_save", boom)
    # Must not raise
    run_analytics_job(1, session_factory=lambda: _SharedSession(db_session))


def _finalize(client, appraisal, hr_user, auth_headers):
    scores = [
        {"response_id": r.id, "rating": r.committee_rating}
        for r in appraisal.responses if r.committee_rating is not None
    ]
    return client.post(
        f"/api/committee/appraisals/{appraisal.id}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": scores},
    )


@pytest.fixture
def in_committee(db_session, completed_appraisal):
    completed_appraisal.status = AppraisalStatus.COMMITTEE_REVIEW.value
    completed_appraisal.overall_score = None
    completed_appraisal.performance_band = None
    db_session.commit()
    return completed_appraisal


def test_finalize_schedules_analytics(client, db_session, in_committee, hr_user, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "enable_analytics", True)
    monkeypatch.setattr(analytics_service, "SessionLocal", lambda: _SharedSession(db_session))

    response = _finalize(client, in_committee, hr_user, auth_headers)
    assert response.status_code == 200
    assert response.json()["overall_score"] == 80

    record = db_session.query(PerformanceAnalytics).filter(
        PerformanceAnalytics.employee_id == in_committee.employee_id
    ).one()
    assert record.overall_score == 26.67

    detail = client.get(f"/api/committee/appraisals/{in_committee.id}", headers=auth_headers(hr_user)).json()
    assert detail["analytics"]["overall_score"] == 26.67


def test_finalize_succeeds_when_analytics_fails(client, db_session, in_committee, hr_user, auth_headers, monkeypatch):
    def boom(self, appraisal_id):
        raise RuntimeError("analytics store unavailable")

    monkeypatch.setattr(settings, "enable_analytics", True)
    monkeypatch.setattr(analytics_service, "SessionLocal", lambda: _SharedSession(db_session))
    monkeypatch.setattr(AnalyticsService, "calculate_and_save", boom)

    response = _finalize(client, in_committee, hr_user, auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert db_session.query(PerformanceAnalytics).count() == 0


def test_dashboard(client, db_session, completed_appraisal, hr_user, auth_headers):
    response = client.get("/api/hr/dashboard", headers=auth_headers(hr_user))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    stats = body["data"]
    assert stats["total"] == 1
    assert stats["by_status"]["completed"] == 1
    assert stats["by_status"]["draft"] == 0
    assert stats["average_score"] == 80.0
    assert stats["band_distribution"] == {"Very Good": 1}


def test_analytics_lookup_permissions(client, db_session, completed_appraisal, staff_user, other_staff, hr_user,
                                      auth_headers):
    AnalyticsService(db_session).calculate_and_save(completed_appraisal.id)
    url = f"/api/hr/analytics/{staff_user.id}/{completed_appraisal.cycle_id}"

    assert client.get(url, headers=auth_headers(staff_user)).status_code == 200
    assert client.get(url, headers=auth_headers(other_staff)).status_code == 403
    assert client.get(url, headers=auth_headers(hr_user)).json()["performance_band"] == "Poor"


def test_reads_retry_once_on_operational_error(db_session, completed_appraisal):
    AnalyticsService(db_session).calculate_and_save(completed_appraisal.id)
    flaky = _FlakySession(db_session, _db_error(OperationalError))

    record = AnalyticsService(flaky).get_for(completed_appraisal.employee_id, completed_appraisal.cycle_id)
    assert record is not None
    assert record.overall_score == 26.67
    assert flaky.queries == 2


def test_reads_give_up_after_two_attempts(db_session, completed_appraisal):
    flaky = _FlakySession(db_session, _db_error(OperationalError), failures=5)
    with pytest.raises(OperationalError):
        AnalyticsService(flaky).get_for(completed_appraisal.employee_id, completed_appraisal.cycle_id)
    assert flaky.queries == settings.read_retry_attempts == 2


def test_other_errors_are_not_retried(db_session, completed_appraisal):
    flaky = _FlakySession(db_session, _db_error(ProgrammingError))
    with pytest.raises(ProgrammingError):
        AnalyticsService(flaky).get_for(completed_appraisal.employee_id, completed_appraisal.cycle_id)
    assert flaky.queries == 1
