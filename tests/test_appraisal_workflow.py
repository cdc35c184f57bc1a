import pytest
from appraisal_api.models.appraisal import Appraisal, AppraisalResponse, AppraisalStatus
from appraisal_api.models.audit_log import AuditLog
from appraisal_api.models.notification import Notification
from appraisal_api.models.question import AppraisalQuestion, ScoringType


def _rating_questions(question_bank):
    return question_bank["financial"] + question_bank["behavioural"]


def _start(client, staff_user, active_cycle, auth_headers):
    response = client.post(
        "/api/appraisals/start",
        headers=auth_headers(staff_user),
        json={"cycle_id": active_cycle.id},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _submit_self_assessment(client, staff_user, appraisal_id, question_bank, auth_headers, ratings=(4, 4, 4)):
    answers = [
        {"question_id": q.id, "rating": r, "comment": "Solid quarter"}
        for q, r in zip(_rating_questions(question_bank), ratings)
    ]
    answers.append({"question_id": question_bank["goals"][0].id, "comment": "Grow the north region"})
    response = client.put(
        f"/api/appraisals/{appraisal_id}/employee-responses",
        headers=auth_headers(staff_user),
        json={"answers": answers, "emp_comments": "Good quarter overall", "noteworthy": "financial"},
    )
    assert response.status_code == 200, response.text
    response = client.post(f"/api/appraisals/{appraisal_id}/submit", headers=auth_headers(staff_user))
    assert response.status_code == 200, response.text
    return response.json()


def _manager_review(client, manager_user, appraisal_id, question_bank, auth_headers, ratings=(4, 5, 3)):
    answers = [{"question_id": q.id, "rating": r} for q, r in zip(_rating_questions(question_bank), ratings)]
    response = client.put(
        f"/api/appraisals/{appraisal_id}/manager-responses",
        headers=auth_headers(manager_user),
        json={"answers": answers, "mgr_comments": "Agree with the self assessment"},
    )
    assert response.status_code == 200, response.text
    response = client.post(f"/api/appraisals/{appraisal_id}/manager-submit", headers=auth_headers(manager_user))
    assert response.status_code == 200, response.text
    return response.json()


def _committee_scores(detail, question_bank, ratings=(4, 5, 3)):
    by_question = {r["question_id"]: r["id"] for r in detail["responses"]}
    return [
        {"response_id": by_question[q.id], "rating": r}
        for q, r in zip(_rating_questions(question_bank), ratings)
    ]


@pytest.fixture
def committee_ready(client, staff_user, manager_user, active_cycle, question_bank, auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    _submit_self_assessment(client, staff_user, started["id"], question_bank, auth_headers)
    return _manager_review(client, manager_user, started["id"], question_bank, auth_headers)


def test_start_creates_draft_with_responses(client, staff_user, active_cycle, question_bank, auth_headers):
    data = _start(client, staff_user, active_cycle, auth_headers)
    assert data["status"] == "draft"
    assert len(data["responses"]) == 4
    assert data["available_actions"] == ["employee_submit"]


def test_start_is_idempotent(client, staff_user, active_cycle, question_bank, auth_headers, db_session):
    first = _start(client, staff_user, active_cycle, auth_headers)
    second = _start(client, staff_user, active_cycle, auth_headers)
    assert first["id"] == second["id"]
    assert db_session.query(Appraisal).filter(Appraisal.employee_id == staff_user.id).count() == 1


def test_start_requires_active_cycle(client, staff_user, active_cycle, question_bank, auth_headers, db_session):
    active_cycle.status = "draft"
    db_session.commit()
    response = client.post("/api/appraisals/start", headers=auth_headers(staff_user), json={"cycle_id": active_cycle.id})
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "VALIDATION_FAILED"


def test_start_skips_questions_for_other_roles(client, staff_user, active_cycle, question_bank, auth_headers, db_session):
    db_session.add(AppraisalQuestion(question_text="Leads the team", applies_to_roles=["manager"]))
    db_session.commit()
    data = _start(client, staff_user, active_cycle, auth_headers)
    assert len(data["responses"]) == 4


def test_full_workflow_to_completion(client, staff_user, manager_user, hr_user, active_cycle, question_bank,
                                     auth_headers, db_session):
    started = _start(client, staff_user, active_cycle, auth_headers)
    appraisal_id = started["id"]

    submitted = _submit_self_assessment(client, staff_user, appraisal_id, question_bank, auth_headers)
    assert submitted["status"] == "manager_review"
    assert db_session.query(Notification).filter(Notification.user_id == manager_user.id).count() == 1

    reviewed = _manager_review(client, manager_user, appraisal_id, question_bank, auth_headers)
    assert reviewed["status"] == "committee_review"
    assert db_session.query(Notification).filter(
        Notification.user_id == hr_user.id, Notification.related_appraisal_id == appraisal_id
    ).count() == 1

    response = client.post(
        f"/api/committee/appraisals/{appraisal_id}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": _committee_scores(reviewed, question_bank), "comments": "Consistent performer"},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    # (80 + 100 + 60) / 3
    assert data["overall_score"] == 80
    assert data["performance_band"] == "Very Good"
    assert data["status"] == "completed"
    assert data["completed_at"] is not None

    actions = [log.action for log in db_session.query(AuditLog).filter(
        AuditLog.entity_type == "appraisal", AuditLog.entity_id == appraisal_id
    ).order_by(AuditLog.id)]
    assert actions == ["start_appraisal", "employee_submit", "manager_submit", "committee_finalize"]


def test_committee_review_detail_groups_sections(client, committee_ready, hr_user, auth_headers):
    response = client.get(f"/api/committee/appraisals/{committee_ready['id']}", headers=auth_headers(hr_user))
    assert response.status_code == 200
    data = response.json()
    assert [s["section_name"] for s in data["sections"]] == [
        "Financial Performance", "Behavioural Competencies", "Goals",
    ]
    assert [s["is_rating_section"] for s in data["sections"]] == [True, True, False]
    assert data["employee_name"] == "Sam Staff"
    assert data["history"] == []
    assert data["analytics"] is None


def test_committee_finalize_requires_every_rating(client, committee_ready, hr_user, question_bank, auth_headers,
                                                  db_session):
    scores = _committee_scores(committee_ready, question_bank)[:2]
    response = client.post(
        f"/api/committee/appraisals/{committee_ready['id']}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": scores},
    )
    assert response.status_code == 400
    missing = response.json()["errors"][0]["details"]["missing_question_ids"]
    assert missing == [question_bank["behavioural"][0].id]
    assert db_session.get(Appraisal, committee_ready["id"]).status == "committee_review"


def test_committee_finalize_without_any_rating_is_rejected(client, hr_user, staff_user, active_cycle, auth_headers,
                                                           db_session):
    text_only = AppraisalQuestion(question_text="Anything else?", question_type=ScoringType.TEXT.value)
    db_session.add(text_only)
    db_session.flush()
    appraisal = Appraisal(
        employee_id=staff_user.id, cycle_id=active_cycle.id,
        status=AppraisalStatus.COMMITTEE_REVIEW.value,
        responses=[AppraisalResponse(question_id=text_only.id, emp_comment="Nothing")],
    )
    db_session.add(appraisal)
    db_session.commit()

    response = client.post(
        f"/api/committee/appraisals/{appraisal.id}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": []},
    )
    assert response.status_code == 400
    assert "No committee ratings" in response.json()["errors"][0]["msg"]
    assert db_session.get(Appraisal, appraisal.id).overall_score is None


def test_committee_rejects_foreign_response(client, committee_ready, hr_user, auth_headers):
    response = client.post(
        f"/api/committee/appraisals/{committee_ready['id']}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": [{"response_id": 999999, "rating": 4}]},
    )
    assert response.status_code == 400


def test_forward_then_hr_finalize(client, committee_ready, hr_user, question_bank, auth_headers):
    appraisal_id = committee_ready["id"]
    response = client.post(
        f"/api/committee/appraisals/{appraisal_id}/forward",
        headers=auth_headers(hr_user),
        json={"scores": _committee_scores(committee_ready, question_bank, (5, 5, 5))},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "hr_review"
    assert response.json()["overall_score"] is None

    queue = client.get("/api/appraisals/hr-queue", headers=auth_headers(hr_user)).json()
    assert [a["id"] for a in queue] == [appraisal_id]

    response = client.post(f"/api/hr/appraisals/{appraisal_id}/finalize", headers=auth_headers(hr_user))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["overall_score"] == 100
    assert response.json()["performance_band"] == "Exceptional"


def test_illegal_transitions_return_conflict(client, staff_user, hr_user, active_cycle, question_bank, auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    appraisal_id = started["id"]

    response = client.post(
        f"/api/committee/appraisals/{appraisal_id}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": []},
    )
    assert response.status_code == 409
    error = response.json()["errors"][0]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["allowed_from"] == ["committee_review"]

    _submit_self_assessment(client, staff_user, appraisal_id, question_bank, auth_headers)
    response = client.post(f"/api/appraisals/{appraisal_id}/submit", headers=auth_headers(staff_user))
    assert response.status_code == 409

    response = client.post(f"/api/hr/appraisals/{appraisal_id}/finalize", headers=auth_headers(hr_user))
    assert response.status_code == 409


def test_submit_requires_required_ratings(client, staff_user, active_cycle, question_bank, auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    first = question_bank["financial"][0]
    client.put(
        f"/api/appraisals/{started['id']}/employee-responses",
        headers=auth_headers(staff_user),
        json={"answers": [{"question_id": first.id, "rating": 4}]},
    )
    response = client.post(f"/api/appraisals/{started['id']}/submit", headers=auth_headers(staff_user))
    assert response.status_code == 400
    assert len(response.json()["errors"][0]["details"]["missing_question_ids"]) == 2


def test_rating_out_of_range_is_rejected(client, staff_user, active_cycle, question_bank, auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    response = client.put(
        f"/api/appraisals/{started['id']}/employee-responses",
        headers=auth_headers(staff_user),
        json={"answers": [{"question_id": question_bank["financial"][0].id, "rating": 6}]},
    )
    assert response.status_code == 422


def test_only_line_manager_can_review(client, staff_user, other_staff, make_profile, active_cycle, question_bank,
                                      auth_headers):
    from appraisal_api.models.profile import UserRole
    outsider = make_profile("outsider@acme.com", UserRole.MANAGER)
    started = _start(client, staff_user, active_cycle, auth_headers)
    _submit_self_assessment(client, staff_user, started["id"], question_bank, auth_headers)

    assert client.get(f"/api/appraisals/{started['id']}", headers=auth_headers(other_staff)).status_code == 403
    response = client.post(f"/api/appraisals/{started['id']}/manager-submit", headers=auth_headers(outsider))
    assert response.status_code == 403


def test_staff_lock_blocks_edits_and_submit(client, staff_user, hr_user, active_cycle, question_bank, auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    response = client.put("/api/hr/settings/locks", headers=auth_headers(hr_user), json={"submission_locked": True})
    assert response.status_code == 200
    assert response.json()["submission_locked"] is True

    response = client.put(
        f"/api/appraisals/{started['id']}/employee-responses",
        headers=auth_headers(staff_user),
        json={"answers": []},
    )
    assert response.status_code == 423
    response = client.post(f"/api/appraisals/{started['id']}/submit", headers=auth_headers(staff_user))
    assert response.status_code == 423


def test_manager_lock_blocks_manager_submit(client, staff_user, manager_user, hr_user, active_cycle, question_bank,
                                            auth_headers):
    started = _start(client, staff_user, active_cycle, auth_headers)
    _submit_self_assessment(client, staff_user, started["id"], question_bank, auth_headers)
    client.put("/api/hr/settings/locks", headers=auth_headers(hr_user), json={"manager_submission_locked": True})

    response = client.post(f"/api/appraisals/{started['id']}/manager-submit", headers=auth_headers(manager_user))
    assert response.status_code == 423


def test_only_hr_can_change_locks(client, staff_user, auth_headers):
    response = client.put("/api/hr/settings/locks", headers=auth_headers(staff_user), json={"submission_locked": True})
    assert response.status_code == 403


def test_reopen_and_delete_by_admin(client, committee_ready, hr_user, admin_user, question_bank, auth_headers,
                                    db_session):
    appraisal_id = committee_ready["id"]
    client.post(
        f"/api/committee/appraisals/{appraisal_id}/finalize",
        headers=auth_headers(hr_user),
        json={"scores": _committee_scores(committee_ready, question_bank)},
    )

    assert client.post(f"/api/appraisals/{appraisal_id}/reopen", headers=auth_headers(hr_user)).status_code == 403
    response = client.post(f"/api/appraisals/{appraisal_id}/reopen", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["status"] == "draft"
    assert response.json()["overall_score"] is None

    assert client.delete(f"/api/appraisals/{appraisal_id}", headers=auth_headers(admin_user)).status_code == 204
    assert db_session.get(Appraisal, appraisal_id) is None


def test_listings(client, committee_ready, staff_user, manager_user, hr_user, auth_headers):
    mine = client.get("/api/appraisals/my", headers=auth_headers(staff_user)).json()
    assert [a["id"] for a in mine] == [committee_ready["id"]]

    team = client.get("/api/appraisals/team", headers=auth_headers(manager_user)).json()
    assert [a["id"] for a in team] == [committee_ready["id"]]

    queue = client.get("/api/appraisals/committee-queue", headers=auth_headers(hr_user)).json()
    assert [a["id"] for a in queue] == [committee_ready["id"]]

    assert client.get("/api/appraisals/committee-queue", headers=auth_headers(staff_user)).status_code == 403
