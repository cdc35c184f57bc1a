import requests
from appraisal_api.core.config import settings
from appraisal_api.models.audit_log import AuditLog
from appraisal_api.models.notification import Notification
from appraisal_api.services import push_client
from appraisal_api.services.notification_service import NotificationService


class _FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def test_build_payload_targets():
    by_user = push_client.build_payload("Hi", "There", user_ids=["7"])
    assert by_user["include_external_user_ids"] == ["7"]
    assert "included_segments" not in by_user
    assert by_user["headings"] == {"en": "Hi"}

    by_segment = push_client.build_payload("Hi", "There", segments=["Managers"])
    assert by_segment["included_segments"] == ["Managers"]

    broadcast = push_client.build_payload("Hi", "There")
    assert broadcast["included_segments"] == ["Subscribed Users"]
    assert broadcast["data"] == {}


def test_send_push_disabled_without_credentials(sent):
    assert push_client.send_push("Hi", "There") is False
    assert sent == []


def test_send_push(push_enabled, sent):
    assert push_client.send_push("Appraisal submitted", "Sam submitted", user_ids=["3"]) is True
    assert len(sent) == 1
    assert sent[0]["headers"]["Authorization"] == "Basic secret-key"
    assert sent[0]["json"]["app_id"] == "app-123"
    assert sent[0]["timeout"] == settings.push.timeout_seconds


def test_send_push_failure_is_logged_not_raised(push_enabled, monkeypatch):
    monkeypatch.setattr(push_client.requests, "post", lambda *a, **kw: _FakeResponse(503))
    assert push_client.send_push("Hi", "There") is False

    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(push_client.requests, "post", unreachable)
    assert push_client.send_push("Hi", "There") is False


def test_notify_hr_reaches_hr_and_admins(db_session, hr_user, admin_user, staff_user, push_enabled, sent):
    NotificationService.notify_hr(db_session, "Queue", "Appraisal waiting", related_employee_id=staff_user.id)
    # Nothing leaves before the commit
    assert NotificationService.take_committed_pushes(db_session) == []
    db_session.commit()

    recipients = {n.user_id for n in db_session.query(Notification).all()}
    assert recipients == {hr_user.id, admin_user.id}
    assert push_client.deliver_pushes(NotificationService.take_committed_pushes(db_session)) == 2
    assert sorted(call["json"]["include_external_user_ids"][0] for call in sent) == sorted(
        [str(hr_user.id), str(admin_user.id)]
    )
    assert NotificationService.take_committed_pushes(db_session) == []


def test_rolled_back_notifications_are_never_pushed(committed_db, push_enabled, sent):
    NotificationService.notify_user(committed_db, 999, "Appraisal completed", "Score 80/100")
    committed_db.flush()
    committed_db.rollback()
    committed_db.commit()

    assert committed_db.query(Notification).count() == 0
    assert NotificationService.take_committed_pushes(committed_db) == []
    assert sent == []


def test_notify_user_without_push(db_session, staff_user, push_enabled, sent):
    NotificationService.notify_user(db_session, staff_user.id, "Quiet", "No push", push=False)
    db_session.commit()
    assert sent == []
    assert db_session.query(Notification).filter(Notification.user_id == staff_user.id).count() == 1


def test_notification_inbox(client, db_session, staff_user, other_staff, auth_headers):
    for i in range(3):
        NotificationService.create_notification(db_session, staff_user.id, f"Note {i}", "Body")
    foreign = NotificationService.create_notification(db_session, other_staff.id, "Not yours", "Body")
    db_session.commit()
    headers = auth_headers(staff_user)

    inbox = client.get("/api/notifications/", headers=headers).json()
    assert len(inbox) == 3
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 3}

    first_id = inbox[0]["id"]
    read = client.patch(f"/api/notifications/{first_id}/read", headers=headers)
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert len(client.get("/api/notifications/?unread_only=true", headers=headers).json()) == 2

    assert client.patch(f"/api/notifications/{foreign.id}/read", headers=headers).status_code == 404

    cleared = client.post("/api/notifications/mark-all-read", headers=headers).json()
    assert cleared["updated"] == 2
    assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 0}


def test_broadcast_to_all_uses_subscriber_segment(client, db_session, hr_user, push_enabled, sent, auth_headers):
    response = client.post("/api/notifications/broadcast", headers=auth_headers(hr_user), json={
        "title": "Office closed", "message": "The office is closed on Friday.",
    })
    assert response.status_code == 202
    assert response.json() == {"target": "all", "recipients": None, "push_enabled": True}

    assert len(sent) == 1
    assert sent[0]["json"]["included_segments"] == ["Subscribed Users"]
    assert "include_external_user_ids" not in sent[0]["json"]
    entry = db_session.query(AuditLog).filter(AuditLog.action == "push_broadcast").one()
    assert entry.details["target"] == "all"


def test_broadcast_to_staff_targets_their_profiles(client, hr_user, manager_user, staff_user, other_staff,
                                                  push_enabled, sent, auth_headers):
    response = client.post("/api/notifications/broadcast", headers=auth_headers(hr_user), json={
        "title": "Appraisals open", "message": "Please complete your self-assessment.", "target": "staff",
    })
    assert response.json()["recipients"] == 2
    assert sorted(sent[0]["json"]["include_external_user_ids"]) == sorted([str(staff_user.id), str(other_staff.id)])


def test_broadcast_rules(client, hr_user, staff_user, sent, auth_headers):
    payload = {"title": "Hello", "message": "World"}
    assert client.post("/api/notifications/broadcast", headers=auth_headers(staff_user), json=payload).status_code == 403
    assert client.post("/api/notifications/broadcast", headers=auth_headers(hr_user),
                       json=dict(payload, target="everyone")).status_code == 422

    # Without OneSignal credentials the request is accepted but nothing is sent
    response = client.post("/api/notifications/broadcast", headers=auth_headers(hr_user), json=payload)
    assert response.status_code == 202
    assert response.json()["push_enabled"] is False
    assert sent == []
