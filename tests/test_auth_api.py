import pytest
from fastapi import status
from appraisal_api.models.audit_log import AuditLog
from appraisal_api.models.profile import UserRole

DEFAULT_PASSWORD = "Password123!"

def _login(client, email, password=DEFAULT_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})

def test_login_success(client, admin_user):
    response = _login(client, admin_user.email)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "admin"

def test_login_invalid_credentials(client, db_session):
    """Test login failure with wrong password."""
    response = _login(client, "nonexistent@acme.com", "wrong")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False
    assert db_session.query(AuditLog).filter(AuditLog.action == "failed_login").count() == 1

def test_login_inactive_user(client, make_profile):
    make_profile("gone@acme.com", UserRole.STAFF, is_active=False)
    response = _login(client, "gone@acme.com")
    assert response.status_code == 400

def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401

def test_me_returns_profile(client, staff_user):
    token = _login(client, staff_user.email).json()["access_token"]
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["email"] == staff_user.email
    assert response.json()["full_name"] == "Sam Staff"

def test_refresh_rotates_session(client, staff_user):
    refresh = _login(client, staff_user.email).json()["refresh_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert response.status_code == 200
    assert response.json()["refresh_token"] != refresh

    # The old refresh token was revoked by the rotation
    assert client.post("/api/auth/refresh", json={"refresh_token": refresh}).status_code == 401

def test_access_token_cannot_refresh(client, staff_user):
    access = _login(client, staff_user.email).json()["access_token"]
    assert client.post("/api/auth/refresh", json={"refresh_token": access}).status_code == 401

def test_logout_revokes_refresh_token(client, staff_user):
    refresh = _login(client, staff_user.email).json()["refresh_token"]
    assert client.post("/api/auth/logout", json={"refresh_token": refresh}).status_code == 200
    assert client.post("/api/auth/refresh", json={"refresh_token": refresh}).status_code == 401

def test_change_password(client, staff_user, auth_headers):
    response = client.post(
        "/api/auth/change-password",
        headers=auth_headers(staff_user),
        json={"current_password": DEFAULT_PASSWORD, "new_password": "BrandNewPass456"},
    )
    assert response.status_code == 200
    assert _login(client, staff_user.email).status_code == 401
    assert _login(client, staff_user.email, "BrandNewPass456").status_code == 200

def test_change_password_wrong_current(client, staff_user, auth_headers):
    response = client.post(
        "/api/auth/change-password",
        headers=auth_headers(staff_user),
        json={"current_password": "nope-nope", "new_password": "BrandNewPass456"},
    )
    assert response.status_code == 400

def test_role_guard(client, staff_user, auth_headers):
    response = client.get("/api/profiles/", headers=auth_headers(staff_user))
    assert response.status_code == 403


def test_bad_refresh_token_error_code(client):
    response = client.post("/api/auth/refresh", json={"refresh_token": "not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"
