"""
API route tests: authorization rules, error mapping and database-backed flows.

Authentication is faked by patching token verification and the user lookup;
everything else runs against the per-test SQLite database.
"""

import pytest
from fastapi.testclient import TestClient

from bandroom.api.main import app
from bandroom.services import auth_service, recommendation_service, s3_service, user_service
from bandroom.utils.errors import (
    QuotaExceededError,
    ServiceNotConfiguredError,
    UnparseableResponseError,
)


def make_client_with_auth(monkeypatch, user_id="u1", role="user", status="approved"):
    """Create a test client whose bearer token resolves to the given user."""

    def fake_verify_token(token):
        return {"user_id": user_id, "email": f"{user_id}@example.com"}

    async def fake_get_user_by_id(session, uid):
        return {
            "id": user_id,
            "name": "Test User",
            "email": f"{user_id}@example.com",
            "role": role,
            "status": status,
            "capabilities": [],
        }

    monkeypatch.setattr(auth_service, "verify_token", fake_verify_token, raising=True)
    monkeypatch.setattr(user_service, "get_user_by_id", fake_get_user_by_id, raising=True)

    return TestClient(app), {"Authorization": "Bearer dummy"}


def test_health(app_with_db):
    response = TestClient(app_with_db).get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestAuthorization:
    def test_missing_token(self, app_with_db):
        response = TestClient(app_with_db).get("/api/profile")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, app_with_db, monkeypatch):
        monkeypatch.setattr(auth_service, "verify_token", lambda token: None)
        response = TestClient(app_with_db).get("/api/profile", headers={"Authorization": "Bearer bad"})
        assert response.status_code == 401

    def test_non_admin_cannot_approve(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.post(
            "/api/admin/approvals", json={"userIds": ["u2"], "action": "approve"}, headers=headers
        )
        assert response.status_code == 403

    def test_pending_user_cannot_create_session(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, status="pending")
        response = client.post("/api/sessions", json={"date": "2026-03-14"}, headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Account pending approval"

    def test_anonymous_unread_count_is_zero(self, app_with_db):
        response = TestClient(app_with_db).get("/api/chat/unread")
        assert response.status_code == 200
        assert response.json() == {"count": 0}


class TestRecommendErrors:
    @pytest.mark.parametrize(
        "error, expected_status",
        [
            (QuotaExceededError("out of credits"), 429),
            (ServiceNotConfiguredError("no key"), 503),
            (UnparseableResponseError("Failed to parse AI response"), 500),
            (ValueError("No capabilities provided"), 400),
        ],
    )
    def test_error_mapping(self, app_with_db, monkeypatch, error, expected_status):
        client, headers = make_client_with_auth(monkeypatch)

        async def fake_recommend(capabilities):
            raise error

        monkeypatch.setattr(recommendation_service, "recommend_songs", fake_recommend)
        response = client.post("/api/songs/recommend", json={"capabilities": ["bass"]}, headers=headers)
        assert response.status_code == expected_status

    def test_success(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        suggestion = {
            "title": "Come Together",
            "artist": "The Beatles",
            "key": "Dm",
            "tempo": "82 BPM",
            "youtube_url": "https://www.youtube.com/results?search_query=come+together",
        }

        async def fake_recommend(capabilities):
            return [suggestion]

        monkeypatch.setattr(recommendation_service, "recommend_songs", fake_recommend)
        response = client.post("/api/songs/recommend", json={"capabilities": ["bass"]}, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"recommendations": [suggestion]}


@pytest.mark.asyncio
async def test_session_create_list_and_delete(app_with_db, db_session, make_user, monkeypatch):
    await make_user(db_session, "owner")
    await make_user(db_session, "other")

    client, headers = make_client_with_auth(monkeypatch, user_id="owner")
    response = client.post(
        "/api/sessions",
        json={"date": "2026-03-14", "songs": [{"song_name": "Opener"}]},
        headers=headers,
    )
    assert response.status_code == 200
    session_id = response.json()["id"]

    listed = TestClient(app_with_db).get("/api/sessions")
    assert [s["id"] for s in listed.json()] == [session_id]

    other_client, other_headers = make_client_with_auth(monkeypatch, user_id="other")
    assert other_client.delete(f"/api/sessions/{session_id}", headers=other_headers).status_code == 403

    client, headers = make_client_with_auth(monkeypatch, user_id="owner")
    assert client.delete(f"/api/sessions/{session_id}", headers=headers).status_code == 200
    assert client.get(f"/api/sessions/{session_id}", headers=headers).status_code == 404


@pytest.mark.asyncio
async def test_commitments_for_another_member(app_with_db, db_session, make_user, monkeypatch):
    await make_user(db_session, "u1")
    await make_user(db_session, "u2")

    client, headers = make_client_with_auth(monkeypatch, user_id="u1")
    session_id = client.post("/api/sessions", json={"date": "2026-03-14"}, headers=headers).json()["id"]

    response = client.post(
        "/api/commitments", json={"session_id": session_id, "user_id": "u2"}, headers=headers
    )
    assert response.status_code == 403

    response = client.post(
        "/api/commitments", json={"session_id": session_id, "user_id": "u1"}, headers=headers
    )
    assert response.status_code == 200

    missing = client.post("/api/commitments", json={"session_id": "nope", "user_id": "u1"}, headers=headers)
    assert missing.status_code == 404

    admin_client, admin_headers = make_client_with_auth(monkeypatch, user_id="u2", role="admin")
    response = admin_client.delete(
        f"/api/commitments?session_id={session_id}&user_id=u1", headers=admin_headers
    )
    assert response.status_code == 200

    # Withdrawing a commitment that no longer exists still succeeds
    member_client, member_headers = make_client_with_auth(monkeypatch, user_id="u1")
    again = member_client.delete(
        f"/api/commitments?session_id={session_id}&user_id=u1", headers=member_headers
    )
    assert again.status_code == 200
    assert again.json() == {"success": True}


@pytest.mark.asyncio
async def test_capability_conflicts(app_with_db, db_session, make_user, monkeypatch):
    await make_user(db_session, "boss", role="admin")
    client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")

    first = client.post("/api/admin/capabilities", json={"name": "Guitar"}, headers=headers)
    assert first.status_code == 200

    duplicate = client.post("/api/admin/capabilities", json={"name": "guitar"}, headers=headers)
    assert duplicate.status_code == 409

    listed = client.get("/api/capabilities", headers=headers)
    assert [c["name"] for c in listed.json()] == ["guitar"]


def test_restore_requires_file(app_with_db, monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")
    response = client.post("/api/admin/restore", headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_restore_rejects_garbage(app_with_db, monkeypatch):
    client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")
    response = client.post(
        "/api/admin/restore",
        files={"file": ("backup.xlsx", b"not a workbook", "application/octet-stream")},
        headers=headers,
    )
    assert response.status_code == 400


def test_reminders_require_sms_configuration(app_with_db, monkeypatch):
    monkeypatch.delenv("TWILIO_ACCOUNT_SID", raising=False)
    client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")
    response = client.post("/api/notifications/remind", json={"sessionId": "s1"}, headers=headers)
    assert response.status_code == 503


class TestIconUploadSigning:
    def test_requires_admin(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch)
        response = client.post(
            "/api/admin/capabilities/icon/sign",
            json={"fileName": "bass.png", "fileType": "image/png"},
            headers=headers,
        )
        assert response.status_code == 403

    def test_requires_file_details(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")
        response = client.post(
            "/api/admin/capabilities/icon/sign", json={"fileName": "bass.png"}, headers=headers
        )
        assert response.status_code == 400

    def test_storage_not_configured(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")

        def fake_sign(key, content_type):
            raise ServiceNotConfiguredError("no credentials")

        monkeypatch.setattr(s3_service, "create_signed_upload_url", fake_sign)
        response = client.post(
            "/api/admin/capabilities/icon/sign",
            json={"fileName": "bass.png", "fileType": "image/png"},
            headers=headers,
        )
        assert response.status_code == 503

    def test_signs_under_icons_prefix(self, app_with_db, monkeypatch):
        client, headers = make_client_with_auth(monkeypatch, user_id="boss", role="admin")

        def fake_sign(key, content_type):
            return {"signed_url": "https://signed.example.com/put", "path": key, "public_url": f"https://cdn/{key}"}

        monkeypatch.setattr(s3_service, "create_signed_upload_url", fake_sign)
        response = client.post(
            "/api/admin/capabilities/icon/sign",
            json={"fileName": "Electric Guitar.svg", "fileType": "image/svg+xml"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["path"] == "icons/Electric-Guitar.svg"
