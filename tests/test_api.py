"""End-to-end tests through the HTTP layer."""
import json
import logging
from unittest.mock import patch

from fastapi.testclient import TestClient

from taskboard.main import app
from taskboard.models.audit import AuditEntry
from taskboard.models.tenant import Tenant
from taskboard.utils.logging import JSONFormatter, RequestContextFilter, request_id_var

from conftest import PASSWORD, auth_headers, make_user


def _register(client, subdomain="acme", email="admin@acme.com"):
    return client.post("/api/auth/register-tenant", json={
        "tenant_name": "Acme Corp",
        "subdomain": subdomain,
        "admin_email": email,
        "admin_password": PASSWORD,
        "admin_full_name": "Ada Admin",
    })


def _login(client, email, subdomain=None):
    body = {"email": email, "password": PASSWORD}
    if subdomain:
        body["tenant_subdomain"] = subdomain
    response = client.post("/api/auth/login", json=body)
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"


class TestRequestContext:
    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert float(response.headers["X-Process-Time"]) >= 0

    def test_request_id_generated(self, client):
        first = client.get("/").headers["X-Request-ID"]
        second = client.get("/").headers["X-Request-ID"]
        assert len(first) == 32
        assert first != second

    def test_log_records_carry_request_id(self):
        record = logging.LogRecord("taskboard", logging.INFO, __file__, 1, "hello", None, None)
        token = request_id_var.set("req-abc")
        try:
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-abc"
        assert json.loads(JSONFormatter().format(record))["request_id"] == "req-abc"


class TestAuthFlow:
    def test_register_login_me_logout(self, client, db):
        response = _register(client)
        assert response.status_code == 201
        data = response.json()
        assert data["subdomain"] == "acme"
        assert data["admin_user"]["role"] == "tenant_admin"
        assert "password_hash" not in data["admin_user"]

        headers = _login(client, "admin@acme.com", "acme")
        me = client.get("/api/auth/me", headers=headers).json()
        assert me["email"] == "admin@acme.com"
        assert me["tenant"]["subdomain"] == "acme"
        assert me["tenant"]["max_users"] == 5

        assert client.post("/api/auth/logout", headers=headers).json()["success"] is True
        actions = [e.action for e in db.query(AuditEntry).order_by(AuditEntry.id)]
        assert actions == ["REGISTER_TENANT", "LOGIN", "LOGOUT"]

    def test_duplicate_subdomain_is_409(self, client):
        _register(client)
        response = _register(client, email="other@acme.com")
        assert response.status_code == 409
        assert response.json()["type"] == "conflict"

    def test_invalid_body_is_400(self, client):
        response = client.post("/api/auth/register-tenant", json={"tenant_name": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "validation_error"
        assert body["errors"]

    def test_bad_login_is_401(self, client, acme, acme_user):
        response = client.post("/api/auth/login", json={
            "email": acme_user.email, "password": "wrong-password", "tenant_subdomain": "acme"
        })
        assert response.status_code == 401
        assert response.json() == {"success": False, "detail": "Invalid credentials", "type": "authentication_error"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_missing_and_bad_tokens(self, client):
        assert client.get("/api/auth/me").json()["detail"] == "Access token required"
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


class TestTenantIsolation:
    def test_cross_tenant_reads_are_refused(self, client, acme_admin, globex_admin, globex):
        headers = auth_headers(acme_admin)

        assert client.get(f"/api/tenants/{globex.id}", headers=headers).status_code == 403
        assert client.get(f"/api/tenants/{globex.id}/users", headers=headers).status_code == 403
        response = client.put(
            f"/api/tenants/{globex.id}/users/{globex_admin.id}", headers=headers, json={"full_name": "Pwned"}
        )
        assert response.status_code in (403, 404)

    def test_cross_tenant_project_looks_missing(self, client, acme_user, globex_admin):
        created = client.post("/api/projects", headers=auth_headers(globex_admin), json={"name": "Secret"})
        assert created.status_code == 201
        project_id = created.json()["id"]

        headers = auth_headers(acme_user)
        assert client.get("/api/projects", headers=headers).json()["total"] == 0
        assert client.get(f"/api/projects/{project_id}/tasks", headers=headers).status_code == 404
        assert client.delete(f"/api/projects/{project_id}", headers=headers).status_code == 404
        response = client.post(f"/api/projects/{project_id}/tasks", headers=headers, json={"title": "Sneak in"})
        assert response.status_code == 404
        assert response.json()["type"] == "not_found"


class TestRoleBoundaries:
    def test_tenant_admin_cannot_list_tenants(self, client, acme_admin, super_admin):
        response = client.get("/api/tenants", headers=auth_headers(acme_admin))
        assert response.status_code == 403
        assert response.json()["type"] == "authorization_denied"
        assert client.get("/api/tenants", headers=auth_headers(super_admin)).json()["total"] == 1

    def test_tenant_admin_cannot_raise_own_quota(self, client, db, acme, acme_admin):
        response = client.put(f"/api/tenants/{acme.id}", headers=auth_headers(acme_admin), json={"max_users": 999})
        assert response.status_code == 403
        db.expire_all()
        assert db.get(Tenant, acme.id).max_users == 5

    def test_user_cannot_add_users(self, client, acme, acme_user):
        response = client.post(f"/api/tenants/{acme.id}/users", headers=auth_headers(acme_user), json={
            "email": "x@acme.com", "password": PASSWORD, "full_name": "X"
        })
        assert response.status_code == 403

    def test_self_delete(self, client, acme, acme_admin):
        response = client.delete(f"/api/tenants/{acme.id}/users/{acme_admin.id}", headers=auth_headers(acme_admin))
        assert response.status_code == 403
        assert response.json()["type"] == "self_delete_denied"


class TestQuotaOverHttp:
    def test_sixth_user(self, client, acme, acme_admin):
        headers = auth_headers(acme_admin)
        for i in range(4):
            response = client.post(f"/api/tenants/{acme.id}/users", headers=headers, json={
                "email": f"user{i}@acme.com", "password": PASSWORD, "full_name": f"User {i}"
            })
            assert response.status_code == 201, response.text

        response = client.post(f"/api/tenants/{acme.id}/users", headers=headers, json={
            "email": "sixth@acme.com", "password": PASSWORD, "full_name": "Sixth"
        })
        assert response.status_code == 403
        assert response.json()["type"] == "quota_exceeded"

        listed = client.get(f"/api/tenants/{acme.id}/users", headers=headers).json()
        assert listed["total"] == 5

    def test_fourth_project(self, client, acme_user):
        headers = auth_headers(acme_user)
        for i in range(3):
            assert client.post("/api/projects", headers=headers, json={"name": f"Project {i}"}).status_code == 201
        response = client.post("/api/projects", headers=headers, json={"name": "Project 3"})
        assert response.status_code == 403
        assert response.json()["type"] == "quota_exceeded"


class TestProjectAndTaskFlow:
    def test_full_flow(self, client, db, acme, acme_admin):
        member = make_user(db, acme, "bob@acme.com")
        headers = auth_headers(acme_admin)

        project = client.post("/api/projects", headers=headers, json={"name": "Launch", "description": "v1"}).json()
        task = client.post(f"/api/projects/{project['id']}/tasks", headers=headers, json={
            "title": "Write docs", "priority": "high", "assigned_to": member.id, "due_date": "2030-01-15"
        })
        assert task.status_code == 201
        task = task.json()
        assert task["tenant_id"] == acme.id
        assert task["status"] == "todo"

        response = client.patch(
            f"/api/projects/{project['id']}/tasks/{task['id']}/status",
            headers=auth_headers(member), json={"status": "completed"}
        )
        assert response.json()["status"] == "completed"
        response = client.patch(
            f"/api/projects/{project['id']}/tasks/{task['id']}/status",
            headers=auth_headers(member), json={"status": "todo"}
        )
        assert response.json()["status"] == "todo"

        response = client.put(
            f"/api/projects/{project['id']}/tasks/{task['id']}", headers=headers, json={"assigned_to": None}
        )
        assert response.json()["assigned_to"] is None

        listed = client.get("/api/projects", headers=headers).json()
        assert listed["projects"][0]["task_count"] == 1

        tasks = client.get(f"/api/projects/{project['id']}/tasks?priority=high", headers=headers).json()
        assert [t["id"] for t in tasks["tasks"]] == [task["id"]]

        deleted = client.delete(f"/api/projects/{project['id']}", headers=headers)
        assert deleted.json() == {"success": True, "message": "Project deleted successfully"}

    def test_unknown_status_is_400(self, client, acme_user):
        headers = auth_headers(acme_user)
        project = client.post("/api/projects", headers=headers, json={"name": "Launch"}).json()
        task = client.post(f"/api/projects/{project['id']}/tasks", headers=headers, json={"title": "Thing"}).json()
        response = client.patch(
            f"/api/projects/{project['id']}/tasks/{task['id']}/status", headers=headers, json={"status": "done"}
        )
        assert response.status_code == 400


class TestAuditLogEndpoint:
    def test_admin_reads_trail(self, client, acme_admin):
        headers = auth_headers(acme_admin)
        client.post("/api/projects", headers=headers, json={"name": "Launch"})
        body = client.get("/api/audit-logs", headers=headers).json()
        assert body["total"] == 1
        assert body["entries"][0]["action"] == "CREATE_PROJECT"
        assert "digest" not in body["entries"][0]

    def test_user_denied(self, client, acme_user):
        assert client.get("/api/audit-logs", headers=auth_headers(acme_user)).status_code == 403


class TestInternalErrors:
    def test_unexpected_error_is_generic_500(self, db, acme_user):
        client = TestClient(app, raise_server_exceptions=False)
        with patch("taskboard.services.projects.list_projects", side_effect=RuntimeError("db exploded: secret")):
            response = client.get("/api/projects", headers=auth_headers(acme_user))

        assert response.status_code == 500
        assert response.json() == {"success": False, "detail": "Internal server error", "type": "internal_error"}
