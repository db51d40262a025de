"""
System, activity log and CLI tests.

Verifies:
- Welcome and health endpoints
- Activity log listing: filters, sort aliases, lenient dates
- CLI bootstrap and maintenance commands
"""

from datetime import date, timedelta

from conftest import PASSWORD, batch_payload, login

from zyre.models import InventoryBatch, Role, Store, User


def test_welcome(client, db_session):
    body = client.get("/").get_json()
    assert body["data"] == "Welcome to the Zyre API"


def test_health(client, db_session):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == "healthy"
    assert data["environment"] == "testing"
    assert data["database"]["latency_ms"] >= 0


def test_cors_headers_for_allowed_origin(app, client, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ["http://localhost:5173"])
    resp = client.get("/", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert resp.headers["Access-Control-Allow-Credentials"] == "true"

    other = client.get("/", headers={"Origin": "http://evil.test"})
    assert "Access-Control-Allow-Origin" not in other.headers


def test_unknown_route_uses_error_envelope(client, db_session):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.get_json()["status"] == 404


# =============================================================================
# ACTIVITY LOGS
# =============================================================================


class TestActivityLogs:

    def test_filters_and_meta(self, client, admin_user, regular_user):
        login(client, regular_user.email)
        client.post("/api/v1/auth/logout")
        login(client, admin_user.email)

        data = client.get("/api/v1/logs?action=login&sortBy=userId&sortOrder=asc").get_json()["data"]
        assert data["meta"]["total"] == 2
        assert [log["user_id"] for log in data["logs"]] == sorted([admin_user.id, regular_user.id])

        mine = client.get(f"/api/v1/logs?userId={regular_user.id}").get_json()["data"]
        assert {log["action"] for log in mine["logs"]} == {"LOGIN", "LOGOUT"}

    def test_unparseable_dates_are_ignored(self, client, admin_user):
        login(client, admin_user.email)
        data = client.get("/api/v1/logs?fromDate=garbage&toDate=also-garbage").get_json()["data"]
        assert data["meta"]["total"] == 1

    def test_date_range_excludes(self, client, admin_user):
        login(client, admin_user.email)
        later = (date.today() + timedelta(days=2)).isoformat()
        data = client.get(f"/api/v1/logs?fromDate={later}").get_json()["data"]
        assert data["meta"]["total"] == 0
        assert data["logs"] == []

    def test_regular_user_forbidden(self, client, regular_user):
        login(client, regular_user.email)
        resp = client.get("/api/v1/logs")
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Access forbidden: Insufficient rights"


# =============================================================================
# CLI
# =============================================================================


class TestCli:

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        args = ["system", "init", "--email", "boot@zyre.test", "--password", PASSWORD]

        first = runner.invoke(args=args)
        assert first.exit_code == 0, first.output
        assert "Created SUPERADMIN: boot@zyre.test" in first.output

        second = runner.invoke(args=args)
        assert second.exit_code == 0, second.output
        assert "Using existing user" in second.output

        assert db_session.query(Role).count() == 3
        assert db_session.query(Store).count() == 1
        user = db_session.query(User).filter_by(email="boot@zyre.test").one()
        assert user.role_name == "SUPERADMIN"
        assert [s.code for s in user.stores] == ["MAIN"]

    def test_users_create_and_list(self, app, roles):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--fullname", "Jane Doe", "--email", "jane@zyre.test",
            "--password", PASSWORD, "--role", "admin",
        ])
        assert result.exit_code == 0, result.output

        listing = runner.invoke(args=["users", "list"])
        assert "jane@zyre.test" in listing.output
        assert "ADMIN" in listing.output

    def test_users_create_weak_password(self, app, roles):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--fullname", "Weak", "--email", "weak@zyre.test",
            "--password", "weak", "--role", "USER",
        ])
        assert result.exit_code != 0

    def test_expire_batches(self, app, admin_client, product, db_session):
        client, headers = admin_client
        client.post("/api/v1/inventory", json={"batches": [batch_payload(product.id)]}, headers=headers)
        batch = db_session.query(InventoryBatch).one()
        batch.expiry_date = date.today() - timedelta(days=1)
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["maintenance", "expire-batches"])
        assert result.exit_code == 0, result.output
        assert "Expired 1 batches, 1 items (1 movements)." in result.output

    def test_cleanup_csrf(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-csrf"])
        assert result.exit_code == 0
        assert "Cleared 0 expired CSRF tokens." in result.output
