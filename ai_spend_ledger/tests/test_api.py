"""HTTP surface: auth, roles, connect/sync flows, budgets, alert rules, notifications."""
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from conftest import ADMIN, MEMBER, OWNER, TEST_CRON_SECRET, add_rows, fetch_all, get_connection
from spend_ledger.models import AnthropicConnection, DailyCost, Notification
from spend_ledger.models.enums import ConnectionStatus, ProviderName
from spend_ledger.utils.dates import utc_now


def _as(user_id: str) -> dict:
    return {"X-User-ID": user_id}


async def test_health_endpoints(client) -> None:
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    r = await client.get("/api/healthz")
    assert r.json() == {"status": "ok"}
    r = await client.get("/api/readyz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "db": "ok", "redis": "skipped"}


async def test_missing_user_header_is_401(client, workspace_id) -> None:
    r = await client.get("/summary", params={"workspaceId": str(workspace_id)})
    assert r.status_code == 401


async def test_non_member_is_403(client, workspace_id) -> None:
    r = await client.get("/summary", params={"workspaceId": str(workspace_id)}, headers=_as("stranger"))
    assert r.status_code == 403
    assert r.json()["detail"] == "Forbidden"


async def test_cron_requires_bearer_secret(client) -> None:
    r = await client.get("/cron/sync")
    assert r.status_code == 401
    r = await client.post("/cron/sync", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Unauthorized"


async def test_cron_get_and_post(client, session_factory, secret_box, workspace_id, fake_clients) -> None:
    await add_rows(session_factory, AnthropicConnection(workspace_id=workspace_id, admin_key_enc=secret_box.encrypt("k" * 30)))
    headers = {"Authorization": f"Bearer {TEST_CRON_SECRET}"}
    for method in ("GET", "POST"):
        r = await client.request(method, "/cron/sync", headers=headers)
        assert r.status_code == 200
        assert r.json() == {
            "success": True,
            "openAI": {"total": 0},
            "anthropic": {"total": 1},
            "vertex": {"total": 0},
            "bedrock": {"total": 0},
        }
    assert len(fake_clients[ProviderName.ANTHROPIC].calls) == 2


async def test_manual_sync_roles(client, session_factory, secret_box, workspace_id, fake_clients) -> None:
    await add_rows(session_factory, AnthropicConnection(workspace_id=workspace_id, admin_key_enc=secret_box.encrypt("k" * 30)))
    body = {"workspaceId": str(workspace_id)}

    r = await client.post("/openai/sync", json=body, headers=_as(MEMBER))
    assert r.status_code == 403
    assert fake_clients[ProviderName.ANTHROPIC].calls == []

    r = await client.post("/openai/sync", json=body, headers=_as(ADMIN))
    assert r.status_code == 200
    assert r.json() == {"success": True}
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.OK.value
    assert conn.last_sync_at is not None


async def test_connect_openai_never_returns_secret(client, session_factory, workspace_id) -> None:
    api_key = "sk-admin-abcdefghijklmnopqrstuvwxyz"
    r = await client.post(
        "/openai/connect",
        json={"workspaceId": str(workspace_id), "apiKey": api_key, "mode": "organization"},
        headers=_as(ADMIN),
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "sync": "queued"}

    conn = await get_connection(session_factory, ProviderName.OPENAI, workspace_id)
    assert conn is not None
    assert api_key not in conn.admin_key_enc
    assert conn.mode == "ORGANIZATION"

    r = await client.get("/connections", params={"workspaceId": str(workspace_id)}, headers=_as(MEMBER))
    assert r.status_code == 200
    data = r.json()
    assert data["openai"]["configured"] is True
    assert data["anthropic"] == {
        "configured": False,
        "status": "DISCONNECTED",
        "lastSyncAt": None,
        "lastError": None,
        "remediation": None,
    }
    assert api_key not in r.text
    assert "admin_key_enc" not in r.text


async def test_connect_requires_admin(client, workspace_id) -> None:
    r = await client.post(
        "/anthropic/connect",
        json={"workspaceId": str(workspace_id), "apiKey": "sk-ant-admin-0000000000000"},
        headers=_as(MEMBER),
    )
    assert r.status_code == 403


async def test_connect_vertex_rejects_bad_service_account(client, session_factory, workspace_id) -> None:
    body = {"workspaceId": str(workspace_id), "serviceAccountJson": "not-json", "projectId": "0000-AAAA"}
    r = await client.post("/vertex/connect", json=body, headers=_as(OWNER))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid JSON format for service account"

    body["serviceAccountJson"] = '{"client_email": "svc@example.iam.gserviceaccount.com"}'
    r = await client.post("/vertex/connect", json=body, headers=_as(OWNER))
    assert r.status_code == 400
    assert r.json()["detail"] == "Service account JSON must contain client_email and private_key"
    assert await get_connection(session_factory, ProviderName.VERTEX, workspace_id) is None


async def test_connect_bedrock_validates_key_length(client, workspace_id) -> None:
    r = await client.post(
        "/bedrock/connect",
        json={"workspaceId": str(workspace_id), "accessKeyId": "short", "secretAccessKey": "s" * 40},
        headers=_as(OWNER),
    )
    assert r.status_code == 422


async def test_budget_is_owner_only(client, workspace_id) -> None:
    body = {"workspaceId": str(workspace_id), "month": "2024-03", "amount": "150.00"}
    r = await client.post("/budgets", json=body, headers=_as(ADMIN))
    assert r.status_code == 403

    r = await client.post("/budgets", json=body, headers=_as(OWNER))
    assert r.status_code == 200
    data = r.json()
    assert data["workspaceId"] == str(workspace_id)
    assert data["month"] == "2024-03"
    assert data["amount"] == 150.0

    body["amount"] = "175.50"
    r = await client.post("/budgets", json=body, headers=_as(OWNER))
    assert r.json()["id"] == data["id"]
    assert r.json()["amount"] == 175.5

    body["month"] = "2024-13"
    r = await client.post("/budgets", json=body, headers=_as(OWNER))
    assert r.status_code == 422


async def test_alert_rule_lifecycle(client, workspace_id) -> None:
    body = {"workspaceId": str(workspace_id), "type": "BUDGET_THRESHOLD", "channel": "WEBHOOK"}
    r = await client.post("/alerts", json=body, headers=_as(ADMIN))
    assert r.status_code == 422

    body["webhookUrl"] = "https://hooks.example.com/budget"
    body["config"] = {"thresholdPercent": 90}
    r = await client.post("/alerts", json=body, headers=_as(MEMBER))
    assert r.status_code == 403
    r = await client.post("/alerts", json=body, headers=_as(ADMIN))
    assert r.status_code == 201
    rule = r.json()
    assert rule["createdBy"] == ADMIN
    assert rule["config"] == {"thresholdPercent": 90}

    r = await client.get("/alerts", params={"workspaceId": str(workspace_id)}, headers=_as(MEMBER))
    assert [item["id"] for item in r.json()] == [rule["id"]]

    r = await client.patch(f"/alerts/{rule['id']}", json={"webhookUrl": None}, headers=_as(ADMIN))
    assert r.status_code == 400
    r = await client.patch(f"/alerts/{rule['id']}", json={"enabled": False}, headers=_as(OWNER))
    assert r.status_code == 200
    assert r.json()["enabled"] is False

    r = await client.delete(f"/alerts/{rule['id']}", headers=_as(ADMIN))
    assert r.status_code == 204
    r = await client.delete(f"/alerts/{rule['id']}", headers=_as(ADMIN))
    assert r.status_code == 404


async def test_notifications_read_all(client, session_factory, workspace_id) -> None:
    await add_rows(
        session_factory,
        *[
            Notification(user_id=MEMBER, workspace_id=workspace_id, title=f"n{i}", body="b", type="COST_SPIKE")
            for i in range(3)
        ],
        Notification(user_id=OWNER, workspace_id=workspace_id, title="other", body="b", type="COST_SPIKE"),
    )
    r = await client.get("/notifications", params={"unread": "true"}, headers=_as(MEMBER))
    assert r.status_code == 200
    assert len(r.json()) == 3

    r = await client.post("/notifications/read-all", headers=_as(MEMBER))
    assert r.json() == {"success": True, "updated": 3}
    r = await client.get("/notifications", params={"unread": "true"}, headers=_as(MEMBER))
    assert r.json() == []

    owner_notes = await fetch_all(session_factory, select(Notification).where(Notification.user_id == OWNER))
    assert [n.read for n in owner_notes] == [False]


async def test_summary_and_trend(client, session_factory, workspace_id) -> None:
    today = utc_now().date()
    await add_rows(
        session_factory,
        DailyCost(workspace_id=workspace_id, date=today, project_id="p1", line_item="gpt-4o", value=Decimal("2.5")),
        DailyCost(workspace_id=workspace_id, date=today, project_id="p2", line_item="claude", value=Decimal("1.5")),
    )
    r = await client.get("/summary", params={"workspaceId": str(workspace_id)}, headers=_as(MEMBER))
    assert r.status_code == 200
    data = r.json()
    assert data["todayCost"] == 4.0
    assert data["monthCost"] == 4.0
    assert data["monthBudget"] is None
    assert data["currency"] == "usd"

    r = await client.get(
        "/trend",
        params={"workspaceId": str(workspace_id), "from": today.isoformat(), "to": (today - timedelta(days=1)).isoformat()},
        headers=_as(MEMBER),
    )
    assert r.status_code == 400

    r = await client.get("/summary", params={"workspaceId": str(workspace_id), "month": "2024-3"}, headers=_as(MEMBER))
    assert r.status_code == 400


async def test_forecast_endpoint_shape(client, workspace_id) -> None:
    r = await client.get("/forecast", params={"workspaceId": str(workspace_id)}, headers=_as(MEMBER))
    assert r.status_code == 200
    data = r.json()
    assert set(data) >= {
        "predictedMonthEnd",
        "dailyForecasts",
        "budgetExhaustionDate",
        "currentSpend",
        "daysElapsed",
        "daysRemaining",
    }
    assert data["budgetExhaustionDate"] is None


async def test_mark_single_notification_read(client, session_factory, workspace_id) -> None:
    mine = Notification(user_id=MEMBER, workspace_id=workspace_id, title="mine", body="b", type="COST_SPIKE")
    theirs = Notification(user_id=OWNER, workspace_id=workspace_id, title="theirs", body="b", type="COST_SPIKE")
    await add_rows(session_factory, mine, theirs)

    r = await client.patch(f"/notifications/{theirs.id}/read", headers=_as(MEMBER))
    assert r.status_code == 404
    r = await client.patch(f"/notifications/{mine.id}/read", headers=_as(MEMBER))
    assert r.status_code == 200
    assert r.json() == {"success": True}

    notes = {n.title: n.read for n in await fetch_all(session_factory, select(Notification))}
    assert notes == {"mine": True, "theirs": False}


async def test_scheduler_status_disabled(client) -> None:
    r = await client.get("/scheduler/status", headers=_as(MEMBER))
    assert r.status_code == 200
    data = r.json()
    assert data["enabled"] is False
    assert data["interval_seconds"] == 3600
