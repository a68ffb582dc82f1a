"""Breakdown, per-key tokens, ratios and period comparison over a fixed March/February ledger."""
from datetime import date
from decimal import Decimal

import pytest

from conftest import MEMBER, add_rows
from spend_ledger.models import DailyCost, DailyUsageCompletions


@pytest.fixture
async def ledger(session_factory, workspace_id):
    def cost(day, project, item, value):
        return DailyCost(workspace_id=workspace_id, date=day, project_id=project, line_item=item, value=Decimal(value))

    def usage(day, key, model, inp, out):
        return DailyUsageCompletions(
            workspace_id=workspace_id,
            date=day,
            project_id="proj",
            api_key_id=key,
            model=model,
            input_tokens=inp,
            output_tokens=out,
            total_tokens=inp + out,
        )

    await add_rows(
        session_factory,
        cost(date(2024, 3, 1), "proj-a", "gpt-4o", "30"),
        cost(date(2024, 3, 2), "proj-a", "gpt-4o-mini", "10"),
        cost(date(2024, 3, 2), "proj-b", "gpt-4o", "60"),
        cost(date(2024, 2, 28), "proj-a", "gpt-4o", "50"),
        cost(date(2024, 4, 1), "proj-a", "gpt-4o", "999"),
        usage(date(2024, 3, 1), "key-1", "gpt-4o", 9_000_000_000_000_000, 1),
        usage(date(2024, 3, 2), "key-2", "gpt-4o-mini", 100, 50),
        usage(date(2024, 2, 27), "key-1", "gpt-4o", 10, 10),
    )
    return workspace_id


async def _get(client, path, **params):
    r = await client.get(path, params=params, headers={"X-User-ID": MEMBER})
    assert r.status_code == 200, r.text
    return r.json()


async def test_breakdown_by_project_excludes_other_months(client, ledger) -> None:
    data = await _get(client, "/breakdown", workspaceId=str(ledger), month="2024-03", by="project")
    assert data["items"] == [{"key": "proj-b", "value": 60.0}, {"key": "proj-a", "value": 40.0}]
    assert data["currency"] == "usd"


async def test_breakdown_by_model_uses_token_strings(client, ledger) -> None:
    data = await _get(client, "/breakdown", workspaceId=str(ledger), month="2024-03", by="model")
    assert data["metric"] == "total_tokens"
    assert data["items"][0] == {"key": "gpt-4o", "totalTokens": "9000000000000001"}
    assert data["items"][1] == {"key": "gpt-4o-mini", "totalTokens": "150"}


async def test_per_key_totals(client, ledger) -> None:
    data = await _get(client, "/analytics/keys", workspaceId=str(ledger), **{"from": "2024-03-01", "to": "2024-03-31"})
    assert data["keys"][0]["apiKeyId"] == "key-1"
    assert data["keys"][0]["inputTokens"] == "9000000000000000"
    assert data["keys"][1] == {
        "apiKeyId": "key-2",
        "inputTokens": "100",
        "outputTokens": "50",
        "totalTokens": "150",
    }


async def test_ratios_by_project(client, ledger) -> None:
    data = await _get(client, "/analytics/ratios", workspaceId=str(ledger), month="2024-03", groupBy="project")
    assert data["groupBy"] == "project"
    assert data["items"] == [
        {"key": "proj-b", "value": 60.0, "percent": "60.0"},
        {"key": "proj-a", "value": 40.0, "percent": "40.0"},
    ]


async def test_month_over_month_comparison(client, ledger) -> None:
    data = await _get(client, "/analytics/comparison", workspaceId=str(ledger), month="2024-03", period="month")
    assert data["current"] == {"cost": 100.0, "tokens": 9000000000000151, "period": "2024-03"}
    assert data["previous"] == {"cost": 50.0, "tokens": 20, "period": "2024-02"}
    assert data["delta"]["costPercent"] == "100.0"


async def test_week_comparison_uses_seven_days_before_month(client, ledger) -> None:
    data = await _get(client, "/analytics/comparison", workspaceId=str(ledger), month="2024-03", period="week")
    assert data["previous"]["period"] == "2024-02-23 to 2024-03-01"
    assert data["previous"]["cost"] == 50.0
