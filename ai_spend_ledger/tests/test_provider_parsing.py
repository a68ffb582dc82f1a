"""Normalization of provider JSON into CostRow / UsageRow."""
from datetime import date
from decimal import Decimal

from spend_ledger.services.anthropic_cost_service import (
    cost_rows_from_buckets as anthropic_cost_rows,
    extract_cost_amount,
    usage_rows_from_buckets as anthropic_usage_rows,
)
from spend_ledger.services.bedrock_cost_service import cost_rows_from_results
from spend_ledger.services.openai_cost_service import (
    cost_rows_from_buckets as openai_cost_rows,
    credit_snapshot_from_response,
    parse_cost_page,
    usage_rows_from_buckets as openai_usage_rows,
)
from spend_ledger.services.vertex_cost_service import cost_rows_from_billing

MARCH_1 = 1709251200  # 2024-03-01T00:00:00Z


def test_anthropic_cost_bucket_scenario() -> None:
    buckets = [
        {
            "starting_at": "2024-03-01T00:00:00Z",
            "results": [{"workspace_id": "w1", "description": "completions", "cost_usd": 12.5, "currency": "USD"}],
        }
    ]
    rows = anthropic_cost_rows(buckets)
    assert len(rows) == 1
    row = rows[0]
    assert row.date == date(2024, 3, 1)
    assert row.project_id == "anthropic:w1"
    assert row.line_item == "anthropic:completions"
    assert row.currency == "usd"
    assert row.value == Decimal("12.5")


def test_anthropic_amount_fallback_chain() -> None:
    assert extract_cost_amount({"cost_usd": 3.25, "amount_cents": 999}) == Decimal("3.25")
    assert extract_cost_amount({"amount_cents": 1250}) == Decimal("12.5")
    assert extract_cost_amount({"amount": "4.5"}) == Decimal("4.5")
    assert extract_cost_amount({"amount": {"value": 7}}) == Decimal("7")
    assert extract_cost_amount({"amount": None}) == Decimal("0")
    assert extract_cost_amount({}) == Decimal("0")


def test_anthropic_usage_includes_cache_tokens_and_skips_undated() -> None:
    buckets = [
        {
            "starting_at": "2024-03-02T00:00:00Z",
            "results": [
                {
                    "workspace_id": "w1",
                    "model": "claude-x",
                    "input_tokens": 100,
                    "output_tokens": 50,
                    "cache_creation_input_tokens": 10,
                    "cache_read_input_tokens": 5,
                }
            ],
        },
        {"results": [{"input_tokens": 1}]},
    ]
    rows = anthropic_usage_rows(buckets)
    assert len(rows) == 1
    assert rows[0].model == "anthropic:claude-x"
    assert rows[0].total_tokens == 165
    assert rows[0].total_tokens >= rows[0].input_tokens + rows[0].output_tokens


def test_openai_cost_page_prefers_organization_costs() -> None:
    nested = {"organization_costs": {"buckets": [{"start_time": MARCH_1}], "next_page": "p2"}, "data": []}
    buckets, cursor = parse_cost_page(nested)
    assert buckets == [{"start_time": MARCH_1}]
    assert cursor == "p2"

    flat = {"data": [{"start_time": MARCH_1}], "next_page": None}
    buckets, cursor = parse_cost_page(flat)
    assert len(buckets) == 1
    assert cursor is None


def test_openai_cost_and_usage_rows() -> None:
    cost = openai_cost_rows(
        [
            {
                "start_time": MARCH_1,
                "results": [
                    {"project_id": "proj_1", "line_item": "gpt-4o, input", "amount": {"value": 1.5, "currency": "USD"}}
                ],
            }
        ]
    )
    assert cost[0].date == date(2024, 3, 1)
    assert (cost[0].project_id, cost[0].line_item, cost[0].currency) == ("proj_1", "gpt-4o, input", "usd")
    assert cost[0].value == Decimal("1.5")

    usage = openai_usage_rows(
        [
            {
                "start_time": MARCH_1,
                "result": [
                    {
                        "project_id": None,
                        "model": "gpt-4o",
                        "batch": True,
                        "input_tokens": 10,
                        "output_tokens": 4,
                    }
                ],
            }
        ]
    )
    assert usage[0].project_id == ""
    assert usage[0].batch == "true"
    assert usage[0].total_tokens == 14


def test_openai_credit_snapshot() -> None:
    snap = credit_snapshot_from_response({"total_granted": 100, "total_used": "12.5", "total_available": 87.5})
    assert snap.total_used == Decimal("12.5")
    assert snap.total_available == Decimal("87.5")


def test_vertex_billing_rows() -> None:
    rows = cost_rows_from_billing(
        [
            {
                "usageStartTime": "2024-03-04T00:00:00Z",
                "cost": {"amount": "2.75", "currencyCode": "USD"},
                "project": {"id": "row-project"},
                "sku": {"description": "Gemini input"},
            },
            {"usageEndTime": "2024-03-05T00:00:00Z", "cost": {"amount": 1}, "service": {"description": "Vertex AI"}},
            {"cost": {"amount": 9}},
        ],
        sa_project_id=None,
    )
    assert len(rows) == 2
    assert rows[0].project_id == "vertex:row-project"
    assert rows[0].line_item == "vertex:Gemini input"
    assert rows[0].value == Decimal("2.75")
    assert rows[1].date == date(2024, 3, 5)
    assert rows[1].line_item == "vertex:Vertex AI"


def test_bedrock_rows_drop_zero_amounts() -> None:
    results = [
        {
            "TimePeriod": {"Start": "2024-03-01", "End": "2024-03-02"},
            "Groups": [
                {
                    "Keys": ["Amazon Bedrock", "USE1-Claude-input-tokens"],
                    "Metrics": {"UnblendedCost": {"Amount": "0.42", "Unit": "USD"}},
                },
                {
                    "Keys": ["Amazon Bedrock", "USE1-idle"],
                    "Metrics": {"UnblendedCost": {"Amount": "0", "Unit": "USD"}},
                },
            ],
        }
    ]
    rows = cost_rows_from_results(results, "us-east-1", date(2024, 2, 1))
    assert len(rows) == 1
    assert rows[0].project_id == "bedrock:us-east-1"
    assert rows[0].line_item == "bedrock:USE1-Claude-input-tokens"
    assert rows[0].value == Decimal("0.42")
