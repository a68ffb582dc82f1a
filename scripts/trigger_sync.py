"""
Trigger a sync against a running server.
  cron mode (default): GET /cron/sync with Authorization: Bearer $CRON_SECRET, in ra totals theo provider.
  --workspace <uuid> --user <id>: POST /openai/sync (Sync Now) cho một workspace.
Env: SPEND_LEDGER_URL (default http://localhost:8000), CRON_SECRET. Never prints the secret.
Exit codes: 2 missing env, 3 unauthorized/forbidden, 5 request failed.
"""
import argparse
import json
import os
import sys

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"
# fleet sync có thể lâu (mọi workspace x bốn provider)
TIMEOUT = 600

EXIT_MISSING_ENV = 2
EXIT_UNAUTHORIZED = 3
EXIT_REQUEST_FAIL = 5


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-2:]}"


def trigger_cron(client: httpx.Client, cron_secret: str) -> httpx.Response:
    return client.get("/cron/sync", headers={"Authorization": f"Bearer {cron_secret}"})


def trigger_workspace(client: httpx.Client, workspace_id: str, user_id: str) -> httpx.Response:
    return client.post("/openai/sync", json={"workspaceId": workspace_id}, headers={"X-User-ID": user_id})


def main() -> int:
    parser = argparse.ArgumentParser(description="Trigger AI spend ledger sync")
    parser.add_argument("--base-url", default=os.environ.get("SPEND_LEDGER_URL", DEFAULT_BASE_URL))
    parser.add_argument("--workspace", help="Workspace UUID (manual Sync Now instead of fleet cron)")
    parser.add_argument("--user", help="X-User-ID of an owner/admin (required with --workspace)")
    args = parser.parse_args()

    with httpx.Client(base_url=args.base_url.rstrip("/"), timeout=TIMEOUT) as client:
        try:
            if args.workspace:
                if not args.user:
                    print("missing --user for workspace sync", file=sys.stderr)
                    return EXIT_MISSING_ENV
                resp = trigger_workspace(client, args.workspace, args.user)
            else:
                cron_secret = os.environ.get("CRON_SECRET", "").strip()
                if not cron_secret:
                    print("missing env: CRON_SECRET", file=sys.stderr)
                    return EXIT_MISSING_ENV
                print(f"cron sync base_url={args.base_url} secret={mask_secret(cron_secret)}")
                resp = trigger_cron(client, cron_secret)
        except httpx.HTTPError as e:
            print(f"request failed: {e}", file=sys.stderr)
            return EXIT_REQUEST_FAIL

    if resp.status_code in (401, 403):
        print(f"status={resp.status_code} detail={resp.text[:200]}", file=sys.stderr)
        return EXIT_UNAUTHORIZED
    if not resp.is_success:
        print(f"status={resp.status_code} body={resp.text[:300]}", file=sys.stderr)
        return EXIT_REQUEST_FAIL
    print(json.dumps(resp.json(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
