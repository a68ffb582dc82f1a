"""
Gửi alert payload tới webhook URL của alert rule.
Timeout WEBHOOK_TIMEOUT_SECONDS (mặc định 5s), retry 1. Log lỗi, không raise.
"""
from typing import Any, Dict, Optional

import httpx

from spend_ledger.logging_config import get_logger

logger = get_logger(__name__)

# Số lần retry khi gọi webhook (retry 1 = gọi tối đa 2 lần)
WEBHOOK_RETRIES = 1
DEFAULT_TIMEOUT_SECONDS = 5.0


async def send_webhook(
    url: str,
    payload: Dict[str, Any],
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    POST JSON payload lên url.
    Trả về True nếu nhận 2xx, False nếu url rỗng hoặc lỗi sau khi hết retry.
    """
    if not url or not url.strip():
        logger.debug("webhook.skipped", reason="url_not_set")
        return False

    for attempt in range(WEBHOOK_RETRIES + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                resp = await client.post(url, json=payload)
                if resp.is_success:
                    logger.info("webhook.sent", status=resp.status_code, alert_rule_id=payload.get("alertRuleId"))
                    return True
                logger.warning(
                    "webhook.failed",
                    attempt=attempt + 1,
                    status=resp.status_code,
                    body=resp.text[:300],
                )
                if attempt < WEBHOOK_RETRIES:
                    continue
                return False
        except httpx.HTTPError as e:
            logger.warning("webhook.error", attempt=attempt + 1, error=str(e))
            if attempt >= WEBHOOK_RETRIES:
                return False
    return False
