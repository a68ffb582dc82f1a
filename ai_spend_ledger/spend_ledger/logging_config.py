"""
Structured logging (structlog): JSON ngoài local, console khi APP_ENV=local.
Credentials không bao giờ được log: processor redact_secrets che mọi key nhạy cảm trước khi render.
"""
import logging
import sys
from typing import Any, MutableMapping

import structlog

from spend_ledger.config import Settings

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "admin_key",
        "authorization",
        "assertion",
        "access_token",
        "private_key",
        "secret_access_key",
        "service_account_json",
        "cron_secret",
        "encryption_key",
    }
)
# botocore debug in ra signed headers; httpx INFO in ra URL kèm query
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def redact_secrets(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer = (
        structlog.dev.ConsoleRenderer() if settings.app_env == "local" else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
