"""Structured logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger
from sourcehub.infra.config import config

SERVICE_NAME = "source-hub"

# Record attributes that can carry connection tokens or API key secrets
REDACTED_FIELDS = (
    "external_connection_token",
    "system_api_key",
    "workspaceAPIKey",
    "nangoConnectionId",
    "secret",
    "api_key",
)
REDACTED = "[redacted]"


class RedactSecretsFilter(logging.Filter):
    """Masks credential-bearing `extra` fields before they are formatted."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in REDACTED_FIELDS:
            if getattr(record, field, None):
                setattr(record, field, REDACTED)

        upstream = getattr(record, "upstream_error", None)
        if isinstance(upstream, dict) and isinstance(upstream.get("body"), dict):
            body = dict(upstream["body"])
            for field in REDACTED_FIELDS:
                if field in body:
                    body[field] = REDACTED
            record.upstream_error = dict(upstream, body=body)
        return True


def setup_logging() -> logging.Logger:
    """Configure JSON logs for every `sourcehub.*` logger."""
    logger = logging.getLogger("sourcehub")
    logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
    logger.propagate = False
    logger.handlers = []

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        static_fields={"service": SERVICE_NAME, "env": config.APP_ENV},
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RedactSecretsFilter())
    logger.addHandler(handler)

    # Request URLs and SQL parameters include tenant ids and tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    return logger


app_logger = setup_logging()
