import json
import logging
from datetime import datetime, timezone

from stockledger.config import settings

# Structured fields the ledger attaches through ``extra=``
LEDGER_FIELDS = ("product_id", "operation", "entry_id", "order_id", "stock_before", "stock_after", "attempt")

LEDGER_LOGGER = "stockledger.services.ledger_service"


def _ledger_context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in LEDGER_FIELDS if hasattr(record, name)}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with any ledger context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "app": settings.APP_NAME,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_ledger_context(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text, with ledger context appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _ledger_context(record)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if settings.LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ContextFormatter(fmt="%(asctime)s %(levelname)s %(name)s - %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    if settings.LEDGER_LOG_LEVEL:
        logging.getLogger(LEDGER_LOGGER).setLevel(settings.LEDGER_LOG_LEVEL.upper())
