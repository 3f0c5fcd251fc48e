"""Custom JSON formatter compatible with ECS."""

from __future__ import annotations

import logging
import os
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

SERVICE_NAME = os.getenv("SERVICE_NAME", "finance-tracker-api")

FIELD_MAP = {
    "request_id": "http.request.id",
    "user_id": "user.id",
    "client_ip": "client.ip",
    "http_request_method": "http.request.method",
    "url_path": "url.path",
    "url_query": "url.query",
    "http_status_code": "http.response.status_code",
    "event_duration": "event.duration",
    "user_agent": "user_agent.original",
    "event_dataset": "event.dataset",
    "event_action": "event.action",
    "error_stack": "error.stack",
    "error_type": "error.type",
    "error_message": "error.message",
    "auth_method": "authentication.method",
    "auth_failure_reason": "authentication.outcome.reason",
    "user_created": "user.created",
    "token_revoked": "token.revoked",
    "token_sweep_deleted": "token.sweep.deleted",
    "token_sweep_interval": "token.sweep.interval",
    "transaction_id": "transaction.id",
    "validation_error_count": "validation.error.count",
}

_TRANSIENT_FIELDS = ("client_ip_raw", "client_ip_anonymized")


class ECSJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that renames known extras to their ECS field names."""

    def __init__(self, *args: Any, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(
        self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault(
            "@timestamp",
            datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        )
        log_record.setdefault("log.level", record.levelname)
        log_record.setdefault("log.logger", record.name)
        log_record.setdefault("message", record.getMessage())
        log_record["service.name"] = getattr(record, "service_name", None) or self.service_name

        for attr, ecs_name in FIELD_MAP.items():
            value = log_record.pop(attr, getattr(record, attr, None))
            if value is not None:
                log_record[ecs_name] = value
        log_record.setdefault("event.dataset", f"{self.service_name}.app")

        for transient in _TRANSIENT_FIELDS:
            log_record.pop(transient, None)

        if record.exc_info and "error.stack" not in log_record:
            log_record["error.stack"] = "".join(
                traceback.format_exception(*record.exc_info)
            ).strip()

        for key in [key for key, value in log_record.items() if value is None]:
            del log_record[key]
        for key, value in log_record.items():
            if isinstance(value, (set, bytes)):
                log_record[key] = str(value)
