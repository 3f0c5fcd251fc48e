"""Public entry point for configuring application logging."""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any

from .formatter import SERVICE_NAME

_TRUTHY = {"1", "true", "yes", "on"}


def _handler(
    log_level: str, formatter: str, filters: list[str], **options: Any
) -> dict[str, Any]:
    return {"level": log_level, "formatter": formatter, "filters": filters, **options}


def configure_logging() -> None:
    """Configure structured logging for the API and its background tasks.

    Records always go to stdout. ``LOG_FILE_ANON`` (or ``LOG_FILE``) and
    ``LOG_FILE_RAW`` add file handlers with anonymised and raw client IPs.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    json_enabled = os.getenv("LOG_JSON", "true").lower() in _TRUTHY
    anon_log_file = os.getenv("LOG_FILE_ANON") or os.getenv("LOG_FILE")
    raw_log_file = os.getenv("LOG_FILE_RAW")

    if anon_log_file and raw_log_file:
        if os.path.abspath(anon_log_file) == os.path.abspath(raw_log_file):
            raise ValueError("LOG_FILE_ANON and LOG_FILE_RAW must point to different files")

    formatter_name = "json" if json_enabled else "plain"
    handlers: dict[str, dict[str, Any]] = {
        "stdout": _handler(
            log_level,
            formatter_name,
            ["context", "privacy", "ip_anonymized"],
            **{"class": "logging.StreamHandler", "stream": "ext://sys.stdout"},
        )
    }

    for name, path, ip_filter in (
        ("file_anon", anon_log_file, "ip_anonymized"),
        ("file_raw", raw_log_file, "ip_raw"),
    ):
        if not path:
            continue
        abs_path = os.path.abspath(path)
        os.makedirs(os.path.dirname(abs_path) or ".", exist_ok=True)
        handlers[name] = _handler(
            log_level,
            formatter_name,
            ["context", "privacy", ip_filter],
            **{
                "class": "finance_tracker.logging.handlers.SecureWatchedFileHandler",
                "filename": abs_path,
                "delay": True,
            },
        )

    passthrough = {"level": "INFO", "handlers": [], "propagate": True}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "finance_tracker.logging.formatter.ECSJsonFormatter",
                    "service_name": SERVICE_NAME,
                },
                "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
            },
            "filters": {
                "context": {"()": "finance_tracker.logging.filters.RequestContextFilter"},
                "privacy": {"()": "finance_tracker.logging.filters.PrivacyFilter"},
                "ip_anonymized": {
                    "()": "finance_tracker.logging.filters.IPOverrideFilter",
                    "mode": "anonymized",
                },
                "ip_raw": {
                    "()": "finance_tracker.logging.filters.IPOverrideFilter",
                    "mode": "raw",
                },
            },
            "handlers": handlers,
            "root": {"level": log_level, "handlers": list(handlers)},
            "loggers": {
                "uvicorn": dict(passthrough),
                "uvicorn.error": dict(passthrough),
                "uvicorn.access": dict(passthrough),
                "finance_tracker.auth": dict(passthrough),
                "finance_tracker.maintenance": dict(passthrough),
            },
        }
    )
    logging.captureWarnings(True)
