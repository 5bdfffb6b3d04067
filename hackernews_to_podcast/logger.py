from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict

# Attributes every LogRecord carries; anything else came in through `extra={...}`.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k in _RECORD_ATTRS or k in payload or k.startswith("_"):
                continue
            try:
                json.dumps(v)
                payload[k] = v
            except (TypeError, ValueError):
                payload[k] = str(v)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human readable lines for local runs; extra fields appended as k=v."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        extras = [
            f"{k}={v}"
            for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS and not k.startswith("_")
        ]
        if extras:
            line += " [" + " ".join(extras) + "]"
        return line


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(lvl)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(JsonFormatter() if json_output else TextFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    # boto and urllib3 are chatty at DEBUG
    for noisy in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(noisy).setLevel(max(lvl, logging.INFO))


def gha_notice(level: str, message: str) -> None:
    # GitHub Actions annotations for the scheduled workflow
    prefix = {
        "ERROR": "::error::",
        "WARNING": "::warning::",
        "NOTICE": "::notice::",
    }.get(level.upper())
    if prefix:
        print(f"{prefix}{message}")
