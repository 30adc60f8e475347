"""Logging setup for the service process."""
from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict


class EventFormatter(logging.Formatter):
    """
    Render records with their structured `event` extra.

    Text mode appends `key=value` pairs after the message; JSON mode emits one
    object per line, which log collectors index field by field.
    """

    def __init__(self, json_output: bool = False):
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        event: Dict[str, Any] = dict(getattr(record, "event", None) or {})
        if self.json_output:
            payload = {
                "severity": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                **event,
            }
            if record.exc_info:
                payload["exception"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        line = super().format(record)
        event.pop("msg", None)
        event.pop("severity", None)
        if event:
            line += " " + " ".join(f"{key}={value}" for key, value in event.items())
        return line


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Root log level name
        json_output: Emit JSON lines instead of text
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(EventFormatter(json_output=json_output))
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())
