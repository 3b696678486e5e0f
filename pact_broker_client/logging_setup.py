import json
import logging
import re
import sys
import time
from typing import Any, Dict

from .config import get_settings


class JsonFormatter(logging.Formatter):
    """JSON formatter that redacts pact broker credentials."""

    def __init__(self):
        super().__init__()
        self.redaction_patterns = [
            # Authorization headers
            (re.compile(r'(?i)\b(Bearer|Basic)\s+([A-Za-z0-9._~+/=-]+)'), 'credential'),
            # Basic auth credentials embedded in broker URLs
            (re.compile(r'(?i)\b(https?://)([^/\s:@]+:[^/\s@]+)@'), 'userinfo'),
            # key=value / "key": "value" pairs
            (re.compile(r'(?i)(token|password|secret)(["\']?\s*[=:]\s*["\']?)([^"\'\s,}&]+)'), 'secret'),
        ]

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": self._redact_sensitive_data(record.getMessage()),
        }

        for key, value in getattr(record, "extra", {}).items():
            if key in payload:
                continue
            if isinstance(value, str):
                payload[key] = self._redact_sensitive_data(value)
            elif isinstance(value, dict):
                payload[key] = self._redact_dict(value)
            else:
                payload[key] = value

        if record.exc_info:
            exc_text = self.formatException(record.exc_info)
            payload["exc_info"] = self._redact_sensitive_data(exc_text)

        return json.dumps(payload, ensure_ascii=False, default=str)

    def _redact_sensitive_data(self, text: str) -> str:
        """Redact credentials from text."""
        if not isinstance(text, str):
            return text

        redacted_text = text
        for pattern, field_type in self.redaction_patterns:
            if field_type == 'credential':
                redacted_text = pattern.sub(r'\1 [REDACTED]', redacted_text)
            elif field_type == 'userinfo':
                redacted_text = pattern.sub(r'\1[REDACTED]@', redacted_text)
            else:
                redacted_text = pattern.sub(r'\1\2[REDACTED]', redacted_text)

        return redacted_text

    def _redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively redact credentials from dictionary structures."""
        redacted_dict = {}

        for key, value in data.items():
            key_lower = str(key).lower()

            if any(sensitive in key_lower for sensitive in ['token', 'password', 'secret', 'authorization']):
                redacted_dict[key] = "[REDACTED]"
            elif isinstance(value, str):
                redacted_dict[key] = self._redact_sensitive_data(value)
            elif isinstance(value, dict):
                redacted_dict[key] = self._redact_dict(value)
            elif isinstance(value, list):
                redacted_dict[key] = [
                    self._redact_dict(item) if isinstance(item, dict)
                    else self._redact_sensitive_data(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            else:
                redacted_dict[key] = value

        return redacted_dict


def setup_logging() -> None:
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
