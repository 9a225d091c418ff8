"""JSON log formatting with request-scoped context.

Every record carries the service identity plus whatever the request
middleware bound for the current task (request id, route, caller id).
Fields passed through ``extra={...}`` are emitted as top-level keys after
redaction: location data and post text never reach the log sink.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from matchfeed.settings import settings

_LOGGER_NAME = "matchfeed"

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("matchfeed_log_context", default={})

_REDACTED_KEYS = frozenset(
	{
		"authorization",
		"latitude",
		"longitude",
		"location",
		"coordinates",
		"origin",
		"text",
		"content",
	}
)

_MAX_STRING_LENGTH = 200
_MAX_ITEMS = 20

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
	"message",
	"asctime",
}


def bind_context(**fields: Optional[str]) -> Token:
	"""Merge non-empty ``fields`` into the log context; pass the token to ``reset_context``."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().get("request_id")


def _clip(value: Any) -> Any:
	if isinstance(value, str) and len(value) > _MAX_STRING_LENGTH:
		return value[:_MAX_STRING_LENGTH] + "..."
	if isinstance(value, (list, tuple, set, frozenset)):
		items = list(value)
		clipped = [_clip(item) for item in items[:_MAX_ITEMS]]
		if len(items) > _MAX_ITEMS:
			clipped.append(f"+{len(items) - _MAX_ITEMS} more")
		return clipped
	if isinstance(value, dict):
		return {str(key): _field(str(key), nested) for key, nested in list(value.items())[:_MAX_ITEMS]}
	return value


def _field(key: str, value: Any) -> Any:
	if key.lower() in _REDACTED_KEYS:
		return "[redacted]"
	return _clip(value)


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		for key, value in record.__dict__.items():
			if key in _RECORD_ATTRS or key in payload:
				continue
			payload[key] = _field(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a fraction of info records; warnings and errors always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(0.0, rate)


def configure_logging() -> logging.Logger:
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers = [handler]
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
