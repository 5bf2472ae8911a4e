"""Application and access logging setup.

Logging for the tenantdesk API is configured here:

- Log lines are human-readable by default, or one JSON object per line when
  LOG_JSON=true.
- ``app.log`` (the ``tenantdesk`` logger) and ``access.log`` (the
  ``uvicorn.access`` logger) rotate at midnight and keep LOG_RETENTION_DAYS
  files.
- An HTTP middleware writes one structured access line per request. Request
  headers are always scrubbed, and so is the body when LOG_REQUEST_BODIES=true.
  Credentials, OTP codes, client secrets, wallet signatures and integration API
  keys never reach the files.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

APP_LOGGER_NAME = "tenantdesk"
ACCESS_LOGGER_NAME = "uvicorn.access"


@dataclass(frozen=True)
class LogSettings:
    """Logging options resolved from the LOG_* environment variables."""

    log_dir: str
    log_level: str
    log_json: bool
    log_request_bodies: bool
    retention_days: int
    rotate_utc: bool

    @property
    def level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)

    def log_files(self) -> dict[str, str]:
        return {
            APP_LOGGER_NAME: os.path.join(self.log_dir, "app.log"),
            ACCESS_LOGGER_NAME: os.path.join(self.log_dir, "access.log"),
        }


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


def load_log_settings() -> LogSettings:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    if not isinstance(getattr(logging, level_name, None), int):
        level_name = "INFO"
    return LogSettings(
        log_dir=os.getenv("LOG_DIR", "logs"),
        log_level=level_name,
        log_json=_env_flag("LOG_JSON"),
        log_request_bodies=_env_flag("LOG_REQUEST_BODIES"),
        retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
        rotate_utc=_env_flag("LOG_ROTATE_UTC"),
    )


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter enabled with LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def _get_formatter(log_json: bool) -> logging.Formatter:
    if log_json:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


SENSITIVE_FIELDS = {
    "authorization",
    "cookie",
    "set-cookie",
    "x-booking-token",
    "password",
    "token",
    "access_token",
    "accesstoken",
    "refresh_token",
    "refreshtoken",
    "otp",
    "code",
    "signature",
    "client_secret",
    "clientsecret",
    "brevo_api_key",
    "brevoapikey",
    "labsmobile_api_key",
    "labsmobileapikey",
}


def scrub(data: object) -> object:
    """Recursively mask sensitive keys in dictionaries and lists."""

    if isinstance(data, dict):
        return {
            k: ("***" if str(k).lower() in SENSITIVE_FIELDS else scrub(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [scrub(v) for v in data]
    return data


def _install_access_logging(app: FastAPI) -> None:
    """Register the access logging middleware on ``app``.

    Health and metrics probes are skipped. Every other request is logged with
    an ``X-Request-Id`` that is reused from the caller when present and echoed
    back on the response.
    """

    log_request_bodies = load_log_settings().log_request_bodies
    skip_paths = {"/api/health", "/api/metrics"}
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in skip_paths:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id

        start = time.time()

        body_content = None
        if log_request_bodies:
            body_bytes = await request.body()

            async def receive() -> dict:  # pragma: no cover - internal
                return {"type": "http.request", "body": body_bytes, "more_body": False}

            request._receive = receive  # type: ignore[attr-defined]

            content_type = request.headers.get("content-type", "")
            if body_bytes and content_type.startswith("multipart/"):
                body_content = f"<multipart {len(body_bytes)} bytes>"
            elif body_bytes:
                try:
                    body_content = scrub(json.loads(body_bytes))
                except ValueError:
                    body_content = body_bytes.decode("utf-8", errors="replace")

        response = await call_next(request)

        process_time_ms = (time.time() - start) * 1000
        client = request.client
        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and client is not None:
            client_ip = client.host

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round(process_time_ms, 2),
            "client_ip": client_ip,
            "tenant_id": getattr(request.state, "tenant_id", None),
            "headers": scrub(dict(request.headers)),
        }

        if body_content is not None:
            log_data["body"] = body_content

        response.headers["X-Request-Id"] = request_id

        access_logger.info(json.dumps(log_data, default=str))
        return response


def _rotating_handler(
    log_dir: str, filename: str, retention_days: int, rotate_utc: bool
) -> TimedRotatingFileHandler:
    return TimedRotatingFileHandler(
        os.path.join(log_dir, filename),
        when="midnight",
        backupCount=retention_days,
        utc=rotate_utc,
    )


def init_logging(app: FastAPI | None = None) -> None:
    """Configure the application and access loggers, then hook ``app``."""

    settings = load_log_settings()
    log_dir = settings.log_dir
    retention_days = settings.retention_days
    rotate_utc = settings.rotate_utc

    os.makedirs(log_dir, exist_ok=True)

    formatter = _get_formatter(settings.log_json)
    log_level = settings.level

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        handler = _rotating_handler(log_dir, "app.log", retention_days, rotate_utc)
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)
    app_logger.setLevel(log_level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    handler = _rotating_handler(log_dir, "access.log", retention_days, rotate_utc)
    handler.setFormatter(formatter)
    access_logger.addHandler(handler)
    access_logger.setLevel(log_level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app)
