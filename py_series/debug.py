"""Logging utilities for the series service."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("py_series")
engine_logger = logging.getLogger("py_series.engine")
store_logger = logging.getLogger("py_series.store")


def is_json_content(content_type: str | None) -> bool:
    """Check if a content type is JSON.

    Args:
        content_type: Content-Type header value

    Returns:
        True if content type indicates JSON
    """
    if not content_type:
        return False
    return "json" in content_type.lower()


def format_body(body: bytes | None, content_type: str | None) -> list[str]:
    """Render a request/response body as log lines.

    JSON bodies are pretty-printed; anything else is previewed with its size.
    """
    if not body:
        return []

    if is_json_content(content_type):
        try:
            parsed = json.loads(body)
        except ValueError:
            pass
        else:
            return json.dumps(parsed, indent=2, ensure_ascii=False).splitlines()

    preview = body[:200].decode("utf-8", errors="replace")
    lines = [f"[{len(body)} bytes] {preview}"]
    if len(body) > 200:
        lines.append(f"... ({len(body) - 200} more bytes)")
    return lines


def log_request(method: str, path: str, headers: dict[str, str], body: bytes | None) -> None:
    """Log an incoming HTTP request.

    Args:
        method: HTTP method
        path: Request path
        headers: Request headers
        body: Request body
    """
    logger.info("=" * 80)
    logger.info(f">>> INCOMING REQUEST: {method} {path}")
    logger.info("-" * 80)
    for header in ("content-type", "content-length", "user-agent"):
        value = headers.get(header)
        if value:
            logger.info(f"  {header}: {value}")

    lines = format_body(body, headers.get("content-type"))
    if lines:
        logger.info("Request Body:")
        for line in lines:
            logger.info(f"  {line}")
    logger.info("=" * 80)


def log_response(status_code: int, headers: dict[str, Any], body: bytes | None) -> None:
    """Log an outgoing HTTP response.

    Args:
        status_code: HTTP status code
        headers: Response headers
        body: Response body
    """
    logger.info(f"<<< OUTGOING RESPONSE: {status_code}")
    lines = format_body(body, headers.get("content-type"))
    for line in lines:
        logger.info(f"  {line}")
    logger.info("")


def _attach_console_handler(target: logging.Logger) -> None:
    target.setLevel(logging.DEBUG)

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)

    # Message only, the log calls format themselves
    handler.setFormatter(logging.Formatter("%(message)s"))
    target.addHandler(handler)

    # Avoid duplicate lines through the root logger
    target.propagate = False


def setup_debug_logging() -> None:
    """Configure debug logging for the HTTP layer, the engine and the store."""
    if not logger.handlers:
        _attach_console_handler(logger)
