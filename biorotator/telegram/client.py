"""HTTP client for the Telegram Bot API."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from biorotator.config import TelegramConfig

from .errors import (
    ExternalBackoffError,
    RateLimitedError,
    UnauthorizedError,
    UpdateError,
    UpdateFailedError,
)
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SET_DESCRIPTION_METHOD = "setMyShortDescription"
GET_ME_METHOD = "getMe"
GET_UPDATES_METHOD = "getUpdates"
SEND_MESSAGE_METHOD = "sendMessage"

_FLOOD_WAIT_PATTERN = re.compile(r"FLOOD_WAIT_(?P<seconds>\d+)")
_RETRY_AFTER_PATTERN = re.compile(r"retry after (?P<seconds>\d+)", re.IGNORECASE)


class TelegramProfileClient:
    """Thin wrapper around the Bot API methods the rotator needs.

    Profile updates go through ``setMyShortDescription`` and are spaced by the
    supplied :class:`RateLimiter`.  Responses are translated into the
    :mod:`biorotator.telegram.errors` hierarchy so the scheduler can tell a
    throttle from a hard failure.
    """

    def __init__(
        self,
        config: TelegramConfig,
        rate_limiter: RateLimiter,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._rate_limiter = rate_limiter
        base_url = f"{config.api_base_url.rstrip('/')}/bot{config.bot_token}/"
        self._client = httpx.Client(
            base_url=base_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public API
    def update_description(self, text: str) -> None:
        """Apply ``text`` as the live profile description."""

        waited = self._rate_limiter.wait_and_acquire()
        if waited:
            logger.debug("Waited %.1fs for rate limit", waited)

        logger.info("Updating description to: %r", _truncate_for_log(text, 30))
        try:
            self._call(SET_DESCRIPTION_METHOD, {"short_description": text})
        except RateLimitedError as exc:
            self._rate_limiter.defer(exc.retry_after)
            raise
        except ExternalBackoffError as exc:
            self._rate_limiter.handle_external_backoff(exc.seconds)
            raise

    def get_me(self) -> Dict[str, Any]:
        result = self._call(GET_ME_METHOD, {})
        if not isinstance(result, dict):
            raise UpdateFailedError("unexpected getMe payload")
        return result

    def is_authorized(self) -> bool:
        try:
            self.get_me()
        except UnauthorizedError:
            return False
        return True

    def get_updates(self, offset: Optional[int], poll_timeout: int) -> List[Dict[str, Any]]:
        """Long-poll for new messages sent to the bot."""

        payload: Dict[str, Any] = {"timeout": poll_timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = self._call(
            GET_UPDATES_METHOD,
            payload,
            timeout=self._config.request_timeout + poll_timeout,
        )
        if not isinstance(result, list):
            raise UpdateFailedError("unexpected getUpdates payload")
        return result

    def send_message(self, chat_id: int, text: str) -> None:
        self._call(SEND_MESSAGE_METHOD, {"chat_id": chat_id, "text": text})

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`."""

        self._client.close()

    def __enter__(self) -> "TelegramProfileClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    def _call(self, method: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        try:
            if timeout is None:
                response = self._client.post(method, json=payload)
            else:
                response = self._client.post(method, json=payload, timeout=timeout)
        except httpx.HTTPError as exc:
            raise UpdateFailedError(f"{method} request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("ok"):
            return body.get("result")
        raise _translate_error(method, response.status_code, body)


class DryRunUpdater:
    """Stands in for :class:`TelegramProfileClient` when ``dry_run`` is set."""

    def __init__(self) -> None:
        self.applied: List[str] = []

    def update_description(self, text: str) -> None:
        logger.info("[dry-run] would update description to: %r", _truncate_for_log(text, 30))
        self.applied.append(text)


def _translate_error(method: str, status_code: int, body: Dict[str, Any]) -> UpdateError:
    error_code = int(body.get("error_code") or status_code)
    description = str(body.get("description") or f"HTTP {status_code}")
    parameters = body.get("parameters") or {}

    flood = _FLOOD_WAIT_PATTERN.search(description)
    if error_code == 420 or flood:
        seconds = int(flood.group("seconds")) if flood else int(parameters.get("retry_after", 0))
        return ExternalBackoffError(seconds, f"{method}: {description}")
    if error_code == 429:
        retry_after = parameters.get("retry_after")
        if retry_after is None:
            match = _RETRY_AFTER_PATTERN.search(description)
            retry_after = int(match.group("seconds")) if match else 0
        return RateLimitedError(float(retry_after), f"{method}: {description}")
    if error_code in (401, 403):
        return UnauthorizedError(f"{method}: {description}")
    return UpdateFailedError(f"{method}: {description}")


def _truncate_for_log(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
