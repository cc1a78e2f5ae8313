"""Discord channel message client (REST API v10).

Each request attempt opens its own `httpx.AsyncClient`.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

import httpx

from pipeline_tracker.constants import DISCORD_API_BASE_URL, DISCORD_REQUEST_TIMEOUT_S
from pipeline_tracker.core.errors import RemoteUnavailableError
from pipeline_tracker.core.validation import normalize_channel_id, validate_bot_token
from pipeline_tracker.formatting.messages import DiscordMessage
from pipeline_tracker.logging_config import get_logger
from pipeline_tracker.notifier.base import HealthStatus
from pipeline_tracker.notifier.retry import RetryPolicy

logger = get_logger(__name__)

_STATUS_GUIDANCE = {
    401: "Unauthorized: the bot token is invalid or was revoked. Check the discord_bot_token input.",
    403: "Forbidden: the bot is missing permission for this channel. Grant View Channel and Send Messages.",
    404: "Not found: the channel or message does not exist. Check the discord_channel_id input.",
    429: "Rate limited by Discord.",
}


def describe_status(status_code: int, detail: str | None = None) -> str:
    """Actionable message for a failed HTTP status."""
    guidance = _STATUS_GUIDANCE.get(status_code, f"HTTP {status_code}")
    if detail:
        return f"{guidance} ({status_code}: {detail})"
    return f"{guidance} ({status_code})"


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class DiscordNotifier:
    """`MessageNotifier` backed by the Discord bot API."""

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        *,
        api_base_url: str = DISCORD_API_BASE_URL,
        timeout_s: float = DISCORD_REQUEST_TIMEOUT_S,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._bot_token = validate_bot_token(bot_token)
        self._channel_id = normalize_channel_id(channel_id)
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._sleep = sleep
        self._rng = rng

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def send(self, message: DiscordMessage) -> str:
        response = await self._request("POST", self._messages_path(), operation="send", payload=message)
        body = _json_body(response)
        message_id = body.get("id") if isinstance(body, dict) else None
        if not message_id:
            raise RemoteUnavailableError("Response did not include a message id", status_code=response.status_code)
        logger.info("discord message sent", channel_id=self._channel_id, message_id=str(message_id))
        return str(message_id)

    async def update(self, message_id: str, message: DiscordMessage) -> None:
        await self._request("PATCH", self._messages_path(message_id), operation="update", payload=message)
        logger.info("discord message updated", channel_id=self._channel_id, message_id=message_id)

    async def delete(self, message_id: str) -> None:
        await self._request("DELETE", self._messages_path(message_id), operation="delete")
        logger.info("discord message deleted", channel_id=self._channel_id, message_id=message_id)

    async def health_check(self) -> HealthStatus:
        """Probe channel access once, without retries."""
        try:
            async with self._client() as client:
                response = await client.get(f"/channels/{self._channel_id}")
        except httpx.RequestError as exc:
            return HealthStatus(available=False, reason=f"No response received: {exc}")

        if response.status_code < 400:
            return HealthStatus(available=True)
        return HealthStatus(available=False, reason=describe_status(response.status_code, _error_detail(response)))

    def _messages_path(self, message_id: str | None = None) -> str:
        path = f"/channels/{self._channel_id}/messages"
        return f"{path}/{message_id}" if message_id else path

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base_url,
            timeout=self._timeout_s,
            transport=self._transport,
            headers={"Authorization": f"Bot {self._bot_token}", "Content-Type": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        payload: DiscordMessage | None = None,
    ) -> httpx.Response:
        policy = self._retry_policy
        last_error = "no attempt made"
        last_status: int | None = None

        for attempt in range(1, policy.max_attempts + 1):
            retry_after: float | None = None
            try:
                async with self._client() as client:
                    response = await client.request(method, path, json=payload)
            except httpx.RequestError as exc:
                last_error = f"No response received ({type(exc).__name__}: {exc})"
                last_status = None
            else:
                status = response.status_code
                if status < 400:
                    return response
                last_error = describe_status(status, _error_detail(response))
                last_status = status
                if not is_retryable_status(status):
                    raise RemoteUnavailableError(last_error, status_code=status, attempts=attempt)
                if status == 429:
                    retry_after = _retry_after(response)

            if attempt >= policy.max_attempts:
                break
            delay = policy.compute_delay(attempt - 1, retry_after, self._rng)
            logger.warning(
                "discord request failed, retrying",
                operation=operation,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_s=round(delay, 3),
                error=last_error,
            )
            await self._sleep(delay)

        raise RemoteUnavailableError(
            f"{operation} failed after {policy.max_attempts} attempts: {last_error}",
            status_code=last_status,
            attempts=policy.max_attempts,
        )


def _json_body(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return None


def _error_detail(response: httpx.Response) -> str | None:
    body = _json_body(response)
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    text = response.text.strip()
    return text[:200] if text else None


def _retry_after(response: httpx.Response) -> float | None:
    """Wait hint from a 429: JSON `retry_after` first, then the `Retry-After` header."""
    body = _json_body(response)
    candidates = []
    if isinstance(body, dict):
        candidates.append(body.get("retry_after"))
    candidates.append(response.headers.get("Retry-After"))
    for candidate in candidates:
        if candidate is None or isinstance(candidate, bool):
            continue
        try:
            return float(candidate)
        except (TypeError, ValueError):
            continue
    return None
