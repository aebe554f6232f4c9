"""Delivery of collected metrics to the remote collector.

Uses an httpx client with tenacity retries: transient failures are retried
with linearly increasing waits, a rejected token fails immediately.
"""

from __future__ import annotations

import logging
from typing import Iterable

import httpx
import tenacity

from .exceptions import AuthError, SenderError
from .models import CollectorResult

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    """Everything but an auth rejection is worth another attempt."""
    if isinstance(exc, AuthError):
        return False
    return isinstance(exc, (SenderError, httpx.TransportError))


class MetricsSender:
    """Sync client for the collector's agent API.

    Usage::

        with MetricsSender(config.server_url, config.auth_token) as sender:
            sender.send(results)
    """

    def __init__(
        self,
        server_url: str,
        auth_token: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_wait: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the sender.

        Args:
            server_url: Collector base URL.
            auth_token: Agent token sent as a Bearer credential.
            timeout: Request timeout in seconds.
            max_retries: Total attempts for a send.
            retry_wait: Base wait in seconds; attempt n waits n * retry_wait.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._base_url = server_url.rstrip('/')
        self._max_retries = max_retries
        self._retry_wait = retry_wait
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                'Content-Type': 'application/json',
                'Authorization': f'Bearer {auth_token}',
            },
        )

    def send(self, results: Iterable[CollectorResult]) -> bool:
        """Post collector results.

        Returns:
            True when the collector accepted the metrics, False when the
            token was rejected or every attempt failed.
        """
        payload = {'metrics': [r.to_dict() for r in results]}

        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=tenacity.wait_incrementing(start=self._retry_wait, increment=self._retry_wait),
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            retryer(self._do_send, payload)
        except AuthError as e:
            logger.error("%s. Run: monitor-ia-agent setup <token>", e)
            return False
        except (SenderError, httpx.TransportError) as e:
            logger.error("Could not send metrics after %d attempts: %s", self._max_retries, e)
            return False

        logger.info("Metrics sent (%d collectors)", len(payload['metrics']))
        return True

    def _do_send(self, payload: dict) -> None:
        """Execute a single POST (no retry)."""
        response = self._client.post(f'{self._base_url}/api/agent/metrics', json=payload)

        if response.status_code == 401:
            raise AuthError("Invalid token (HTTP 401)")
        if not response.is_success:
            raise SenderError(f"Server error (HTTP {response.status_code}): {response.text}")

    def fetch_remote_config(self) -> dict:
        """Fetch per-agent settings (enabled collectors, encryption key).

        Returns an empty dict when the server cannot be reached or answers
        with an error, so setup can fall back to defaults.
        """
        try:
            response = self._client.get(f'{self._base_url}/api/agent/config')
        except httpx.HTTPError as e:
            logger.warning("Could not reach server for config: %s", e)
            return {}

        if not response.is_success:
            logger.warning("Config request failed (HTTP %d)", response.status_code)
            return {}

        try:
            data = response.json()
        except ValueError:
            logger.warning("Config response is not JSON")
            return {}
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> MetricsSender:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
