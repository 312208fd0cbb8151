"""Seller token provider for the GGSel API.

The login call is signed with sha256(secret + timestamp_ms). Tokens live for
two hours on the marketplace side; we refresh a little earlier.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Any, Callable, Optional

from adapters.ggsel_client import DEFAULT_BASE_URL, request_json
from core.errors import MarketplaceError, TokenError

LOGGER = logging.getLogger(__name__)

TOKEN_VALIDITY_SECONDS = 110 * 60
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0

RequestFn = Callable[..., Any]


def sign_login(secret_key: str, timestamp_ms: int) -> str:
    return hashlib.sha256(f"{secret_key}{timestamp_ms}".encode("utf-8")).hexdigest()


class GGSelTokenProvider:
    """TokenProvider with an in-memory cache and bounded transport retries."""

    def __init__(
        self,
        seller_id: str,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        request_fn: RequestFn = request_json,
        clock: Callable[[], float] = time.time,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        # Fail fast on missing credentials instead of an opaque API error.
        if not seller_id or not secret_key:
            raise RuntimeError("Missing GGSEL_SELLER_ID or GGSEL_SECRET_KEY in environment")
        self._seller_id = seller_id
        self._secret_key = secret_key
        self._login_url = f"{base_url.rstrip('/')}/apilogin"
        self._timeout = timeout
        self._request = request_fn
        self._clock = clock
        self._retry_delay = retry_delay
        self._token: Optional[str] = None
        self._obtained_at: Optional[float] = None

    def clear(self) -> None:
        """Drop the cached token so the next call logs in again."""

        self._token = None
        self._obtained_at = None
        LOGGER.debug("Token cache cleared")

    async def get_token(self) -> str:
        now = self._clock()
        if self._token and self._obtained_at is not None:
            age = now - self._obtained_at
            if age < TOKEN_VALIDITY_SECONDS:
                LOGGER.debug("Using cached token (age: %ss)", int(age))
                return self._token
            LOGGER.debug("Cached token expired (age: %ss), fetching a new one", int(age))

        body = await self._login()
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise TokenError("Token not found in login response")

        self._token = token
        self._obtained_at = self._clock()
        LOGGER.debug("New token obtained and cached")
        return token

    async def _login(self) -> Any:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            timestamp_ms = int(self._clock() * 1000)
            payload = {
                "seller_id": int(self._seller_id),
                "timestamp": timestamp_ms,
                "sign": sign_login(self._secret_key, timestamp_ms),
            }
            try:
                return await asyncio.to_thread(
                    self._request, "POST", self._login_url, None, payload, self._timeout
                )
            except MarketplaceError as exc:
                # Only transport failures are retried; HTTP errors are final.
                if exc.status is not None or attempt == MAX_ATTEMPTS:
                    raise TokenError(f"Login failed after {attempt} attempt(s): {exc}") from exc
                LOGGER.warning(
                    "Login failed (attempt %s/%s), retrying in %ss: %s",
                    attempt,
                    MAX_ATTEMPTS,
                    self._retry_delay,
                    exc,
                )
                await asyncio.sleep(self._retry_delay)
        raise TokenError("Login failed")
