"""Authenticated REST client for a Coinbase Exchange (ex-GDAX) style API."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Optional

import aiohttp

from order_tracker.config.constants import DEFAULT_API_URL, DEFAULT_TIMEOUT_SECONDS
from order_tracker.errors import ExchangeError, OrderNotFoundError
from order_tracker.execution.order import Order, OrderParams

logger = logging.getLogger(__name__)


class ExchangeClient:
    """
    Async client covering the four calls the tracker needs.

    Requests are signed with the CB-ACCESS-* header scheme: a base64
    HMAC-SHA256 of ``timestamp + METHOD + path + body`` keyed with the
    base64-decoded API secret.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        passphrase: str,
        base_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.passphrase = passphrase
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_env(cls, base_url: str = DEFAULT_API_URL, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> "ExchangeClient":
        """Build a client from EXCHANGE_API_KEY / EXCHANGE_API_SECRET / EXCHANGE_PASSPHRASE."""
        return cls(
            api_key=os.environ.get("EXCHANGE_API_KEY", ""),
            api_secret=os.environ.get("EXCHANGE_API_SECRET", ""),
            passphrase=os.environ.get("EXCHANGE_PASSPHRASE", ""),
            base_url=base_url,
            timeout_seconds=timeout_seconds,
        )

    async def __aenter__(self) -> "ExchangeClient":
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def sign(self, timestamp: str, method: str, path: str, body: str = "") -> str:
        message = f"{timestamp}{method.upper()}{path}{body}".encode("utf-8")
        key = base64.b64decode(self.api_secret)
        digest = hmac.new(key, message, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("utf-8")

    def auth_headers(self, method: str, path: str, body: str = "") -> dict[str, str]:
        timestamp = f"{time.time():.3f}"
        return {
            "CB-ACCESS-KEY": self.api_key,
            "CB-ACCESS-SIGN": self.sign(timestamp, method, path, body),
            "CB-ACCESS-TIMESTAMP": timestamp,
            "CB-ACCESS-PASSPHRASE": self.passphrase,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        """Send a signed request; `path` includes the query string because it is signed too."""
        body = json.dumps(payload) if payload is not None else ""
        headers = self.auth_headers(method, path, body)
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, data=body or None, headers=headers) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise ExchangeError(f"{method} {path} failed status={resp.status} body={text}", status=resp.status)
                if not text:
                    return None
                try:
                    return json.loads(text)
                except ValueError as exc:
                    raise ExchangeError(f"{method} {path} invalid JSON body={text[:200]}", status=resp.status) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ExchangeError(f"{method} {path} transport error: {exc}") from exc

    async def list_open_orders(self, market: Optional[str] = None) -> list[Order]:
        path = "/orders?status=open"
        if market:
            path = f"{path}&product_id={market}"
        data = await self._request("GET", path) or []
        return [Order.from_dict(item) for item in data]

    async def get_order(self, order_id: str) -> Order:
        if not order_id:
            raise ValueError("Missing id argument")
        try:
            data = await self._request("GET", f"/orders/{order_id}")
        except ExchangeError as exc:
            if exc.status == 404:
                raise OrderNotFoundError(order_id) from exc
            raise
        return Order.from_dict(data or {"id": order_id})

    async def _place(self, side: str, params: OrderParams) -> Order:
        """Submit a limit order. A "rejected" status is returned as-is, not raised."""
        data = await self._request("POST", "/orders", params.to_payload(side)) or {}
        order = Order.from_dict(data)
        logger.debug("placed side=%s id=%s status=%s", side, order.id, order.status)
        return order

    async def buy(self, params: OrderParams) -> Order:
        return await self._place("buy", params)

    async def sell(self, params: OrderParams) -> Order:
        return await self._place("sell", params)
