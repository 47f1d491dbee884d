"""
REST client for the remote credential store.

The store exposes PostgREST-style row filters (``column=eq.value``) over the
``users_login``, ``secrets`` and ``auth_tokens`` tables, authenticated with a
static ``apikey`` header. Every method raises on transport, status or parse
failure; callers decide how to downgrade those.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..utils.constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    OPENAI_API_KEY,
    TABLE_AUTH_TOKENS,
    TABLE_SECRETS,
    TABLE_USERS_LOGIN,
)
from .models import BackendConnectionParams

logger = logging.getLogger(__name__)


class RemoteStoreClient:
    """Row-filter queries against the remote store."""

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def select(
        self,
        backend: BackendConnectionParams,
        table: str,
        filters: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        """
        Run a filtered select against ``table``.

        Args:
            backend: Where to send the request and which anonymous key to use.
            table: Table name under ``/rest/v1``.
            filters: Query parameters, e.g. ``{"username": "eq.alice"}``.

        Returns:
            The JSON array of matching rows.

        Raises:
            httpx.HTTPError: On network failure or non-success status.
            ValueError: If the body is not a JSON array.
        """
        url = f"{backend.endpoint_url.rstrip('/')}/rest/v1/{table}"
        headers = {
            "apikey": backend.anonymous_key,
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.get(url, params=filters, headers=headers)

        response.raise_for_status()
        rows = response.json()
        if not isinstance(rows, list):
            raise ValueError(f"Unexpected response shape from table '{table}'")
        logger.debug(f"Remote store returned {len(rows)} rows from {table}")
        return rows

    async def fetch_login_record(
        self, backend: BackendConnectionParams, username: str
    ) -> Optional[Dict[str, Any]]:
        rows = await self.select(
            backend,
            TABLE_USERS_LOGIN,
            {"username": f"eq.{username}", "select": "username,password"},
        )
        return rows[0] if rows else None

    async def fetch_secret(
        self, backend: BackendConnectionParams, key_name: str = OPENAI_API_KEY
    ) -> str:
        """Fetch one named secret; empty string when the row is missing."""
        rows = await self.select(
            backend,
            TABLE_SECRETS,
            {"key_name": f"eq.{key_name}", "select": "key_value"},
        )
        if rows:
            return rows[0].get("key_value") or ""
        return ""

    async def find_active_token(
        self, backend: BackendConnectionParams, token: str
    ) -> Optional[Dict[str, Any]]:
        """Return the first unexpired ``auth_tokens`` row matching ``token``."""
        now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        rows = await self.select(
            backend,
            TABLE_AUTH_TOKENS,
            {
                "token": f"eq.{token}",
                "expires_at": f"gt.{now}",
                "select": "username,is_admin,expires_at",
            },
        )
        return rows[0] if rows else None
