"""
HTTP catalog client implementation.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from .base import Operation, RemoteClient
from .. import __version__
from ..config import ClientConfig
from ..exceptions import ConflictError, TransportError

logger = logging.getLogger(__name__)


class HttpCatalogClient(RemoteClient):
    """
    Catalog client speaking JSON over HTTP.

    Every operation is POSTed to ``{base_url}/schema/query`` with the secret as
    a bearer token. The handle owns one ``aiohttp`` session, created lazily and
    released by ``close()``; callers create one client per run and pass it to
    the reconciler. Failures are never retried.
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/schema/query"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            headers = {
                "Content-Type": "application/json",
                "User-Agent": f"schemasync/{__version__}",
                "Authorization": f"Bearer {self.config.secret}",
            }
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self._session

    async def _error_body(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return {}
        if not isinstance(body, dict):
            return {}
        error = body.get("error", body)
        return error if isinstance(error, dict) else {"message": str(error)}

    async def query(self, operation: Operation) -> Any:
        """POST one operation and return its ``result``."""
        session = await self._get_session()
        payload = operation.to_wire()

        try:
            async with session.post(self.query_url, json=payload) as response:
                if 200 <= response.status < 300:
                    body = await response.json(content_type=None)
                    logger.debug(f"Catalog answered {payload['op']} with status {response.status}")
                    if isinstance(body, dict) and "result" in body:
                        return body["result"]
                    return body

                error = await self._error_body(response)
                message = error.get("message") or error.get("description") or f"HTTP {response.status}"

                if response.status in (400, 409):
                    raise ConflictError(
                        message,
                        code=error.get("code"),
                        step_index=error.get("step"),
                        summary=error.get("summary"),
                    )

                if response.status in (401, 403):
                    raise TransportError(
                        f"Catalog auth error: {message}", status_code=response.status
                    )

                raise TransportError(
                    f"Catalog API error: {message}", status_code=response.status
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Network error talking to catalog at {self.base_url}", cause=e
            ) from e

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
