"""Async JSON-over-HTTPS client shared by the platform adapters."""

import json
import logging
from typing import Any, Optional

import httpx
from httpx import HTTPError, TimeoutException, TransportError

from .constants import FETCH_TIMEOUT
from .errors import DecodingError, NetworkError, RateLimited

logger = logging.getLogger('warroom.http_client')

USER_AGENT = 'warroom/1.0'


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get('Retry-After')
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class PlatformHTTPClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` that maps transport and HTTP
    failures onto the warroom error taxonomy.

    Every request is bounded by ``timeout``. Pass ``transport`` to swap in an
    ``httpx.MockTransport`` under test.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = FETCH_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
        cookies: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT, 'Accept': 'application/json', **(headers or {})},
            cookies=cookies,
            transport=transport,
        )

    async def get_json(self, path: str, params: Any = None) -> Any:
        """
        GET ``path`` and decode the JSON body.

        Raises:
            RateLimited: HTTP 429
            NetworkError: timeouts, connection failures and other HTTP errors
            DecodingError: the body is not valid JSON
        """
        try:
            response = await self._client.get(path, params=params)
        except TimeoutException as e:
            logger.warning(f'Request timed out after {self.timeout}s: {self.base_url}{path}')
            raise NetworkError(f'timeout fetching {path}') from e
        except (TransportError, HTTPError) as e:
            logger.warning(f'Request failed for {self.base_url}{path}: {e}')
            raise NetworkError(f'transport error fetching {path}: {e}') from e

        if response.status_code == 429:
            retry_after = _retry_after(response)
            logger.warning(f'Rate limited by {self.base_url} (retry after {retry_after})')
            raise RateLimited(f'rate limited fetching {path}', retry_after=retry_after)

        if response.status_code >= 400:
            raise NetworkError(
                f'HTTP {response.status_code} fetching {path}', status=response.status_code
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodingError(f'invalid JSON from {path}: {e}') from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> 'PlatformHTTPClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
