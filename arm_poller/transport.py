import asyncio
import inspect
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional, Union

import aiohttp
from loguru import logger
from yarl import URL

from arm_poller.codec import decode_error, decode_json
from arm_poller.config import Settings, get_settings
from arm_poller.errors import FatalRequestError, TransientTransportError
from arm_poller.models import ApiResponse

TokenProvider = Callable[[], Union[str, Awaitable[str]]]


class ResourceManagerClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        api_version: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.base_url).rstrip("/")
        self.api_version = api_version or self.settings.api_version
        self.token_provider = token_provider
        self._session = session
        self._owns_session = session is None
        self.logger = logger

    async def __aenter__(self) -> "ResourceManagerClient":
        self._get_session()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    def url_for(self, path: str) -> str:
        """Joins a relative path onto base_url; absolute links are returned untouched"""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _query(self, url: str, params: Optional[dict[str, Any]]) -> dict[str, Any]:
        query = dict(params or {})
        if (
            self.api_version
            and "api-version" not in query
            and "api-version" not in URL(url).query
        ):
            query["api-version"] = self.api_version
        return query

    async def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token_provider is not None:
            token = self.token_provider()
            if inspect.isawaitable(token):
                token = await token
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        expected_status: Optional[Iterable[int]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        """Sends one request and classifies the response status"""
        method = method.upper()
        url = self.url_for(path)
        session = self._get_session()
        client_timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else self.settings.request_timeout
        )

        try:
            async with session.request(
                method,
                url,
                json=json,
                params=self._query(url, params) or None,
                headers=await self._headers(),
                timeout=client_timeout,
            ) as resp:
                body = await resp.read()
                response = ApiResponse(
                    status=resp.status,
                    headers=dict(resp.headers),
                    body=body or None,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"{method} {url} failed: {e!r}")
            raise TransientTransportError(f"{method} {url}: {e!r}") from e

        self.logger.debug(f"{method} {url} -> {response.status}")
        self._raise_for_status(method, url, response, expected_status)
        return response

    def _raise_for_status(
        self,
        method: str,
        url: str,
        response: ApiResponse,
        expected_status: Optional[Iterable[int]],
    ) -> None:
        if response.status >= 500:
            self.logger.warning(f"{method} {url} returned {response.status}")
            raise TransientTransportError(
                f"{method} {url} returned {response.status}",
                status=response.status,
                retry_after=response.retry_after,
            )
        if response.status >= 400:
            detail = decode_error(response)
            self.logger.error(
                f"HTTP error {response.status} at {url}: {detail.code} {detail.message}"
            )
            raise FatalRequestError(
                response.status, detail.message or "request rejected", code=detail.code
            )
        if expected_status is None:
            return
        expected = set(expected_status)
        if response.status not in expected:
            raise FatalRequestError(
                response.status,
                f"unexpected status for {method} {url}, wanted one of {sorted(expected)}",
            )

    async def get(self, path: str, **kwargs) -> ApiResponse:
        return await self.request("GET", path, **kwargs)

    async def put(self, path: str, **kwargs) -> ApiResponse:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> ApiResponse:
        return await self.request("PATCH", path, **kwargs)

    async def post(self, path: str, **kwargs) -> ApiResponse:
        return await self.request("POST", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> ApiResponse:
        return await self.request("DELETE", path, **kwargs)

    async def list_all(
        self, path: str, params: Optional[dict[str, Any]] = None
    ) -> AsyncIterator[Any]:
        """Yields every item of a paged list, following nextLink until it is absent"""
        link: Optional[str] = path
        first = True
        while link:
            response = await self.get(
                link, params=params if first else None, expected_status=(200,)
            )
            first = False
            page = decode_json(response) or {}
            for item in page.get("value") or []:
                yield item
            link = page.get("nextLink")
