"""HTTP client for the lineage, column-lineage, process and entry services."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from lineage_engine.client.retry import RetryConfig, async_retry_with_backoff
from lineage_engine.config import Settings
from lineage_engine.errors import LineageTransportError, RetryableTransportError
from lineage_engine.models.links import ColumnLinkSearchResult, Direction, LinkSearchResult

logger = logging.getLogger(__name__)

LINEAGE_PATH = "/lineage"
COLUMN_LINEAGE_PATH = "/lineage-column-level"
PROCESS_DETAILS_PATH = "/get-process-and-job-details"
ENTRY_BY_FQN_PATH = "/get-entry-by-fqn"


class HttpLineageFetcher:
    """Async client implementing :class:`~lineage_engine.client.base.LineageLinkFetcher`.

    Network errors and 5xx responses are retried with exponential backoff;
    4xx responses and undecodable payloads fail immediately.  Every failure
    surfaces as :class:`~lineage_engine.errors.LineageTransportError`.

    Parameters
    ----------
    base_url:
        Root URL of the lineage API (e.g. ``http://localhost:8080/api/v1``).
    token:
        Bearer token sent on every request when set.
    timeout:
        Per-request timeout in seconds.
    retry:
        Retry parameters for transient failures.
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._retry = retry or RetryConfig()

        default_headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            default_headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            headers=default_headers,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpLineageFetcher:
        """Build a fetcher from :class:`~lineage_engine.config.Settings`."""
        return cls(
            settings.api_url,
            token=settings.bearer_token(),
            timeout=settings.request_timeout,
            retry=RetryConfig(
                max_retries=settings.max_retries,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
            transport=transport,
        )

    # -- Lineage endpoints ---------------------------------------------------

    async def search_links(self, parent: str, fqn: str) -> LinkSearchResult:
        """Fetch the 1-hop links around *fqn* via ``POST /lineage``."""
        body = await self._request("POST", LINEAGE_PATH, json={"parent": parent, "fqn": fqn})
        return self._parse(LinkSearchResult, body, LINEAGE_PATH)

    async def search_column_links(self, parent: str, fqn: str, direction: Direction) -> ColumnLinkSearchResult:
        """Fetch multi-hop column-level link trees via ``POST /lineage-column-level``."""
        body = await self._request(
            "POST",
            COLUMN_LINEAGE_PATH,
            json={"parent": parent, "fqn": fqn, "direction": direction.value},
        )
        return self._parse(ColumnLinkSearchResult, body, COLUMN_LINEAGE_PATH)

    async def get_process_details(self, process: str) -> dict[str, Any]:
        """Fetch process and job metadata for a process resource name."""
        body = await self._request("POST", PROCESS_DETAILS_PATH, json={"process": process})
        return self._expect_object(body, PROCESS_DETAILS_PATH)

    async def get_entry(self, fqn: str) -> dict[str, Any]:
        """Fetch the catalog entry payload for *fqn*."""
        body = await self._request("GET", ENTRY_BY_FQN_PATH, params={"fqn": fqn})
        return self._expect_object(body, ENTRY_BY_FQN_PATH)

    # -- Lifecycle -----------------------------------------------------------

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpLineageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Internal helpers ----------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request with retry and return the decoded JSON body."""

        async def attempt() -> httpx.Response:
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as exc:
                raise RetryableTransportError(f"{method} {path} failed: {exc}", path=path) from exc
            if response.status_code >= 500:
                raise RetryableTransportError(
                    f"{method} {path} returned {response.status_code}",
                    path=path,
                    status_code=response.status_code,
                )
            return response

        try:
            response = await async_retry_with_backoff(
                attempt,
                self._retry,
                (RetryableTransportError,),
                label=f"{method} {path}",
            )
        except LineageTransportError as exc:
            logger.warning("Lineage request %s %s failed: %s", method, path, exc)
            raise
        except httpx.HTTPError as exc:
            logger.warning("Lineage request %s %s failed: %s", method, path, exc)
            raise LineageTransportError(f"{method} {path} failed: {exc}", path=path) from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Lineage API returned %d for %s: %s",
                response.status_code,
                path,
                response.text[:500],
            )
            raise LineageTransportError(
                f"{method} {path} returned {response.status_code}",
                path=path,
                status_code=response.status_code,
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise LineageTransportError(f"{method} {path} returned invalid JSON", path=path) from exc

    @staticmethod
    def _parse(model: type[Any], body: Any, path: str) -> Any:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise LineageTransportError(
                f"Unexpected response shape from {path}: {exc.error_count()} validation errors",
                path=path,
            ) from exc

    @staticmethod
    def _expect_object(body: Any, path: str) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise LineageTransportError(f"Expected a JSON object from {path}", path=path)
        return body
