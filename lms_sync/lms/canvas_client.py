"""
Canvas LMS REST client.

Handles:
- Bearer authentication on every request
- Link-header pagination, one page at a time
- Credential verification against /users/self
- Mapping transport and status failures onto the sync error types
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from config import Settings, get_settings

from .errors import RemoteApiError, RemoteUnavailableError
from .models import RemoteCourse, RemoteFile

PAGE_SIZE_PARAM = "per_page"
WHOAMI_ENDPOINT = "/users/self"


class CanvasClient:
    """HTTP client for the Canvas REST API."""

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api/v1",
        page_size: int = 100,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize Canvas client.

        Args:
            base_url: Canvas instance URL, e.g. https://school.instructure.com
            api_prefix: Path prefix for REST endpoints
            page_size: per_page value sent on paginated calls
            timeout_seconds: Per-request timeout
            client: Optional preconfigured httpx.AsyncClient
        """
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.page_size = page_size
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CanvasClient:
        """Build a client from application settings."""
        settings = settings or get_settings()
        return cls(**settings.get_canvas_config())

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> CanvasClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{self.api_prefix}/{endpoint.lstrip('/')}"

    @staticmethod
    def _headers(credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Accept": "application/json",
        }

    async def _get(
        self,
        url: str,
        credential: str,
        endpoint: str,
    ) -> httpx.Response:
        """GET with auth headers; transport failures become RemoteUnavailableError."""
        try:
            return await self.client.get(url, headers=self._headers(credential))
        except httpx.TransportError as e:
            logger.warning(f"Canvas request to {endpoint} failed: {e!r}")
            raise RemoteUnavailableError(endpoint, str(e) or type(e).__name__) from e

    # =========================================================================
    # PAGINATION
    # =========================================================================

    async def list_all(self, endpoint: str, credential: str) -> list[dict[str, Any]]:
        """
        Fetch every item of a paginated collection.

        Pages are requested strictly in sequence because each next page is only
        discoverable from the previous response's Link header.

        Args:
            endpoint: Endpoint path relative to the API prefix, e.g. "/courses"
            credential: Canvas access token

        Returns:
            All items, in the order the pages were returned

        Raises:
            ValueError: Empty credential, or endpoint already sets per_page
            RemoteApiError: Any page answered with a non-success status
            RemoteUnavailableError: The LMS could not be reached
        """
        if not credential:
            raise ValueError("Canvas credential must not be empty")
        if PAGE_SIZE_PARAM in httpx.URL(endpoint).params:
            raise ValueError(f"Endpoint {endpoint!r} must not set {PAGE_SIZE_PARAM}")

        items: list[dict[str, Any]] = []
        # per_page joins any query the endpoint already carries
        url: str | None = str(
            httpx.URL(self._url(endpoint)).copy_merge_params({PAGE_SIZE_PARAM: self.page_size})
        )
        page = 0

        while url:
            response = await self._get(url, credential, endpoint)
            page += 1

            if not response.is_success:
                logger.error(f"Canvas returned {response.status_code} for {endpoint} (page {page})")
                raise RemoteApiError(response.status_code, endpoint, response.reason_phrase)

            try:
                batch = response.json()
            except ValueError as e:
                raise RemoteApiError(response.status_code, endpoint, "response is not JSON") from e
            if not isinstance(batch, list):
                raise RemoteApiError(response.status_code, endpoint, "expected a JSON array")

            items.extend(batch)
            logger.debug(f"Fetched page {page} of {endpoint} ({len(batch)} items)")

            # The next link already carries per_page and the page cursor
            url = response.links.get("next", {}).get("url")

        logger.info(f"Fetched {len(items)} items from {endpoint} in {page} page(s)")
        return items

    # =========================================================================
    # TYPED FETCH METHODS
    # =========================================================================

    async def list_courses(self, credential: str) -> list[RemoteCourse]:
        """List all courses visible to the credential."""
        return [RemoteCourse.from_dict(item) for item in await self.list_all("/courses", credential)]

    async def list_course_files(self, course_id: str, credential: str) -> list[RemoteFile]:
        """List all files in a course."""
        items = await self.list_all(f"/courses/{course_id}/files", credential)
        return [RemoteFile.from_dict(item) for item in items]

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    async def verify_credential(self, credential: str) -> bool:
        """
        Check whether Canvas currently accepts the credential.

        Returns:
            True on 2xx, False on 4xx

        Raises:
            RemoteUnavailableError: Canvas unreachable, so validity is unknown
            RemoteApiError: Canvas answered 5xx
        """
        if not credential:
            return False

        response = await self._get(self._url(WHOAMI_ENDPOINT), credential, WHOAMI_ENDPOINT)
        if response.is_success:
            return True
        if response.is_client_error:
            logger.warning(f"Canvas rejected credential ({response.status_code})")
            return False
        raise RemoteApiError(response.status_code, WHOAMI_ENDPOINT, response.reason_phrase)

    async def get_current_user(self, credential: str) -> dict[str, Any]:
        """Return the Canvas profile the credential belongs to."""
        response = await self._get(self._url(WHOAMI_ENDPOINT), credential, WHOAMI_ENDPOINT)
        if not response.is_success:
            raise RemoteApiError(response.status_code, WHOAMI_ENDPOINT, response.reason_phrase)
        return response.json()

    # =========================================================================
    # CONTENT
    # =========================================================================

    async def download_file(self, url: str, credential: str) -> bytes:
        """
        Download file content from a remote location recorded during sync.

        Args:
            url: Absolute download URL stored on the File record
            credential: Canvas access token

        Returns:
            Raw file bytes
        """
        response = await self._get(url, credential, url)
        if not response.is_success:
            raise RemoteApiError(response.status_code, url, response.reason_phrase)
        return response.content
