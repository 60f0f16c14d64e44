"""SlotsLaunch game catalog provider implementation."""
import httpx
from typing import Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from freakslots.providers import CatalogProvider
from freakslots.providers.models import GamesPage
from freakslots.core.config import settings
from freakslots.core.errors import ConfigError, UpstreamError


logger = logging.getLogger(__name__)


def build_embed_url(raw_url: str, token: Optional[str]) -> str:
    """
    Append the access token to an upstream iframe URL unless it already has one.

    Raises:
        ConfigError: If no token is configured
    """
    if not token:
        raise ConfigError("Missing env: SLOTSLAUNCH_TOKEN")

    url = httpx.URL(raw_url)
    if "token" not in url.params:
        url = url.copy_add_param("token", token)
    return str(url)


class SlotsLaunchProvider(CatalogProvider):
    """SlotsLaunch implementation of the catalog provider."""

    def __init__(
        self,
        token: Optional[str] = None,
        host: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.token = token or settings.slotslaunch_token
        self.host = host or settings.slotslaunch_host
        self.base_url = (base_url or settings.slotslaunch_base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=30.0)

    def _origin(self) -> str:
        """SlotsLaunch checks the Origin header against the registered site host."""
        if self.host.startswith("http"):
            return self.host
        return f"https://{self.host}"

    def _require_credentials(self):
        if not self.token:
            raise ConfigError("Missing env: SLOTSLAUNCH_TOKEN")
        if not self.host:
            raise ConfigError("Missing env: SLOTSLAUNCH_HOST")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _make_request(self, url: str, params: dict) -> httpx.Response:
        """Make HTTP request with retry logic for transient failures.

        Retries up to 3 times with exponential backoff for:
        - Timeout errors
        - Connection errors

        Status codes are returned untouched for the caller to classify.
        """
        return await self.client.get(url, params=params, headers={"origin": self._origin()})

    async def fetch_page(
        self,
        page: int,
        per_page: int,
        since_date: Optional[str] = None
    ) -> GamesPage:
        """Fetch one page of published games ordered by ``updated_at`` descending."""
        self._require_credentials()

        url = f"{self.base_url}/games"
        params = {
            "token": self.token,
            "page": str(page),
            "per_page": str(per_page),
            "published": "1",
            "order_by": "updated_at",
            "order": "desc",
        }
        if since_date:
            params["updated_at"] = since_date

        logger.debug(f"Fetching SlotsLaunch page {page} (per_page={per_page}, since={since_date})")

        try:
            response = await self._make_request(url, params)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"SlotsLaunch timeout after retries: {str(e)}")
        except httpx.HTTPError as e:
            raise UpstreamError(f"SlotsLaunch connection error: {str(e)}")

        if not response.is_success:
            body = response.text
            raise UpstreamError(
                f"SlotsLaunch error {response.status_code}: {body[:300]}",
                status_code=response.status_code,
                body=body
            )

        try:
            payload = response.json()
        except ValueError:
            raise UpstreamError(
                "SlotsLaunch returned a non-JSON body",
                status_code=response.status_code,
                body=response.text
            )

        return GamesPage.from_payload(payload)

    def build_embed_url(self, raw_url: str) -> str:
        """Build the iframe URL the frontend can use directly."""
        return build_embed_url(raw_url, self.token)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
