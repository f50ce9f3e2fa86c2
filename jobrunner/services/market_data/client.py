import logging
import httpx
from typing import Any, Dict, List, Optional

from jobrunner.core.config import get_settings
from jobrunner.core.exceptions import MarketDataAPIError, MarketDataConfigError

logger = logging.getLogger(__name__)


class MarketDataClient:
    """
    Asynchronous client for a CoinMarketCap-compatible market data API.

    Used by the refresh job handlers to pull:
        - top asset listings (get_listings)
        - global market metrics (get_global_metrics)
        - the Fear & Greed index (get_fear_and_greed)
        - the news feed, which lives on a separate URL (get_news)

    All failures (non-2xx, network errors, unexpected bodies) surface as
    MarketDataAPIError so a job records them as a failed occurrence.
    """

    DEFAULT_BASE_URL = "https://pro-api.coinmarketcap.com"
    LOGO_URL_TEMPLATE = "https://s2.coinmarketcap.com/static/img/coins/64x64/{id}.png"

    def __init__(self, api_key: str = "", base_url: Optional[str] = None, timeout: float = 30.0):
        self.api_key = api_key or ""
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings=None) -> "MarketDataClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.MARKET_DATA_API_KEY,
            base_url=settings.MARKET_DATA_BASE_URL,
            timeout=settings.MARKET_DATA_TIMEOUT_SECONDS,
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-CMC_PRO_API_KEY"] = self.api_key
        return headers

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise MarketDataConfigError("Market data API key not configured")

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        absolute: bool = False,
    ) -> Dict:
        """
        Make a request to the market data API

        Args:
            method: HTTP method
            endpoint: API endpoint (without base URL), or a full URL when absolute=True
            params: Query parameters

        Returns:
            Dict: Decoded JSON body

        Raises:
            MarketDataAPIError: If the request fails or the body is not JSON
        """
        url = endpoint if absolute else f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug(f"Making {method} request to {url} params={params}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    params=params
                )
        except httpx.RequestError as e:
            logger.error(f"Network error calling {url}: {str(e)}")
            raise MarketDataAPIError(f"Network error: {str(e)}") from e

        if response.status_code not in (200, 201, 202, 204):
            logger.error(f"Market data API error {response.status_code}: {response.text[:500]}")
            raise MarketDataAPIError(f"API error: {response.status_code}")

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise MarketDataAPIError(f"Invalid JSON response from {url}") from e

    async def get_listings(self, limit: int = 200) -> List[Dict[str, Any]]:
        """Latest listings ordered by market cap, normalised to flat dicts."""
        self._require_api_key()
        body = await self._make_request(
            "GET", "/v1/cryptocurrency/listings/latest", params={"limit": int(limit)}
        )
        raw = body.get("data") if isinstance(body, dict) else None
        if not isinstance(raw, list):
            raise MarketDataAPIError("Invalid response from listings endpoint")

        return [self._normalise_listing(coin) for coin in raw]

    def _normalise_listing(self, coin: Dict[str, Any]) -> Dict[str, Any]:
        usd = ((coin.get("quote") or {}).get("USD")) or {}
        coin_id = str(coin.get("id"))
        return {
            "id": coin_id,
            "symbol": coin.get("symbol") or "",
            "name": coin.get("name") or "",
            "price_usd": usd.get("price"),
            "price_change_24h": usd.get("percent_change_24h") or 0.0,
            "market_cap": usd.get("market_cap") or 0.0,
            "volume_24h": usd.get("volume_24h") or 0.0,
            "rank": coin.get("cmc_rank"),
            "logo_url": self.LOGO_URL_TEMPLATE.format(id=coin_id),
        }

    async def get_global_metrics(self) -> Dict[str, Any]:
        self._require_api_key()
        body = await self._make_request("GET", "/v1/global-metrics/quotes/latest")
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise MarketDataAPIError("Invalid response from global metrics endpoint")
        return data

    async def get_fear_and_greed(self) -> Dict[str, Any]:
        """
        Latest Fear & Greed index.

        Returns:
            {"value": int, "classification": str, "timestamp": str | None}
        """
        self._require_api_key()
        body = await self._make_request("GET", "/v3/fear-and-greed/latest")

        if not isinstance(body, dict):
            raise MarketDataAPIError("Invalid response from Fear & Greed API")
        status = body.get("status") or {}
        data = body.get("data")
        if not isinstance(data, dict) or str(status.get("error_code", "")) != "0":
            raise MarketDataAPIError(f"Invalid response structure from Fear & Greed API: {str(body)[:300]}")

        # The provider has been seen returning the key as "value " (trailing space)
        raw_value = data.get("value", data.get("value ", 0))
        try:
            value = int(float(raw_value))
        except (TypeError, ValueError) as e:
            raise MarketDataAPIError(f"Invalid Fear & Greed value: {raw_value!r}") from e

        return {
            "value": value,
            "classification": data.get("value_classification") or "Neutral",
            "timestamp": data.get("update_time"),
        }

    async def get_news(self, url: str) -> List[Dict[str, Any]]:
        if not url:
            raise MarketDataConfigError("News feed URL not configured")
        body = await self._make_request("GET", url, absolute=True)
        if isinstance(body, list):
            return body
        for key in ("newsItems", "items", "data"):
            items = body.get(key) if isinstance(body, dict) else None
            if isinstance(items, list):
                return items
        raise MarketDataAPIError("Invalid response from news feed")
