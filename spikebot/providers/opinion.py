"""Opinion.Trade open API market data provider implementation."""
import httpx
from typing import Any, Dict, List, Optional
import logging
from spikebot.providers import (
    MarketDataProvider,
    ProviderError,
    MarketNotFound,
    MarketInactive,
    NoTrackableToken,
    PriceUnavailable
)
from spikebot.providers.models import (
    BINARY,
    ChildMarket,
    LatestPrice,
    MarketDetail,
    TrackingToken
)
from spikebot.models.price_sample import PriceSide
from spikebot.core.config import settings


logger = logging.getLogger(__name__)

# Market statuses that mean the market no longer trades
INACTIVE_STATUSES = {"resolved", "resolving", "closed", "cancelled", "canceled", "expired", "paused"}


class ApiResponseError(ProviderError):
    """Non-zero ``code`` in the API envelope."""

    def __init__(self, code: int, msg: Optional[str]):
        self.code = code
        self.msg = msg
        super().__init__(f"Opinion API error: code={code}, msg={msg}")


def parse_token_price(value: Any) -> float:
    """
    Parse the provider's price string.

    Raises:
        PriceUnavailable: If the price is missing, malformed or not positive
    """
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise PriceUnavailable(f"Invalid price format: {value!r}")

    if not price > 0:
        raise PriceUnavailable(f"Non-positive price: {value!r}")

    return price


def parse_token_size(value: Any) -> float:
    """Parse the provider's size string; blank or malformed sizes count as zero."""
    if value is None or value == "":
        return 0.0
    try:
        size = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid size format {value!r}, defaulting to 0")
        return 0.0
    if size < 0:
        logger.warning(f"Negative size {value!r}, defaulting to 0")
        return 0.0
    return size


def first_child_outcome(detail: MarketDetail) -> Optional[str]:
    """
    Default outcome selection policy for multi-outcome markets.

    Picks the YES token of the first child market in the order the provider
    declares them. The order carries no meaning of its own, so subscribers
    who care about a particular outcome should set an explicit token.
    """
    for child in detail.child_markets:
        if child.yes_token_id:
            return child.yes_token_id
    return None


def is_market_active(detail: MarketDetail) -> bool:
    """Whether the market still trades."""
    if detail.resolved_at:
        return False
    return (detail.status or "").strip().lower() not in INACTIVE_STATUSES


class OpinionProvider(MarketDataProvider):
    """Opinion.Trade implementation of the market data provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        outcome_policy=first_child_outcome
    ):
        self.api_key = api_key or settings.opinion_api_key
        self.base_url = (base_url or settings.opinion_api_base_url).rstrip("/")
        self.outcome_policy = outcome_policy
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.api_timeout_seconds,
            headers={
                "apikey": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json"
            }
        )

    async def _make_request(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET a path and unwrap the API envelope.

        The API answers HTTP 200 with a non-zero ``code`` for application
        errors, so the envelope code is checked on every response.
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"Making GET request to {url}")

        response = await self.client.get(url, params=params)
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Failed to decode JSON from {path}: {e}")

        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response shape from {path}")

        code = data.get("code", 0)
        if code != 0:
            raise ApiResponseError(code, data.get("msg"))

        result = data.get("result")
        # Some endpoints nest the payload one level deeper
        if isinstance(result, dict) and isinstance(result.get("data"), dict):
            result = result["data"]
        return result

    async def get_market_details(self, market_id: str) -> MarketDetail:
        """
        Fetch market metadata, including child outcomes for multi-outcome markets.

        Raises:
            MarketNotFound: If the API has no such market
            ProviderError: On transport or decode failure
        """
        try:
            result = await self._make_request(f"/openapi/market/{market_id}")
            if not result:
                raise MarketNotFound(f"Market {market_id} not found")

            detail = self._parse_market_detail(result)

            if detail.outcome_kind != BINARY and not detail.child_markets:
                categorical = await self._make_request(f"/openapi/market/categorical/{market_id}")
                if categorical:
                    detail.child_markets = self._parse_child_markets(categorical.get("childMarkets") or [])

            logger.debug(f"Retrieved market details for market {market_id}: {detail.title}")
            return detail

        except ApiResponseError as e:
            raise MarketNotFound(f"Market {market_id} not found: {e}")
        except ProviderError:
            raise
        except (TypeError, ValueError) as e:
            raise ProviderError(f"Malformed market detail for {market_id}: {e}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise MarketNotFound(f"Market {market_id} not found")
            elif e.response.status_code == 429:
                raise ProviderError("Opinion API rate limit exceeded (429)")
            raise ProviderError(f"Opinion API error: {str(e)}")
        except httpx.TimeoutException as e:
            raise ProviderError(f"Opinion API timeout: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Opinion API connection error: {str(e)}")

    async def fetch_tracking_token(
        self,
        market_id: str,
        explicit_token_id: Optional[str] = None
    ) -> TrackingToken:
        """Resolve the tracking token for a market."""
        detail = await self.get_market_details(market_id)

        if not is_market_active(detail):
            raise MarketInactive(f"Market {market_id} is not tradable (status: {detail.status})")

        if explicit_token_id:
            token_id = explicit_token_id
        elif detail.outcome_kind == BINARY:
            token_id = detail.yes_token_id
        else:
            token_id = self.outcome_policy(detail)

        if not token_id:
            raise NoTrackableToken(
                f"No token ID available for market {market_id} "
                "(multi-outcome market without an explicit token)"
            )

        return TrackingToken(
            token_id=token_id,
            market_id=market_id,
            market_title=detail.title or f"Market #{market_id}",
            outcome_kind=detail.outcome_kind
        )

    async def fetch_latest_price(self, token_id: str) -> LatestPrice:
        """Fetch and parse the latest price for a token."""
        try:
            result = await self._make_request(
                "/openapi/token/latest-price",
                params={"token_id": token_id}
            )
        except httpx.HTTPError as e:
            raise PriceUnavailable(f"Failed to get token price for token {token_id}: {str(e)}")
        except ProviderError as e:
            raise PriceUnavailable(f"Failed to get token price for token {token_id}: {str(e)}")

        if not isinstance(result, dict):
            raise PriceUnavailable(f"No price data for token {token_id}")

        price = parse_token_price(result.get("price"))
        size = parse_token_size(result.get("size"))

        logger.debug(f"Retrieved price for token {token_id}: {price}")

        return LatestPrice(
            token_id=token_id,
            price=price,
            side=PriceSide.parse(result.get("side")),
            size=size
        )

    def _parse_market_detail(self, item: Dict[str, Any]) -> MarketDetail:
        """Parse market detail JSON into a MarketDetail."""
        market_id = item.get("marketId")
        if market_id is None:
            raise MarketNotFound("Market detail response has no marketId")

        return MarketDetail(
            market_id=str(market_id),
            title=item.get("marketTitle", ""),
            status=str(item.get("status") or item.get("statusEnum") or ""),
            market_type=int(item.get("marketType") or 0),
            yes_token_id=item.get("yesTokenId") or None,
            no_token_id=item.get("noTokenId") or None,
            resolved_at=int(item.get("resolvedAt") or 0),
            volume=float(item.get("volume") or 0.0),
            child_markets=self._parse_child_markets(item.get("childMarkets") or [])
        )

    def _parse_child_markets(self, results: List[Dict[str, Any]]) -> List[ChildMarket]:
        """Parse child market JSON, keeping provider order."""
        children = []
        for item in results:
            children.append(ChildMarket(
                market_id=str(item.get("marketId", "")),
                title=item.get("marketTitle", ""),
                yes_token_id=item.get("yesTokenId") or None,
                no_token_id=item.get("noTokenId") or None,
                status=item.get("status")
            ))
        return children

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
