"""Backend API client.

Thin async wrapper over httpx that adds the bearer token, retries failed
connection attempts and turns every failure into an ``ApiError`` carrying a
human-readable message.
"""

import os
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from qrsay.errors import ApiError, ERROR_NETWORK
from qrsay.logging import get_logger

logger = get_logger(__name__)

QRSAY_API_URL = os.environ.get("QRSAY_API_URL", "https://qrsaybackend-36c9.onrender.com/api")
QRSAY_API_TIMEOUT = float(os.environ.get("QRSAY_API_TIMEOUT", "15"))


class ApiEndpoints:
    """Backend endpoint paths (relative to QRSAY_API_URL)."""

    GET_RESTAURANT_BY_ID = "/v1/restaurant/getRestaurantById"  # /{restaurantId}
    GET_MENU = "/v1/restaurant/getMenu"  # /{restaurantId}
    GET_PROMO_CODES = "/v1/customer/getPromoCodesForRestaurantUrl"  # /{restaurantUrl}
    CHECK_PROMO_CODE = "/v1/customer/checkIfPromoCodeIsValid"
    VALIDATION_BEFORE_ORDER = "/v1/orders/validationBeforeOrder"
    PLACE_ORDER = "/v1/payment/getCheckSum"


TokenProvider = Callable[[], Awaitable[Optional[str]]]


def unwrap_data(body: Any) -> Any:
    """Return the ``data`` envelope member when the backend wraps its payload."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _error_message(exc: Exception, default: str) -> str:
    """Backend ``message`` field first, then the transport message, then ``default``."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    return str(exc) or default


class ApiClient:
    """Async client for the ordering backend."""

    def __init__(
        self,
        base_url: str = QRSAY_API_URL,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = QRSAY_API_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _headers(self) -> dict:
        if self.token_provider is None:
            return {}
        token = await self.token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _send(self, method: str, path: str, json: Any = None) -> httpx.Response:
        client = self._get_http_client()
        response = await client.request(method, path, json=json, headers=await self._headers())
        logger.debug("API %s %s -> %s", method, path, response.status_code)
        response.raise_for_status()
        return response

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        default_error: str = ERROR_NETWORK,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiError: on HTTP error status, transport failure or invalid JSON
        """
        try:
            response = await self._send(method, path, json=json)
        except httpx.HTTPStatusError as e:
            message = _error_message(e, default_error)
            logger.error(
                "API %s %s failed with %s: %s", method, path, e.response.status_code, message
            )
            raise ApiError(message, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            message = _error_message(e, default_error)
            logger.error("API %s %s failed: %s", method, path, message)
            raise ApiError(message) from e

        try:
            return response.json()
        except ValueError as e:
            logger.error("API %s %s returned invalid JSON", method, path)
            raise ApiError(default_error, status_code=response.status_code) from e

    async def get(self, path: str, default_error: str = ERROR_NETWORK) -> Any:
        return await self.request("GET", path, default_error=default_error)

    async def post(self, path: str, payload: Any, default_error: str = ERROR_NETWORK) -> Any:
        return await self.request("POST", path, json=payload, default_error=default_error)
