"""
Shoptet REST API client.

Lists flags, filtering parameters and variant parameters of a shop and
pushes category texts and product default categories back. Listing
methods return raw payloads; only the item normalizer reads them.
"""

from typing import Any, Optional, Protocol
import requests
import structlog

from config import settings
from exceptions import ConfigurationError, UpstreamUnavailableError
from models.shop import Shop

logger = structlog.get_logger(__name__)

SERVICE_NAME = "shoptet"
FALLBACK_ERROR = "Shoptet request failed."
MALFORMED_ERROR = "Shoptet returned a malformed response."


class RemoteCatalogClient(Protocol):
    """Capabilities the engine needs from the commerce platform."""

    def list_flags(self, shop: Shop) -> dict: ...

    def list_filtering_parameters(self, shop: Shop) -> dict: ...

    def list_variant_parameters(self, shop: Shop) -> dict: ...

    def get_product(self, shop: Shop, guid: str, include: Optional[str] = None) -> dict: ...

    def update_product(self, shop: Shop, guid: str, payload: dict) -> dict: ...

    def update_category(self, shop: Shop, guid: str, payload: dict) -> dict: ...


def extract_error_message(response: Optional[requests.Response]) -> Optional[str]:
    """
    Pull a human-readable message out of a Shoptet error response.

    Looks at `errors[].message`, then `message`, then `error.message`.
    """
    if response is None:
        return None

    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    errors = body.get("errors")
    if isinstance(errors, list):
        for error in errors:
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error

    if body.get("message"):
        return str(body["message"])

    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])

    return None


class ShoptetClient:
    """
    Thin requests-based Shoptet client.

    Every call has a bounded timeout and is never retried. Failures
    raise UpstreamUnavailableError with the shop id and endpoint.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or settings.shoptet_api_url).rstrip("/")
        self.timeout = timeout or settings.shoptet_timeout_seconds
        self.page_size = page_size or settings.shoptet_page_size
        self.session = session or requests.Session()

    # ===================
    # ATTRIBUTE LISTINGS
    # ===================

    def list_flags(self, shop: Shop) -> dict:
        return self._request(shop, "GET", "/api/products/flags")

    def list_filtering_parameters(self, shop: Shop) -> dict:
        return self._fetch_all_pages(
            shop,
            "/api/products/filtering-parameters",
            "filteringParameters",
        )

    def list_variant_parameters(self, shop: Shop) -> dict:
        return self._fetch_all_pages(
            shop,
            "/api/products/variant-parameters",
            "parameters",
            {"include": "values"},
        )

    # ===================
    # PRODUCTS / CATEGORIES
    # ===================

    def get_product(self, shop: Shop, guid: str, include: Optional[str] = None) -> dict:
        """
        Get product detail.

        Returns:
            The `data` object of the response
        """
        params = {"include": include} if include else None
        response = self._request(shop, "GET", f"/api/products/{guid}", params=params)
        return response.get("data") or {}

    def update_product(self, shop: Shop, guid: str, payload: dict) -> dict:
        return self._request(shop, "PATCH", f"/api/products/{guid}", json={"data": payload})

    def update_category(self, shop: Shop, guid: str, payload: dict) -> dict:
        return self._request(shop, "PATCH", f"/api/categories/{guid}", json={"data": payload})

    # ===================
    # TRANSPORT
    # ===================

    def _fetch_all_pages(
        self,
        shop: Shop,
        path: str,
        collection: str,
        params: Optional[dict] = None
    ) -> dict:
        """
        Walk data.paginator.pageCount and concatenate data.<collection>.
        """
        page = 1
        items: list = []
        last: dict = {}

        while True:
            query = {**(params or {}), "page": page, "itemsPerPage": self.page_size}
            last = self._request(shop, "GET", path, params=query)

            context = {"shop_id": shop.id, "path": path, "page": page}

            data = last.get("data")
            if not isinstance(data, dict) or not isinstance(data.get(collection) or [], list):
                logger.error("shoptet_malformed_listing", collection=collection, **context)
                raise UpstreamUnavailableError(SERVICE_NAME, MALFORMED_ERROR, context)
            items.extend(data.get(collection) or [])

            paginator = data.get("paginator") or {}
            try:
                page_count = int(paginator.get("pageCount") or page)
            except (AttributeError, TypeError, ValueError):
                logger.error("shoptet_malformed_paginator", paginator=paginator, **context)
                raise UpstreamUnavailableError(SERVICE_NAME, MALFORMED_ERROR, context)

            if page >= page_count:
                break
            page += 1

        logger.debug(
            "shoptet_collection_fetched",
            shop_id=shop.id,
            path=path,
            pages=page,
            count=len(items)
        )

        data = dict(last.get("data") or {})
        data[collection] = items
        return {**last, "data": data}

    def _request(
        self,
        shop: Shop,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None
    ) -> dict[str, Any]:
        if not shop.api_access_token:
            logger.error("shoptet_token_missing", shop_id=shop.id)
            raise ConfigurationError(
                "Shoptet access token is not configured for this shop.",
                {"shop_id": shop.id}
            )

        context = {"shop_id": shop.id, "method": method, "path": path}

        try:
            logger.info("shoptet_request", **context)

            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers={
                    "Shoptet-Access-Token": shop.api_access_token,
                    "Content-Type": "application/vnd.shoptet.v1.0",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()

        except requests.exceptions.HTTPError as e:
            message = extract_error_message(e.response) or FALLBACK_ERROR
            status = e.response.status_code if e.response is not None else None
            logger.error("shoptet_request_failed", status=status, error=message, **context)
            raise UpstreamUnavailableError(SERVICE_NAME, message, {**context, "status": status})

        except requests.exceptions.RequestException as e:
            logger.error("shoptet_request_failed", error=str(e), **context)
            raise UpstreamUnavailableError(SERVICE_NAME, FALLBACK_ERROR, {**context, "error": str(e)})

        if not response.content:
            return {}

        try:
            body = response.json()
        except ValueError:
            logger.error("shoptet_invalid_json", **context)
            raise UpstreamUnavailableError(SERVICE_NAME, MALFORMED_ERROR, context)

        if not isinstance(body, dict) or not isinstance(body.get("data", {}), (dict, type(None))):
            logger.error("shoptet_malformed_response", body_type=type(body).__name__, **context)
            raise UpstreamUnavailableError(SERVICE_NAME, MALFORMED_ERROR, context)

        return body


# Singleton instance
_client: Optional[ShoptetClient] = None


def get_shoptet_client() -> ShoptetClient:
    """Get or create ShoptetClient instance."""
    global _client
    if _client is None:
        _client = ShoptetClient()
    return _client
