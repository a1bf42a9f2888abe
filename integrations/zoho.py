"""
Zoho Inventory API client.

Thin request/response wrapper around the Zoho Inventory v1 REST API:
- OAuth access token refreshed from the long-lived refresh token
- Token persisted through an optional token store so restarts reuse it
- One transparent refresh-and-retry on HTTP 401
- Responses validated into typed vendor models at this boundary
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

import requests
import structlog
from pydantic import BaseModel, ValidationError as PydanticValidationError

from exceptions import (
    DatabaseError,
    VendorRecordError,
    ZohoAPIError,
    ZohoAuthError,
)
from models.vendor import (
    RejectedRecord,
    ZohoCategory,
    ZohoContact,
    ZohoItem,
    ZohoItemPage,
    ZohoOrderPage,
    ZohoSalesOrder,
)

logger = structlog.get_logger(__name__)

# Tokens are treated as expired this long before Zoho says they are
TOKEN_EXPIRY_BUFFER = timedelta(seconds=60)


class ZohoToken(BaseModel):
    """Access token with its (buffered) expiry."""
    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class TokenStore(Protocol):
    """Durable home for the current access token."""

    def load(self) -> Optional[ZohoToken]: ...

    def save(self, token: ZohoToken) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ZohoInventoryClient:
    """
    Zoho Inventory client.

    Usage:
        zoho = ZohoInventoryClient.from_settings(settings, token_store=tokens)
        page = zoho.get_products(page=1, per_page=50)
        for item in page.items:
            ...
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        organization_id: str,
        base_url: str = "https://www.zohoapis.com/inventory/v1",
        accounts_url: str = "https://accounts.zoho.com",
        timeout: int = 30,
        token_store: Optional[TokenStore] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.organization_id = organization_id
        self.base_url = base_url.rstrip("/")
        self.accounts_url = accounts_url.rstrip("/")
        self.timeout = timeout
        self.token_store = token_store
        self.session = session or requests.Session()
        self._clock = clock
        self._token: Optional[ZohoToken] = None

    @classmethod
    def from_settings(cls, settings, token_store: Optional[TokenStore] = None, session=None):
        return cls(
            client_id=settings.zoho_client_id,
            client_secret=settings.zoho_client_secret,
            refresh_token=settings.zoho_refresh_token,
            organization_id=settings.zoho_organization_id,
            base_url=settings.zoho_base_url,
            accounts_url=settings.zoho_accounts_url,
            timeout=settings.http_timeout_seconds,
            token_store=token_store,
            session=session,
        )

    # ===================
    # AUTH
    # ===================

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return a usable access token.

        Order: in-memory token, then the token store, then a refresh.
        force_refresh skips both caches (used after a 401).

        Raises:
            ZohoAuthError: If the refresh fails
        """
        now = self._clock()

        if not force_refresh:
            if self._token and self._token.is_valid(now):
                return self._token.access_token

            stored = self._load_stored_token()
            if stored and stored.is_valid(now):
                self._token = stored
                return stored.access_token

        return self._refresh_access_token().access_token

    def invalidate_token(self) -> None:
        self._token = None

    def _load_stored_token(self) -> Optional[ZohoToken]:
        if self.token_store is None:
            return None
        try:
            return self.token_store.load()
        except DatabaseError as e:
            logger.warning("zoho_token_load_failed", error=str(e))
            return None

    def _refresh_access_token(self) -> ZohoToken:
        url = f"{self.accounts_url}/oauth/v2/token"
        params = {
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }

        try:
            response = self.session.post(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("zoho_token_refresh_failed", error=str(e))
            raise ZohoAuthError(f"Token refresh request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        # Zoho answers bad refresh tokens with 200 and {"error": "invalid_code"}
        access_token = payload.get("access_token")
        if not response.ok or not access_token:
            reason = payload.get("error") or f"HTTP {response.status_code}"
            logger.error(
                "zoho_token_refresh_failed",
                status=response.status_code,
                reason=reason
            )
            raise ZohoAuthError(
                f"Failed to authenticate with Zoho Inventory: {reason}",
                details={"status": response.status_code}
            )

        expires_in = int(payload.get("expires_in", 3600))
        token = ZohoToken(
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in) - TOKEN_EXPIRY_BUFFER,
        )
        self._token = token

        logger.info("zoho_token_refreshed", expires_at=token.expires_at.isoformat())

        if self.token_store is not None:
            try:
                self.token_store.save(token)
            except DatabaseError as e:
                logger.warning("zoho_token_save_failed", error=str(e))

        return token

    # ===================
    # TRANSPORT
    # ===================

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """
        Send an authenticated request and return the decoded body.

        Raises:
            ZohoAuthError: Token refresh failed, or a second consecutive 401
            ZohoAPIError: Any other non-2xx response or network failure
        """
        url = f"{self.base_url}{path}"
        query = {"organization_id": self.organization_id, **(params or {})}
        force_refresh = False

        for attempt in (1, 2):
            token = self.get_access_token(force_refresh=force_refresh)
            try:
                response = self.session.request(
                    method,
                    url,
                    params=query,
                    json=json,
                    headers={"Authorization": f"Zoho-oauthtoken {token}"},
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                logger.error("zoho_request_failed", method=method, path=path, error=str(e))
                raise ZohoAPIError(f"Zoho request failed: {e}", endpoint=path) from e

            if response.status_code == 401:
                logger.warning("zoho_unauthorized", path=path, attempt=attempt)
                self.invalidate_token()
                force_refresh = True
                continue

            return self._decode(response, path)

        raise ZohoAuthError(
            "Zoho rejected the refreshed access token",
            details={"endpoint": path}
        )

    @staticmethod
    def _decode(response: requests.Response, path: str) -> dict:
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.ok:
            message = payload.get("message") or response.reason or "Zoho request failed"
            logger.error(
                "zoho_api_error",
                path=path,
                status=response.status_code,
                message=message
            )
            raise ZohoAPIError(message, status=response.status_code, endpoint=path)

        # Zoho uses code 0 for success inside a 200 envelope
        code = payload.get("code", 0)
        if code not in (0, "0"):
            raise ZohoAPIError(
                payload.get("message", f"Zoho error code {code}"),
                status=response.status_code,
                endpoint=path
            )

        return payload

    @staticmethod
    def _parse(model, data: Any, vendor_id: Optional[str] = None):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            if vendor_id is None and isinstance(data, dict):
                vendor_id = data.get("item_id") or data.get("salesorder_id") or data.get("category_id")
            raise VendorRecordError("zoho", vendor_id, e.errors()[0]["msg"]) from e

    # ===================
    # ITEMS
    # ===================

    def get_products(
        self,
        page: int = 1,
        per_page: int = 50,
        filters: Optional[dict] = None,
    ) -> ZohoItemPage:
        """
        Fetch one page of items.

        filters is passed through as query parameters (sort_column,
        sort_order, search_text, sku, filter_by).

        Items that fail validation are logged and left out of the page;
        rejected ids are returned in ZohoItemPage.rejected.
        """
        payload = self._request(
            "GET",
            "/items",
            params={"page": page, "per_page": per_page, **(filters or {})},
        )

        items = []
        rejected = []
        for raw in payload.get("items") or []:
            try:
                items.append(self._parse(ZohoItem, raw))
            except VendorRecordError as e:
                logger.warning("zoho_item_invalid", item_id=e.vendor_id, error=e.message)
                rejected.append(RejectedRecord(vendor_id=e.vendor_id, reason=e.message))

        page_context = payload.get("page_context") or {}
        return ZohoItemPage(
            items=items,
            rejected=rejected,
            has_more=bool(page_context.get("has_more_page", False)),
            page=page,
        )

    def get_product(self, item_id: str) -> ZohoItem:
        """Fetch full item detail (images, custom fields, warehouses)."""
        payload = self._request("GET", f"/items/{item_id}")
        return self._parse(ZohoItem, payload.get("item"), vendor_id=item_id)

    def find_product_by_sku(self, sku: str) -> Optional[ZohoItem]:
        page = self.get_products(page=1, per_page=1, filters={"sku": sku})
        return page.items[0] if page.items else None

    def create_product(self, data: dict) -> ZohoItem:
        payload = self._request("POST", "/items", json=data)
        return self._parse(ZohoItem, payload.get("item"))

    def update_product(self, item_id: str, data: dict) -> ZohoItem:
        payload = self._request("PUT", f"/items/{item_id}", json=data)
        return self._parse(ZohoItem, payload.get("item"), vendor_id=item_id)

    def get_inventory_level(self, item_id: str, warehouse_id: Optional[str] = None) -> dict:
        """
        Stock for an item, overall or for one warehouse.

        Returns:
            dict: {item_id, warehouse_id, stock_on_hand, available_stock}
        """
        item = self.get_product(item_id)

        if warehouse_id:
            for warehouse in item.warehouses:
                if warehouse.warehouse_id == warehouse_id:
                    return {
                        "item_id": item.item_id,
                        "warehouse_id": warehouse_id,
                        "stock_on_hand": warehouse.warehouse_stock_on_hand or 0,
                        "available_stock": warehouse.warehouse_available_stock or 0,
                    }
            raise ZohoAPIError(
                f"Warehouse {warehouse_id} not found for item {item_id}",
                status=404,
                endpoint=f"/items/{item_id}"
            )

        return {
            "item_id": item.item_id,
            "warehouse_id": None,
            "stock_on_hand": item.stock_on_hand or 0,
            "available_stock": item.available_stock or 0,
        }

    # ===================
    # CATEGORIES
    # ===================

    def get_categories(self) -> list[ZohoCategory]:
        payload = self._request("GET", "/settings/categories")
        raw = payload.get("item_categories") or payload.get("categories") or []
        return [self._parse(ZohoCategory, c) for c in raw]

    # ===================
    # SALES ORDERS
    # ===================

    def get_orders(
        self,
        page: int = 1,
        per_page: int = 50,
        filters: Optional[dict] = None,
    ) -> ZohoOrderPage:
        payload = self._request(
            "GET",
            "/salesorders",
            params={"page": page, "per_page": per_page, **(filters or {})},
        )

        orders = []
        rejected = []
        for raw in payload.get("salesorders") or []:
            try:
                orders.append(self._parse(ZohoSalesOrder, raw))
            except VendorRecordError as e:
                logger.warning("zoho_order_invalid", salesorder_id=e.vendor_id, error=e.message)
                rejected.append(RejectedRecord(vendor_id=e.vendor_id, reason=e.message))

        page_context = payload.get("page_context") or {}
        return ZohoOrderPage(
            orders=orders,
            rejected=rejected,
            has_more=bool(page_context.get("has_more_page", False)),
            page=page,
        )

    def get_order(self, salesorder_id: str) -> ZohoSalesOrder:
        payload = self._request("GET", f"/salesorders/{salesorder_id}")
        return self._parse(ZohoSalesOrder, payload.get("salesorder"), vendor_id=salesorder_id)

    # ===================
    # CONTACTS
    # ===================

    def get_customers(self, page: int = 1, per_page: int = 50, search_text: Optional[str] = None) -> list[ZohoContact]:
        params = {"page": page, "per_page": per_page, "contact_type": "customer"}
        if search_text:
            params["search_text"] = search_text
        payload = self._request("GET", "/contacts", params=params)
        return [self._parse(ZohoContact, c) for c in payload.get("contacts") or []]

    # ===================
    # HEALTH
    # ===================

    def test_connection(self) -> bool:
        """Return True if the organization endpoint answers."""
        try:
            self._request("GET", "/organizations")
            return True
        except (ZohoAuthError, ZohoAPIError) as e:
            logger.warning("zoho_connection_test_failed", error=e.message)
            return False

    def health_check(self) -> dict:
        connected = self.test_connection()
        return {
            "status": "healthy" if connected else "unhealthy",
            "message": "Zoho Inventory reachable" if connected else "Zoho Inventory unreachable",
        }
