#===========================================================================
# shopdesk/backend/client.py
# Backend API interface module.
# Talks to the PostgREST-style commerce backend: table reads for products and
# order items, remote procedures (/rpc/*) for every mutation.
# Every public call returns Ok(value) | Err(code, message); nothing raises.
#===========================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from shopdesk.backend.models import (
    CheckoutCreated,
    LinkResult,
    OrderDeleteResult,
    OrderItem,
    Product,
    ProductDeleteResult,
    RestockResult,
    ShippingMethod,
    StatusUpdateResult,
)
from shopdesk.backend.results import (
    BAD_PAYLOAD,
    HTTP_STATUS,
    TRANSPORT,
    Err,
    Ok,
    Result,
    rejected,
)
from shopdesk.config import settings

logger = logging.getLogger("uvicorn.error")

M = TypeVar("M", bound=BaseModel)

ORDER_ITEMS_SELECT = "*,member:members(*),product:products(*)"


def _json_or_text(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except Exception:
        return resp.text


def _parse(model: Type[M], payload: Any) -> Result:
    try:
        return Ok(model.model_validate(payload))
    except ValidationError as e:
        return Err(BAD_PAYLOAD, str(e))


def _parse_rows(model: Type[M], payload: Any) -> Result:
    if not isinstance(payload, list):
        return Err(BAD_PAYLOAD, f"expected a list of rows, got {type(payload).__name__}")
    try:
        return Ok([model.model_validate(row) for row in payload])
    except ValidationError as e:
        return Err(BAD_PAYLOAD, str(e))


class BackendClient:
    """
    Async client for the commerce backend.

    One short-lived httpx.AsyncClient per call. `transport` is only used to
    plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.BACKEND_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.BACKEND_API_KEY
        self.token = token if token is not None else (settings.BACKEND_SERVICE_TOKEN or self.api_key)
        self.timeout = timeout if timeout is not None else settings.BACKEND_TIMEOUT
        self._transport = transport

    # --- Helpers -----------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Result:
        try:
            async with self._client() as client:
                r = await client.request(method, path, params=params, json=payload)
        except httpx.HTTPError as e:
            logger.warning("[BACKEND] %s %s transport error: %s", method, path, e)
            return Err(TRANSPORT, str(e) or e.__class__.__name__)

        if r.status_code >= 400:
            body = _json_or_text(r)
            logger.warning("[BACKEND] %s %s failed (%s): %s", method, path, r.status_code, body)
            msg = body.get("message") if isinstance(body, dict) else None
            return Err(HTTP_STATUS, str(msg or body or r.reason_phrase), status=r.status_code)
        try:
            return Ok(r.json())
        except ValueError:
            return Err(BAD_PAYLOAD, f"{method} {path} returned non-JSON body")

    async def _rpc(self, fn: str, params: Dict[str, Any], model: Type[M]) -> Result:
        """Call /rpc/<fn>; unwrap {"success": true, ...} into the reply model."""
        res = await self._request("POST", f"/rest/v1/rpc/{fn}", payload=params)
        if isinstance(res, Err):
            return res
        data = res.value
        if not isinstance(data, dict):
            return Err(BAD_PAYLOAD, f"rpc {fn} returned {type(data).__name__}")
        if not data.get("success"):
            err = rejected(data)
            logger.info("[BACKEND] rpc %s rejected: %s", fn, err.message)
            return err
        return _parse(model, data)

    # --- Reads -------------------------------------------------------------

    async def fetch_order_items(self, tenant_id: str) -> Result:
        """All order items of a tenant, newest first, with member/product embedded."""
        params = {
            "select": ORDER_ITEMS_SELECT,
            "tenant_id": f"eq.{tenant_id}",
            "order": "created_at.desc",
        }
        res = await self._request("GET", "/rest/v1/order_items", params=params)
        if isinstance(res, Err):
            return res
        return _parse_rows(OrderItem, res.value)

    async def fetch_products(self, tenant_id: str) -> Result:
        params = {
            "select": "*",
            "tenant_id": f"eq.{tenant_id}",
            "status": "neq.deleted",
            "order": "created_at.desc",
        }
        res = await self._request("GET", "/rest/v1/products", params=params)
        if isinstance(res, Err):
            return res
        return _parse_rows(Product, res.value)

    # --- Checkout ledger ---------------------------------------------------

    async def create_checkout(
        self,
        tenant_id: str,
        identity: str,
        shipping_method: ShippingMethod,
        receiver_name: str | None = None,
        receiver_phone: str | None = None,
        receiver_pickup_point: str | None = None,
    ) -> Result:
        return await self._rpc("create_checkout_v2", {
            "p_tenant_id": tenant_id,
            "p_line_user_id": identity,
            "p_receiver_name": receiver_name,
            "p_receiver_phone": receiver_phone,
            "p_receiver_store_id": receiver_pickup_point,
            "p_shipping_method": ShippingMethod(shipping_method).value,
        }, CheckoutCreated)

    async def link_order_items(self, tenant_id: str, checkout_id: str, order_item_ids: List[str]) -> Result:
        return await self._rpc("link_order_items_to_checkout_v1", {
            "p_tenant_id": tenant_id,
            "p_checkout_id": checkout_id,
            "p_order_item_ids": list(order_item_ids),
        }, LinkResult)

    # --- Stock / catalog ---------------------------------------------------

    async def restock(self, tenant_id: str, sku: str, quantity: int) -> Result:
        return await self._rpc("restock_product_v2", {
            "p_tenant_id": tenant_id,
            "p_sku": sku,
            "p_quantity": int(quantity),
        }, RestockResult)

    async def batch_delete_order_items(self, tenant_id: str, order_item_ids: List[str]) -> Result:
        return await self._rpc("batch_delete_order_items_v1", {
            "p_tenant_id": tenant_id,
            "p_order_item_ids": list(order_item_ids),
        }, OrderDeleteResult)

    async def batch_delete_products(self, tenant_id: str, product_ids: List[str], force_soft_delete: bool = False) -> Result:
        return await self._rpc("batch_delete_products_v1", {
            "p_tenant_id": tenant_id,
            "p_product_ids": list(product_ids),
            "p_force_soft_delete": force_soft_delete,
        }, ProductDeleteResult)

    async def batch_update_product_status(self, tenant_id: str, product_ids: List[str], status: str) -> Result:
        return await self._rpc("batch_update_product_status_v1", {
            "p_tenant_id": tenant_id,
            "p_product_ids": list(product_ids),
            "p_status": status,
        }, StatusUpdateResult)

    async def ping(self) -> bool:
        """Reachability check for the health endpoint."""
        if not self.base_url:
            return False
        try:
            async with self._client() as client:
                r = await client.get("/rest/v1/")
            return r.status_code < 500
        except httpx.HTTPError as e:
            logger.debug("[BACKEND] ping failed: %s", e)
            return False
