# Overview: HTTP client for the admin API, plus a session that coalesces rapid edits.

"""
Admin API client

AdminApiClient is a thin httpx wrapper over /api/admin. Every call raises
AdminApiError on a non-2xx response, carrying the status code and the JSON
error payload returned by the server.

CoalescingAdminSession routes stock and order edits through a
MutationCoalescer, so a burst of clicks becomes one request per
(entity, id, field) with the final value. Destructive calls (delete one,
delete all) are never coalesced; they flush pending edits first.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx

from ..services.coalescer import CoalesceKey, DEFAULT_DEBOUNCE_SECONDS, MutationCoalescer


STOCK = "product"
ORDER = "order"


class AdminApiError(Exception):
    def __init__(self, status_code: int, payload: Any):
        message = payload.get("error") if isinstance(payload, dict) else None
        super().__init__(message or f"Admin API request failed ({status_code})")
        self.status_code = status_code
        self.payload = payload


class AdminApiClient:
    """Bearer-authenticated calls to the admin endpoints."""

    def __init__(self, base_url: str, token: str | None = None, *, client: httpx.Client | None = None,
                 timeout: float = 10.0):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._token = token
        # Debounce window advertised by the server at login
        self.debounce_seconds: float | None = None

    @classmethod
    def login(cls, base_url: str, username: str, password: str, **kwargs) -> "AdminApiClient":
        api = cls(base_url, **kwargs)
        body = api._request("POST", "/api/admin/login", json={"username": username, "password": password})
        api._token = body["token"]
        api.debounce_seconds = body.get("mutation_debounce_seconds")
        return api

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        response = self._client.request(method, path, headers=headers, **kwargs)
        try:
            payload = response.json()
        except ValueError:
            payload = {"error": response.text}
        if response.status_code >= 400:
            raise AdminApiError(response.status_code, payload)
        return payload

    # Orders
    def list_orders(self, status: str | None = None, payment_status: str | None = None) -> list[dict]:
        params = {k: v for k, v in (("status", status), ("payment_status", payment_status)) if v}
        return self._request("GET", "/api/admin/orders", params=params)["orders"]

    def get_order(self, order_id: int) -> dict:
        return self._request("GET", f"/api/admin/orders/{order_id}")["order"]

    def update_order(self, order_id: int, *, status: str | None = None,
                     payment_status: str | None = None) -> dict:
        body = {}
        if status is not None:
            body["status"] = status
        if payment_status is not None:
            body["payment_status"] = payment_status
        return self._request("PUT", f"/api/admin/orders/{order_id}", json=body)["order"]

    def delete_order(self, order_id: int) -> dict:
        return self._request("DELETE", f"/api/admin/orders/{order_id}")

    def delete_all_orders(self) -> dict:
        return self._request("DELETE", "/api/admin/orders/all")

    # Stock
    def set_stock(self, product_id: int, stock: int) -> int:
        body = self._request("PUT", f"/api/admin/products/{product_id}/stock", json={"stock": stock})
        return body["stock"]

    def adjust_stock(self, product_id: int, delta: int) -> int:
        body = self._request("POST", f"/api/admin/products/{product_id}/stock/adjust", json={"delta": delta})
        return body["stock"]


class CoalescingAdminSession:
    """
    Optimistic admin editing on top of AdminApiClient.

    A burst of adjust_stock clicks is sent as one POST stock/adjust with the
    net delta, so the server applies it to its current count and sales made
    meanwhile are kept. set_stock is an absolute PUT.

    The debounce window defaults to the one the server advertised at login
    (MUTATION_DEBOUNCE_SECONDS), then to DEFAULT_DEBOUNCE_SECONDS.
    """

    def __init__(
        self,
        api: AdminApiClient,
        *,
        delay: float | None = None,
        on_error: Callable[[CoalesceKey, Exception, Any], None] | None = None,
    ):
        self.api = api
        if delay is None:
            delay = api.debounce_seconds if api.debounce_seconds is not None else DEFAULT_DEBOUNCE_SECONDS
        self.coalescer = MutationCoalescer(
            self._write,
            delta_writer=self._write_delta,
            delay=delay,
            on_error=on_error,
        )

    def _write(self, key: CoalesceKey, value: Any) -> Any:
        entity, entity_id, field_name = key
        if entity == STOCK:
            return self.api.set_stock(entity_id, value)
        if entity == ORDER:
            order = self.api.update_order(entity_id, **{field_name: value})
            return order[field_name]
        raise ValueError(f"Unsupported entity {entity!r}")

    def _write_delta(self, key: CoalesceKey, delta: int) -> int:
        entity, entity_id, _ = key
        if entity != STOCK:
            raise ValueError(f"Deltas are not supported for {entity!r}")
        return self.api.adjust_stock(entity_id, delta)

    # Stock
    def track_stock(self, product_id: int, stock: int) -> None:
        self.coalescer.seed((STOCK, product_id, "stock"), stock)

    def stock(self, product_id: int) -> int:
        return self.coalescer.read((STOCK, product_id, "stock"))

    def set_stock(self, product_id: int, stock: int) -> int:
        if stock < 0:
            raise ValueError("stock must be >= 0")
        return self.coalescer.set((STOCK, product_id, "stock"), stock)

    def adjust_stock(self, product_id: int, delta: int) -> int:
        return self.coalescer.add((STOCK, product_id, "stock"), delta, minimum=0)

    # Orders
    def track_order(self, order: dict) -> None:
        self.coalescer.seed((ORDER, order["id"], "status"), order["status"])
        self.coalescer.seed((ORDER, order["id"], "payment_status"), order["payment_status"])

    def set_order_status(self, order_id: int, status: str) -> str:
        return self.coalescer.set((ORDER, order_id, "status"), status)

    def set_payment_status(self, order_id: int, payment_status: str) -> str:
        return self.coalescer.set((ORDER, order_id, "payment_status"), payment_status)

    def order_field(self, order_id: int, field_name: str) -> str:
        return self.coalescer.read((ORDER, order_id, field_name))

    # Destructive, never coalesced
    def delete_order(self, order_id: int) -> dict:
        self.coalescer.flush()
        return self.api.delete_order(order_id)

    def delete_all_orders(self) -> dict:
        self.coalescer.flush()
        return self.api.delete_all_orders()

    def flush(self) -> None:
        self.coalescer.flush()

    def close(self) -> None:
        self.coalescer.close()
        self.api.close()
