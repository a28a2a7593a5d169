# Overview: HTTP client for the RetailOps API plus the branch-side cart and session cache.

"""
Client-side building blocks used by dashboards and scripts.

- RetailOpsClient wraps the REST endpoints (httpx).
- BranchSession caches one branch's record and products for the life of the
  session object; it is refreshed only on demand and invalidated after checkout.
- OrderCart assembles an order locally and submits it as one checkout call.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

WAREHOUSE_LOAD_RETRIES = 3
WAREHOUSE_LOAD_DELAY_SECONDS = 2.0


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.details = details


class ConnectivityError(Exception):
    """The API could not be reached after every retry."""


class CartError(ValueError):
    """Rejected cart change."""


class RetailOpsClient:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:5000",
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RetailOpsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._client.request(method, path, **kwargs)
        if response.is_success:
            return response.json()
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text or response.reason_phrase}
        raise ApiError(response.status_code, body.get("message", "Request failed"), body.get("details"))

    # Products

    def list_products(self, company_id: int | None = None) -> list[dict]:
        if company_id is not None:
            return self._request("GET", f"/products/company/{company_id}")
        return self._request("GET", "/products")

    def get_product(self, product_id: int) -> dict:
        return self._request("GET", f"/products/{product_id}")

    def create_product(self, **fields) -> dict:
        return self._request("POST", "/products", json=fields)

    def decrement_product(self, product_id: int, quantity_change: int) -> dict:
        body = self._request("PUT", f"/products/{product_id}/decrement", json={"quantityChange": quantity_change})
        return body["product"]

    # Warehouses and branches

    def list_warehouses(self) -> list[dict]:
        return self._request("GET", "/warehouses")

    def assign_product_to_warehouse(self, warehouse_id: int, product_id: int, quantity: int = 0) -> dict:
        return self._request(
            "POST", f"/warehouses/{warehouse_id}/products",
            json={"productId": product_id, "quantity": quantity},
        )

    def list_branches(self) -> list[dict]:
        return self._request("GET", "/branches")

    def get_branch(self, branch_id: int) -> dict:
        return self._request("GET", f"/branches/{branch_id}")

    # Stock

    def branch_stock(self, branch_id: int) -> list[dict]:
        return self._request("GET", f"/stock/branch/{branch_id}")

    def warehouse_stock(self, warehouse_id: int) -> list[dict]:
        return self._request("GET", f"/stock/warehouse/{warehouse_id}")

    def assign_stock(self, **route) -> dict:
        return self._request("POST", "/stock/assign", json=route)

    def create_stock_request(self, **route) -> dict:
        return self._request("POST", "/stock/stock-requests", json=route)

    def approve_stock_request(self, request_id: int) -> dict:
        return self._request("POST", f"/stock/stock-requests/{request_id}/approve")

    def reject_stock_request(self, request_id: int) -> dict:
        return self._request("POST", f"/stock/stock-requests/{request_id}/reject")

    # Transactions

    def list_transactions(self, **params) -> dict:
        return self._request("GET", "/transactions", params=params)

    def update_transaction_status(self, transaction_id: int, status: str) -> dict:
        return self._request("PUT", f"/transactions/{transaction_id}/status", json={"status": status})

    def place_order(self, payload: dict) -> dict:
        return self._request("POST", "/transactions/orders", json=payload)

    def sales_statistics(self, start: str, end: str, branch_id: int | None = None) -> dict:
        params = {"start": start, "end": end}
        if branch_id is not None:
            params["branchId"] = branch_id
        return self._request("GET", "/transactions/statistics", params=params)

    def sales_analytics(self, range_name: str = "all", branch_id: int | None = None) -> dict:
        params: dict = {"range": range_name}
        if branch_id is not None:
            params["branchId"] = branch_id
        return self._request("GET", "/transactions/analytics", params=params)

    def load_warehouse_data(
        self,
        *,
        retries: int = WAREHOUSE_LOAD_RETRIES,
        delay: float = WAREHOUSE_LOAD_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> dict:
        """
        Fetch everything the warehouse screen needs.

        One initial attempt plus up to `retries` more after connection
        failures, each after a fixed delay; when the last one fails a
        ConnectivityError is raised. API errors are not retried.
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")
        attempts = retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return {
                    "warehouses": self.list_warehouses(),
                    "products": self.list_products(),
                    "branches": self.list_branches(),
                }
            except httpx.TransportError as exc:
                if attempt >= attempts:
                    raise ConnectivityError(
                        f"Unable to reach the server after {attempts} attempts"
                    ) from exc
                logger.warning("Warehouse data load failed (%s), retry %d/%d", exc, attempt, retries)
                sleep(delay)


class BranchSession:
    """
    Session-scoped cache of one branch and the products it sells.

    Nothing here is shared between sessions; stale data is replaced only by
    refresh(), which invalidate() schedules for the next read.
    """

    def __init__(self, client: RetailOpsClient, branch_id: int, company_id: int | None = None):
        self.client = client
        self.branch_id = branch_id
        self.company_id = company_id
        self._branch: dict | None = None
        self._products: dict[int, dict] | None = None

    @property
    def is_stale(self) -> bool:
        return self._products is None

    def refresh(self) -> None:
        self._branch = self.client.get_branch(self.branch_id)
        products = self.client.list_products(self.company_id)
        self._products = {p["id"]: p for p in products if p.get("status", "active") == "active"}

    def invalidate(self) -> None:
        self._branch = None
        self._products = None

    @property
    def branch(self) -> dict:
        if self._branch is None:
            self.refresh()
        return self._branch

    def products(self) -> list[dict]:
        if self._products is None:
            self.refresh()
        return list(self._products.values())

    def product(self, product_id: int) -> dict:
        if self._products is None:
            self.refresh()
        try:
            return self._products[product_id]
        except KeyError:
            raise CartError(f"Product {product_id} is not available at this branch")


@dataclass
class CartLine:
    product_id: int
    name: str
    price: float
    quantity: int

    @property
    def total(self) -> float:
        return self.price * self.quantity


@dataclass
class OrderCart:
    session: BranchSession
    lines: list[CartLine] = field(default_factory=list)

    def _line(self, product_id: int) -> CartLine | None:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def add(self, product_id: int, quantity: int) -> CartLine:
        """Add quantity of a product; repeat adds merge into one line."""
        if quantity <= 0:
            raise CartError("Please select a quantity greater than 0")

        product = self.session.product(product_id)
        line = self._line(product_id)
        in_cart = line.quantity if line else 0
        if in_cart + quantity > product["quantity"]:
            raise CartError("Selected quantity exceeds available stock")

        if line is None:
            line = CartLine(product_id, product["name"], product["price"], 0)
            self.lines.append(line)
        line.quantity += quantity
        return line

    def change_quantity(self, product_id: int, delta: int) -> None:
        """Apply a +/- step; a line that reaches zero is dropped."""
        line = self._line(product_id)
        if line is None:
            raise CartError(f"Product {product_id} is not in the cart")
        if delta > 0:
            available = self.session.product(product_id)["quantity"]
            if line.quantity + delta > available:
                raise CartError("Selected quantity exceeds available stock")
        line.quantity = max(0, line.quantity + delta)
        if line.quantity == 0:
            self.lines.remove(line)

    def remove(self, product_id: int) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        self.lines = []

    def total(self) -> float:
        return round(sum(line.total for line in self.lines), 2)

    def checkout(self, *, customer_id: str | None = None, payment_method: str = "cash") -> dict:
        """
        Submit the cart as one order.

        The cart is cleared and the session invalidated only when the server
        accepted the order; on ApiError the cart is left intact.
        """
        if not self.lines:
            raise CartError("Please add items to your order")

        payload = {
            "branchId": self.session.branch_id,
            "paymentMethod": payment_method,
            "items": [{"productId": line.product_id, "quantity": line.quantity} for line in self.lines],
        }
        if customer_id:
            payload["customerId"] = customer_id

        transaction = self.session.client.place_order(payload)
        self.clear()
        self.session.invalidate()
        return transaction
