"""
This module provides communication clients for the external systems used by the redemption service:
- Partner loyalty API (REST)
- Shopify Admin API (GraphQL mutation + REST order lookup)
Each class encapsulates its protocol logic, error handling, and connection management.
"""

import json
import logging
from typing import Optional

import httpx

from .errors import AnnotationError, PartnerError
from .retry import call_with_retry

PARTNER_SAVE_PATH = "/cs2/api/membership/save_membership_coupon.php"

ORDER_UPDATE_MUTATION = """mutation orderUpdate($input: OrderInput!) {
  orderUpdate(input: $input) {
    order {
      id
      note
    }
    userErrors {
      field
      message
    }
  }
}"""

log = logging.getLogger(__name__)


def order_gid(order_id: str) -> str:
    """Returns the global Shopify ID of an order, e.g. "gid://shopify/Order/123"."""
    return f"gid://shopify/Order/{order_id}"


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


# --- Partner Client (REST) ---
class PartnerClient:
    """
    Client for the partner loyalty API.
    Registers newly issued membership codes with the partner.
    """
    def __init__(self, base_url: str, timeout: float = 10.0, retry_attempts: int = 1,
                 retry_delay: float = 1.0, transport: Optional[httpx.BaseTransport] = None):
        """
        Initializes the HTTP client with a bounded timeout.

        Args:
            base_url (str): Partner API base URL, e.g. "https://thecomicslounge.com.au".
            timeout (float): Connect/read timeout in seconds.
            retry_attempts (int): Attempts per notification (1 = no retry).
            retry_delay (float): Fixed pause between attempts.
            transport (httpx.BaseTransport, optional): Custom transport, used by tests.
        """
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.client = httpx.Client(base_url=base_url, timeout=httpx.Timeout(timeout), transport=transport)

    def close(self):
        self.client.close()

    def notify(self, code: str) -> str:
        """
        Sends a newly issued code to the partner API.

        The response body is returned as received; its format is owned by the partner.

        Args:
            code (str): The membership code.

        Returns:
            str: Raw response body.

        Raises:
            PartnerError: On connection errors, timeouts or non-2xx responses.
        """
        def send():
            response = self.client.post(PARTNER_SAVE_PATH, json={"membership_code": code})
            response.raise_for_status()
            return response

        try:
            response = call_with_retry(send, self.retry_attempts, self.retry_delay, label="Partner API")
        except httpx.HTTPStatusError as e:
            raise PartnerError(f"Partner API rejected code {code}: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PartnerError(f"Partner API not reachable for code {code}: {type(e).__name__}: {e}") from e

        log.info(f"Code {code} sent to partner API (HTTP {response.status_code}).")
        return response.text


# --- Shopify Admin Client (GraphQL / REST) ---
class ShopifyAdminClient:
    """
    Client for the Shopify Admin API.
    Writes order notes via the `orderUpdate` GraphQL mutation and looks up orders via REST.
    """
    def __init__(self, shop_domain: str, access_token: str, api_version: str = "2024-01",
                 timeout: float = 10.0, retry_attempts: int = 1, retry_delay: float = 1.0,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initializes the HTTP client for the shop's Admin API.

        Args:
            shop_domain (str): Shop host, e.g. "my-shop.myshopify.com".
            access_token (str): Admin API access token.
            api_version (str): Admin API version, e.g. "2024-01".
            timeout (float): Connect/read timeout in seconds.
            retry_attempts (int): Attempts per request (1 = no retry).
            retry_delay (float): Fixed pause between attempts.
            transport (httpx.BaseTransport, optional): Custom transport, used by tests.
        """
        self.api_version = api_version
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.client = httpx.Client(
            base_url=f"https://{shop_domain}",
            headers={"X-Shopify-Access-Token": access_token},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def graphql_path(self) -> str:
        return f"/admin/api/{self.api_version}/graphql.json"

    def close(self):
        self.client.close()

    def annotate(self, order_id: str, note: str) -> str:
        """
        Sets the note of an order.

        The call only counts as successful when Shopify echoes back a non-empty
        note; an HTTP 200 without it is still a failure.

        Args:
            order_id (str): Shopify order ID (numeric part of the GID).
            note (str): The note text, e.g. "Verification Code: A12345678".

        Returns:
            str: The note as stored by Shopify.

        Raises:
            AnnotationError: On transport errors, non-2xx responses, invalid JSON,
                GraphQL errors, user errors or a missing note.
        """
        payload = {
            "query": ORDER_UPDATE_MUTATION,
            "variables": {"input": {"id": order_gid(order_id), "note": note}},
        }

        def send():
            response = self.client.post(self.graphql_path, json=payload)
            response.raise_for_status()
            return response

        try:
            response = call_with_retry(send, self.retry_attempts, self.retry_delay, label="Shopify orderUpdate")
        except httpx.HTTPStatusError as e:
            raise AnnotationError(f"orderUpdate for order {order_id} failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AnnotationError(f"Shopify not reachable for order {order_id}: {type(e).__name__}: {e}") from e

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise AnnotationError(f"orderUpdate for order {order_id} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise AnnotationError(f"orderUpdate for order {order_id} returned unexpected JSON: {type(body).__name__}")

        if body.get("errors"):
            raise AnnotationError(f"orderUpdate for order {order_id} returned GraphQL errors: {body['errors']}")

        result = _as_dict(_as_dict(body.get("data")).get("orderUpdate"))
        user_errors = result.get("userErrors") or []
        if not isinstance(user_errors, list):
            user_errors = [user_errors]
        if user_errors:
            messages = "; ".join(str(_as_dict(err).get("message", err)) for err in user_errors)
            raise AnnotationError(f"orderUpdate for order {order_id} rejected: {messages}", user_errors)

        stored_note = _as_dict(result.get("order")).get("note")
        if not stored_note:
            raise AnnotationError(f"Failed to update note of order {order_id}: no note in response")
        return stored_note

    def find_orders_by_name(self, name: str) -> list:
        """
        Looks up orders by their display name (e.g. "#1001") via the REST Admin API.

        Args:
            name (str): Order name or order number token.

        Returns:
            list: Order objects as returned by Shopify (possibly empty).

        Raises:
            AnnotationError: If the lookup fails.
        """
        path = f"/admin/api/{self.api_version}/orders.json"

        def send():
            response = self.client.get(path, params={"status": "any", "name": name})
            response.raise_for_status()
            return response

        try:
            response = call_with_retry(send, self.retry_attempts, self.retry_delay, label="Shopify orders.json")
            body = response.json()
        except httpx.HTTPError as e:
            raise AnnotationError(f"Order lookup for name {name!r} failed: {e}") from e
        except json.JSONDecodeError as e:
            raise AnnotationError(f"Order lookup for name {name!r} returned invalid JSON") from e

        orders = body.get("orders") if isinstance(body, dict) else None
        if not isinstance(orders, list):
            raise AnnotationError(f"Order lookup for name {name!r} returned no order list")
        return orders
