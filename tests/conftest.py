"""Shared fixtures for the redemption service test suite."""

import json

import httpx
import pytest

from redemption_service.clients import PartnerClient, ShopifyAdminClient
from redemption_service.config import Settings
from redemption_service.store import InMemoryCodeStore
from redemption_service.workflow import OrderPipeline

PRODUCT_A = "9805574340930"
PRODUCT_B = "9845248131394"
SECRET = "webhook-test-secret"

ENV_VARS = (
    "SHOP_DOMAIN", "ADMIN_API_ACCESS_TOKEN", "SHOPIFY_API_VERSION", "WEBHOOK_SECRET", "API_SECRET_KEY",
    "VERIFY_WEBHOOKS", "MONGODB_URI", "MONGODB_DB_NAME", "STORE_BACKEND", "PARTNER_API_URL",
    "QUALIFYING_PRODUCTS", "SKIP_TEST_ORDERS", "HTTP_TIMEOUT_SECONDS", "MONGODB_TIMEOUT_MS",
    "OUTBOUND_RETRY_ATTEMPTS", "OUTBOUND_RETRY_DELAY_SECONDS", "CODE_MAX_ATTEMPTS", "PORT",
    "LOG_LEVEL", "LOG_FILE",
)


class RecordingTransport:
    """Mock HTTP backend: records every request and answers via a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


def partner_ok(request):
    return httpx.Response(200, text='{"status":"success"}')


def shopify_ok(request):
    variables = json.loads(request.content)["variables"]["input"]
    return httpx.Response(200, json={"data": {"orderUpdate": {
        "order": {"id": variables["id"], "note": variables["note"]},
        "userErrors": [],
    }}})


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Runs every test without service variables or a `.env` file from the host."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        shop_domain="test-shop.myshopify.com",
        admin_access_token="shpat_test",
        webhook_secret=SECRET,
        store_backend="memory",
        partner_api_url="https://partner.example",
        qualifying_products={PRODUCT_A: "A", PRODUCT_B: "B"},
        retry_attempts=1,
        retry_delay=0,
    )


@pytest.fixture()
def store() -> InMemoryCodeStore:
    return InMemoryCodeStore()


@pytest.fixture()
def partner_backend():
    return RecordingTransport(partner_ok)


@pytest.fixture()
def shopify_backend():
    return RecordingTransport(shopify_ok)


@pytest.fixture()
def partner(partner_backend, settings):
    client = PartnerClient(settings.partner_api_url, transport=httpx.MockTransport(partner_backend))
    yield client
    client.close()


@pytest.fixture()
def shopify(shopify_backend, settings):
    client = ShopifyAdminClient(
        settings.shop_domain,
        settings.admin_access_token,
        transport=httpx.MockTransport(shopify_backend),
    )
    yield client
    client.close()


@pytest.fixture()
def pipeline(settings, store, partner, shopify) -> OrderPipeline:
    return OrderPipeline(settings, store, partner, shopify)


def order_payload(order_id=820982911946154508, product_ids=(PRODUCT_A,), **extra):
    payload = {
        "id": order_id,
        "name": "#1001",
        "test": False,
        "line_items": [{"product_id": int(pid), "quantity": 1, "title": "Ticket"} for pid in product_ids],
    }
    payload.update(extra)
    return payload
