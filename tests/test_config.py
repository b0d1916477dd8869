"""Tests for environment configuration and service construction."""

import pytest

from redemption_service.config import load_settings, parse_product_map
from redemption_service.errors import ConfigurationError
from redemption_service.services import build_services
from redemption_service.store import InMemoryCodeStore


class TestParseProductMap:

    def test_default_format(self):
        assert parse_product_map("9805574340930:A, 9845248131394:B") == {
            "9805574340930": "A",
            "9845248131394": "B",
        }

    def test_trailing_comma_ignored(self):
        assert parse_product_map("1:A,") == {"1": "A"}

    @pytest.mark.parametrize("raw", ["1", "1:", ":A", "1:a", "1:AB", "1:7"])
    def test_malformed_entries(self, raw):
        with pytest.raises(ConfigurationError):
            parse_product_map(raw)


class TestLoadSettings:

    @staticmethod
    def load(monkeypatch, **env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return load_settings()

    def test_defaults(self, monkeypatch):
        settings = self.load(monkeypatch)
        assert settings.api_version == "2024-01"
        assert settings.qualifying_products == {"9805574340930": "A", "9845248131394": "B"}
        assert settings.verify_webhooks is True
        assert settings.skip_test_orders is False
        assert settings.retry_attempts == 3
        assert settings.http_timeout == 10.0
        assert settings.store_timeout_ms == 5000
        assert not settings.shopify_configured
        assert not settings.store_configured
        assert settings.missing_settings() == [
            "SHOP_DOMAIN", "ADMIN_API_ACCESS_TOKEN", "WEBHOOK_SECRET", "MONGODB_URI", "MONGODB_DB_NAME",
        ]

    def test_full_environment(self, monkeypatch):
        settings = self.load(
            monkeypatch,
            SHOP_DOMAIN="shop.myshopify.com",
            ADMIN_API_ACCESS_TOKEN="shpat_x",
            SHOPIFY_API_VERSION="2024-07",
            API_SECRET_KEY="secret",
            MONGODB_URI="mongodb://localhost:27017",
            MONGODB_DB_NAME="codes",
            STORE_BACKEND="MONGO",
            PARTNER_API_URL="https://partner.example/",
            QUALIFYING_PRODUCTS="42:C, 43:D",
            SKIP_TEST_ORDERS="true",
            VERIFY_WEBHOOKS="0",
            HTTP_TIMEOUT_SECONDS="2.5",
            MONGODB_TIMEOUT_MS="1500",
            OUTBOUND_RETRY_ATTEMPTS="1",
            OUTBOUND_RETRY_DELAY_SECONDS="0.5",
            CODE_MAX_ATTEMPTS="5",
            PORT="8080",
        )
        assert settings.admin_access_token == "shpat_x"
        assert settings.api_version == "2024-07"
        assert settings.webhook_secret == "secret"
        assert settings.store_backend == "mongo"
        assert settings.partner_api_url == "https://partner.example"
        assert settings.qualifying_products == {"42": "C", "43": "D"}
        assert settings.skip_test_orders is True
        assert settings.verify_webhooks is False
        assert settings.http_timeout == 2.5
        assert settings.store_timeout_ms == 1500
        assert settings.retry_attempts == 1
        assert settings.retry_delay == 0.5
        assert settings.code_max_attempts == 5
        assert settings.port == 8080
        assert settings.missing_settings() == []

    def test_webhook_secret_takes_precedence(self, monkeypatch):
        settings = self.load(monkeypatch, WEBHOOK_SECRET="a", API_SECRET_KEY="b")
        assert settings.webhook_secret == "a"

    def test_empty_variables_count_as_unset(self, monkeypatch):
        settings = self.load(monkeypatch, SHOP_DOMAIN="", PORT="", QUALIFYING_PRODUCTS="")
        assert settings.shop_domain is None
        assert settings.port == 3000
        assert settings.qualifying_products == {"9805574340930": "A", "9845248131394": "B"}

    def test_reads_dotenv_file(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("STORE_BACKEND=memory\nWEBHOOK_SECRET=from-file\n")
        settings = self.load(monkeypatch)
        assert settings.store_backend == "memory"
        assert settings.webhook_secret == "from-file"

    @pytest.mark.parametrize("env", [
        {"HTTP_TIMEOUT_SECONDS": "soon"},
        {"HTTP_TIMEOUT_SECONDS": "0"},
        {"OUTBOUND_RETRY_ATTEMPTS": "0"},
        {"STORE_BACKEND": "redis"},
        {"VERIFY_WEBHOOKS": "maybe"},
        {"QUALIFYING_PRODUCTS": "42:c"},
    ])
    def test_malformed_values(self, monkeypatch, env):
        with pytest.raises(ConfigurationError):
            self.load(monkeypatch, **env)


class TestBuildServices:

    def test_missing_settings_leave_clients_uninitialized(self):
        services = build_services(load_settings())
        try:
            assert services.store is None
            assert services.shopify is None
            assert services.partner is not None
        finally:
            services.close()

    def test_memory_backend_and_shopify(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "memory")
        monkeypatch.setenv("SHOP_DOMAIN", "shop.myshopify.com")
        monkeypatch.setenv("ADMIN_API_ACCESS_TOKEN", "shpat_x")
        services = build_services(load_settings())
        try:
            assert isinstance(services.store, InMemoryCodeStore)
            assert services.shopify.graphql_path == "/admin/api/2024-01/graphql.json"
        finally:
            services.close()
