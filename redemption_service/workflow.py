"""
workflow.py — Core Orchestration Logic for Order Processing

This module contains the workflow that turns an `orders/create` webhook into
an issued membership code. It coordinates all service interactions in a fixed
sequence.

Workflow Overview:
1. Check whether the order contains a qualifying product (otherwise skip)
2. Generate a unique code for the product's prefix
3. Persist the code record (atomic insert-if-absent)
4. Register the code with the partner loyalty API (REST)
5. Write "Verification Code: <code>" onto the order note (Shopify GraphQL)

There is no compensation: a failure in step 4 or 5 leaves the persisted code
record in place and stops the run. The outcome of every run is returned as a
`PipelineResult`.
"""

import logging
from typing import Optional

from .clients import PartnerClient, ShopifyAdminClient
from .codes import CodeGenerator
from .config import Settings
from .eligibility import find_qualifying_item, is_test_order
from .errors import (
    CodeGenerationExhausted,
    ConfigurationError,
    DuplicateCodeError,
    DuplicateOrderError,
    ServiceError,
)
from .models import OrderWebhook, PipelineResult, PipelineStage
from .store import CodeStore

NOTE_TEMPLATE = "Verification Code: {code}"

log = logging.getLogger(__name__)


def build_note(code: str) -> str:
    return NOTE_TEMPLATE.format(code=code)


class OrderPipeline:
    """
    Processes single orders: eligibility → code → store → partner → order note.

    The pipeline receives its collaborators explicitly. Any of them may be
    None when its settings were missing at startup; the run then fails with a
    `ConfigurationError` at the step that needs it.
    """
    def __init__(self, settings: Settings, store: Optional[CodeStore], partner: Optional[PartnerClient],
                 shopify: Optional[ShopifyAdminClient], generator: Optional[CodeGenerator] = None):
        self.settings = settings
        self.store = store
        self.partner = partner
        self.shopify = shopify
        if generator is None and store is not None:
            generator = CodeGenerator(store, max_attempts=settings.code_max_attempts)
        self.generator = generator

    @classmethod
    def from_services(cls, services) -> "OrderPipeline":
        return cls(services.settings, services.store, services.partner, services.shopify)

    def process(self, order: OrderWebhook) -> PipelineResult:
        """
        Executes the complete workflow for a single order.

        This method is called as a background task by the webhook endpoint and
        never raises: every error is logged and reported in the result.

        Args:
            order (OrderWebhook): The parsed webhook payload. `order.order_id` must be set.

        Returns:
            PipelineResult: Terminal stage (SKIPPED, ORDER_ANNOTATED or FAILED),
            the issued code and the error, if any.

        Workflow Steps:
            Step 1 – Eligibility:
                - Skips test orders (if configured) and orders without a qualifying product.
                - Skips orders that already own a code (repeated webhook delivery).

            Step 2/3 – Code generation and persistence:
                - Draws a free code and stores it; draws again if the insert hits a taken code.
                - Store lookups and inserts share one budget of `code_max_attempts` draws.

            Step 4 – Partner API:
                - Sends {"membership_code": code}.

            Step 5 – Shopify:
                - Sets the order note to "Verification Code: <code>".
        """
        order_id = order.order_id
        log_prefix = f"[Order: {order_id}]"
        result = PipelineResult(orderId=order_id)
        last_completed = PipelineStage.RECEIVED

        log.info(f"{log_prefix} Starting processing.")

        try:
            # --- 1. Eligibility ---
            if self.settings.skip_test_orders and is_test_order(order):
                return self._skip(result, "test order")

            match = find_qualifying_item(order, self.settings.qualifying_products)
            last_completed = result.stage = PipelineStage.ELIGIBILITY_CHECKED
            if match is None:
                return self._skip(result, "no qualifying product")

            item, prefix = match
            log.info(f"{log_prefix} Qualifying product {item.product_id} → prefix {prefix}.")

            store = self._require(self.store, "code store")
            existing = store.find_by_order(order_id)
            if existing is not None:
                result.code = existing.code
                return self._skip(result, f"code {existing.code} already issued")

            # --- 2./3. Code generation and persistence ---
            record = None
            generator = self._require(self.generator, "code generator")
            for attempt, code in enumerate(generator.candidates(prefix), start=1):
                result.code = code
                last_completed = result.stage = PipelineStage.CODE_GENERATED
                try:
                    record = store.insert(order_id, result.code, prefix, item.product_id)
                    break
                except DuplicateCodeError:
                    log.warning(f"{log_prefix} Code {result.code} taken concurrently (attempt {attempt}).")
            if record is None:
                raise CodeGenerationExhausted(prefix, generator.max_attempts)

            last_completed = result.stage = PipelineStage.CODE_PERSISTED
            log.info(f"{log_prefix} Code {record.code} stored.")

            # --- 4. Partner API ---
            partner = self._require(self.partner, "partner client")
            result.partnerResponse = partner.notify(record.code)
            last_completed = result.stage = PipelineStage.PARTNER_NOTIFIED

            # --- 5. Shopify order note ---
            shopify = self._require(self.shopify, "Shopify admin client")
            result.note = shopify.annotate(order_id, build_note(record.code))
            result.stage = PipelineStage.ORDER_ANNOTATED

            log.info(f"{log_prefix} Processed with code {record.code}.")
            return result

        except DuplicateOrderError:
            # A concurrent delivery of the same webhook stored its code first
            result.code = None
            return self._skip(result, "code issued by concurrent delivery")

        except ServiceError as e:
            log.error(f"{log_prefix} Aborted after {last_completed.value}: {e}")
            return self._fail(result, last_completed, e)

        except Exception as e:
            log.critical(f"{log_prefix} Unexpected error in workflow: {e}", exc_info=True)
            return self._fail(result, last_completed, e)

    def _skip(self, result: PipelineResult, reason: str) -> PipelineResult:
        log.info(f"[Order: {result.orderId}] Skipping: {reason}.")
        result.stage = PipelineStage.SKIPPED
        result.reason = reason
        return result

    @staticmethod
    def _fail(result: PipelineResult, last_completed: PipelineStage, error: Exception) -> PipelineResult:
        result.stage = PipelineStage.FAILED
        result.failedAfter = last_completed
        result.error = str(error) or type(error).__name__
        return result

    @staticmethod
    def _require(dependency, name: str):
        if dependency is None:
            raise ConfigurationError(f"{name} not initialized: check configuration")
        return dependency
