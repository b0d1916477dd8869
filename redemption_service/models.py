"""
models.py — Data Models for Webhook Processing

This module defines the data structures used for webhook parsing, code
persistence and pipeline reporting. It uses Pydantic models to ensure type
safety and automatic validation of incoming data.

Models:
    - LineItem: A single product line of a Shopify order.
    - OrderWebhook: The subset of the `orders/create` payload the service reads.
    - CodeRecord: A persisted association between an order and its issued code.
    - PipelineStage: The states an order moves through in the pipeline.
    - PipelineResult: The outcome of one pipeline run.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_SCALARS = (str, int, float)


def _optional_text(value) -> Optional[str]:
    # Webhook fields the pipeline only logs or compares are taken as text; structured values are dropped
    if isinstance(value, bool) or not isinstance(value, _SCALARS):
        return None
    return str(value)


class LineItem(BaseModel):
    """
    Represents a single product line in a Shopify order.

    Unusable values are read as `None` instead of rejecting the webhook, so an
    odd line item never turns a delivery into a client error.

    Attributes:
        product_id (str): Shopify product ID, normalised to a string. Custom
            line items carry no product and have `None` here.
        quantity (int): Ordered quantity, `None` if not a number.
        title (str): Product title, for log output only.
    """
    model_config = ConfigDict(extra="ignore")

    product_id: Optional[str] = None
    quantity: Optional[int] = 1
    title: Optional[str] = None

    @field_validator("product_id", "title", mode="before")
    @classmethod
    def _as_text(cls, value):
        # Shopify sends numeric IDs; the qualifying product map is keyed by string
        return _optional_text(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _as_int(cls, value):
        if isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class OrderWebhook(BaseModel):
    """
    Represents the `orders/create` webhook payload.

    Only the fields the pipeline needs are declared; everything else Shopify
    sends is ignored. Apart from `id`, every field tolerates `null` and
    unexpected types: such webhooks are acknowledged and skipped by the
    pipeline rather than rejected.

    Attributes:
        id (str): Shopify order ID. Missing IDs are rejected by the endpoint.
        name (str): Display name of the order, e.g. "#1001".
        test (bool): True for test orders placed via the Shopify admin.
        line_items (List[LineItem]): Product lines of the order.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    test: bool = False
    line_items: List[LineItem] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, value):
        return _optional_text(value)

    @field_validator("test", mode="before")
    @classmethod
    def _test_flag(cls, value):
        return value is True

    @field_validator("line_items", mode="before")
    @classmethod
    def _object_items_only(cls, value):
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @property
    def order_id(self) -> Optional[str]:
        if self.id is None or str(self.id) == "":
            return None
        return str(self.id)


class CodeRecord(BaseModel):
    """
    A redemption code issued for an order. Created once, never updated.

    Records written before prefixes and product IDs were stored hold only
    `orderId` and `code`; their prefix is read from the code's first letter.

    Attributes:
        orderId (str): Shopify order ID.
        code (str): The issued code, e.g. "A12345678". Globally unique.
        prefix (str): Single-letter prefix derived from the qualifying product.
        productId (str): The qualifying product that decided the prefix.
        createdAt (datetime): UTC timestamp of issuance, `None` for old records.
    """
    model_config = ConfigDict(extra="ignore")

    orderId: str
    code: str
    prefix: str
    productId: Optional[str] = None
    createdAt: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("orderId", mode="before")
    @classmethod
    def _order_id_as_text(cls, value):
        return value if value is None else str(value)

    @model_validator(mode="before")
    @classmethod
    def _prefix_from_code(cls, data):
        if isinstance(data, dict) and not data.get("prefix") and data.get("code"):
            data = {**data, "prefix": str(data["code"])[0]}
        return data


class PipelineStage(str, Enum):
    RECEIVED = "RECEIVED"
    ELIGIBILITY_CHECKED = "ELIGIBILITY_CHECKED"
    SKIPPED = "SKIPPED"
    CODE_GENERATED = "CODE_GENERATED"
    CODE_PERSISTED = "CODE_PERSISTED"
    PARTNER_NOTIFIED = "PARTNER_NOTIFIED"
    ORDER_ANNOTATED = "ORDER_ANNOTATED"
    FAILED = "FAILED"


class PipelineResult(BaseModel):
    """
    Outcome of processing one order.

    Attributes:
        orderId (str): Shopify order ID.
        stage (PipelineStage): Terminal stage of the run (SKIPPED, ORDER_ANNOTATED or FAILED).
        failedAfter (PipelineStage): Last completed stage when the run failed.
        code (str): Issued code, when one was generated.
        note (str): Order note echoed back by Shopify.
        partnerResponse (str): Raw body returned by the partner API.
        reason (str): Why the order was skipped.
        error (str): Error message when the run failed.
    """
    orderId: str
    stage: PipelineStage = PipelineStage.RECEIVED
    failedAfter: Optional[PipelineStage] = None
    code: Optional[str] = None
    note: Optional[str] = None
    partnerResponse: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == PipelineStage.ORDER_ANNOTATED
