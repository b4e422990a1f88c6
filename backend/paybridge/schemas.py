from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # validated by the amount rules so failures carry the donation messages
    amount: Any = None
    currency: str | None = None
    metadata: dict[str, Any] | None = None


class PaymentIntentResponse(BaseModel):
    clientSecret: str | None
    paymentIntentId: str


class PaymentIntentStatusResponse(BaseModel):
    paymentIntentId: str
    status: str
    amount: int | None = None
    currency: str | None = None


class PayPalOrderCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Any = None
    currency: str | None = None


class PayPalOrderResponse(BaseModel):
    orderID: str
    id: str
    status: str
    links: list[dict[str, Any]] = Field(default_factory=list)


class PayPalExecutePayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    paymentId: str | None = None
    payerId: str | None = None


class PayPalExecuteResponse(BaseModel):
    success: bool
    paymentId: str
    transactionId: str | None = None
    status: str
    payer: dict[str, Any] | None = None
    purchase_units: list[dict[str, Any]] = Field(default_factory=list)


class WebhookAck(BaseModel):
    received: bool = True
