from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...errors import ValidationError
from ...logging_config import get_logger
from ...metrics import amount_rejections_total
from ...payments.amounts import validate_amount
from ...payments.base import Provider
from ...payments.factory import get_stripe_gateway
from ...payments.requests import build_stripe_intent_request
from ...payments.stripe_gateway import StripeGateway
from ...payments.webhooks import handle_event
from ...schemas import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentIntentStatusResponse,
    WebhookAck,
)
from ...settings import Settings, get_settings
from ...utils import request_origin

router = APIRouter(tags=["stripe"])
logger = get_logger(__name__)


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
@router.post("/api/stripe/payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    request: Request,
    payload: PaymentIntentCreate | None = None,
    settings: Settings = Depends(get_settings),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    payload = payload or PaymentIntentCreate()
    origin = request_origin(request)
    logger.info("stripe_intent_requested", origin=origin)
    try:
        amount = validate_amount(payload.amount, Provider.STRIPE, settings)
        intent_request = build_stripe_intent_request(
            amount, payload.currency, payload.metadata, origin, settings
        )
    except ValidationError as exc:
        amount_rejections_total.labels(provider="stripe", reason=exc.reason.value).inc()
        raise
    result = gateway.create_intent(intent_request)
    return PaymentIntentResponse(
        clientSecret=result.client_secret, paymentIntentId=result.provider_intent_id
    )


@router.get("/api/stripe/payment-intent/{intent_id}", response_model=PaymentIntentStatusResponse)
def get_payment_intent(intent_id: str, gateway: StripeGateway = Depends(get_stripe_gateway)):
    result = gateway.get_status(intent_id)
    return PaymentIntentStatusResponse(
        paymentIntentId=result.provider_intent_id,
        status=result.status.value,
        amount=result.amount,
        currency=result.currency,
    )


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(request: Request, gateway: StripeGateway = Depends(get_stripe_gateway)):
    raw_body = await request.body()
    event = gateway.verify_webhook(raw_body, request.headers)
    handle_event(event)
    return WebhookAck()
