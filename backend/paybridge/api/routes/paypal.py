from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from ...errors import ValidationError, ValidationReason
from ...logging_config import get_logger
from ...metrics import amount_rejections_total
from ...payments.amounts import validate_amount
from ...payments.base import Provider
from ...payments.factory import get_paypal_gateway
from ...payments.paypal_gateway import PayPalGateway
from ...payments.requests import build_paypal_order_request
from ...payments.webhooks import handle_event
from ...schemas import (
    PayPalExecutePayment,
    PayPalExecuteResponse,
    PayPalOrderCreate,
    PayPalOrderResponse,
    WebhookAck,
)
from ...settings import Settings, get_settings
from ...utils import request_origin

router = APIRouter(prefix="/api/paypal", tags=["paypal"])
logger = get_logger(__name__)


@router.post("/create-order", response_model=PayPalOrderResponse)
def create_order(
    request: Request,
    payload: PayPalOrderCreate | None = None,
    settings: Settings = Depends(get_settings),
    gateway: PayPalGateway = Depends(get_paypal_gateway),
):
    payload = payload or PayPalOrderCreate()
    logger.info("paypal_order_requested", origin=request_origin(request))
    try:
        amount = validate_amount(payload.amount, Provider.PAYPAL, settings)
        order_request = build_paypal_order_request(amount, payload.currency, settings)
    except ValidationError as exc:
        amount_rejections_total.labels(provider="paypal", reason=exc.reason.value).inc()
        raise
    order = gateway.create_intent(order_request)
    return PayPalOrderResponse(
        orderID=order.order_id, id=order.order_id, status=order.status.value, links=order.links
    )


@router.post("/execute-payment", response_model=PayPalExecuteResponse)
def execute_payment(
    request: Request,
    payload: PayPalExecutePayment | None = None,
    gateway: PayPalGateway = Depends(get_paypal_gateway),
):
    payload = payload or PayPalExecutePayment()
    payment_id = (payload.paymentId or "").strip()
    if not payment_id:
        raise ValidationError(ValidationReason.MISSING, "Payment ID is required")
    logger.info("paypal_capture_requested", order_id=payment_id, origin=request_origin(request))
    capture = gateway.capture_or_fetch(payment_id, payload.payerId)
    return PayPalExecuteResponse(
        success=True,
        paymentId=capture.resource_id,
        transactionId=capture.transaction_id,
        status=capture.status,
        payer=capture.payer,
        purchase_units=capture.purchase_units,
    )


@router.get("/order/{order_id}")
def get_order(order_id: str, gateway: PayPalGateway = Depends(get_paypal_gateway)):
    return gateway.get_status(order_id).raw


@router.post("/webhook", response_model=WebhookAck)
async def paypal_webhook(request: Request, gateway: PayPalGateway = Depends(get_paypal_gateway)):
    raw_body = await request.body()
    # verification may call PayPal
    event = await run_in_threadpool(gateway.verify_webhook, raw_body, request.headers)
    handle_event(event)
    return WebhookAck()
