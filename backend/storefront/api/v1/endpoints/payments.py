"""
Payment endpoints: Razorpay checkout, signature verification, webhooks
and the UPI QR fallback.
"""
import json

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.exceptions import PaymentError
from storefront.core.logging_config import logger
from storefront.core.rate_limiter import endpoint_limit
from storefront.models.order import Order, OrderStatus, PaymentStatus
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_user
from storefront.schemas.payment import (
    CreateRazorpayOrderRequest,
    CreateRazorpayOrderResponse,
    PaymentFailureRequest,
    PaymentMethodInfo,
    PaymentMethodsResponse,
    QRPaymentRequest,
    QRPaymentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from storefront.schemas.common import MessageResponse
from storefront.services import order_service
from storefront.services.notification_service import notification_service
from storefront.services.payment_service import (
    build_upi_string,
    razorpay_gateway,
    verify_payment_signature,
    verify_webhook_signature,
)
from storefront.services.pricing import to_paise
from storefront.services.warranty_service import register_order_warranties

router = APIRouter()


@router.post("/razorpay/create-order", response_model=CreateRazorpayOrderResponse)
@endpoint_limit("payment")
async def create_razorpay_order(
    request: Request,
    data: CreateRazorpayOrderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a Razorpay order for one of the caller's pending orders.

    The returned id and key are what the frontend checkout widget needs.
    """
    order = await order_service.load_order(db, data.order_id, user_id=current_user.id)

    if order.payment_status != PaymentStatus.PENDING or order.order_status == OrderStatus.CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Order already processed"
        )

    amount = to_paise(order.total_price)
    razorpay_order = await razorpay_gateway.create_order(
        amount_paise=amount,
        receipt=order.id,
        notes={
            "order_id": order.id,
            "user_id": current_user.id,
            "customer_email": current_user.email,
        },
    )

    order.razorpay_order_id = razorpay_order["id"]
    await db.commit()

    return CreateRazorpayOrderResponse(
        razorpay_order_id=razorpay_order["id"],
        amount=amount,
        currency="INR",
        key_id=settings.RAZORPAY_KEY_ID,
        order_id=order.id,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
@endpoint_limit("payment")
async def verify_payment(
    request: Request,
    data: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Check the checkout signature, mark the order paid and register one warranty per unit"""
    order = await order_service.load_order(db, data.order_id, user_id=current_user.id)

    if order.razorpay_order_id and order.razorpay_order_id != data.razorpay_order_id:
        logger.log_payment_event("verify", order.id, success=False, reason="razorpay order mismatch")
        raise PaymentError("Payment does not belong to this order")

    if order.order_status == OrderStatus.CANCELLED:
        logger.log_payment_event("verify", order.id, success=False, reason="order cancelled",
                                 razorpay_payment_id=data.razorpay_payment_id)
        raise PaymentError("Cannot verify payment for a cancelled order")

    if not verify_payment_signature(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature):
        logger.log_payment_event("verify", order.id, success=False, reason="bad signature",
                                 razorpay_payment_id=data.razorpay_payment_id)
        raise PaymentError("Invalid payment signature")

    order.razorpay_order_id = data.razorpay_order_id
    await order_service.mark_order_paid(db, order, payment_id=data.razorpay_payment_id)
    warranties = await register_order_warranties(db, order, per_unit=True)
    await db.commit()

    logger.log_payment_event("verify", order.id, amount=str(order.total_price),
                             razorpay_payment_id=data.razorpay_payment_id,
                             warranties_created=len(warranties))

    notification_service.order_status_changed(background_tasks, order)
    if warranties:
        notification_service.warranties_registered(background_tasks, current_user, warranties)

    return VerifyPaymentResponse(
        success=True,
        message="Payment verified successfully",
        order_id=order.id,
        payment_id=data.razorpay_payment_id,
        warranties_created=len(warranties),
    )


@router.post("/failure", response_model=MessageResponse)
async def payment_failure(
    data: PaymentFailureRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await order_service.load_order(db, data.order_id, user_id=current_user.id)
    if order.payment_status == PaymentStatus.PAID:
        raise PaymentError("Order is already paid")

    order.payment_status = PaymentStatus.FAILED
    await db.commit()

    logger.log_payment_event("payment_failed", order.id, success=False, reason=data.reason)
    return MessageResponse(message="Payment failure recorded")


@router.post("/webhook")
async def razorpay_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Razorpay server-to-server events.

    Backup path for when the browser never returns to /verify.
    """
    body = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")

    if not verify_webhook_signature(body, signature):
        logger.warning("[Payment] Webhook rejected: invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

    try:
        event = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    event_type = event.get("event", "")
    payload = event.get("payload", {})
    payment = payload.get("payment", {}).get("entity", {})
    razorpay_order_id = payment.get("order_id") or payload.get("order", {}).get("entity", {}).get("id")

    logger.info(f"[Payment] Webhook received: {event_type} for {razorpay_order_id}")

    if event_type not in ("payment.captured", "order.paid", "payment.failed") or not razorpay_order_id:
        return {"status": "ignored"}

    order_id = await db.scalar(select(Order.id).where(Order.razorpay_order_id == razorpay_order_id))
    if not order_id:
        logger.warning(f"[Payment] Webhook for unknown Razorpay order {razorpay_order_id}")
        return {"status": "ignored"}

    order = await order_service.load_order(db, order_id)

    if order.order_status == OrderStatus.CANCELLED:
        logger.log_payment_event("webhook_ignored", order.id, success=False,
                                 reason=f"{event_type} on cancelled order",
                                 razorpay_payment_id=payment.get("id"))
        return {"status": "ignored"}

    if event_type == "payment.failed":
        if order.payment_status != PaymentStatus.PAID:
            order.payment_status = PaymentStatus.FAILED
        logger.log_payment_event("webhook_payment_failed", order.id, success=False,
                                 reason=payment.get("error_description"))
    elif order.payment_status != PaymentStatus.PAID:
        await order_service.mark_order_paid(db, order, payment_id=payment.get("id"))
        await register_order_warranties(db, order, per_unit=True)
        logger.log_payment_event("webhook_paid", order.id, amount=str(order.total_price))

    await db.commit()
    return {"status": "ok"}


@router.post("/qr", response_model=QRPaymentResponse)
async def upi_qr(
    data: QRPaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """UPI deep link for the QR fallback when Razorpay checkout is unavailable"""
    order = await order_service.load_order(db, data.order_id, user_id=current_user.id)
    if order.payment_status == PaymentStatus.PAID:
        raise PaymentError("Order is already paid")

    return QRPaymentResponse(
        upi_string=build_upi_string(order.id, order.total_price),
        amount=order.total_price,
        order_id=order.id,
        merchant_name=settings.MERCHANT_NAME,
    )


@router.get("/methods", response_model=PaymentMethodsResponse)
async def payment_methods(current_user: User = Depends(get_current_user)):
    return PaymentMethodsResponse(methods=[
        PaymentMethodInfo(id="razorpay", name="Razorpay (Cards, UPI, Wallets)", enabled=razorpay_gateway.is_configured),
        PaymentMethodInfo(id="upi", name="UPI QR Code", enabled=True),
        PaymentMethodInfo(id="netbanking", name="Net Banking", enabled=True),
        PaymentMethodInfo(id="cod", name="Cash on Delivery", enabled=True),
        PaymentMethodInfo(id="wallet", name="Wallet", enabled=False),
    ])
