from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal


class CreateRazorpayOrderRequest(BaseModel):
    order_id: str


class CreateRazorpayOrderResponse(BaseModel):
    razorpay_order_id: str
    amount: int  # paise
    currency: str = "INR"
    key_id: str
    order_id: str


class VerifyPaymentRequest(BaseModel):
    order_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    order_id: str
    payment_id: str
    warranties_created: int


class PaymentFailureRequest(BaseModel):
    order_id: str
    reason: Optional[str] = Field(None, max_length=500)


class QRPaymentRequest(BaseModel):
    order_id: str


class QRPaymentResponse(BaseModel):
    upi_string: str
    amount: Decimal
    order_id: str
    merchant_name: str


class PaymentMethodInfo(BaseModel):
    id: str
    name: str
    enabled: bool


class PaymentMethodsResponse(BaseModel):
    methods: List[PaymentMethodInfo]
