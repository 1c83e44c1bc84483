from fastapi import APIRouter, Depends

from cemap_trainer.api.deps import get_entitlements, get_payment_service
from cemap_trainer.core.auth import get_current_user
from cemap_trainer.models.orm import Product, User
from cemap_trainer.models.schemas import (
    AccessCheckResponse, CreatePaymentIntentRequest, CreatePaymentIntentResponse,
    VerifyPaymentRequest, VerifyPaymentResponse,
)
from cemap_trainer.services.entitlements import EntitlementStore
from cemap_trainer.services.payments import PaymentService

router = APIRouter()

@router.post("/create-payment-intent", response_model=CreatePaymentIntentResponse)
def create_payment_intent(
    payload: CreatePaymentIntentRequest,
    user: User = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
):
    record = payments.create_payment_intent(payload.product, user)
    return CreatePaymentIntentResponse(client_secret=record.client_secret, amount=record.amount, currency=record.currency)

@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment(
    payload: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
):
    token = payments.verify_payment(payload.payment_intent_id, user)
    return VerifyPaymentResponse(access_token=token.token, product=token.product, expires_at=token.expires_at)

@router.get("/check-exam-access", response_model=AccessCheckResponse)
def check_exam_access(user: User = Depends(get_current_user), entitlements: EntitlementStore = Depends(get_entitlements)):
    return AccessCheckResponse(has_access=entitlements.check_access(user.id, Product.EXAM))

@router.get("/check-scenario-access", response_model=AccessCheckResponse)
def check_scenario_access(user: User = Depends(get_current_user), entitlements: EntitlementStore = Depends(get_entitlements)):
    return AccessCheckResponse(has_access=entitlements.check_access(user.id, Product.SCENARIO))
