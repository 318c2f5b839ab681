"""
Bid API Routes

Handles:
- The caller's own bids
- Payment submission for won bids
- Swish payment intent
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fyndak.core.context import AppContext
from fyndak.core.dependencies import get_context, get_current_profile, get_db, get_notifier
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Profile
from fyndak.services import BidService, PaymentService

router = APIRouter(prefix="/bids", tags=["bids"])


class SubmitPaymentRequest(BaseModel):
    """Phone number the payment was sent from"""
    phone: str


@router.get("/me")
async def get_my_bids(
    status: Optional[str] = None,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """
    All bids placed by the caller, newest first

    Use status=won for the won-auctions list.
    """
    bids = BidService.list_bids_for_bidder(db, profile.id, status=status)

    return {
        "bidder_id": profile.id,
        "total_bids": len(bids),
        "bids": [bid.to_dict(include_product=True) for bid in bids]
    }


@router.post("/{bid_id}/payment")
async def submit_payment(
    bid_id: str,
    request: SubmitPaymentRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Submit payment details for admin verification"""
    bid = await PaymentService.submit_payment(db, notifier, bid_id, request.phone, profile)

    return {
        "success": True,
        "message": "Payment submitted for verification",
        "bid": bid.to_dict()
    }


@router.get("/{bid_id}/payment-intent")
async def get_payment_intent(
    bid_id: str,
    profile: Profile = Depends(get_current_profile),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db)
):
    """Swish deep link for paying a won bid"""
    return PaymentService.payment_intent(db, context.payment_intents, bid_id, profile)
