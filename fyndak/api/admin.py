"""
Admin API Routes - Auction closing and payment reconciliation
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fyndak.core.dependencies import get_db, get_notifier, require_admin
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.services import AuctionCloser, BidService, PaymentService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class SetBidStatusRequest(BaseModel):
    status: str
    payment_status: Optional[str] = None


@router.post("/products/{product_id}/close")
async def close_auction(
    product_id: str,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """End an auction and assign the winning bid"""
    result = await AuctionCloser.close_auction(db, notifier, product_id)

    return {
        "success": True,
        "message": "Auction already ended" if result.already_closed else "Auction ended successfully",
        **result.to_dict()
    }


@router.post("/auctions/close-expired")
async def close_expired_auctions(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Close every active auction past its end time"""
    sweep = await AuctionCloser.close_expired_auctions(db, notifier)

    return {
        "success": not sweep.failed,
        "message": f"Ended {len(sweep.closed)} expired auctions",
        **sweep.to_dict()
    }


@router.get("/products/{product_id}/debug")
async def debug_product_bids(product_id: str, db: Session = Depends(get_db)):
    """Bid ranking diagnostics for a product"""
    return AuctionCloser.debug_product_bids(db, product_id)


@router.get("/products/{product_id}/bidders")
async def get_product_bidders(product_id: str, db: Session = Depends(get_db)):
    """Bids with bidder name and email, highest first"""
    bids = BidService.list_bids_for_product(db, product_id, with_bidder=True)

    return {
        "product_id": product_id,
        "total_bids": len(bids),
        "bids": [bid.to_dict(include_bidder=True) for bid in bids]
    }


@router.post("/bids/{bid_id}/confirm-payment")
async def confirm_payment(
    bid_id: str,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    bid = await PaymentService.confirm_payment(db, notifier, bid_id)

    return {
        "success": True,
        "message": "Payment confirmed",
        "bid": bid.to_dict()
    }


@router.post("/bids/{bid_id}/cancel-payment")
async def cancel_payment(
    bid_id: str,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    bid = await PaymentService.cancel_payment(db, notifier, bid_id)

    return {
        "success": True,
        "message": "Payment cancelled",
        "bid": bid.to_dict()
    }


@router.patch("/bids/{bid_id}/status")
async def set_bid_status(
    bid_id: str,
    request: SetBidStatusRequest,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Manual override of a bid's status on an ended auction"""
    bid, won_count = await PaymentService.set_bid_status(
        db,
        notifier,
        bid_id,
        request.status,
        payment_status=request.payment_status
    )

    response = {
        "success": True,
        "message": "Bid status updated successfully",
        "bid": bid.to_dict(),
        "won_bids_on_product": won_count
    }
    if won_count > 1:
        response["warning"] = f"Product now has {won_count} won bids"

    return response
