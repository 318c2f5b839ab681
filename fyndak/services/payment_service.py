"""
Payment Reconciliation

Two-party handshake for an out-of-band Swish payment:

    (none) -> pending -> paid
                      -> cancelled

The winner submits the phone number they paid from (-> pending,
resubmission overwrites the number). An administrator checks the
merchant's Swish app and confirms or cancels. paid and cancelled are
terminal.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from fyndak.core.errors import InvalidState, NotFound, Unauthorized
from fyndak.infrastructure.database import store_operation
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Bid, BidStatus, PaymentStatus, Product, ProductStatus, Profile
from fyndak.services.payment_intent import SwishPaymentIntent
from fyndak.utils import utcnow

logger = logging.getLogger(__name__)

TERMINAL_PAYMENT_STATES = (PaymentStatus.PAID, PaymentStatus.CANCELLED)
OVERRIDE_STATUSES = (BidStatus.ACTIVE, BidStatus.OUTBID, BidStatus.WON)


def _load_bid(db: Session, bid_id: str) -> Bid:
    bid = db.query(Bid).filter(Bid.id == bid_id).with_for_update().populate_existing().first()
    if not bid:
        raise NotFound("Bid not found")
    return bid


def _check_owner(bid: Bid, caller: Profile):
    if bid.bidder_id != caller.id and not caller.is_admin:
        raise Unauthorized("Only the winning bidder can submit payment for this bid")


class PaymentService:
    """Payment handshake between winning bidder and administrator"""

    @staticmethod
    async def submit_payment(
        db: Session,
        notifier: ChangeNotifier,
        bid_id: str,
        phone: str,
        caller: Profile,
    ) -> Bid:
        """
        Record the phone number a winner paid from

        The number is free text; it is only used to find the payment.

        Raises:
            NotFound: If bid does not exist
            Unauthorized: If caller is neither the bidder nor an admin
            InvalidState: If the bid has not won, the payment is already
                settled, or the phone is empty
        """
        phone = (phone or "").strip()
        if not phone:
            raise InvalidState("Phone number is required")

        with store_operation(db, "Could not save payment"):
            bid = _load_bid(db, bid_id)
            _check_owner(bid, caller)

            if bid.status != BidStatus.WON:
                raise InvalidState("Payment can only be submitted for a won bid")

            if bid.payment_status in TERMINAL_PAYMENT_STATES:
                raise InvalidState(f"Payment is already {bid.payment_status.value}")

            bid.payment_status = PaymentStatus.PENDING
            bid.payment_phone = phone
            db.commit()
            db.refresh(bid)

        logger.info("Payment submitted for verification", extra={"bid_id": bid_id, "bidder_id": bid.bidder_id})
        await notifier.publish("bids", "UPDATE", new=bid.to_dict())
        return bid

    @staticmethod
    async def _settle(db: Session, notifier: ChangeNotifier, bid_id: str, outcome: PaymentStatus) -> Bid:
        with store_operation(db, "Could not save payment"):
            bid = _load_bid(db, bid_id)

            if bid.status != BidStatus.WON:
                raise InvalidState("Only a won bid has a payment to settle")

            product = db.query(Product).filter(Product.id == bid.product_id).first()
            if product is None or product.status != ProductStatus.ENDED:
                raise InvalidState("End the auction before settling its payment")

            if bid.payment_status in TERMINAL_PAYMENT_STATES:
                raise InvalidState(f"Payment is already {bid.payment_status.value}")

            bid.payment_status = outcome
            if outcome == PaymentStatus.PAID:
                bid.payment_date = utcnow()

            db.commit()
            db.refresh(bid)

        logger.info(f"Payment {outcome.value}", extra={"bid_id": bid_id, "bidder_id": bid.bidder_id})
        await notifier.publish("bids", "UPDATE", new=bid.to_dict())
        return bid

    @staticmethod
    async def confirm_payment(db: Session, notifier: ChangeNotifier, bid_id: str) -> Bid:
        """Mark the payment received (administrators)"""
        return await PaymentService._settle(db, notifier, bid_id, PaymentStatus.PAID)

    @staticmethod
    async def cancel_payment(db: Session, notifier: ChangeNotifier, bid_id: str) -> Bid:
        """Mark the payment cancelled (administrators)"""
        return await PaymentService._settle(db, notifier, bid_id, PaymentStatus.CANCELLED)

    @staticmethod
    async def set_bid_status(
        db: Session,
        notifier: ChangeNotifier,
        bid_id: str,
        status: str,
        payment_status: Optional[str] = None,
    ) -> Tuple[Bid, int]:
        """
        Administrative override of a bid's status on an ended auction

        Winner selection is not re-run, so this can leave more than one
        won bid on a product. That is logged, not prevented.

        Returns:
            The bid and the number of won bids on its product afterwards
        """
        try:
            new_status = BidStatus(status)
        except ValueError:
            raise InvalidState(f"Unknown bid status '{status}'")
        if new_status not in OVERRIDE_STATUSES:
            raise InvalidState(f"Status can only be set to one of: {', '.join(s.value for s in OVERRIDE_STATUSES)}")

        new_payment_status = None
        if payment_status is not None:
            try:
                new_payment_status = PaymentStatus(payment_status)
            except ValueError:
                raise InvalidState(f"Unknown payment status '{payment_status}'")

        with store_operation(db, "Could not update bid status"):
            bid = _load_bid(db, bid_id)

            product = db.query(Product).filter(Product.id == bid.product_id).first()
            if product is None or product.status != ProductStatus.ENDED:
                raise InvalidState("Bid status can only be changed after the auction has ended")

            old = bid.to_dict()
            bid.status = new_status
            if new_payment_status is not None:
                bid.payment_status = new_payment_status
                if new_payment_status == PaymentStatus.PAID:
                    bid.payment_date = utcnow()

            db.flush()
            won_count = db.query(func.count(Bid.id)).filter(
                Bid.product_id == bid.product_id,
                Bid.status == BidStatus.WON
            ).scalar()

            db.commit()
            db.refresh(bid)

        if won_count > 1:
            logger.warning(
                f"Product has {won_count} won bids after manual override",
                extra={"product_id": bid.product_id, "bid_id": bid_id},
            )
        else:
            logger.info(f"Bid status set to {new_status.value}", extra={"bid_id": bid_id})

        await notifier.publish("bids", "UPDATE", new=bid.to_dict(), old=old)
        return bid, won_count

    @staticmethod
    def payment_intent(db: Session, intents: SwishPaymentIntent, bid_id: str, caller: Profile) -> dict:
        """
        Swish deep link for a won bid

        Raises:
            NotFound, Unauthorized, InvalidState
        """
        with store_operation(db, "Could not load bid"):
            bid = db.query(Bid).filter(Bid.id == bid_id).first()

        if not bid:
            raise NotFound("Bid not found")
        _check_owner(bid, caller)
        if bid.status != BidStatus.WON:
            raise InvalidState("Only a won bid can be paid")

        intent = intents.build(bid.id, bid.amount)
        intent["payment_status"] = bid.payment_status.value if bid.payment_status else None
        return intent
