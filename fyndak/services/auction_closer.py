"""
Auction Closer

State transitions when an auction ends:

    product:  active -> ended
    bids:     active -> won    (the single highest bid, earliest on ties)
              active -> ended  (every other active bid)

All three steps commit in one transaction. The active -> ended
transition is a conditional update on the product's status, so of two
concurrent closes only one selects a winner; the other sees the first
one's outcome.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from fyndak.core.errors import FyndakError, InvalidState, NotFound
from fyndak.infrastructure.database import store_operation
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Bid, BidStatus, Product, ProductStatus
from fyndak.services.bid_service import RANKING_ORDER
from fyndak.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CloseResult:
    """Outcome of closing one auction"""
    product: Product
    winning_bid: Optional[Bid] = None
    ended_bids: List[Bid] = field(default_factory=list)
    already_closed: bool = False

    def to_dict(self) -> dict:
        return {
            "product_id": self.product.id,
            "status": self.product.status.value,
            "winning_bid": self.winning_bid.to_dict() if self.winning_bid else None,
            "ended_bids": len(self.ended_bids),
            "already_closed": self.already_closed,
        }


@dataclass
class SweepResult:
    """Outcome of closing every expired auction"""
    closed: List[CloseResult] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "closed": [result.to_dict() for result in self.closed],
            "failed": self.failed,
        }


class AuctionCloser:
    """Ends auctions and assigns winners"""

    @staticmethod
    def _winning_bid(db: Session, product_id: str) -> Optional[Bid]:
        return db.query(Bid).filter(
            Bid.product_id == product_id,
            Bid.status == BidStatus.WON
        ).order_by(*RANKING_ORDER).first()

    @staticmethod
    async def close_auction(db: Session, notifier: ChangeNotifier, product_id: str) -> CloseResult:
        """
        Close an auction

        Calling it again on a closed auction returns the existing
        outcome. A product that was marked ended without a winner
        (an interrupted close) gets its winner selected.

        Raises:
            NotFound: If the product does not exist
            InvalidState: If the product was never published
            UpstreamFailure: If the store fails; nothing is applied
        """
        with store_operation(db, "Could not end auction"):
            product = db.query(Product).filter(
                Product.id == product_id
            ).with_for_update().populate_existing().first()

            if not product:
                raise NotFound("Product not found")

            if product.status == ProductStatus.PENDING:
                raise InvalidState("Cannot end an auction that was never published")

            existing_winner = AuctionCloser._winning_bid(db, product_id)
            if product.status == ProductStatus.ENDED and existing_winner is not None:
                db.rollback()
                logger.info("Auction already closed", extra={"product_id": product_id})
                return CloseResult(product=product, winning_bid=existing_winner, already_closed=True)

            already_closed = product.status == ProductStatus.ENDED

            if not already_closed:
                transitioned = db.query(Product).filter(
                    Product.id == product_id,
                    Product.status == ProductStatus.ACTIVE
                ).update(
                    {Product.status: ProductStatus.ENDED, Product.updated_at: utcnow()},
                    synchronize_session="fetch"
                )

                if transitioned == 0:
                    # Another close committed between our read and update
                    db.rollback()
                    product = db.query(Product).filter(Product.id == product_id).first()
                    return CloseResult(
                        product=product,
                        winning_bid=AuctionCloser._winning_bid(db, product_id),
                        already_closed=True,
                    )

            active_bids = db.query(Bid).filter(
                Bid.product_id == product_id,
                Bid.status == BidStatus.ACTIVE
            ).order_by(*RANKING_ORDER).with_for_update().populate_existing().all()

            winning_bid = active_bids[0] if active_bids else None
            ended_bids = active_bids[1:]

            if winning_bid is not None:
                winning_bid.status = BidStatus.WON
            for bid in ended_bids:
                bid.status = BidStatus.ENDED

            db.commit()
            db.refresh(product)

        result = CloseResult(
            product=product,
            winning_bid=winning_bid,
            ended_bids=ended_bids,
            already_closed=already_closed and winning_bid is None,
        )

        if winning_bid is not None:
            logger.info(
                f"Auction closed, winning bid {winning_bid.amount}",
                extra={"product_id": product_id, "bid_id": winning_bid.id, "bidder_id": winning_bid.bidder_id},
            )
        else:
            logger.info("Auction closed without bids", extra={"product_id": product_id})

        if not already_closed:
            await notifier.publish("products", "UPDATE", new=product.to_dict())
        for bid in ([winning_bid] if winning_bid else []) + ended_bids:
            await notifier.publish("bids", "UPDATE", new=bid.to_dict())

        return result

    @staticmethod
    async def close_expired_auctions(
        db: Session,
        notifier: ChangeNotifier,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """
        Close every active auction whose end time has passed

        A failure on one product is recorded and does not stop the sweep.
        """
        now = now or utcnow()

        with store_operation(db, "Could not load expired auctions"):
            expired_ids = [
                row[0] for row in db.query(Product.id).filter(
                    Product.status == ProductStatus.ACTIVE,
                    Product.end_time.isnot(None),
                    Product.end_time <= now
                ).order_by(Product.end_time.asc()).all()
            ]

        sweep = SweepResult()
        for product_id in expired_ids:
            try:
                sweep.closed.append(await AuctionCloser.close_auction(db, notifier, product_id))
            except FyndakError as e:
                logger.error(f"Could not close expired auction: {e.message}", extra={"product_id": product_id})
                sweep.failed.append({"product_id": product_id, **e.to_dict()})

        if expired_ids:
            logger.info(f"Swept {len(sweep.closed)} expired auctions, {len(sweep.failed)} failed")

        return sweep

    @staticmethod
    def debug_product_bids(db: Session, product_id: str) -> dict:
        """
        Diagnostic view of a product's bids

        Returns the product, every bid in ranking order and the bid
        that would win if the auction were closed now.
        """
        with store_operation(db, "Could not load bids"):
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product:
                raise NotFound("Product not found")

            bids = db.query(Bid).filter(Bid.product_id == product_id).order_by(*RANKING_ORDER).all()

        would_win = next((bid for bid in bids if bid.status == BidStatus.ACTIVE), None)
        won = [bid for bid in bids if bid.status == BidStatus.WON]

        return {
            "product": product.to_dict(),
            "bids": [bid.to_dict() for bid in bids],
            "total_bids": len(bids),
            "would_win": would_win.to_dict() if would_win else None,
            "won_bids": [bid.id for bid in won],
        }
