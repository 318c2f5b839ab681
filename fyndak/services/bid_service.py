"""
Bid Service - Business Logic

Handles:
- Bid validation
- Bid placement
- Bid history per product and per bidder
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from fyndak.core.errors import InvalidBid, InvalidState, NotFound, Unauthenticated
from fyndak.infrastructure.database import store_operation
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Bid, BidStatus, Product, ProductStatus, Profile
from fyndak.utils import to_money

logger = logging.getLogger(__name__)

# Highest amount first; at equal amounts the earliest bid ranks higher
RANKING_ORDER = (Bid.amount.desc(), Bid.created_at.asc(), Bid.id.asc())


class BidService:
    """
    Service for bid-related business logic

    The ledger only inserts bids. Raising the product's current price is
    a store-side effect of the insert (see models.bid).
    """

    @staticmethod
    def parse_amount(amount):
        """
        Raises:
            InvalidBid: If amount is not a positive number of whole cents
                within the money column range
        """
        try:
            value = to_money(amount)
        except ValueError as e:
            raise InvalidBid(str(e))

        if value <= 0:
            raise InvalidBid("Bid amount must be positive")
        return value

    @staticmethod
    async def place_bid(
        db: Session,
        notifier: ChangeNotifier,
        product_id: str,
        bidder_id: Optional[str],
        amount,
    ) -> Bid:
        """
        Place a bid on an active product

        The amount must be strictly greater than the product's current
        price as read inside the inserting transaction.

        Raises:
            Unauthenticated: If no bidder is given or the bidder is unknown
            NotFound: If the product does not exist or is not active
            InvalidBid: If the amount is not above the current price
            UpstreamFailure: If the store fails
        """
        if not bidder_id:
            raise Unauthenticated("Sign in to place a bid")

        value = BidService.parse_amount(amount)

        with store_operation(db, "Could not save bid"):
            if db.query(Profile.id).filter(Profile.id == bidder_id).first() is None:
                raise Unauthenticated("Unknown bidder")

            product = db.query(Product).filter(
                Product.id == product_id
            ).with_for_update().populate_existing().first()

            if not product or product.status != ProductStatus.ACTIVE:
                raise NotFound("Product not found or not active")

            if value <= product.current_price:
                logger.info(
                    f"Rejected bid {value} at current price {product.current_price}",
                    extra={"product_id": product_id, "bidder_id": bidder_id},
                )
                raise InvalidBid(f"Bid must be higher than {product.current_price:.2f}")

            bid = Bid(
                product_id=product_id,
                bidder_id=bidder_id,
                amount=value,
                status=BidStatus.ACTIVE,
            )
            db.add(bid)
            db.commit()
            db.refresh(bid)
            db.refresh(product)

        logger.info(
            f"Accepted bid {value}",
            extra={"product_id": product_id, "bid_id": bid.id, "bidder_id": bidder_id},
        )

        await notifier.publish("bids", "INSERT", new=bid.to_dict())
        await notifier.publish("products", "UPDATE", new=product.to_dict())

        return bid

    @staticmethod
    def list_bids_for_product(db: Session, product_id: str, with_bidder: bool = False) -> List[Bid]:
        """
        Bids for a product in ranking order

        Args:
            with_bidder: Eager-load bidder profiles for the admin view
        """
        with store_operation(db, "Could not load bids"):
            if db.query(Product.id).filter(Product.id == product_id).first() is None:
                raise NotFound("Product not found")

            query = db.query(Bid).filter(Bid.product_id == product_id)
            if with_bidder:
                query = query.options(joinedload(Bid.bidder))

            return query.order_by(*RANKING_ORDER).all()

    @staticmethod
    def list_bids_for_bidder(db: Session, bidder_id: str, status: Optional[str] = None) -> List[Bid]:
        """All bids placed by a bidder, newest first, with their products"""
        if status is not None:
            try:
                status = BidStatus(status)
            except ValueError:
                raise InvalidState(f"Unknown bid status '{status}'")

        with store_operation(db, "Could not load bids"):
            query = db.query(Bid).options(joinedload(Bid.product)).filter(Bid.bidder_id == bidder_id)

            if status is not None:
                query = query.filter(Bid.status == status)

            return query.order_by(Bid.created_at.desc(), Bid.id.desc()).all()

    @staticmethod
    def get_bid(db: Session, bid_id: str) -> Bid:
        """
        Raises:
            NotFound: If bid does not exist
        """
        with store_operation(db, "Could not load bid"):
            bid = db.query(Bid).filter(Bid.id == bid_id).first()

        if not bid:
            raise NotFound("Bid not found")
        return bid
