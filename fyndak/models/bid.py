"""
Bid Model
"""
import enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Numeric, String, event, update
from sqlalchemy.orm import relationship

from fyndak.models import Base
from fyndak.models.product import Product
from fyndak.utils import isoformat, new_id, utcnow


class BidStatus(str, enum.Enum):
    """Bid status; won and ended are terminal, outbid is admin-only"""
    ACTIVE = "active"
    OUTBID = "outbid"
    WON = "won"
    ENDED = "ended"


class PaymentStatus(str, enum.Enum):
    """Manual payment handshake state"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class Bid(Base):
    """Bid database model"""

    __tablename__ = "bids"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    bidder_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SQLEnum(BidStatus, name="bid_status", values_callable=_enum_values),
        nullable=False,
        default=BidStatus.ACTIVE,
        index=True,
    )
    payment_status = Column(
        SQLEnum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        nullable=True,
    )
    payment_date = Column(DateTime, nullable=True)
    payment_phone = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    product = relationship("Product", back_populates="bids")
    bidder = relationship("Profile")

    def to_dict(self, include_product: bool = False, include_bidder: bool = False):
        """Convert to dictionary"""
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "bidder_id": self.bidder_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "status": self.status.value if isinstance(self.status, BidStatus) else self.status,
            "payment_status": (
                self.payment_status.value
                if isinstance(self.payment_status, PaymentStatus)
                else self.payment_status
            ),
            "payment_date": isoformat(self.payment_date),
            "payment_phone": self.payment_phone,
            "created_at": isoformat(self.created_at),
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        if include_bidder and self.bidder is not None:
            data["bidder"] = {
                "id": self.bidder.id,
                "full_name": self.bidder.full_name,
                "email": self.bidder.email,
                "phone": self.bidder.phone,
            }
        return data


@event.listens_for(Bid, "after_insert")
def raise_current_price(mapper, connection, target):
    """
    Store-side effect of a new bid: lift the product's current price

    Runs inside the flush that inserts the bid, so the bid row and the
    new floor commit together. Lower amounts never lower the price.
    """
    products = Product.__table__
    connection.execute(
        update(products)
        .where(products.c.id == target.product_id)
        .where(products.c.current_price < target.amount)
        .values(current_price=target.amount, updated_at=utcnow())
    )
