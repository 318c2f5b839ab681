"""
Product Model
"""
import enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from fyndak.models import Base
from fyndak.utils import isoformat, new_id, utcnow


class ProductStatus(str, enum.Enum):
    """Listing status; active -> ended is one-way, pending is pre-publish"""
    ACTIVE = "active"
    ENDED = "ended"
    PENDING = "pending"


class Product(Base):
    """Auction listing"""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(String)
    image_url = Column(String)
    starting_price = Column(Numeric(12, 2), nullable=False)
    current_price = Column(Numeric(12, 2), nullable=False)
    seller_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    status = Column(
        SQLEnum(ProductStatus, name="product_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProductStatus.ACTIVE,
        index=True,
    )
    end_time = Column(DateTime, nullable=True, index=True)
    category = Column(String)
    location = Column(String)
    condition = Column(String)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bids = relationship("Bid", back_populates="product", cascade="all, delete-orphan")

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "starting_price": float(self.starting_price) if self.starting_price is not None else None,
            "current_price": float(self.current_price) if self.current_price is not None else None,
            "seller_id": self.seller_id,
            "status": self.status.value if isinstance(self.status, ProductStatus) else self.status,
            "end_time": isoformat(self.end_time),
            "category": self.category,
            "location": self.location,
            "condition": self.condition,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
