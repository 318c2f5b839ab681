"""
Database Models
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models after Base is defined
from fyndak.models.profile import Profile
from fyndak.models.product import Product, ProductStatus
from fyndak.models.bid import Bid, BidStatus, PaymentStatus

__all__ = [
    "Base",
    "Profile",
    "Product",
    "ProductStatus",
    "Bid",
    "BidStatus",
    "PaymentStatus",
]
