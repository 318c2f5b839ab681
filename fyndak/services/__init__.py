"""
Business Logic Services
"""
from fyndak.services.auction_closer import AuctionCloser, CloseResult, SweepResult
from fyndak.services.bid_service import BidService
from fyndak.services.catalog_service import CatalogService
from fyndak.services.payment_intent import SwishPaymentIntent
from fyndak.services.payment_service import PaymentService
from fyndak.services.profile_service import ProfileService

__all__ = [
    "AuctionCloser",
    "CloseResult",
    "SweepResult",
    "BidService",
    "CatalogService",
    "SwishPaymentIntent",
    "PaymentService",
    "ProfileService",
]
