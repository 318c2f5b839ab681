"""
Product API Routes

Handles:
- Listing and reading products
- Product management (administrators)
- Placing bids and reading a product's bids
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fyndak.core.dependencies import get_current_profile, get_db, get_notifier, require_admin
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Profile
from fyndak.services import BidService, CatalogService

router = APIRouter(prefix="/products", tags=["products"])


# ============================================================================
# REQUEST MODELS
# ============================================================================
class CreateProductRequest(BaseModel):
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    starting_price: Decimal
    end_time: Optional[datetime] = None
    status: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    condition: Optional[str] = None


class UpdateProductRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    starting_price: Optional[Decimal] = None
    end_time: Optional[datetime] = None
    status: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    condition: Optional[str] = None


class PlaceBidRequest(BaseModel):
    amount: Decimal


# ============================================================================
# ROUTES
# ============================================================================
@router.get("")
async def list_products(
    status: Optional[str] = None,
    category: Optional[str] = None,
    seller_id: Optional[str] = None,
    limit: int = Query(50, ge=1),
    db: Session = Depends(get_db)
):
    """List products, newest first"""
    products = CatalogService.list_products(
        db,
        status=status,
        category=category,
        seller_id=seller_id,
        limit=limit
    )

    return {
        "total": len(products),
        "products": [product.to_dict() for product in products]
    }


@router.get("/{product_id}")
async def get_product(product_id: str, db: Session = Depends(get_db)):
    product = CatalogService.get_product(db, product_id)
    return {"product": product.to_dict()}


@router.post("", status_code=201)
async def create_product(
    request: CreateProductRequest,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Create a listing (administrators)"""
    product = await CatalogService.create_product(
        db,
        notifier,
        request.model_dump(),
        seller_id=admin.id
    )

    return {
        "success": True,
        "message": "Product created successfully",
        "product": product.to_dict()
    }


@router.patch("/{product_id}")
async def update_product(
    product_id: str,
    request: UpdateProductRequest,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Update a listing (administrators)"""
    product = await CatalogService.update_product(
        db,
        notifier,
        product_id,
        request.model_dump(exclude_unset=True)
    )

    return {
        "success": True,
        "message": "Product updated successfully",
        "product": product.to_dict()
    }


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Delete a listing and its bids (administrators)"""
    await CatalogService.delete_product(db, notifier, product_id)

    return {
        "success": True,
        "message": "Product deleted successfully",
        "product_id": product_id
    }


@router.post("/{product_id}/bids", status_code=201)
async def place_bid(
    product_id: str,
    request: PlaceBidRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """Place a bid above the current price"""
    bid = await BidService.place_bid(
        db,
        notifier,
        product_id=product_id,
        bidder_id=profile.id,
        amount=request.amount
    )

    return {
        "success": True,
        "message": "Bid placed successfully",
        "bid": bid.to_dict()
    }


@router.get("/{product_id}/bids")
async def get_product_bids(product_id: str, db: Session = Depends(get_db)):
    """Bids for a product, highest first"""
    bids = BidService.list_bids_for_product(db, product_id)

    return {
        "product_id": product_id,
        "total_bids": len(bids),
        "bids": [bid.to_dict() for bid in bids]
    }
