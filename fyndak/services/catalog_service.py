"""
Catalog Service - Business Logic

Handles:
- Product reads and filtered listing
- Product create/update/delete (administrators)
- Change subscriptions for the catalog
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from fyndak.core.errors import InvalidState, NotFound
from fyndak.infrastructure.database import store_operation
from fyndak.infrastructure.notifier import ALL_EVENTS, ChangeCallback, ChangeNotifier
from fyndak.models import Bid, Product, ProductStatus
from fyndak.utils import to_money, to_naive_utc

logger = logging.getLogger(__name__)


def _starting_price(value) -> Decimal:
    try:
        price = to_money(value)
    except ValueError as e:
        raise InvalidState(str(e))

    if price < 0:
        raise InvalidState("Starting price cannot be negative")
    return price


def _status(value) -> ProductStatus:
    try:
        return ProductStatus(value)
    except ValueError:
        raise InvalidState(f"Unknown product status '{value}'")


class CatalogService:
    """
    Service for product listings

    Prices only move up through bids; status only moves forward
    (pending -> active -> ended) and ending belongs to the auction closer.
    """

    @staticmethod
    def get_product(db: Session, product_id: str) -> Product:
        """
        Raises:
            NotFound: If product does not exist
        """
        with store_operation(db, "Could not load product"):
            product = db.query(Product).filter(Product.id == product_id).first()

        if not product:
            raise NotFound("Product not found")
        return product

    @staticmethod
    def list_products(
        db: Session,
        status: Optional[str] = None,
        category: Optional[str] = None,
        seller_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Product]:
        """List products, newest first"""
        with store_operation(db, "Could not load products"):
            query = db.query(Product)

            if status:
                query = query.filter(Product.status == _status(status))
            if category:
                query = query.filter(Product.category == category)
            if seller_id:
                query = query.filter(Product.seller_id == seller_id)

            query = query.order_by(Product.created_at.desc())

            if limit is not None:
                if limit < 0:
                    raise InvalidState("Limit cannot be negative")
                query = query.limit(limit)

            return query.all()

    @staticmethod
    async def create_product(
        db: Session,
        notifier: ChangeNotifier,
        fields: Dict,
        seller_id: Optional[str] = None,
    ) -> Product:
        """
        Create a listing

        Business rules:
        - Name is required
        - Starting price must be >= 0
        - Current price starts at the starting price
        - New listings are active unless created as pending
        """
        if not fields.get("name"):
            raise InvalidState("Product name is required")

        starting_price = _starting_price(fields.get("starting_price", 0))
        status = _status(fields.get("status") or ProductStatus.ACTIVE)
        if status == ProductStatus.ENDED:
            raise InvalidState("A new product cannot be ended")

        with store_operation(db, "Could not save product"):
            product = Product(
                name=fields["name"],
                description=fields.get("description"),
                image_url=fields.get("image_url"),
                starting_price=starting_price,
                current_price=starting_price,
                seller_id=seller_id,
                status=status,
                end_time=to_naive_utc(fields.get("end_time")),
                category=fields.get("category"),
                location=fields.get("location"),
                condition=fields.get("condition"),
            )
            db.add(product)
            db.commit()
            db.refresh(product)

        logger.info(f"Created product: {product.name}", extra={"product_id": product.id})
        await notifier.publish("products", "INSERT", new=product.to_dict())
        return product

    @staticmethod
    async def update_product(
        db: Session,
        notifier: ChangeNotifier,
        product_id: str,
        fields: Dict,
    ) -> Product:
        """
        Update a listing

        A new starting price re-bases the current price while the
        product has no bids; once bids exist it may not exceed the
        current price.
        """
        with store_operation(db, "Could not save product"):
            product = db.query(Product).filter(
                Product.id == product_id
            ).with_for_update().populate_existing().first()
            if not product:
                raise NotFound("Product not found")

            old = product.to_dict()

            if "status" in fields and fields["status"] is not None:
                new_status = _status(fields["status"])
                if new_status != product.status:
                    if not (product.status == ProductStatus.PENDING and new_status == ProductStatus.ACTIVE):
                        raise InvalidState(
                            f"Cannot change status from {product.status.value} to {new_status.value}"
                        )
                    product.status = new_status

            if "starting_price" in fields and fields["starting_price"] is not None:
                starting_price = _starting_price(fields["starting_price"])
                has_bids = db.query(Bid.id).filter(Bid.product_id == product_id).first() is not None

                if not has_bids:
                    product.current_price = starting_price
                elif starting_price > product.current_price:
                    raise InvalidState("Starting price cannot exceed the current price once bids exist")
                product.starting_price = starting_price

            if "name" in fields and not fields["name"]:
                raise InvalidState("Product name is required")

            for key in ("name", "description", "image_url", "category", "location", "condition"):
                if key in fields:
                    setattr(product, key, fields[key])

            if "end_time" in fields:
                product.end_time = to_naive_utc(fields["end_time"])

            db.commit()
            db.refresh(product)

        logger.info("Updated product", extra={"product_id": product_id})
        await notifier.publish("products", "UPDATE", new=product.to_dict(), old=old)
        return product

    @staticmethod
    async def delete_product(db: Session, notifier: ChangeNotifier, product_id: str) -> None:
        """Remove a listing and its bids"""
        with store_operation(db, "Could not delete product"):
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product:
                raise NotFound("Product not found")

            old = product.to_dict()
            db.delete(product)
            db.commit()

        logger.info("Deleted product", extra={"product_id": product_id})
        await notifier.publish("products", "DELETE", old=old)

    @staticmethod
    def subscribe(
        notifier: ChangeNotifier,
        table: str,
        callback: ChangeCallback,
        event: str = ALL_EVENTS,
    ):
        """Subscribe to catalog or bid changes; returns an unsubscribe function"""
        return notifier.subscribe(table, callback, event=event)
