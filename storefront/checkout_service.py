"""
Checkout service for turning a cart snapshot into a receipt.
"""
import secrets
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront.cart_service import CartService
from storefront.models import Receipt, SnapshotItem
from storefront.exceptions import EmptyCartError, ValidationError
from storefront.middleware import hash_identifier

logger = logging.getLogger(__name__)

ORDER_ID_MIN = 10 ** 11
ORDER_ID_MAX = 10 ** 12


def generate_order_id() -> str:
    """Random 12-digit decimal identifier, uniform over [10^11, 10^12)"""
    return str(ORDER_ID_MIN + secrets.randbelow(ORDER_ID_MAX - ORDER_ID_MIN))


class CheckoutService:
    """Service for checkout operations"""

    def __init__(self, cart_service: Optional[CartService] = None):
        self.cart_service = cart_service or CartService()

    def _parse_snapshot(self, line_items: Iterable[Any]) -> List[SnapshotItem]:
        try:
            return [
                item if isinstance(item, SnapshotItem) else SnapshotItem.model_validate(item)
                for item in line_items
            ]
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid cart item: {e.errors()[0]['msg']}")

    def checkout(
        self,
        line_items: Optional[Iterable[Any]],
        cart_id: Optional[str] = None
    ) -> Receipt:
        """
        Place an order for the caller's cart snapshot:
        1. Reject an empty snapshot (cart untouched)
        2. Total the snapshot as supplied, without re-reading the store
        3. Generate order ID
        4. Clear the whole cart, including items not in the snapshot
        5. Return the receipt

        Args:
            line_items: Cart snapshot held by the caller
            cart_id: Cart to clear (defaults to the shared cart)

        Returns:
            Receipt with status "completed"
        """
        cart_id = self.cart_service.resolve_cart_id(cart_id)
        items = self._parse_snapshot(line_items or [])
        if not items:
            raise EmptyCartError()

        total = round(sum(item.product.price * item.quantity for item in items), 2)
        order_id = generate_order_id()

        self.cart_service.clear(cart_id)

        logger.info(
            f"Order completed: {order_id}",
            extra={
                "order_id": order_id,
                "hashed_cart_id": hash_identifier(cart_id),
                "line_items": len(items),
                "total": total
            }
        )

        return Receipt(
            id=order_id,
            items=items,
            total=total,
            timestamp=datetime.now(timezone.utc),
            status="completed"
        )
