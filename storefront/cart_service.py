"""
Cart service for managing shopping cart operations with Redis.
"""
import logging
from typing import Any, List, Optional, Tuple

from storefront.redis_client import RedisClient, get_redis_client
from storefront.config import Config
from storefront.models import CartLineItem, CartResponse, coerce_quantity
from storefront.product_store import ProductStore
from storefront.exceptions import (
    ValidationError,
    CartItemNotFoundError,
    RedisConnectionError
)
from storefront.atomic_scripts import AtomicScripts
from storefront.middleware import hash_identifier

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart operations"""

    LINE_ITEM_SEQ_KEY = "cart:line_item_seq"

    def __init__(
        self,
        redis_client: Optional[RedisClient] = None,
        product_store: Optional[ProductStore] = None
    ):
        self.redis = redis_client or get_redis_client()
        self.products = product_store or ProductStore(self.redis)
        self.scripts = AtomicScripts(self.redis)

    def _get_cart_key(self, cart_id: str, part: str) -> str:
        """Generate Redis key for one of the cart hashes"""
        return f"cart:{cart_id}:{part}"

    def _cart_keys(self, cart_id: str) -> Tuple[str, str, str]:
        """Keys of the quantity, product and index hashes"""
        return (
            self._get_cart_key(cart_id, "quantity"),
            self._get_cart_key(cart_id, "product"),
            self._get_cart_key(cart_id, "index")
        )

    def resolve_cart_id(self, cart_id: Optional[str]) -> str:
        """Fall back to the default cart for a missing or blank cart id"""
        if cart_id is None or not str(cart_id).strip():
            return Config.DEFAULT_CART_ID
        return str(cart_id).strip()

    def _validate_quantity(self, quantity: Any):
        try:
            return coerce_quantity(quantity)
        except ValueError as e:
            raise ValidationError(str(e))

    def _clamp(self, quantity) -> int:
        clamped = min(max(quantity, Config.MIN_QUANTITY_PER_ITEM), Config.MAX_QUANTITY_PER_ITEM)
        return int(clamped)

    def add_or_increment(
        self,
        product_id: Any,
        quantity: Any = 1,
        cart_id: Optional[str] = None
    ) -> CartLineItem:
        """
        Add a product to the cart, or increment its existing line item.

        The resulting quantity is min(existing + quantity, MAX_QUANTITY_PER_ITEM);
        going past the cap is a silent clamp. The read, clamp and write run
        as one Lua script so concurrent adds never lose an increment.

        Raises:
            ValidationError: product_id missing or quantity not a finite number >= 1
            ProductNotFoundError: product_id is not in the catalog
        """
        cart_id = self.resolve_cart_id(cart_id)
        product_id = "" if product_id is None else str(product_id).strip()
        if not product_id:
            raise ValidationError("productId is required")

        requested = self._validate_quantity(quantity)
        if requested < Config.MIN_QUANTITY_PER_ITEM:
            raise ValidationError(f"Quantity must be at least {Config.MIN_QUANTITY_PER_ITEM}")

        product = self.products.find_by_id(product_id)

        quantity_key, product_key, index_key = self._cart_keys(cart_id)
        result = self.scripts.add_or_increment(
            index_key=index_key,
            quantity_key=quantity_key,
            product_key=product_key,
            seq_key=self.LINE_ITEM_SEQ_KEY,
            product_id=product_id,
            # min(e + min(q, M), M) == min(e + q, M) for e >= 0
            quantity=self._clamp(requested),
            max_quantity=Config.MAX_QUANTITY_PER_ITEM
        )

        if not isinstance(result, list) or len(result) != 3:
            raise RedisConnectionError(f"Add script returned unexpected result: {result!r}")

        line_item_id, new_quantity, is_new = str(result[0]), int(result[1]), bool(int(result[2]))

        logger.info(
            f"Cart line item {'created' if is_new else 'incremented'}",
            extra={
                "hashed_cart_id": hash_identifier(cart_id),
                "line_item_id": line_item_id,
                "product_id": product_id,
                "quantity": new_quantity
            }
        )

        return CartLineItem(
            id=line_item_id,
            product_id=product_id,
            quantity=new_quantity,
            product=product
        )

    def set_quantity(
        self,
        line_item_id: str,
        quantity: Any,
        cart_id: Optional[str] = None
    ) -> CartLineItem:
        """
        Set a line item's quantity, clamped to [MIN, MAX]. A quantity below
        the minimum keeps the item at the minimum; it never deletes it.

        Raises:
            ValidationError: quantity is not a finite number
            CartItemNotFoundError: line item does not exist
            ProductNotFoundError: line item's product left the catalog; nothing is written
        """
        cart_id = self.resolve_cart_id(cart_id)
        clamped = self._clamp(self._validate_quantity(quantity))

        quantity_key, product_key, _ = self._cart_keys(cart_id)
        product_id = self.redis.hget(product_key, str(line_item_id))
        if product_id is None:
            raise CartItemNotFoundError(str(line_item_id))

        # Line ids are never reused, so the product resolved here is the one the script updates
        product = self.products.find_by_id(product_id)

        updated = self.scripts.set_quantity(
            quantity_key=quantity_key,
            product_key=product_key,
            line_item_id=str(line_item_id),
            quantity=clamped
        )

        if updated is None:
            raise CartItemNotFoundError(str(line_item_id))

        return CartLineItem(
            id=str(line_item_id),
            product_id=product_id,
            quantity=clamped,
            product=product
        )

    def remove(self, line_item_id: str, cart_id: Optional[str] = None) -> None:
        """Remove a line item; raises CartItemNotFoundError if it is already gone"""
        cart_id = self.resolve_cart_id(cart_id)
        quantity_key, product_key, index_key = self._cart_keys(cart_id)

        removed = self.scripts.remove_item(
            quantity_key=quantity_key,
            product_key=product_key,
            index_key=index_key,
            line_item_id=str(line_item_id)
        )

        if not removed:
            raise CartItemNotFoundError(str(line_item_id))

    def get_items(self, cart_id: Optional[str] = None) -> List[CartLineItem]:
        """Get live line items joined with current product data, oldest first"""
        cart_id = self.resolve_cart_id(cart_id)
        quantity_key, product_key, _ = self._cart_keys(cart_id)

        quantities, product_ids = self.redis.hgetall_many(quantity_key, product_key)
        products = self.products.find_many(product_ids.values())

        items: List[CartLineItem] = []
        for line_item_id, product_id in product_ids.items():
            product = products.get(product_id)
            raw_quantity = quantities.get(line_item_id)
            if product is None or raw_quantity is None:
                # Product left the catalog, or the item is mid-removal
                logger.warning(
                    f"Skipping cart line item {line_item_id}",
                    extra={"hashed_cart_id": hash_identifier(cart_id), "product_id": product_id}
                )
                continue

            items.append(CartLineItem(
                id=line_item_id,
                product_id=product_id,
                quantity=int(raw_quantity),
                product=product
            ))

        items.sort(key=lambda item: int(item.id) if item.id.isdigit() else 0)
        return items

    def get_cart(self, cart_id: Optional[str] = None) -> CartResponse:
        """Get cart contents with a freshly computed total"""
        items = self.get_items(cart_id)
        total = sum(item.product.price * item.quantity for item in items)
        return CartResponse(items=items, total=round(total, 2))

    def clear(self, cart_id: Optional[str] = None) -> bool:
        """Delete every line item in the cart with a single DEL"""
        cart_id = self.resolve_cart_id(cart_id)
        deleted = self.redis.delete(*self._cart_keys(cart_id))
        return deleted > 0
