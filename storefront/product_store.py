"""
Product store backed by a Redis hash of JSON product documents.
"""
import re
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront.redis_client import RedisClient, get_redis_client
from storefront.models import Product, ProductDraft
from storefront.exceptions import ProductNotFoundError

logger = logging.getLogger(__name__)


def _sort_key(product: Product):
    # Ids come from an INCR counter; keep numeric ids in insertion order
    return (0, int(product.id), "") if product.id.isdigit() else (1, 0, product.id)


class ProductStore:
    """Read contract for the catalog, plus the writes used by seeding"""

    PRODUCTS_KEY = "products"
    SEQ_KEY = "products:seq"

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self.redis = redis_client or get_redis_client()

    def _parse(self, product_id: str, raw: Optional[str]) -> Optional[Product]:
        if raw is None:
            return None
        try:
            return Product.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed product document {product_id}: {e}")
            return None

    def find_by_id(self, product_id: str) -> Product:
        """Get a product or raise ProductNotFoundError"""
        product = self._parse(product_id, self.redis.hget(self.PRODUCTS_KEY, product_id))
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def find_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Get the products that exist among product_ids, keyed by id"""
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        found: Dict[str, Product] = {}
        for product_id, raw in zip(ids, self.redis.hmget(self.PRODUCTS_KEY, ids)):
            product = self._parse(product_id, raw)
            if product is not None:
                found[product_id] = product
        return found

    def find_all(self) -> List[Product]:
        """Get every product in insertion order"""
        products = []
        for product_id, raw in self.redis.hgetall(self.PRODUCTS_KEY).items():
            product = self._parse(product_id, raw)
            if product is not None:
                products.append(product)
        return sorted(products, key=_sort_key)

    def count(self) -> int:
        return self.redis.hlen(self.PRODUCTS_KEY)

    def insert_many(self, drafts: Iterable[ProductDraft]) -> List[Product]:
        """Assign identifiers to drafts and store them"""
        products = []
        for draft in drafts:
            product_id = str(self.redis.incr(self.SEQ_KEY))
            products.append(Product(id=product_id, **draft.model_dump()))

        if products:
            self.redis.hset(
                self.PRODUCTS_KEY,
                mapping={product.id: product.model_dump_json() for product in products}
            )
        return products

    def update(self, product_id: str, draft: ProductDraft) -> Product:
        """Overwrite the attributes of an existing product"""
        self.find_by_id(product_id)
        product = Product(id=product_id, **draft.model_dump())
        self.redis.hset(self.PRODUCTS_KEY, product_id, product.model_dump_json())
        return product

    def find_with_image_matching(self, pattern: "re.Pattern[str]") -> List[Product]:
        """Get products whose image URI matches pattern"""
        return [product for product in self.find_all() if pattern.search(product.image)]
