"""
Catalog seeding from the Fake Store API with a built-in fallback list.
"""
import re
import json
import logging
import http.client
import urllib.parse
import urllib.request
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from storefront.config import Config
from storefront.models import ProductDraft, Product
from storefront.product_store import ProductStore

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_PATTERN = re.compile(r"(images\.unsplash\.com|placehold\.co)")

FALLBACK_PRODUCTS = [
    ProductDraft(name="Wireless Headphones", price=99.99, image="https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Smartphone", price=699.99, image="https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Laptop", price=1299.99, image="https://images.unsplash.com/photo-1496181133206-80ce9b88a853?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Coffee Maker", price=149.99, image="https://images.unsplash.com/photo-1495474472287-4d71bcdd2085?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Running Shoes", price=129.99, image="https://images.unsplash.com/photo-1542291026-7eec264c27ff?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Backpack", price=79.99, image="https://images.unsplash.com/photo-1553062407-98eeb64c6a62?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Watch", price=299.99, image="https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=400&h=400&fit=crop&q=80"),
    ProductDraft(name="Camera", price=899.99, image="https://images.unsplash.com/photo-1502920917128-1aa500764cbd?w=400&h=400&fit=crop&q=80"),
]

TOP_UP_PRODUCTS = [
    ProductDraft(name="Mechanical Keyboard", price=119.99, image="https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=400&h=400&fit=crop&q=80", description="Tactile switches and sturdy build.", category="electronics"),
    ProductDraft(name="USB-C Hub", price=39.99, image="https://images.unsplash.com/photo-1555617117-08fda9b86ea3?w=400&h=400&fit=crop&q=80", description="Expand your laptop ports easily.", category="accessories"),
    ProductDraft(name="Noise Cancelling Earbuds", price=89.99, image="https://images.unsplash.com/photo-1518443893430-bbb00e409013?w=400&h=400&fit=crop&q=80", description="Immersive sound on the go.", category="electronics"),
    ProductDraft(name="Portable SSD", price=149.99, image="https://images.unsplash.com/photo-1546435770-a3e426bf472b?w=400&h=400&fit=crop&q=80", description="Fast external storage.", category="electronics"),
    ProductDraft(name="4K Monitor", price=399.99, image="https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=400&h=400&fit=crop&q=80", description="Crisp visuals for work and play.", category="electronics"),
    ProductDraft(name="Smart Watch", price=199.99, image="https://images.unsplash.com/photo-1523275335684-37898b6baf30?w=400&h=400&fit=crop&q=80", description="Track fitness and stay connected.", category="wearables"),
    ProductDraft(name="Wireless Charger", price=29.99, image="https://images.unsplash.com/photo-1518770660439-4636190af475?w=400&h=400&fit=crop&q=80", description="Convenient Qi charging pad.", category="accessories"),
    ProductDraft(name="Fitness Tracker", price=59.99, image="https://images.unsplash.com/photo-1518623489647-4db959c981be?w=400&h=400&fit=crop&q=80", description="Monitor activity and health.", category="wearables"),
    ProductDraft(name="Action Camera", price=249.99, image="https://images.unsplash.com/photo-1519181245277-cffeb31da2a1?w=400&h=400&fit=crop&q=80", description="Capture adventures in 4K.", category="electronics"),
    ProductDraft(name="Drone", price=599.99, image="https://images.unsplash.com/photo-1523961131990-5ea7d99bb13e?w=400&h=400&fit=crop&q=80", description="Aerial photography made easy.", category="electronics"),
    ProductDraft(name="Desk Lamp", price=39.99, image="https://images.unsplash.com/photo-1512453979798-5ea266f8880c?w=400&h=400&fit=crop&q=80", description="Minimal LED lamp with dimmer.", category="home"),
    ProductDraft(name="Laptop Stand", price=49.99, image="https://images.unsplash.com/photo-1611185974273-3f182a6469ee?w=400&h=400&fit=crop&q=80", description="Ergonomic aluminum stand.", category="accessories"),
]


class CatalogSyncError(Exception):
    """Raised when the Fake Store API cannot be reached or parsed"""
    pass


def _get_json(path: str) -> Any:
    url = f"{Config.FAKE_STORE_API_URL.rstrip('/')}{path}"
    request = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(request, timeout=Config.FAKE_STORE_TIMEOUT_SECONDS) as response:
            return json.loads(response.read().decode())
    except (OSError, http.client.HTTPException, ValueError) as e:
        # URLError and socket timeouts are OSErrors; JSON decode errors are ValueErrors
        raise CatalogSyncError(f"Fake Store API request failed for {path}: {e}")


def _to_draft(item: dict) -> ProductDraft:
    """Map a Fake Store product onto our schema"""
    return ProductDraft(
        name=item.get("title", ""),
        price=item.get("price", 0),
        image=item.get("image", ""),
        description=item.get("description", ""),
        category=item.get("category", "")
    )


def _to_drafts(payload: Any, path: str) -> List[ProductDraft]:
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise CatalogSyncError(f"Fake Store API returned an unexpected payload for {path}")
    try:
        return [_to_draft(item) for item in payload]
    except PydanticValidationError as e:
        raise CatalogSyncError(f"Fake Store API returned an invalid product for {path}: {e}")


def fetch_fake_store_products() -> List[ProductDraft]:
    """Fetch products from the Fake Store API without touching the store"""
    return _to_drafts(_get_json("/products"), "/products")


def get_product_categories() -> List[str]:
    categories = _get_json("/products/categories")
    if not isinstance(categories, list):
        raise CatalogSyncError("Fake Store API returned an unexpected payload for /products/categories")
    return categories


def get_products_by_category(category: str) -> List[ProductDraft]:
    path = f"/products/category/{urllib.parse.quote(category)}"
    return _to_drafts(_get_json(path), path)


def sync_products_from_fake_store(store: ProductStore) -> Optional[List[Product]]:
    """
    Insert Fake Store products when the catalog is empty.

    Returns the inserted products, or None when the catalog already had
    products and no sync was needed.
    """
    drafts = fetch_fake_store_products()
    if store.count() > 0:
        return None

    products = store.insert_many(drafts)
    logger.info(f"Synced {len(products)} products from Fake Store API")
    return products


def seed_fallback_products(store: ProductStore) -> List[Product]:
    """Insert the built-in product list when the catalog is empty"""
    if store.count() > 0:
        return []
    products = store.insert_many(FALLBACK_PRODUCTS)
    logger.info("Products seeded successfully")
    return products


def ensure_minimum_products(store: ProductStore, min_count: int = 20) -> List[Product]:
    """Top up the catalog from the built-in extras until it has min_count products"""
    needed = min_count - store.count()
    if needed <= 0:
        return []

    products = store.insert_many(TOP_UP_PRODUCTS[:needed])
    if products:
        logger.info(f"Top-up seeded {len(products)} products to reach {min_count}")
    return products


def replace_placeholder_images(store: ProductStore) -> int:
    """Rewrite products with placeholder images using Fake Store data, cycling through it"""
    stale = store.find_with_image_matching(PLACEHOLDER_IMAGE_PATTERN)
    if not stale:
        return 0

    drafts = fetch_fake_store_products()
    if not drafts:
        return 0

    for i, product in enumerate(stale):
        store.update(product.id, drafts[i % len(drafts)])

    logger.info(f"Replaced {len(stale)} products with Fake Store images/data")
    return len(stale)


def seed_catalog(store: ProductStore, min_count: Optional[int] = None) -> None:
    """
    Populate the catalog on startup:
    1. Sync from the Fake Store API if the catalog is empty
    2. Fall back to the built-in list if nothing was synced
    3. Top up to the minimum product count
    4. Replace placeholder images with Fake Store ones

    Failures are logged; the service starts with whatever catalog it has.
    """
    min_count = Config.MIN_PRODUCT_COUNT if min_count is None else min_count

    try:
        synced = sync_products_from_fake_store(store)
    except CatalogSyncError as e:
        logger.error(f"Error syncing products from Fake Store API: {e}")
        synced = None
    except Exception as e:
        logger.error(f"Error syncing products from Fake Store API: {e}", exc_info=True)
        synced = None

    try:
        if not synced:
            seed_fallback_products(store)
        ensure_minimum_products(store, min_count)
    except Exception as e:
        logger.error(f"Error seeding products: {e}", exc_info=True)
        return

    try:
        replace_placeholder_images(store)
    except CatalogSyncError as e:
        logger.warning(f"Failed to replace images with Fake Store data: {e}")
    except Exception as e:
        logger.warning(f"Failed to replace images with Fake Store data: {e}", exc_info=True)
