"""
FastAPI application for the storefront catalog, cart and checkout.
"""
import time
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import Config
from storefront.models import (
    AddToCartRequest,
    CartLineItem,
    CartResponse,
    CheckoutRequest,
    Product,
    Receipt,
    UpdateQuantityRequest
)
from storefront.cart_service import CartService
from storefront.checkout_service import CheckoutService
from storefront.product_store import ProductStore
from storefront.catalog_sync import seed_catalog
from storefront.exceptions import (
    NotFoundError,
    ValidationError,
    RedisConnectionError
)
from storefront.middleware import CART_ID_HEADER, RequestLoggingMiddleware
from storefront.redis_client import get_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if Config.SEED_ON_STARTUP:
        try:
            seed_catalog(ProductStore())
        except RedisConnectionError as e:
            logger.error(f"Catalog seeding skipped, Redis unavailable: {e}")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Storefront API",
    description="Catalog, cart and mock checkout backed by Redis",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Logging middleware
app.add_middleware(RequestLoggingMiddleware)

api = APIRouter(prefix="/api")


# Dependencies
def get_cart_id(
    cart_id: Optional[str] = Header(None, alias=CART_ID_HEADER, description="Cart identifier")
) -> str:
    if not cart_id or not cart_id.strip():
        return Config.DEFAULT_CART_ID
    return cart_id.strip()


def get_product_store() -> ProductStore:
    return ProductStore()


def get_cart_service(products: ProductStore = Depends(get_product_store)) -> CartService:
    return CartService(product_store=products)


def get_checkout_service(cart_service: CartService = Depends(get_cart_service)) -> CheckoutService:
    return CheckoutService(cart_service=cart_service)


# Health check endpoint for load balancers
@app.get("/health")
def health_check():
    """
    Health check endpoint.
    Always returns HTTP 200 if the application is running and reports
    Redis connectivity separately.
    """
    redis_status = "healthy"
    redis_latency_ms = None

    try:
        redis_client = get_redis_client()
        ping_start = time.time()
        ping_result = redis_client.ping()
        redis_latency_ms = round((time.time() - ping_start) * 1000, 2)

        if not ping_result:
            redis_status = "unhealthy"
    except RedisConnectionError:
        redis_status = "unhealthy"

    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": "storefront-api",
            "redis": {
                "status": redis_status,
                "latency_ms": redis_latency_ms
            },
            "timestamp": time.time()
        }
    )


# Catalog endpoints
@api.get("/products", response_model=List[Product])
def list_products(products: ProductStore = Depends(get_product_store)):
    """List every product in the catalog"""
    return products.find_all()


# Cart endpoints
@api.get("/cart", response_model=CartResponse)
def get_cart(
    cart_id: str = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get cart line items joined with products and a freshly computed total"""
    return cart_service.get_cart(cart_id)


@api.post("/cart", response_model=CartLineItem)
def add_to_cart(
    request: AddToCartRequest,
    cart_id: str = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """
    Add a product or increment its line item.
    Quantities past the per-item maximum are clamped, not rejected.
    """
    return cart_service.add_or_increment(
        product_id=request.product_id,
        quantity=request.quantity,
        cart_id=cart_id
    )


@api.put("/cart/{item_id}", response_model=CartLineItem)
def update_cart_item(
    item_id: str,
    request: UpdateQuantityRequest,
    cart_id: str = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Set a line item's quantity, clamped to the allowed range"""
    return cart_service.set_quantity(item_id, request.quantity, cart_id=cart_id)


@api.delete("/cart/{item_id}")
def remove_cart_item(
    item_id: str,
    cart_id: str = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove item from cart"""
    cart_service.remove(item_id, cart_id=cart_id)
    return {"message": "Item removed from cart"}


@api.post("/checkout", response_model=Receipt)
def checkout(
    request: CheckoutRequest,
    cart_id: str = Depends(get_cart_id),
    checkout_service: CheckoutService = Depends(get_checkout_service)
):
    """
    Place a mock order for the supplied cart snapshot.
    Clears the whole cart and returns a receipt.
    """
    return checkout_service.checkout(request.cart_items, cart_id=cart_id)


app.include_router(api)


# Error handlers
@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "message": message,
            "details": jsonable_encoder(errors, custom_encoder={Exception: str})
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "message": str(exc)}
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": "Not found", "message": str(exc)}
    )


@app.exception_handler(RedisConnectionError)
async def redis_error_handler(request: Request, exc: RedisConnectionError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "Storage unavailable"}
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
