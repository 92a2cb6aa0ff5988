"""
Custom exceptions for the storefront application.
"""

class StorefrontException(Exception):
    """Base exception for storefront operations"""
    pass

class ValidationError(StorefrontException):
    """Raised when a request argument is missing or malformed"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

class EmptyCartError(ValidationError):
    """Raised when checkout is attempted with no line items"""
    def __init__(self):
        super().__init__("Cart is empty")

class NotFoundError(StorefrontException):
    """Base for lookups that found nothing"""
    pass

class ProductNotFoundError(NotFoundError):
    """Raised when a product does not exist in the catalog"""
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")

class CartItemNotFoundError(NotFoundError):
    """Raised when a line item does not exist in the cart"""
    def __init__(self, line_item_id: str):
        self.line_item_id = line_item_id
        super().__init__(f"Cart item not found: {line_item_id}")

class RedisConnectionError(StorefrontException):
    """Raised when a Redis operation fails"""
    pass
