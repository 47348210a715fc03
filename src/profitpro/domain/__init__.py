from .models import Product, Sale, SaleReceipt, User, sale_totals
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    AuthorizationError,
    ConflictError,
    InsufficientStockError,
    StorageError,
    CompensatedWriteFailure,
    CompensationFailure,
)

__all__ = [
    "Product",
    "Sale",
    "SaleReceipt",
    "User",
    "sale_totals",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "ConflictError",
    "InsufficientStockError",
    "StorageError",
    "CompensatedWriteFailure",
    "CompensationFailure",
]
