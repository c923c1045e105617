# Re-export all models for convenient imports
from storefront.models.user import User, UserRole, PasswordResetToken
from storefront.models.product import Product, ProductImage, Category
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from storefront.models.warranty import Warranty, Claim, ClaimStatus, RegistrationType, WarrantyStatus
from storefront.models.membership import Membership, PaymentMode

__all__ = [
    # Users
    "User",
    "UserRole",
    "PasswordResetToken",
    # Catalogue
    "Product",
    "ProductImage",
    "Category",
    # Cart / orders
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    # After-sales
    "Warranty",
    "Claim",
    "ClaimStatus",
    "RegistrationType",
    "WarrantyStatus",
    # In-store
    "Membership",
    "PaymentMode",
]
