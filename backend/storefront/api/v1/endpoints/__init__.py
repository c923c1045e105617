# API endpoints
from . import auth, products, categories, cart, orders, payments, warranties, memberships, admin, upload

__all__ = ["auth", "products", "categories", "cart", "orders", "payments", "warranties", "memberships", "admin", "upload"]
