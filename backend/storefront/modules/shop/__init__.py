"""
Shop Module - Storefront order and payment core.

Features:
- Product catalog with categories
- Inventory ledger with conditional stock decrement
- Checkout with Stripe payments
- Payment reconciliation from Stripe webhooks
"""

from storefront.modules.shop.checkout import CheckoutResult, CheckoutService
from storefront.modules.shop.inventory import InventoryLedger
from storefront.modules.shop.orders import OrderStore
from storefront.modules.shop.payment import PaymentService
from storefront.modules.shop.reconciliation import PaymentReconciler, ReconciliationOutcome
from storefront.modules.shop.service import ShopService

__all__ = [
    "CheckoutResult",
    "CheckoutService",
    "InventoryLedger",
    "OrderStore",
    "PaymentReconciler",
    "PaymentService",
    "ReconciliationOutcome",
    "ShopService",
]
