"""API v1 routes aggregation"""

from fastapi import APIRouter

from .session.router import router as session_router
from .cart.router import router as cart_router
from .addresses.router import router as addresses_router
from .checkout.router import router as checkout_router
from .payments.router import router as payments_router
from .orders.router import router as orders_router

# Create v1 router
api_router = APIRouter()

# Include all routers
api_router.include_router(session_router, tags=["Session"])
api_router.include_router(cart_router, prefix="/cart", tags=["Cart"])
api_router.include_router(addresses_router, prefix="/addresses", tags=["Addresses"])
api_router.include_router(checkout_router, prefix="/checkout", tags=["Checkout"])
api_router.include_router(payments_router, prefix="/payments", tags=["Payments"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])

# Export router
router = api_router
