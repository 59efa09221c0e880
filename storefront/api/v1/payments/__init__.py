"""Payments module exports"""

from . import router, schemas, services, razorpay_client, webhooks, state_machine

__all__ = ["router", "schemas", "services", "razorpay_client", "webhooks", "state_machine"]
