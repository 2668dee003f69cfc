"""Payments API package."""

from academy_payments.api.routes import payment_router

__all__ = ["payment_router"]
