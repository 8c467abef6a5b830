"""
Payment API router - delegates to the payment controller.
"""

from src.api.controller.payment.payment_controller import router as payment_controller_router

router = payment_controller_router

__all__ = ['router']
