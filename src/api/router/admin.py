"""
Admin API router - delegates to the admin controller.
"""

from src.api.controller.admin.admin_controller import router as admin_controller_router

router = admin_controller_router

__all__ = ['router']
