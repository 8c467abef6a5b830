"""
Authentication API router - delegates to the auth controller.
"""

from src.api.controller.auth.auth_controller import router as auth_controller_router, token_router

# Re-export the controller routers
router = auth_controller_router

__all__ = ['router', 'token_router']
