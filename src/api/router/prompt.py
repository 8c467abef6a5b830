"""
Prompt API router - delegates to the prompt controller.
"""

from src.api.controller.prompt.prompt_controller import router as prompt_controller_router

router = prompt_controller_router

__all__ = ['router']
