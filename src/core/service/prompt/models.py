"""
Prompt submission models
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from src.core.service.auth.models.user import UserTier

DEFAULT_MODEL = "llama-3.1-8b-instruct"


class PromptRecord(BaseModel):
    """A stored prompt submission; `tier` is the owner's tier when it was submitted"""
    id: UUID
    user_id: UUID
    comment: Optional[str] = None
    prompt: Optional[str] = None
    model: str = DEFAULT_MODEL
    tier: UserTier
    created_at: datetime
    updated_at: datetime
