"""
Usage accounting models
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class UsagePeriod(str, Enum):
    MONTHLY = "monthly"
    DAILY = "daily"


class UsageResult(BaseModel):
    """Counter state after (or instead of) a reservation"""
    allowed: bool
    remaining: int
    limit: int
    used: int
    period: str
    resets_at: datetime
