"""
Request helpers shared by controllers.
"""

from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> Optional[str]:
    """Get client IP, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    user_agent = request.headers.get("User-Agent")
    return user_agent[:256] if user_agent else None
