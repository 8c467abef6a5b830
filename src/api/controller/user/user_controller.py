"""
User controller: profile and usage for the signed-in user.
"""

from fastapi import APIRouter, Depends

from src.api.controller.auth.dto.input_dto import UpdateProfileRequestDto
from src.api.controller.auth.dto.output_dto import UserProfileDto, UsageResponseDto
from src.api.controller.auth.dto.error_responses import AUTH_ERROR_RESPONSES
from src.api.middleware.authentication.jwt_bearer import get_current_user
from src.core.dependencies import get_account_service, get_prompt_service
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.models.user import User
from src.core.service.prompt.prompt_service import PromptService
from src.core.service.usage.models import UsageResult

router = APIRouter(prefix="/user", tags=["User"])


def usage_response(usage: UsageResult, tier: str) -> UsageResponseDto:
    return UsageResponseDto(
        tier=tier,
        limit=usage.limit,
        used=usage.used,
        remaining=usage.remaining,
        period=usage.period,
        resets_at=usage.resets_at
    )


@router.get("/profile", response_model=UserProfileDto, responses=AUTH_ERROR_RESPONSES)
async def get_profile(user: User = Depends(get_current_user)):
    return UserProfileDto.from_user(user)


@router.put("/profile", response_model=UserProfileDto, responses=AUTH_ERROR_RESPONSES)
async def update_profile(
    body: UpdateProfileRequestDto,
    user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service)
):
    """Update first and last name. Email and password are changed elsewhere."""
    updated = await account_service.update_profile(user, body.first_name, body.last_name)
    return UserProfileDto.from_user(updated)


@router.get("/usage", response_model=UsageResponseDto, responses=AUTH_ERROR_RESPONSES)
async def get_usage(
    user: User = Depends(get_current_user),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    usage = await prompt_service.usage(user)
    return usage_response(usage, user.effective_tier(prompt_service.clock()).value)
