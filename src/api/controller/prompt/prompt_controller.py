"""
Prompt controller: quota-gated submissions, history and usage.
"""

from fastapi import APIRouter, Depends, Query

from src.api.controller.auth.dto.input_dto import PromptGenerateRequestDto, PromptCommentUpdateDto
from src.api.controller.auth.dto.output_dto import (
    PromptDto, PromptSubmitResponseDto, PromptHistoryResponseDto, UsageResponseDto
)
from src.api.controller.auth.dto.error_responses import AUTH_ERROR_RESPONSES, ErrorResponse
from src.api.controller.user.user_controller import usage_response
from src.api.middleware.authentication.jwt_bearer import get_current_user
from src.core.dependencies import get_prompt_service
from src.core.service.auth.models.user import User
from src.core.service.prompt.models import PromptRecord
from src.core.service.prompt.prompt_service import PromptService

router = APIRouter(prefix="/prompt", tags=["Prompt"])


def _prompt_dto(record: PromptRecord) -> PromptDto:
    return PromptDto(
        id=str(record.id),
        comment=record.comment,
        prompt=record.prompt,
        model=record.model,
        tier=record.tier.value,
        created_at=record.created_at,
        updated_at=record.updated_at
    )


@router.post(
    "/generate",
    response_model=PromptSubmitResponseDto,
    responses={**AUTH_ERROR_RESPONSES, 429: {"model": ErrorResponse, "description": "Usage limit reached"}}
)
async def generate(
    body: PromptGenerateRequestDto,
    user: User = Depends(get_current_user),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    """
    Submit a prompt. Consumes one unit of the current period's allowance;
    answers 429 QUOTA_EXCEEDED once the tier's allowance is used up.
    """
    record, usage = await prompt_service.submit(user, body.comment, body.model)
    return PromptSubmitResponseDto(prompt=_prompt_dto(record), usage=usage_response(usage, record.tier.value))


@router.get("/usage", response_model=UsageResponseDto, responses=AUTH_ERROR_RESPONSES)
async def get_usage(
    user: User = Depends(get_current_user),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    usage = await prompt_service.usage(user)
    return usage_response(usage, user.effective_tier(prompt_service.clock()).value)


@router.get("/history", response_model=PromptHistoryResponseDto, responses=AUTH_ERROR_RESPONSES)
async def history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    """The caller's submissions, newest first."""
    records, total = await prompt_service.history(user, limit=limit, offset=offset)
    return PromptHistoryResponseDto(
        prompts=[_prompt_dto(r) for r in records],
        total=total,
        limit=limit,
        offset=offset
    )


@router.patch(
    "/{prompt_id}",
    response_model=PromptDto,
    responses={**AUTH_ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Prompt not found"}}
)
async def update_comment(
    prompt_id: str,
    body: PromptCommentUpdateDto,
    user: User = Depends(get_current_user),
    prompt_service: PromptService = Depends(get_prompt_service)
):
    """Only the comment of a submission can be edited."""
    record = await prompt_service.update_comment(user, prompt_id, body.comment)
    return _prompt_dto(record)
