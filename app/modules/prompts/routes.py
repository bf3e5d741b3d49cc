from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user_id
from app.database.supabase_client import get_service_supabase
from app.modules.prompts.schemas import GroupPromptToday, PromptResponseCreate, PromptResponseCreated
from app.modules.prompts.service import PromptService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/groups/{group_id}/prompt", tags=["prompts"])


def get_prompt_service(supabase: Client = Depends(get_service_supabase)) -> PromptService:
    return PromptService(supabase)


@router.get("", response_model=GroupPromptToday)
async def get_group_prompt_today(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: PromptService = Depends(get_prompt_service)
):
    """Today's prompt for the group, with responses so far (members only)"""
    return service.get_group_prompt_today(user_data["id"], group_id)


@router.post("/responses", response_model=PromptResponseCreated, status_code=201)
async def submit_prompt_response(
    group_id: str,
    response_data: PromptResponseCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: PromptService = Depends(get_prompt_service)
):
    """Answer today's prompt; one answer per member per day"""
    return service.submit_response(user_data["id"], group_id, response_data.content, response_data.image_url)
