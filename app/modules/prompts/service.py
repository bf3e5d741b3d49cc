import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException
from supabase import Client

from app.core.errors import ErrorCode, ErrorKind, is_unique_violation, rejection, to_http_exception
from app.modules.groups.service import GroupService
from app.modules.prompts.assignment import calendar_date, get_prompt_for_group_on_date

logger = logging.getLogger(__name__)


class PromptService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.groups = GroupService(supabase)

    def _require_membership(self, group_id: str, user_id: str):
        if self.groups.get_membership(group_id, user_id) is None:
            raise to_http_exception(rejection(ErrorKind.VALIDATION_FAILURE, ErrorCode.NOT_GROUP_MEMBER))

    def get_group_prompt_today(self, user_id: str, group_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Today's prompt for a group with the responses posted so far."""
        today = today or calendar_date(datetime.now(timezone.utc))
        self._require_membership(group_id, user_id)
        prompt = get_prompt_for_group_on_date(group_id, today)
        try:
            result = self.supabase.table("prompt_responses")\
                .select("id, user_id, content, image_url, created_at")\
                .eq("group_id", group_id)\
                .eq("response_date", today.isoformat())\
                .order("created_at")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching prompt responses: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
        responses = result.data or []
        return {
            "group_id": group_id,
            "date": today,
            "prompt": {
                "id": prompt.id,
                "text": prompt.text,
                "category": prompt.category,
                "response_type": prompt.response_type,
            },
            "has_responded": any(r["user_id"] == user_id for r in responses),
            "respondents": [
                {
                    "user_id": r["user_id"],
                    "response_id": r["id"],
                    "content": r.get("content") or "",
                    "image_url": r.get("image_url"),
                    "created_at": r["created_at"],
                }
                for r in responses
            ],
        }

    def submit_response(
        self,
        user_id: str,
        group_id: str,
        content: str,
        image_url: Optional[str] = None,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Answer today's prompt. A second answer for the same day is a Conflict, never an overwrite."""
        today = today or calendar_date(datetime.now(timezone.utc))
        self._require_membership(group_id, user_id)
        prompt = get_prompt_for_group_on_date(group_id, today)

        try:
            inserted = self.supabase.table("prompt_responses").insert({
                "group_id": group_id,
                "user_id": user_id,
                "prompt_id": prompt.id,
                "response_date": today.isoformat(),
                "content": content or "",
                "image_url": image_url,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            # The (group_id, user_id, response_date) unique index catches double submits
            if is_unique_violation(e):
                raise to_http_exception(rejection(ErrorKind.CONFLICT, ErrorCode.PROMPT_ALREADY_ANSWERED))
            logger.error(f"Error submitting prompt response: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
        response_id = inserted.data[0]["id"]

        try:
            self.supabase.table("messages").insert({
                "id": str(uuid.uuid4()),
                "group_id": group_id,
                "sender_id": user_id,
                "content": content or "",
                "type": "prompt_response",
                "prompt_response_id": response_id,
                "image_urls": [image_url] if image_url else None,
            }).execute()
        except Exception as e:
            logger.warning(f"Prompt response {response_id} saved but chat message failed: {str(e)}")

        return {"id": response_id, "status": "created"}
