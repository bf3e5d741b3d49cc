from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime


class PromptModel(BaseModel):
    id: str
    text: str
    category: str
    response_type: str


class PromptResponseCreate(BaseModel):
    content: str = Field(default="", max_length=2000)
    image_url: Optional[str] = None


class PromptResponseCreated(BaseModel):
    id: str
    status: str


class Respondent(BaseModel):
    user_id: str
    response_id: str
    content: str
    image_url: Optional[str] = None
    created_at: datetime


class GroupPromptToday(BaseModel):
    group_id: str
    date: date
    prompt: PromptModel
    has_responded: bool
    respondents: List[Respondent]
