"""
Pydantic schemas for the prompt manager API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from promptdesk.types import AIProvider, Category


class PromptPayload(BaseModel):
    title: str = ""
    content: str = ""
    description: Optional[str] = None
    category: Category = Category.WORK
    ai_provider: Optional[AIProvider] = AIProvider.OPENAI
    image_url: Optional[str] = Field(default=None, max_length=2048)


class PromptUpdatePayload(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    ai_provider: Optional[AIProvider] = None
    image_url: Optional[str] = Field(default=None, max_length=2048)


class PromptResponse(BaseModel):
    id: str
    user_id: str
    title: str
    content: str
    description: Optional[str] = None
    category: Category
    ai_provider: AIProvider
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ListPromptsResponse(BaseModel):
    prompts: list[PromptResponse]
    total: int
    category: str
    query: str
    categories: list[str]


class DeletePromptResponse(BaseModel):
    status: Literal["ok"]
    id: str


class UploadResponse(BaseModel):
    image_url: str


class SessionResponse(BaseModel):
    user_id: str
    email: str


class LoginPageResponse(BaseModel):
    title: str
    subtitle: str
    sign_in_url: str
    error_message: Optional[str] = None


class AuthErrorPageResponse(BaseModel):
    error_message: str
