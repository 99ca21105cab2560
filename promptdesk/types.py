"""
Record types shared by the table backends, view models and API schemas.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Category(str, Enum):
    WORK = "Work"
    PERSONAL = "Personal"
    ART = "Art"


class AIProvider(str, Enum):
    XAI = "xAI"
    OPENAI = "OpenAI"
    GEMINI = "Gemini"
    OTHER = "Other"


# Columns a prompt owner may write; id, user_id and timestamps belong to the backend.
WRITABLE_FIELDS = (
    "title",
    "content",
    "description",
    "category",
    "ai_provider",
    "image_url",
)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class PromptFormData:
    """The editable part of a prompt."""

    title: str
    content: str
    category: Category = Category.WORK
    ai_provider: Optional[AIProvider] = AIProvider.OPENAI
    description: Optional[str] = None
    image_url: Optional[str] = None

    def as_row(self) -> dict:
        return {
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "category": Category(self.category).value,
            "ai_provider": (
                AIProvider(self.ai_provider).value if self.ai_provider else None
            ),
            "image_url": self.image_url,
        }


@dataclass
class PromptRecord:
    id: str
    user_id: str
    title: str
    content: str
    category: Category
    ai_provider: AIProvider
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "PromptRecord":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in row.items() if key in known}
        values["id"] = str(values["id"])
        values["user_id"] = str(values["user_id"])
        values["category"] = Category(values["category"])
        values["ai_provider"] = AIProvider(
            values.get("ai_provider") or AIProvider.OPENAI.value
        )
        values["created_at"] = parse_timestamp(values["created_at"])
        values["updated_at"] = parse_timestamp(
            values.get("updated_at") or values["created_at"]
        )
        return cls(**values)

    def form_data(self) -> PromptFormData:
        return PromptFormData(
            title=self.title,
            content=self.content,
            category=self.category,
            ai_provider=self.ai_provider,
            description=self.description,
            image_url=self.image_url,
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "category": self.category.value,
            "ai_provider": self.ai_provider.value,
            "image_url": self.image_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
