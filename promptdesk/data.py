"""
Data client: record CRUD and image storage for one signed-in user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from promptdesk.db import PromptTable
from promptdesk.storage import FileStorage
from promptdesk.types import AIProvider, PromptFormData, PromptRecord

logger = logging.getLogger(__name__)


def _row_values(form: PromptFormData) -> dict:
    values = form.as_row()
    if not values["ai_provider"]:
        values["ai_provider"] = AIProvider.OPENAI.value
    return values


@dataclass
class DataClient:
    table: PromptTable
    files: FileStorage

    def list_prompts(self, user_id: str) -> List[PromptRecord]:
        return self.table.select_for_user(user_id)

    def create_prompt(self, user_id: str, form: PromptFormData) -> PromptRecord:
        record = self.table.insert(user_id, _row_values(form))
        logger.info("Created prompt %s for user %s", record.id, user_id)
        return record

    def update_prompt(
        self, user_id: str, prompt_id: str, form: PromptFormData
    ) -> PromptRecord:
        record = self.table.update(prompt_id, user_id, _row_values(form))
        logger.info("Updated prompt %s for user %s", prompt_id, user_id)
        return record

    def delete_prompt(self, user_id: str, prompt_id: str) -> None:
        self.table.delete(prompt_id, user_id)
        logger.info("Deleted prompt %s for user %s", prompt_id, user_id)

    def upload_file(self, path: str, data: bytes, content_type: str) -> str:
        """Upload without overwrite and return the public URL of the new object."""
        self.files.upload(path, data, content_type)
        url = self.files.public_url(path)
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return url
