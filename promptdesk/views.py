"""
List/filter view model for the signed-in user's prompts.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from promptdesk.auth import SessionClient, SessionUser
from promptdesk.data import DataClient
from promptdesk.errors import AuthError, BackendError, PromptNotFoundError
from promptdesk.types import AIProvider, PromptFormData, PromptRecord

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "All"
CATEGORY_FILTERS = (ALL_CATEGORIES, "Work", "Personal", "Art")
DELETE_CONFIRMATION = "Are you sure you want to delete this prompt?"


def filter_prompts(
    records: Iterable[PromptRecord], category: str, query: str
) -> List[PromptRecord]:
    needle = (query or "").lower()
    visible = []
    for record in records:
        if category != ALL_CATEGORIES and record.category.value != category:
            continue
        if needle and needle not in record.title.lower() and needle not in record.content.lower():
            continue
        visible.append(record)
    return visible


class PromptListView:
    """
    Holds the user's prompts and the visible subset for the current category
    selector and search text. Every write re-fetches the full list.
    """

    def __init__(
        self,
        session: SessionClient,
        data: DataClient,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.session = session
        self.data = data
        self._confirm = confirm or (lambda message: False)
        self.user: Optional[SessionUser] = None
        self.prompts: List[PromptRecord] = []
        self.visible: List[PromptRecord] = []
        self._category = ALL_CATEGORIES
        self._query = ""

    @property
    def category(self) -> str:
        return self._category

    @category.setter
    def category(self, value: str) -> None:
        if value not in CATEGORY_FILTERS:
            raise ValueError(f"Unknown category filter: {value}")
        self._category = value
        self._recompute()

    @property
    def query(self) -> str:
        return self._query

    @query.setter
    def query(self, value: str) -> None:
        self._query = value or ""
        self._recompute()

    def _recompute(self) -> None:
        self.visible = filter_prompts(self.prompts, self._category, self._query)

    def _require_user(self) -> SessionUser:
        if self.user is None:
            raise AuthError("You must be signed in")
        return self.user

    def load(self, strict: bool = False) -> bool:
        """
        Resolve the session and fetch prompts; False when nobody is signed in.
        With strict, a failed fetch raises instead of leaving the list empty.
        """
        self.user = self.session.get_user()
        if self.user is None:
            self.prompts = []
            self._recompute()
            return False
        self.refresh(strict=strict)
        return True

    def refresh(self, strict: bool = False) -> None:
        user = self._require_user()
        try:
            self.prompts = self.data.list_prompts(user.id)
        except BackendError as exc:
            if strict:
                raise BackendError(f"Error fetching prompts: {exc.message}") from exc
            logger.warning("Error fetching prompts for %s: %s", user.id, exc.message)
            self.prompts = []
        self._recompute()

    def get(self, prompt_id: str) -> PromptRecord:
        for record in self.prompts:
            if record.id == prompt_id:
                return record
        raise PromptNotFoundError(prompt_id)

    def create(self, form: PromptFormData) -> PromptRecord:
        user = self._require_user()
        try:
            record = self.data.create_prompt(user.id, form)
        except PromptNotFoundError:
            raise
        except BackendError as exc:
            raise BackendError(f"Error creating prompt: {exc.message}") from exc
        self.refresh()
        return record

    def update(self, prompt_id: str, form: PromptFormData) -> PromptRecord:
        user = self._require_user()
        if form.ai_provider is None:
            form = replace(form, ai_provider=AIProvider.OPENAI)
        try:
            record = self.data.update_prompt(user.id, prompt_id, form)
        except PromptNotFoundError:
            raise
        except BackendError as exc:
            raise BackendError(f"Error updating prompt: {exc.message}") from exc
        self.refresh()
        return record

    def delete(self, prompt_id: str) -> bool:
        """Delete after confirmation; False (and no backend call) when declined."""
        user = self._require_user()
        if not self._confirm(DELETE_CONFIRMATION):
            return False
        try:
            self.data.delete_prompt(user.id, prompt_id)
        except PromptNotFoundError:
            raise
        except BackendError as exc:
            raise BackendError(f"Error deleting prompt: {exc.message}") from exc
        self.refresh()
        return True
