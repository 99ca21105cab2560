"""
Edit form for a single prompt, including the image upload sub-flow.

Form states:   EMPTY -> EDITING -> SUBMITTING -> CLOSED (success) / EDITING (failure)
               EDITING -> CLOSED (cancel)
Image states:  NO_IMAGE -> UPLOADING -> HAS_IMAGE, or back to the previous
               state when the upload fails.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from promptdesk.auth import SessionClient
from promptdesk.data import DataClient
from promptdesk.errors import (
    AuthError,
    FormStateError,
    FormValidationError,
    PromptDeskError,
)
from promptdesk.types import AIProvider, Category, PromptFormData, PromptRecord

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"
EDITABLE_FIELDS = (
    "title",
    "content",
    "description",
    "category",
    "ai_provider",
    "image_url",
)


class FormState(str, Enum):
    EMPTY = "EMPTY"
    EDITING = "EDITING"
    SUBMITTING = "SUBMITTING"
    CLOSED = "CLOSED"


class ImageState(str, Enum):
    NO_IMAGE = "NO_IMAGE"
    UPLOADING = "UPLOADING"
    HAS_IMAGE = "HAS_IMAGE"


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def sanitize_filename(filename: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "", filename or "")
    return cleaned or "image"


def storage_path(filename: str, now: float) -> str:
    return f"{int(now * 1000)}-{sanitize_filename(filename)}"


def validate_image(upload: ImageUpload) -> None:
    if not (upload.content_type or "").startswith("image/"):
        raise FormValidationError("Please select an image file")
    if upload.size > MAX_IMAGE_BYTES:
        raise FormValidationError("Image must be 5MB or smaller")


def _default_values() -> PromptFormData:
    return PromptFormData(
        title="",
        content="",
        category=Category.WORK,
        ai_provider=AIProvider.OPENAI,
    )


class PromptForm:
    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.state = FormState.EMPTY
        self.image_state = ImageState.NO_IMAGE
        self.editing: Optional[PromptRecord] = None
        self.values = _default_values()

    @property
    def is_edit(self) -> bool:
        return self.editing is not None

    def _require(self, *states: FormState) -> None:
        if self.state not in states:
            raise FormStateError(f"Form is {self.state.value.lower()}")

    def open(self, record: Optional[PromptRecord] = None) -> None:
        self.editing = record
        self.values = record.form_data() if record else _default_values()
        self.image_state = (
            ImageState.HAS_IMAGE if self.values.image_url else ImageState.NO_IMAGE
        )
        self.state = FormState.EDITING

    def apply(self, **changes) -> None:
        self._require(FormState.EDITING)
        for key, value in changes.items():
            if key not in EDITABLE_FIELDS:
                raise FormValidationError(f"Unknown field: {key}")
            try:
                if key == "category":
                    value = Category(value)
                elif key == "ai_provider" and value is not None:
                    value = AIProvider(value)
            except ValueError as exc:
                raise FormValidationError(f"Invalid {key}: {value}") from exc
            self.values = replace(self.values, **{key: value})
        if "image_url" in changes:
            self.image_state = (
                ImageState.HAS_IMAGE if self.values.image_url else ImageState.NO_IMAGE
            )

    def upload_image(
        self, upload: ImageUpload, session: SessionClient, data: DataClient
    ) -> str:
        """
        Validate, upload and attach an image. Rejections happen before any
        backend call; on failure the form keeps its previous values.
        """
        self._require(FormState.EDITING)
        if self.image_state is ImageState.UPLOADING:
            raise FormStateError("An upload is already in progress")
        try:
            validate_image(upload)
        except FormValidationError as exc:
            logger.warning("Rejected upload %r: %s", upload.filename, exc.message)
            raise

        previous = self.image_state
        self.image_state = ImageState.UPLOADING
        try:
            if session.get_user() is None:
                raise AuthError("You must be signed in to upload images")
            path = storage_path(upload.filename, self.clock())
            url = data.upload_file(path, upload.data, upload.content_type)
        except PromptDeskError as exc:
            self.image_state = previous
            logger.warning("Image upload failed: %s", exc.message)
            raise

        self.values = replace(self.values, image_url=url)
        self.image_state = ImageState.HAS_IMAGE
        return url

    def submit(self) -> PromptFormData:
        self._require(FormState.EDITING)
        if self.image_state is ImageState.UPLOADING:
            raise FormStateError("Wait for the image upload to finish")
        title = (self.values.title or "").strip()
        content = (self.values.content or "").strip()
        if not title or not content:
            raise FormValidationError(REQUIRED_FIELDS_MESSAGE)
        self.state = FormState.SUBMITTING
        image_url = self.values.image_url if self.values.category == Category.ART else None
        return replace(self.values, image_url=image_url)

    def finish(self, success: bool) -> None:
        self._require(FormState.SUBMITTING)
        self.state = FormState.CLOSED if success else FormState.EDITING

    def cancel(self) -> None:
        self.state = FormState.CLOSED
