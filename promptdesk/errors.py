"""
Error taxonomy for the prompt manager.

Every error carries the HTTP status it maps to and a message that can be
shown to the user as-is.
"""

from __future__ import annotations


class PromptDeskError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthError(PromptDeskError):
    """Missing or expired credentials, or a failed code exchange."""

    status_code = 401


class FormValidationError(PromptDeskError):
    """Input rejected locally, before any backend call."""

    status_code = 400


class FormStateError(PromptDeskError):
    """The action is not available in the current form or view state."""

    status_code = 409


class BackendError(PromptDeskError):
    """A table or storage call failed; message comes from the backend."""

    status_code = 502


class PromptNotFoundError(BackendError):
    status_code = 404

    def __init__(self, prompt_id: str):
        self.prompt_id = prompt_id
        super().__init__(f"Prompt {prompt_id} not found")
