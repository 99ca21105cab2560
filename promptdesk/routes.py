"""
HTTP routes: the auth gate and sign-in pages, and the prompts JSON API.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import RedirectResponse

from promptdesk.config import Settings
from promptdesk.dependencies import Clients, get_clients, get_settings
from promptdesk.errors import AuthError, FormStateError, PromptDeskError
from promptdesk.forms import MAX_IMAGE_BYTES, ImageUpload, PromptForm
from promptdesk.schemas import (
    AuthErrorPageResponse,
    DeletePromptResponse,
    ListPromptsResponse,
    LoginPageResponse,
    PromptPayload,
    PromptResponse,
    PromptUpdatePayload,
    SessionResponse,
    UploadResponse,
)
from promptdesk.types import PromptFormData, PromptRecord
from promptdesk.views import ALL_CATEGORIES, CATEGORY_FILTERS, PromptListView

logger = logging.getLogger(__name__)

pages = APIRouter()
router = APIRouter()

CATEGORY_PATTERN = "^(" + "|".join(CATEGORY_FILTERS) + ")$"
MISSING_CODE_MESSAGE = "Missing authorization code"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


def _with_error(path: str, message: str) -> str:
    return f"{path}?{urlencode({'error_message': message})}"


def _safe_next(value: Optional[str]) -> str:
    # Only local absolute paths; "//host" and backslash tricks would leave the site.
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return "/"
    return value


def _to_response(record: PromptRecord) -> PromptResponse:
    return PromptResponse(**record.as_dict())


def _list_response(view: PromptListView) -> ListPromptsResponse:
    return ListPromptsResponse(
        prompts=[_to_response(record) for record in view.visible],
        total=len(view.prompts),
        category=view.category,
        query=view.query,
        categories=list(CATEGORY_FILTERS),
    )


def _signed_in_view(
    clients: Clients,
    confirm: Optional[Callable[[str], bool]] = None,
    strict: bool = False,
) -> PromptListView:
    view = PromptListView(clients.session, clients.data, confirm=confirm)
    if not view.load(strict=strict):
        raise AuthError("You must be signed in")
    return view


def _read_image(file: UploadFile) -> bytes:
    # One byte past the limit is enough for validation to reject oversized files.
    return file.file.read(MAX_IMAGE_BYTES + 1)


def _submit(
    form: PromptForm, save: Callable[[PromptFormData], PromptRecord]
) -> PromptRecord:
    data = form.submit()
    try:
        record = save(data)
    except PromptDeskError:
        form.finish(False)
        raise
    form.finish(True)
    return record


@pages.get("/")
def home(clients: Clients = Depends(get_clients)):
    if clients.session.get_user() is None:
        return _redirect("/login")
    return _redirect("/dashboard")


@pages.get("/dashboard", response_model=ListPromptsResponse)
def dashboard(
    category: str = Query(ALL_CATEGORIES, pattern=CATEGORY_PATTERN),
    q: str = Query(""),
    clients: Clients = Depends(get_clients),
):
    view = PromptListView(clients.session, clients.data)
    if not view.load():
        return _redirect("/login")
    view.category = category
    view.query = q
    return _list_response(view)


@pages.get("/login", response_model=LoginPageResponse)
def login(error_message: Optional[str] = Query(None)):
    return LoginPageResponse(
        title="Prompt Manager",
        subtitle="Sign in to manage your prompts",
        sign_in_url="/login/google",
        error_message=error_message,
    )


@pages.get("/login/google")
def login_with_google(
    clients: Clients = Depends(get_clients),
    settings: Settings = Depends(get_settings),
):
    try:
        url = clients.session.sign_in_with_oauth(
            "google", settings.oauth_redirect_url, consent=True
        )
    except AuthError as exc:
        logger.warning("Could not start Google sign-in: %s", exc.message)
        return _redirect(_with_error("/login", exc.message))
    return _redirect(url)


@pages.get("/auth/callback")
def auth_callback(
    code: Optional[str] = Query(None),
    next_path: Optional[str] = Query("/", alias="next"),
    clients: Clients = Depends(get_clients),
):
    if not code:
        return _redirect(_with_error("/login", MISSING_CODE_MESSAGE))
    try:
        user = clients.session.exchange_code_for_session(code)
    except AuthError as exc:
        logger.warning("Error exchanging code for session: %s", exc.message)
        return _redirect(_with_error("/auth/auth-code-error", exc.message))
    logger.info("User %s signed in", user.id)
    return _redirect(_safe_next(next_path))


@pages.get("/auth/auth-code-error", response_model=AuthErrorPageResponse)
def auth_code_error(error_message: str = Query("Authentication failed")):
    return AuthErrorPageResponse(error_message=error_message)


@pages.post("/auth/sign-out")
def sign_out(clients: Clients = Depends(get_clients)):
    user = clients.session.get_user()
    clients.session.sign_out()
    if user:
        logger.info("User %s signed out", user.id)
    return _redirect("/login")


@router.get("/session", response_model=SessionResponse)
def current_session(clients: Clients = Depends(get_clients)):
    user = clients.session.get_user()
    if user is None:
        raise AuthError("You must be signed in")
    return SessionResponse(user_id=user.id, email=user.email)


@router.get("/prompts", response_model=ListPromptsResponse)
def list_prompts(
    category: str = Query(ALL_CATEGORIES, pattern=CATEGORY_PATTERN),
    q: str = Query(""),
    clients: Clients = Depends(get_clients),
):
    view = _signed_in_view(clients)
    view.category = category
    view.query = q
    return _list_response(view)


@router.post("/prompts", response_model=PromptResponse, status_code=201)
def create_prompt(payload: PromptPayload, clients: Clients = Depends(get_clients)):
    view = _signed_in_view(clients)
    form = PromptForm()
    form.open()
    form.apply(**payload.model_dump())
    record = _submit(form, view.create)
    return _to_response(record)


@router.put("/prompts/{prompt_id}", response_model=PromptResponse)
def update_prompt(
    prompt_id: str,
    payload: PromptUpdatePayload,
    clients: Clients = Depends(get_clients),
):
    view = _signed_in_view(clients, strict=True)
    form = PromptForm()
    form.open(view.get(prompt_id))
    form.apply(**payload.model_dump(exclude_unset=True))
    record = _submit(form, lambda data: view.update(prompt_id, data))
    return _to_response(record)


@router.delete("/prompts/{prompt_id}", response_model=DeletePromptResponse)
def delete_prompt(
    prompt_id: str,
    confirm: bool = Query(False),
    clients: Clients = Depends(get_clients),
):
    view = _signed_in_view(
        clients, confirm=lambda message: confirm, strict=True
    )
    if not view.delete(prompt_id):
        raise FormStateError("Deletion was not confirmed")
    return DeletePromptResponse(status="ok", id=prompt_id)


@router.post("/uploads", response_model=UploadResponse, status_code=201)
def upload_image(
    file: UploadFile = File(...),
    clients: Clients = Depends(get_clients),
):
    data = _read_image(file)
    form = PromptForm()
    form.open()
    url = form.upload_image(
        ImageUpload(
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=data,
        ),
        clients.session,
        clients.data,
    )
    return UploadResponse(image_url=url)
