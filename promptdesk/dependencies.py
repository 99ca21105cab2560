"""
Dependency wiring for the FastAPI app.

Clients are built by a ClientFactory that create_app receives (or builds from
settings) and keeps on app.state; each request gets its own session and data
clients bound to that request's cookies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import Depends, Request

from promptdesk.auth import (
    CookieStore,
    InMemoryAuthServer,
    InMemorySessionClient,
    RequestCookies,
    SessionClient,
    SupabaseSessionClient,
    create_supabase_client,
)
from promptdesk.config import Settings
from promptdesk.data import DataClient
from promptdesk.db import InMemoryPromptTable, PromptTable, SqlPromptTable, SupabasePromptTable
from promptdesk.storage import (
    FileStorage,
    InMemoryFileStorage,
    S3FileStorage,
    SupabaseFileStorage,
)

logger = logging.getLogger(__name__)


@dataclass
class Clients:
    session: SessionClient
    data: DataClient


ClientFactory = Callable[[CookieStore], Clients]


@dataclass
class InMemoryPlatform:
    """Auth, table and storage kept in process memory (development and tests)."""

    auth: InMemoryAuthServer = field(default_factory=InMemoryAuthServer)
    table: PromptTable = field(default_factory=InMemoryPromptTable)
    files: FileStorage = field(default_factory=InMemoryFileStorage)

    def __call__(self, cookies: CookieStore) -> Clients:
        return Clients(
            session=InMemorySessionClient(self.auth, cookies),
            data=DataClient(table=self.table, files=self.files),
        )


class SupabasePlatform:
    """
    Supabase-backed clients. The table and storage default to Supabase as
    well, reached with the signed-in user's client; either can be replaced by
    a long-lived implementation (direct SQL, S3).
    """

    def __init__(
        self,
        settings: Settings,
        table: Optional[PromptTable] = None,
        files: Optional[FileStorage] = None,
    ):
        self.settings = settings
        self.table = table
        self.files = files

    def __call__(self, cookies: CookieStore) -> Clients:
        client = create_supabase_client(
            self.settings.supabase_url, self.settings.supabase_anon_key, cookies
        )
        table = self.table or SupabasePromptTable(client, self.settings.prompts_table)
        files = self.files or SupabaseFileStorage(client, self.settings.storage_bucket)
        return Clients(
            session=SupabaseSessionClient(client),
            data=DataClient(table=table, files=files),
        )


def build_table(settings: Settings) -> Optional[PromptTable]:
    if settings.database_url:
        return SqlPromptTable(settings.database_url)
    return None


def build_file_storage(settings: Settings) -> Optional[FileStorage]:
    if not settings.s3_bucket:
        return None
    return S3FileStorage(
        bucket=settings.s3_bucket,
        region=settings.s3_region or "",
        endpoint=settings.s3_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.s3_public_base_url or "",
    )


def build_client_factory(settings: Settings) -> ClientFactory:
    if settings.use_in_memory_backends:
        return InMemoryPlatform()
    if not settings.supabase_configured:
        logger.warning(
            "SUPABASE_URL/SUPABASE_ANON_KEY not set; serving in-memory backends"
        )
        return InMemoryPlatform()
    factory = SupabasePlatform(
        settings, table=build_table(settings), files=build_file_storage(settings)
    )
    logger.info(
        "Prompt table: %s, file storage: %s",
        factory.table.__class__.__name__ if factory.table else "SupabasePromptTable",
        factory.files.__class__.__name__ if factory.files else "SupabaseFileStorage",
    )
    return factory


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cookies(request: Request) -> RequestCookies:
    """
    One cookie jar per request; the app middleware applies its pending writes
    to the outgoing response.
    """
    jar = getattr(request.state, "cookie_jar", None)
    if jar is None:
        jar = RequestCookies(
            request.cookies, secure=request.app.state.settings.secure_cookies
        )
        request.state.cookie_jar = jar
    return jar


def get_clients(
    request: Request, cookies: RequestCookies = Depends(get_cookies)
) -> Clients:
    return request.app.state.client_factory(cookies)
