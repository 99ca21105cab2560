"""
File storage abstraction for prompt images: Supabase Storage, S3-compatible
object storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from supabase import Client, StorageException

from promptdesk.errors import BackendError

ALREADY_EXISTS_MESSAGE = "The resource already exists"


class FileStorage(Protocol):
    """Defines the operations the app needs from file storage."""

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store data at path; never overwrites an existing object."""
        ...

    def public_url(self, path: str) -> str:
        ...


@dataclass
class InMemoryFileStorage:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1/object/public/prompt-images"
    stored_objects: dict = field(default_factory=dict)

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        if path in self.stored_objects:
            raise BackendError(ALREADY_EXISTS_MESSAGE)
        self.stored_objects[path] = (content_type, bytes(data))

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"


def _storage_error_message(exc: StorageException) -> str:
    # storage3 raises with the decoded JSON error body as its only argument.
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("message") or str(exc.args[0])
    return str(exc)


class SupabaseFileStorage:
    """Bucket in Supabase Storage, reached with the signed-in user's client."""

    def __init__(self, client: Client, bucket: str):
        self._client = client
        self.bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._client.storage.from_(self.bucket).upload(
                path=path,
                file=data,
                file_options={
                    "content-type": content_type,
                    "cache-control": "3600",
                    "upsert": "false",
                },
            )
        except StorageException as exc:
            raise BackendError(_storage_error_message(exc)) from exc

    def public_url(self, path: str) -> str:
        try:
            return self._client.storage.from_(self.bucket).get_public_url(path)
        except StorageException as exc:
            raise BackendError(_storage_error_message(exc)) from exc


@dataclass
class S3FileStorage:
    """
    S3-compatible storage client. Objects are expected to be readable through
    public_base_url (a public bucket or a CDN in front of it).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        try:
            # IfNoneMatch turns the put into a create-only write.
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("PreconditionFailed", "ConditionalRequestConflict"):
                raise BackendError(ALREADY_EXISTS_MESSAGE) from exc
            message = exc.response.get("Error", {}).get("Message") or str(exc)
            raise BackendError(message) from exc
        except BotoCoreError as exc:
            raise BackendError(str(exc)) from exc

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{path}"
